import pytest

from services.csv_ingest import DEFAULT_AUTO_ANALYSIS, DEFAULT_HEART_RATE, parse_csv_records
from utils.errors import EmptyIngestError

HEADER = "patient_id,heart_rate,pr,qrs,qt,analysis,I,II,III,aVR,aVL,aVF"


def _line(patient: str, heart_rate: str = "72", samples: str = "0.1;0.2;0.3") -> str:
    return ",".join([patient, heart_rate, "160", "90", "380", "Normal sinus rhythm"] + [samples] * 6)


def test_parse_skips_short_lines():
    text = "\n".join([HEADER, _line("P001"), "P002,80,160", _line("P003")])

    result = parse_csv_records(text)

    assert [r.patient_id for r in result.records] == ["P001", "P003"]
    assert result.skipped == 1
    assert result.records[0].channel_names == ["I", "II", "III", "aVR", "aVL", "aVF"]
    assert result.records[0].channels[0].samples == [0.1, 0.2, 0.3]


def test_parse_applies_legacy_defaults_for_blank_cells():
    line = ",".join(["", "", "", "", "", ""] + ["1;2"] * 6)

    result = parse_csv_records("\n".join([HEADER, line]))

    record = result.records[0]
    assert record.patient_id == "P001"
    assert record.heart_rate == DEFAULT_HEART_RATE
    assert record.auto_analysis == DEFAULT_AUTO_ANALYSIS


def test_parse_skips_non_numeric_and_ragged_lines():
    text = "\n".join(
        [
            HEADER,
            _line("P001", heart_rate="fast"),
            _line("P002", samples="0.1;x"),
            _line("P003"),
        ]
    )

    result = parse_csv_records(text)

    assert [r.patient_id for r in result.records] == ["P003"]
    assert result.skipped == 2


@pytest.mark.asyncio
async def test_ingest_with_two_malformed_of_five_creates_three(core):
    text = "\n".join(
        [
            HEADER,
            _line("P001"),
            "P002,80",
            _line("P003"),
            "garbage",
            _line("P005"),
        ]
    )

    result = await core.records.ingest_csv("Upload", "five lines", "alice", text)

    assert result.created == 3
    assert result.skipped == 2
    assert result.dataset.record_count == 3
    stored = await core.records.get_dataset(result.dataset.id)
    assert stored.record_ids == ["rec1", "rec2", "rec3"]
    record = await core.records.get_record(result.dataset.id, "rec3")
    assert record.patient_id == "P005"


@pytest.mark.asyncio
async def test_ingest_with_no_valid_lines_fails(core):
    with pytest.raises(EmptyIngestError):
        await core.records.ingest_csv("Upload", "", "alice", "\n".join([HEADER, "P001,72", "bad"]))
    assert await core.records.list_datasets() == []


def test_line_with_all_channel_cells_blank_keeps_empty_channels():
    text = "\n".join([HEADER, "P001,72,160,90,380,Normal,,,,,,", "P002,80,,,,,,,,,,"])

    result = parse_csv_records(text)

    assert result.skipped == 0
    assert [r.patient_id for r in result.records] == ["P001", "P002"]
    assert result.records[0].channel_names == ["I", "II", "III", "aVR", "aVL", "aVF"]
    assert all(c.samples == [] for c in result.records[0].channels)


def test_line_with_some_channel_cells_blank_is_skipped():
    partial = ",".join(["P001", "72", "160", "90", "380", "Normal", "0.1;0.2", "", "", "", "", ""])

    result = parse_csv_records("\n".join([HEADER, partial, _line("P002")]))

    assert [r.patient_id for r in result.records] == ["P002"]
    assert result.skipped == 1


@pytest.mark.asyncio
async def test_ingest_of_metadata_only_file_creates_every_record(core):
    text = "\n".join([HEADER] + ["P00{},72,160,90,380,Normal,,,,,,".format(i) for i in range(1, 4)])

    result = await core.records.ingest_csv("Legacy", "no waveforms", "alice", text)

    assert result.created == 3
    assert result.skipped == 0
    record = await core.records.get_record(result.dataset.id, "rec2")
    assert record.patient_id == "P002"
    assert [c.samples for c in record.channels] == [[]] * 6

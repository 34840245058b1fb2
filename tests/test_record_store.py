import pytest

from models.dataset_models import Channel
from utils.errors import NotFound, ValidationError


@pytest.mark.asyncio
async def test_create_dataset_assigns_ids_in_ingest_order(core, record_factory):
    dataset = await core.records.create_dataset("Resting ECG", "desc", "dave", record_factory(3))

    assert dataset.record_ids == ["rec1", "rec2", "rec3"]
    assert dataset.channel_names == ["I", "II", "III"]
    assert dataset.uploaded_by == "dave"

    stored = await core.records.get_dataset(dataset.id)
    assert stored.record_ids == ["rec1", "rec2", "rec3"]


@pytest.mark.asyncio
async def test_dataset_ids_are_unique(core, record_factory):
    first = await core.records.create_dataset("A", "", "dave", record_factory(1))
    second = await core.records.create_dataset("B", "", "dave", record_factory(1))

    assert first.id != second.id
    listed = await core.records.list_datasets()
    assert [d.id for d in listed] == [second.id, first.id]


@pytest.mark.asyncio
async def test_create_dataset_rejects_empty_batch(core, record_factory):
    with pytest.raises(ValidationError):
        await core.records.create_dataset("Empty", "", "dave", [])


@pytest.mark.asyncio
async def test_create_dataset_rejects_channel_mismatch(core, record_factory):
    records = record_factory(2)
    records[1].channels = records[1].channels[:2]

    with pytest.raises(ValidationError):
        await core.records.create_dataset("Mismatch", "", "dave", records)
    assert await core.records.list_datasets() == []


@pytest.mark.asyncio
async def test_create_dataset_rejects_ragged_channels_within_record(core, record_factory):
    records = record_factory(1)
    records[0].channels[0] = Channel(name="I", samples=[0.0])

    with pytest.raises(ValidationError):
        await core.records.create_dataset("Ragged", "", "dave", records)


@pytest.mark.asyncio
async def test_get_record_loads_channels_lazily(core, dataset):
    full = await core.records.get_record(dataset.id, "rec2")
    bare = await core.records.get_record(dataset.id, "rec2", include_channels=False)

    assert full.patient_id == "P002"
    assert [c.name for c in full.channels] == ["I", "II", "III"]
    assert full.channels[0].samples == pytest.approx([0.0, 0.1, 0.2, 0.3])
    assert bare.channels == []


@pytest.mark.asyncio
async def test_get_record_unknown_ids(core, dataset):
    with pytest.raises(NotFound):
        await core.records.get_record("missing", "rec1")
    with pytest.raises(NotFound):
        await core.records.get_record(dataset.id, "rec99")

"""Parse the legacy tabular ECG upload format into record inputs.

Layout: the first non-empty line is a header. Columns 0-5 are patient id,
heart rate, PR interval, QRS duration, QT interval and automatic analysis.
Each further header column names a channel; its cells hold `;`-separated
amplitude samples; all of a line's channel cells may be left blank. Lines
that cannot be parsed are skipped and counted.
"""

from __future__ import annotations

import csv
import io
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import List, Optional

from models.dataset_models import Channel, RecordInput

LOGGER = logging.getLogger(__name__)

REQUIRED_FIELDS = 12
METADATA_FIELDS = 6

DEFAULT_HEART_RATE = 75.0
DEFAULT_PR_INTERVAL = 160.0
DEFAULT_QRS_DURATION = 90.0
DEFAULT_QT_INTERVAL = 380.0
DEFAULT_AUTO_ANALYSIS = "Automatic analysis pending"


class MalformedLine(ValueError):
    """A single data line that cannot become a record."""


@dataclass
class CsvParseResult:
    records: List[RecordInput] = field(default_factory=list)
    skipped: int = 0


def _scalar(raw: str, default: float, column: str) -> float:
    raw = raw.strip()
    if not raw:
        return default
    try:
        return float(raw)
    except ValueError as exc:
        raise MalformedLine(f"{column} is not numeric: {raw!r}") from exc


def _samples(raw: str, channel: str) -> List[float]:
    parts = [p for p in (s.strip() for s in raw.split(";")) if p]
    if not parts:
        raise MalformedLine(f"channel {channel} has no samples")
    try:
        return [float(p) for p in parts]
    except ValueError as exc:
        raise MalformedLine(f"channel {channel} has a non-numeric sample") from exc


def parse_line(
    values: List[str],
    line_number: int,
    channel_names: List[str],
    timestamp: str,
    min_fields: int = REQUIRED_FIELDS,
) -> RecordInput:
    """Build a RecordInput from one split data line.

    A line whose channel cells are all blank is a metadata-only record: its
    channels are kept with no samples.

    Raises:
        MalformedLine: Too few fields, non-numeric scalars or ragged channels.
    """
    required = max(min_fields, METADATA_FIELDS + len(channel_names))
    if len(values) < required:
        raise MalformedLine(f"expected at least {required} fields, got {len(values)}")

    cells = values[METADATA_FIELDS:METADATA_FIELDS + len(channel_names)]
    if all(not cell.strip() for cell in cells):
        channels = [Channel(name=name, samples=[]) for name in channel_names]
    else:
        channels = [Channel(name=name, samples=_samples(cell, name)) for name, cell in zip(channel_names, cells)]
    if len({len(c.samples) for c in channels}) > 1:
        raise MalformedLine("channels have different sample counts")

    return RecordInput(
        patient_id=values[0].strip() or f"P{line_number:03d}",
        timestamp=timestamp,
        heart_rate=_scalar(values[1], DEFAULT_HEART_RATE, "heart rate"),
        pr_interval=_scalar(values[2], DEFAULT_PR_INTERVAL, "PR interval"),
        qrs_duration=_scalar(values[3], DEFAULT_QRS_DURATION, "QRS duration"),
        qt_interval=_scalar(values[4], DEFAULT_QT_INTERVAL, "QT interval"),
        auto_analysis=values[5].strip() or DEFAULT_AUTO_ANALYSIS,
        channels=channels,
    )


def parse_csv_records(
    text: str,
    min_fields: int = REQUIRED_FIELDS,
    timestamp: Optional[str] = None,
) -> CsvParseResult:
    """Parse an uploaded CSV document on a best-effort basis.

    Args:
        text: Whole file content.
        min_fields: Minimum field count for a data line.
        timestamp: Capture time stamped on every record; defaults to now (UTC).

    Returns:
        Parsed records in file order plus the number of skipped data lines.
    """
    timestamp = timestamp or datetime.now(timezone.utc).isoformat(timespec="seconds")
    rows = [row for row in csv.reader(io.StringIO(text)) if any(cell.strip() for cell in row)]
    result = CsvParseResult()
    if not rows:
        return result

    header, data_rows = rows[0], rows[1:]
    channel_names = [name.strip() for name in header[METADATA_FIELDS:]]

    for line_number, values in enumerate(data_rows, start=1):
        try:
            result.records.append(parse_line(values, line_number, channel_names, timestamp, min_fields))
        except MalformedLine as exc:
            result.skipped += 1
            LOGGER.warning("Skipping CSV line %d: %s", line_number, exc)
    return result

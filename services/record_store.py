"""Record store: bulk-ingested, immutable datasets and waveform records."""

from __future__ import annotations

import logging
from datetime import date
from typing import List, Sequence
from uuid import uuid4

from dal.ledger_dal import LedgerDAL
from models.dataset_models import Dataset, IngestResult, Record, RecordInput
from services.csv_ingest import REQUIRED_FIELDS, parse_csv_records
from utils.errors import EmptyIngestError, NotFound, ValidationError

LOGGER = logging.getLogger(__name__)


def _check_shape(records: Sequence[RecordInput]) -> List[str]:
    """Validate channel layout across a batch and return the shared channel names."""
    first_names = records[0].channel_names
    if not first_names:
        raise ValidationError("Records must carry at least one channel.")
    for position, record in enumerate(records):
        if record.channel_names != first_names:
            raise ValidationError(
                f"Record {position + 1} channels {record.channel_names} do not match {first_names}."
            )
        lengths = {len(c.samples) for c in record.channels}
        if len(lengths) > 1:
            raise ValidationError(f"Record {position + 1} has channels with different sample counts.")
    return list(first_names)


class RecordStore:
    """Create and read datasets. Nothing here mutates a dataset after ingest."""

    def __init__(self, dal: LedgerDAL) -> None:
        self._dal = dal

    async def create_dataset(
        self,
        name: str,
        description: str,
        uploaded_by: str,
        records: Sequence[RecordInput],
    ) -> Dataset:
        """Validate and store a new dataset with all of its records.

        Dataset ids are random UUIDs; record ids are `rec1..recN` in batch order.

        Raises:
            ValidationError: Missing name, empty batch or channel-shape mismatch.
        """
        name = (name or "").strip()
        if not name:
            raise ValidationError("Dataset name is required.")
        if not records:
            raise ValidationError("A dataset needs at least one record.")
        channel_names = _check_shape(records)

        dataset_id = uuid4().hex
        stored = [
            Record(
                id=f"rec{position + 1}",
                dataset_id=dataset_id,
                position=position,
                patient_id=item.patient_id,
                timestamp=item.timestamp,
                heart_rate=item.heart_rate,
                pr_interval=item.pr_interval,
                qrs_duration=item.qrs_duration,
                qt_interval=item.qt_interval,
                auto_analysis=item.auto_analysis,
                channels=list(item.channels),
            )
            for position, item in enumerate(records)
        ]
        dataset = Dataset(
            id=dataset_id,
            name=name,
            description=(description or "").strip(),
            uploaded_by=uploaded_by,
            upload_date=date.today().isoformat(),
            channel_names=channel_names,
            record_ids=[r.id for r in stored],
        )
        await self._dal.insert_dataset(dataset, stored)
        LOGGER.info("Created dataset %s (%s) with %d records", dataset_id, name, len(stored))
        return dataset

    async def ingest_csv(
        self,
        name: str,
        description: str,
        uploaded_by: str,
        text: str,
        min_fields: int = REQUIRED_FIELDS,
    ) -> IngestResult:
        """Best-effort bulk ingest from the legacy CSV format.

        Unparseable lines, and lines whose channel layout differs from the first
        good line, are skipped and counted.

        Raises:
            EmptyIngestError: No line produced a record.
        """
        parsed = parse_csv_records(text, min_fields=min_fields)
        records = parsed.records
        skipped = parsed.skipped
        if records:
            reference = records[0].channel_names
            kept = [r for r in records if r.channel_names == reference]
            skipped += len(records) - len(kept)
            records = kept
        if not records:
            raise EmptyIngestError("No valid records found in file.")

        dataset = await self.create_dataset(name, description, uploaded_by, records)
        if skipped:
            LOGGER.warning("Ingest of dataset %s skipped %d malformed lines", dataset.id, skipped)
        return IngestResult(dataset=dataset, created=len(records), skipped=skipped)

    async def list_datasets(self) -> List[Dataset]:
        """Dataset metadata only; channel samples are loaded per record."""
        return await self._dal.list_datasets()

    async def get_dataset(self, dataset_id: str) -> Dataset:
        dataset = await self._dal.get_dataset(dataset_id)
        if dataset is None:
            raise NotFound(f"Dataset {dataset_id!r} not found")
        return dataset

    async def get_record(self, dataset_id: str, record_id: str, include_channels: bool = True) -> Record:
        """Return one record, raising NotFound if the dataset or record is absent."""
        record = await self._dal.get_record(dataset_id, record_id, include_channels=include_channels)
        if record is None:
            if await self._dal.get_dataset(dataset_id) is None:
                raise NotFound(f"Dataset {dataset_id!r} not found")
            raise NotFound(f"Record {record_id!r} not found in dataset {dataset_id!r}")
        return record


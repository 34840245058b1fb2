"""Progress and coverage statistics derived from the ledger on every call.

Nothing here is persisted. When the storage adapter can answer an aggregate
server-side it is used; otherwise the ledger rows are folded locally.
"""

from __future__ import annotations

from collections import Counter
from typing import List

from dal.ledger_dal import LedgerDAL
from models.stats_models import AnnotatorCount, DatasetCoverage, PlatformStats, UserProgress, UserStats
from services.record_store import RecordStore


class ProgressAggregator:
    """Read-only folds over the annotation ledger and the record store.

    Args:
        dal: Persistence collaborator.
        records: Record store, for dataset sizes and existence checks.
        use_store_aggregates: Ask the store for server-side aggregates first.
    """

    def __init__(self, dal: LedgerDAL, records: RecordStore, use_store_aggregates: bool = True) -> None:
        self._dal = dal
        self._records = records
        self._use_store_aggregates = use_store_aggregates

    async def user_progress(self, username: str, dataset_id: str) -> UserProgress:
        """Distinct records of the dataset that `username` has annotated."""
        dataset = await self._records.get_dataset(dataset_id)
        record_ids = set(dataset.record_ids)
        annotations = await self._dal.list_user_annotations(username, dataset_id)
        annotated = {a.record_id for a in annotations if a.record_id in record_ids}
        return UserProgress(annotated=len(annotated), total=len(record_ids))

    async def dataset_coverage(self, dataset_id: str) -> DatasetCoverage:
        """Records with at least one annotation from anyone, counted once each."""
        dataset = await self._records.get_dataset(dataset_id)
        if self._use_store_aggregates:
            delegated = await self._dal.dataset_progress(dataset_id)
            if delegated is not None:
                return delegated

        record_ids = set(dataset.record_ids)
        annotations = [a for a in await self._dal.list_dataset_annotations(dataset_id) if a.record_id in record_ids]
        return DatasetCoverage(
            total_records=len(record_ids),
            annotated_records=len({a.record_id for a in annotations}),
            distinct_annotators=len({a.annotator for a in annotations}),
        )

    async def user_stats(self, username: str) -> UserStats:
        if self._use_store_aggregates:
            delegated = await self._dal.user_annotation_stats(username)
            if delegated is not None:
                return delegated

        annotations = await self._dal.list_user_annotations(username)
        return UserStats(
            total_annotations=len(annotations),
            datasets_worked_on=len({a.dataset_id for a in annotations}),
        )

    async def annotator_breakdown(self, dataset_id: str) -> List[AnnotatorCount]:
        """Per annotator, how many records of the dataset they annotated; busiest first."""
        await self._records.get_dataset(dataset_id)
        counts = Counter(a.annotator for a in await self._dal.list_dataset_annotations(dataset_id))
        return [
            AnnotatorCount(annotator=name, annotated=count)
            for name, count in sorted(counts.items(), key=lambda item: (-item[1], item[0]))
        ]

    async def platform_stats(self) -> PlatformStats:
        datasets = await self._records.list_datasets()
        users = await self._dal.list_users()
        annotations = await self._dal.list_all_annotations()
        return PlatformStats(
            total_datasets=len(datasets),
            total_records=sum(d.record_count for d in datasets),
            total_users=len(users),
            total_annotations=len(annotations),
        )

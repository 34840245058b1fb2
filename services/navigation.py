"""Record navigation: resume position and clamped manual stepping."""

from __future__ import annotations

from dal.ledger_dal import LedgerDAL
from models.stats_models import ResumePosition
from services.record_store import RecordStore


def next_index(current: int, total: int) -> int:
    """Step forward; a no-op on the last record."""
    if total <= 0:
        return 0
    return min(max(current, 0) + 1, total - 1)


def previous_index(current: int, total: int) -> int:
    """Step back; a no-op on the first record."""
    if total <= 0:
        return 0
    return max(min(current, total - 1) - 1, 0)


class NavigationPolicy:
    def __init__(self, dal: LedgerDAL, records: RecordStore) -> None:
        self._dal = dal
        self._records = records

    async def resume(self, username: str, dataset_id: str) -> ResumePosition:
        """Position after the user's most recently saved record in the dataset.

        The latest save is chosen by timestamp; equal timestamps fall back to
        the store's insertion order. Resuming past the final record wraps to 0
        with `wrapped=True`.
        """
        dataset = await self._records.get_dataset(dataset_id)
        positions = {record_id: idx for idx, record_id in enumerate(dataset.record_ids)}
        annotations = [
            a for a in await self._dal.list_user_annotations(username, dataset_id) if a.record_id in positions
        ]
        if not annotations:
            return ResumePosition(index=0)

        # sorted() is stable, so the later-inserted entry wins a timestamp tie.
        latest = sorted(annotations, key=lambda a: a.timestamp)[-1]
        index = positions[latest.record_id] + 1
        if index >= len(dataset.record_ids):
            return ResumePosition(index=0, wrapped=True)
        return ResumePosition(index=index)

"""Read-only cross-annotator view of a single record for privileged roles."""

from __future__ import annotations

from typing import List

from models.annotation_models import AnnotationView
from models.user_models import Role, can_review
from services.annotation_ledger import AnnotationLedger
from services.record_store import RecordStore
from utils.errors import Forbidden


class ReviewProjection:
    def __init__(self, ledger: AnnotationLedger, records: RecordStore) -> None:
        self._ledger = ledger
        self._records = records

    async def review_view(self, dataset_id: str, record_id: str, requester_role: Role | str) -> List[AnnotationView]:
        """Every annotator's live entry on a record, ordered by annotator name.

        Role and institution come from each annotation's snapshot.

        Raises:
            Forbidden: `requester_role` is not expert or admin (checked first).
            NotFound: Unknown dataset or record.
        """
        if not can_review(requester_role):
            raise Forbidden("Only experts and administrators can review annotations.")
        await self._records.get_record(dataset_id, record_id, include_channels=False)
        annotations = await self._ledger.get_all_annotations_for_record(dataset_id, record_id)
        return [AnnotationView.from_annotation(a) for a in sorted(annotations, key=lambda a: a.annotator)]

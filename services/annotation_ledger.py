"""Annotation ledger: one live annotation per (user, dataset, record).

Saving for an existing key overwrites content, status and timestamp in
place. Every save and review is written together with an audit entry.
"""

from __future__ import annotations

import logging
from dataclasses import replace
from datetime import datetime, timezone
from typing import Callable, List, Optional

from dal.ledger_dal import LedgerDAL
from models.annotation_models import (
    SUBMITTABLE_STATUSES,
    Annotation,
    AnnotationKey,
    AnnotationStatus,
    HistoryAction,
    HistoryEntry,
)
from services.record_store import RecordStore
from utils.errors import NotFound, ValidationError

LOGGER = logging.getLogger(__name__)

Clock = Callable[[], datetime]


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def _check_confidence(value: Optional[float]) -> Optional[float]:
    if value is None:
        return None
    if isinstance(value, bool) or not isinstance(value, (int, float)) or not 0.0 <= value <= 1.0:
        raise ValidationError(f"Confidence score must be a number between 0 and 1, got {value!r}.")
    return float(value)


class AnnotationLedger:
    """Authoritative store of annotations.

    Args:
        dal: Persistence collaborator.
        records: Record store used to check that a record exists before saving.
        clock: Source of save timestamps; injectable for deterministic ordering.
    """

    def __init__(self, dal: LedgerDAL, records: RecordStore, clock: Clock = utc_now) -> None:
        self._dal = dal
        self._records = records
        self._clock = clock

    async def save_annotation(
        self,
        annotator: str,
        dataset_id: str,
        record_id: str,
        content: str,
        status: AnnotationStatus | str,
        findings: Optional[str] = None,
        confidence_score: Optional[float] = None,
    ) -> Annotation:
        """Create or overwrite the caller's annotation on a record.

        The role/institution snapshot is taken from the user profile when the
        annotation is first created and kept on later saves. Resubmitting an
        annotation that was reviewed drops the review, so it must be reviewed
        again. `findings` and `confidence_score` are replaced on every save.

        Raises:
            ValidationError: Unknown status, `reviewed` submitted directly, or a
                confidence score outside 0..1.
            NotFound: Unknown user, dataset or record.
        """
        parsed = AnnotationStatus.parse(status)
        if parsed not in SUBMITTABLE_STATUSES:
            raise ValidationError("Status 'reviewed' can only be set by a reviewer.")
        confidence_score = _check_confidence(confidence_score)
        findings = (findings or "").strip() or None

        user = await self._dal.get_user(annotator)
        if user is None:
            raise NotFound(f"User {annotator!r} not found")
        await self._records.get_record(dataset_id, record_id, include_channels=False)

        key = AnnotationKey(annotator, dataset_id, record_id)
        content = (content or "").strip()
        now = self._clock()
        existing = await self._dal.get_annotation(key)

        if existing is None:
            annotation = Annotation(
                annotator=annotator,
                dataset_id=dataset_id,
                record_id=record_id,
                content=content,
                status=parsed,
                timestamp=now,
                annotator_role=user.role,
                institution=user.institution,
                created_at=now,
                findings=findings,
                confidence_score=confidence_score,
            )
            entry = HistoryEntry(
                *key,
                acting_user=annotator,
                action=HistoryAction.CREATED,
                created_at=now,
                new_status=parsed,
                new_content=content,
            )
        else:
            annotation = replace(
                existing,
                content=content,
                status=parsed,
                timestamp=now,
                findings=findings,
                confidence_score=confidence_score,
                version=existing.version + 1,
                reviewed_by=None,
                reviewed_at=None,
                review_notes=None,
            )
            entry = HistoryEntry(
                *key,
                acting_user=annotator,
                action=HistoryAction.UPDATED,
                created_at=now,
                old_status=existing.status,
                new_status=parsed,
                old_content=existing.content,
                new_content=content,
            )

        await self._dal.write_annotation(annotation, entry)
        return annotation

    async def get_annotation(self, annotator: str, dataset_id: str, record_id: str) -> Optional[Annotation]:
        return await self._dal.get_annotation(AnnotationKey(annotator, dataset_id, record_id))

    async def get_all_annotations_for_record(self, dataset_id: str, record_id: str) -> List[Annotation]:
        """One live annotation per distinct annotator on the record."""
        return await self._dal.list_record_annotations(dataset_id, record_id)

    async def review_annotation(self, key: AnnotationKey, reviewer: str, notes: Optional[str] = None) -> Annotation:
        """Mark an annotation as reviewed.

        The caller is responsible for checking the reviewer's role. Only a
        `confirmed` or `unsure` annotation can be reviewed; once reviewed it
        stays so until its annotator saves it again.

        Raises:
            NotFound: No live annotation for `key`.
            ValidationError: The annotation is already reviewed.
        """
        existing = await self._dal.get_annotation(key)
        if existing is None:
            raise NotFound(f"No annotation by {key.annotator!r} on {key.dataset_id}/{key.record_id}")
        if existing.status is AnnotationStatus.REVIEWED:
            raise ValidationError(
                f"Annotation by {key.annotator!r} on {key.dataset_id}/{key.record_id} "
                f"was already reviewed by {existing.reviewed_by!r}."
            )

        now = self._clock()
        annotation = replace(
            existing,
            status=AnnotationStatus.REVIEWED,
            reviewed_by=reviewer,
            reviewed_at=now,
            review_notes=(notes or "").strip() or None,
        )
        await self._dal.write_annotation(
            annotation,
            HistoryEntry(
                *key,
                acting_user=reviewer,
                action=HistoryAction.REVIEWED,
                created_at=now,
                old_status=existing.status,
                new_status=AnnotationStatus.REVIEWED,
            ),
        )
        LOGGER.info("Annotation %s/%s by %s reviewed by %s", key.dataset_id, key.record_id, key.annotator, reviewer)
        return annotation

    async def history(self, key: AnnotationKey) -> List[HistoryEntry]:
        return await self._dal.list_history(key)

    async def user_annotations(self, username: str, dataset_id: Optional[str] = None) -> List[Annotation]:
        """Every live annotation of `username`, most recently saved first."""
        annotations = await self._dal.list_user_annotations(username, dataset_id)
        return sorted(annotations, key=lambda a: a.timestamp, reverse=True)

    async def recent_activity(self, limit: int = 10) -> List[Annotation]:
        annotations = await self._dal.list_all_annotations()
        annotations.sort(key=lambda a: a.timestamp, reverse=True)
        return annotations[:limit]

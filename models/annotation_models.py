"""Annotation ledger entities: live annotations, history entries and review views."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any, Dict, NamedTuple, Optional

from models.user_models import Role
from utils.errors import ValidationError


class AnnotationStatus(str, Enum):
    CONFIRMED = "confirmed"
    UNSURE = "unsure"
    REVIEWED = "reviewed"

    @classmethod
    def parse(cls, value: Any) -> "AnnotationStatus":
        """Return the status for `value`, raising ValidationError if unknown."""
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError as exc:
            raise ValidationError(f"Unknown annotation status: {value!r}") from exc


# Statuses an annotator may submit directly; `reviewed` is set by a reviewer only.
SUBMITTABLE_STATUSES = frozenset({AnnotationStatus.CONFIRMED, AnnotationStatus.UNSURE})


class HistoryAction(str, Enum):
    CREATED = "created"
    UPDATED = "updated"
    REVIEWED = "reviewed"


class AnnotationKey(NamedTuple):
    """Composite key of a live annotation: one entry per (user, dataset, record)."""

    annotator: str
    dataset_id: str
    record_id: str


def _iso(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat(timespec="microseconds") if value is not None else None


def _parse_iso(value: Optional[str]) -> Optional[datetime]:
    return datetime.fromisoformat(value) if value else None


@dataclass
class Annotation:
    """One user's diagnostic judgment on one record.

    Attributes:
        annotator: Username of the annotator.
        dataset_id: Dataset the record belongs to.
        record_id: Record id within the dataset.
        content: Free-text diagnosis.
        status: Current status.
        timestamp: Time of the most recent save (re-set on every save).
        annotator_role: Role snapshot taken when the annotation was created.
        institution: Institution snapshot taken when the annotation was created.
        findings: Optional free-text findings supporting the diagnosis.
        confidence_score: Optional self-reported confidence between 0 and 1.
        created_at: Time of the first save.
        version: Number of saves applied to this key (1 after creation).
        reviewed_by: Reviewer username, if reviewed.
        reviewed_at: Review time, if reviewed.
        review_notes: Reviewer notes, if reviewed.
    """

    annotator: str
    dataset_id: str
    record_id: str
    content: str
    status: AnnotationStatus
    timestamp: datetime
    annotator_role: Role
    institution: str = ""
    findings: Optional[str] = None
    confidence_score: Optional[float] = None
    created_at: Optional[datetime] = None
    version: int = 1
    reviewed_by: Optional[str] = None
    reviewed_at: Optional[datetime] = None
    review_notes: Optional[str] = None

    @property
    def key(self) -> AnnotationKey:
        return AnnotationKey(self.annotator, self.dataset_id, self.record_id)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "annotator": self.annotator,
            "dataset_id": self.dataset_id,
            "record_id": self.record_id,
            "content": self.content,
            "status": self.status.value,
            "timestamp": _iso(self.timestamp),
            "annotator_role": self.annotator_role.value,
            "institution": self.institution,
            "findings": self.findings,
            "confidence_score": self.confidence_score,
            "created_at": _iso(self.created_at),
            "version": self.version,
            "reviewed_by": self.reviewed_by,
            "reviewed_at": _iso(self.reviewed_at),
            "review_notes": self.review_notes,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Annotation":
        return cls(
            annotator=data["annotator"],
            dataset_id=data["dataset_id"],
            record_id=data["record_id"],
            content=data.get("content") or "",
            status=AnnotationStatus.parse(data["status"]),
            timestamp=_parse_iso(data["timestamp"]),
            annotator_role=Role.parse(data["annotator_role"]),
            institution=data.get("institution") or "",
            findings=data.get("findings"),
            confidence_score=data.get("confidence_score"),
            created_at=_parse_iso(data.get("created_at")),
            version=int(data.get("version") or 1),
            reviewed_by=data.get("reviewed_by"),
            reviewed_at=_parse_iso(data.get("reviewed_at")),
            review_notes=data.get("review_notes"),
        )


@dataclass
class HistoryEntry:
    """Append-only audit row written on every save or review."""

    annotator: str
    dataset_id: str
    record_id: str
    acting_user: str
    action: HistoryAction
    created_at: datetime
    old_status: Optional[AnnotationStatus] = None
    new_status: Optional[AnnotationStatus] = None
    old_content: Optional[str] = None
    new_content: Optional[str] = None

    @property
    def key(self) -> AnnotationKey:
        return AnnotationKey(self.annotator, self.dataset_id, self.record_id)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "annotator": self.annotator,
            "dataset_id": self.dataset_id,
            "record_id": self.record_id,
            "acting_user": self.acting_user,
            "action": self.action.value,
            "created_at": _iso(self.created_at),
            "old_status": self.old_status.value if self.old_status else None,
            "new_status": self.new_status.value if self.new_status else None,
            "old_content": self.old_content,
            "new_content": self.new_content,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "HistoryEntry":
        old_status = data.get("old_status")
        new_status = data.get("new_status")
        return cls(
            annotator=data["annotator"],
            dataset_id=data["dataset_id"],
            record_id=data["record_id"],
            acting_user=data["acting_user"],
            action=HistoryAction(data["action"]),
            created_at=_parse_iso(data["created_at"]),
            old_status=AnnotationStatus.parse(old_status) if old_status else None,
            new_status=AnnotationStatus.parse(new_status) if new_status else None,
            old_content=data.get("old_content"),
            new_content=data.get("new_content"),
        )


@dataclass
class AnnotationView:
    """Review-time view of one annotator's entry on a record.

    Role and institution come from the annotation snapshot, not the live user.
    """

    annotator: str
    annotator_role: Role
    institution: str
    content: str
    status: AnnotationStatus
    timestamp: datetime
    findings: Optional[str] = None
    confidence_score: Optional[float] = None
    reviewed_by: Optional[str] = None
    review_notes: Optional[str] = None

    @classmethod
    def from_annotation(cls, annotation: Annotation) -> "AnnotationView":
        return cls(
            annotator=annotation.annotator,
            annotator_role=annotation.annotator_role,
            institution=annotation.institution,
            content=annotation.content,
            status=annotation.status,
            timestamp=annotation.timestamp,
            findings=annotation.findings,
            confidence_score=annotation.confidence_score,
            reviewed_by=annotation.reviewed_by,
            review_notes=annotation.review_notes,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "annotator": self.annotator,
            "annotator_role": self.annotator_role.value,
            "institution": self.institution,
            "content": self.content,
            "status": self.status.value,
            "timestamp": _iso(self.timestamp),
            "findings": self.findings,
            "confidence_score": self.confidence_score,
            "reviewed_by": self.reviewed_by,
            "review_notes": self.review_notes,
        }

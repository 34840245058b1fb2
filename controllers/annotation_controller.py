"""Annotation saves, lookups, history and reviews."""

from __future__ import annotations

from typing import Any, Dict, List, Optional

from fastapi import Request

from controllers.caller import current_user
from models.annotation_models import AnnotationKey
from models.user_models import can_review
from services.annotation_ledger import AnnotationLedger
from services.navigation import next_index
from services.record_store import RecordStore
from utils.errors import Forbidden, NotFound


async def save_annotation(
    request: Request,
    dataset_id: str,
    record_id: str,
    content: str,
    status: str,
    findings: Optional[str] = None,
    confidence_score: Optional[float] = None,
) -> Dict[str, Any]:
    """Save the caller's annotation and report which record to open next."""
    user = await current_user(request)
    ledger: AnnotationLedger = request.app.state.ledger
    records: RecordStore = request.app.state.records

    annotation = await ledger.save_annotation(
        user.username, dataset_id, record_id, content, status, findings, confidence_score
    )
    dataset = await records.get_dataset(dataset_id)
    position = dataset.record_ids.index(record_id)
    following = next_index(position, dataset.record_count)
    return {
        "annotation": annotation.to_dict(),
        "next_index": following,
        "last_record": following == position,
    }


async def get_annotation(request: Request, dataset_id: str, record_id: str) -> Dict[str, Any]:
    user = await current_user(request)
    ledger: AnnotationLedger = request.app.state.ledger
    annotation = await ledger.get_annotation(user.username, dataset_id, record_id)
    if annotation is None:
        raise NotFound(f"No annotation by {user.username!r} on {dataset_id}/{record_id}")
    return annotation.to_dict()


async def annotation_history(
    request: Request,
    dataset_id: str,
    record_id: str,
    annotator: Optional[str] = None,
) -> List[Dict[str, Any]]:
    """History of the caller's annotation; reviewers may ask for another annotator's."""
    user = await current_user(request)
    target = annotator or user.username
    if target != user.username and not can_review(user.role):
        raise Forbidden("Only experts and administrators can view other annotators' history.")
    ledger: AnnotationLedger = request.app.state.ledger
    entries = await ledger.history(AnnotationKey(target, dataset_id, record_id))
    return [e.to_dict() for e in entries]


async def review_annotation(
    request: Request,
    dataset_id: str,
    record_id: str,
    annotator: str,
    notes: Optional[str],
) -> Dict[str, Any]:
    user = await current_user(request)
    if not can_review(user.role):
        raise Forbidden("Only experts and administrators can review annotations.")
    ledger: AnnotationLedger = request.app.state.ledger
    annotation = await ledger.review_annotation(AnnotationKey(annotator, dataset_id, record_id), user.username, notes)
    return annotation.to_dict()

"""Dataset ingest, record reads and per-dataset progress."""

from __future__ import annotations

from typing import Any, Dict, List, Sequence

from fastapi import Request, UploadFile

from controllers.caller import current_user
from models.dataset_models import RecordInput
from services.navigation import NavigationPolicy
from services.progress import ProgressAggregator
from services.record_store import RecordStore
from utils.errors import ValidationError


async def list_datasets(request: Request) -> List[Dict[str, Any]]:
    """Dataset metadata with the caller's own progress on each."""
    user = await current_user(request)
    records: RecordStore = request.app.state.records
    progress: ProgressAggregator = request.app.state.progress

    results = []
    for dataset in await records.list_datasets():
        user_progress = await progress.user_progress(user.username, dataset.id)
        results.append({**dataset.to_dict(), "progress": user_progress.to_dict()})
    return results


async def create_dataset(
    request: Request,
    name: str,
    description: str,
    items: Sequence[RecordInput],
) -> Dict[str, Any]:
    user = await current_user(request)
    records: RecordStore = request.app.state.records
    dataset = await records.create_dataset(name, description, user.username, items)
    return dataset.to_dict()


async def upload_dataset(request: Request, name: str, description: str, file: UploadFile) -> Dict[str, Any]:
    """Ingest an uploaded CSV file; malformed lines are skipped and counted."""
    user = await current_user(request)
    raw = await file.read()
    try:
        text = raw.decode("utf-8-sig")
    except UnicodeDecodeError as exc:
        raise ValidationError("Uploaded file must be UTF-8 encoded CSV.") from exc

    records: RecordStore = request.app.state.records
    result = await records.ingest_csv(name, description, user.username, text)
    return {"dataset": result.dataset.to_dict(), "created": result.created, "skipped": result.skipped}


async def get_record(request: Request, dataset_id: str, record_id: str) -> Dict[str, Any]:
    await current_user(request)
    records: RecordStore = request.app.state.records
    record = await records.get_record(dataset_id, record_id)
    return record.to_dict()


async def user_progress(request: Request, dataset_id: str) -> Dict[str, Any]:
    user = await current_user(request)
    progress: ProgressAggregator = request.app.state.progress
    result = await progress.user_progress(user.username, dataset_id)
    return result.to_dict()


async def dataset_coverage(request: Request, dataset_id: str) -> Dict[str, Any]:
    await current_user(request)
    progress: ProgressAggregator = request.app.state.progress
    coverage = await progress.dataset_coverage(dataset_id)
    return coverage.to_dict()


async def annotator_breakdown(request: Request, dataset_id: str) -> List[Dict[str, Any]]:
    await current_user(request)
    progress: ProgressAggregator = request.app.state.progress
    return [c.to_dict() for c in await progress.annotator_breakdown(dataset_id)]


async def resume_position(request: Request, dataset_id: str) -> Dict[str, Any]:
    """Record index to open for the caller, with the record id at that index."""
    user = await current_user(request)
    navigation: NavigationPolicy = request.app.state.navigation
    records: RecordStore = request.app.state.records
    position = await navigation.resume(user.username, dataset_id)
    dataset = await records.get_dataset(dataset_id)
    return {**position.to_dict(), "record_id": dataset.record_ids[position.index], "total": dataset.record_count}

"""FastAPI routes for saving, reading and reviewing annotations."""

from typing import Optional

from fastapi import APIRouter, Request
from pydantic import BaseModel

from controllers.annotation_controller import (
    annotation_history,
    get_annotation,
    review_annotation,
    save_annotation,
)
from utils.http_errors import call_controller

router = APIRouter(prefix="/annotations", tags=["annotations"])


class AnnotationPayload(BaseModel):
    content: str = ""
    status: str
    findings: Optional[str] = None
    confidence_score: Optional[float] = None


class ReviewPayload(BaseModel):
    notes: Optional[str] = None


@router.put("/{dataset_id}/{record_id}")
async def save_annotation_route(request: Request, dataset_id: str, record_id: str, payload: AnnotationPayload):
    return await call_controller(
        save_annotation(
            request,
            dataset_id,
            record_id,
            payload.content,
            payload.status,
            findings=payload.findings,
            confidence_score=payload.confidence_score,
        )
    )


@router.get("/{dataset_id}/{record_id}")
async def get_annotation_route(request: Request, dataset_id: str, record_id: str):
    return await call_controller(get_annotation(request, dataset_id, record_id))


@router.get("/{dataset_id}/{record_id}/history")
async def history_route(request: Request, dataset_id: str, record_id: str, annotator: Optional[str] = None):
    return await call_controller(annotation_history(request, dataset_id, record_id, annotator))


@router.post("/{dataset_id}/{record_id}/{annotator}/review")
async def review_annotation_route(
    request: Request, dataset_id: str, record_id: str, annotator: str, payload: ReviewPayload
):
    return await call_controller(review_annotation(request, dataset_id, record_id, annotator, payload.notes))

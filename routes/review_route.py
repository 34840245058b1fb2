"""FastAPI routes for the reviewer view and platform summaries."""

from fastapi import APIRouter, Query, Request

from controllers.review_controller import platform_stats, recent_activity, review_record
from utils.http_errors import call_controller

router = APIRouter(tags=["review"])


@router.get("/review/{dataset_id}/{record_id}")
async def review_route(request: Request, dataset_id: str, record_id: str):
    return await call_controller(review_record(request, dataset_id, record_id))


@router.get("/stats")
async def stats_route(request: Request):
    return await call_controller(platform_stats(request))


@router.get("/activity")
async def activity_route(request: Request, limit: int = Query(10, ge=1, le=100)):
    return await call_controller(recent_activity(request, limit))

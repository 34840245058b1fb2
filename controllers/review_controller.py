"""Cross-annotator review view and platform-wide summaries."""

from __future__ import annotations

from typing import Any, Dict, List

from fastapi import Request

from controllers.caller import current_user
from services.annotation_ledger import AnnotationLedger
from services.progress import ProgressAggregator
from services.review import ReviewProjection


async def review_record(request: Request, dataset_id: str, record_id: str) -> List[Dict[str, Any]]:
    user = await current_user(request)
    review: ReviewProjection = request.app.state.review
    views = await review.review_view(dataset_id, record_id, user.role)
    return [v.to_dict() for v in views]


async def platform_stats(request: Request) -> Dict[str, Any]:
    await current_user(request)
    progress: ProgressAggregator = request.app.state.progress
    stats = await progress.platform_stats()
    return stats.to_dict()


async def recent_activity(request: Request, limit: int = 10) -> List[Dict[str, Any]]:
    await current_user(request)
    ledger: AnnotationLedger = request.app.state.ledger
    return [a.to_dict() for a in await ledger.recent_activity(limit)]

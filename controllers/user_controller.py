"""User registration and per-user statistics."""

from __future__ import annotations

from typing import Any, Dict, List, Optional

from fastapi import Request

from controllers.caller import current_user
from services.annotation_ledger import AnnotationLedger
from services.progress import ProgressAggregator
from services.user_directory import UserDirectory


async def register_user(
    request: Request,
    username: str,
    role: str,
    institution: str,
    verification_code: Optional[str] = None,
) -> Dict[str, Any]:
    users: UserDirectory = request.app.state.users
    user = await users.register(username, role, institution, verification_code)
    return user.to_dict()


async def get_me(request: Request) -> Dict[str, Any]:
    user = await current_user(request)
    return user.to_dict()


async def my_stats(request: Request) -> Dict[str, Any]:
    """Total live annotations and datasets touched by the caller."""
    user = await current_user(request)
    progress: ProgressAggregator = request.app.state.progress
    stats = await progress.user_stats(user.username)
    return {"username": user.username, **stats.to_dict()}


async def my_annotations(request: Request) -> List[Dict[str, Any]]:
    user = await current_user(request)
    ledger: AnnotationLedger = request.app.state.ledger
    return [a.to_dict() for a in await ledger.user_annotations(user.username)]

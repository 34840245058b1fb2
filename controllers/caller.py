"""Resolve the calling user for a request."""

from __future__ import annotations

from fastapi import Request

from models.user_models import UserProfile
from services.user_directory import UserDirectory

USERNAME_HEADER = "X-Username"


async def current_user(request: Request) -> UserProfile:
    """Return the profile named by the `X-Username` header.

    Raises:
        Unauthenticated: Header missing or user unknown.
    """
    users: UserDirectory = request.app.state.users
    return await users.resolve(request.headers.get(USERNAME_HEADER))

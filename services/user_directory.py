"""User profile directory standing in for the identity collaborator."""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import List, Optional

from dal.ledger_dal import LedgerDAL
from models.user_models import Role, UserProfile
from utils.errors import Forbidden, NotFound, Unauthenticated, ValidationError

LOGGER = logging.getLogger(__name__)


class UserDirectory:
    """Register and resolve `(username, role, institution)` profiles.

    Credentials are never stored or checked here.
    """

    def __init__(self, dal: LedgerDAL, registration_code: Optional[str] = None) -> None:
        self._dal = dal
        self._registration_code = registration_code

    async def register(
        self,
        username: str,
        role: Role | str,
        institution: str = "",
        verification_code: Optional[str] = None,
    ) -> UserProfile:
        """Create a new profile.

        Raises:
            ValidationError: Empty or duplicate username, unknown role.
            Forbidden: A registration code is configured and does not match.
        """
        username = (username or "").strip()
        if not username:
            raise ValidationError("Username is required.")
        parsed_role = Role.parse(role)
        if self._registration_code is not None and verification_code != self._registration_code:
            raise Forbidden("Invalid verification code. Contact your administrator.")
        if await self._dal.get_user(username) is not None:
            raise ValidationError(f"Username {username!r} already exists.")

        user = self._profile(username, parsed_role, institution)
        await self._dal.insert_user(user)
        LOGGER.info("Registered user %s with role %s", username, parsed_role.value)
        return user

    async def get_user(self, username: str) -> UserProfile:
        """Return the profile for `username` or raise NotFound."""
        user = await self._dal.get_user(username)
        if user is None:
            raise NotFound(f"User {username!r} not found")
        return user

    async def resolve(self, username: Optional[str]) -> UserProfile:
        """Resolve the caller identity; unknown callers are Unauthenticated."""
        if not username or not username.strip():
            raise Unauthenticated("No user identity supplied.")
        user = await self._dal.get_user(username.strip())
        if user is None:
            raise Unauthenticated(f"Unknown user {username!r}.")
        return user

    async def list_users(self) -> List[UserProfile]:
        return await self._dal.list_users()

    async def ensure_user(self, username: str, role: Role | str, institution: str = "") -> UserProfile:
        """Administrative create-if-absent; bypasses the registration code."""
        existing = await self._dal.get_user(username)
        if existing is not None:
            return existing
        user = self._profile(username, Role.parse(role), institution)
        await self._dal.insert_user(user)
        return user

    @staticmethod
    def _profile(username: str, role: Role, institution: Optional[str]) -> UserProfile:
        return UserProfile(
            username=username,
            role=role,
            institution=(institution or "").strip(),
            created_at=datetime.now(timezone.utc).isoformat(timespec="seconds"),
        )

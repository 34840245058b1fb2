"""User roles and profiles as seen by the annotation core."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Optional

from utils.errors import ValidationError


class Role(str, Enum):
    """Closed set of user roles."""

    ANNOTATOR = "annotator"
    EXPERT = "expert"
    ADMIN = "admin"

    @classmethod
    def parse(cls, value: Any) -> "Role":
        """Return the role for `value`, raising ValidationError if unknown."""
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError as exc:
            raise ValidationError(f"Unknown role: {value!r}") from exc


REVIEW_ROLES = frozenset({Role.EXPERT, Role.ADMIN})


def can_review(role: Role | str) -> bool:
    """Return True if `role` may see and review every annotator's entries."""
    try:
        return Role.parse(role) in REVIEW_ROLES
    except ValidationError:
        return False


@dataclass
class UserProfile:
    """Identity triple resolved by the identity collaborator.

    Attributes:
        username: Unique user name.
        role: Capability role.
        institution: Free-text hospital or institution name.
        created_at: ISO-8601 registration time.
    """

    username: str
    role: Role
    institution: str = ""
    created_at: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "username": self.username,
            "role": self.role.value,
            "institution": self.institution,
            "created_at": self.created_at,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "UserProfile":
        return cls(
            username=data["username"],
            role=Role.parse(data["role"]),
            institution=data.get("institution") or "",
            created_at=data.get("created_at"),
        )

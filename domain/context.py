"""
Domain: Acting user context.

Identity is established by an external auth layer. The core receives the
actor and business as opaque, already-validated strings and never reads
session state on its own.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from .errors import PermissionDeniedError, ValidationError


class Role(str, Enum):
    BOSS = "Boss"
    ASSOCIATE = "Associate"

    @classmethod
    def _missing_(cls, value: object) -> "Role | None":
        if isinstance(value, str):
            lowered = value.strip().lower()
            for member in cls:
                if member.value.lower() == lowered:
                    return member
        return None


@dataclass(frozen=True, slots=True)
class ActorContext:
    """Who is acting, for which business, in which role."""

    actor_id: str
    business_id: str
    role: Role = Role.ASSOCIATE

    def __post_init__(self) -> None:
        if not self.actor_id or not self.actor_id.strip():
            raise ValidationError("actor_id is required", field="actor_id")
        if not self.business_id or not self.business_id.strip():
            raise ValidationError("business_id is required", field="business_id")

    @property
    def is_boss(self) -> bool:
        return self.role is Role.BOSS

    def require_boss(self, action: str) -> None:
        """Catalog management and sale voiding are owner-only."""

        if not self.is_boss:
            raise PermissionDeniedError(action, self.role.value)


__all__ = ["ActorContext", "Role"]

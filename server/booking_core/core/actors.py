"""Acting identities passed into every state-changing operation."""

from dataclasses import dataclass
from enum import Enum


class Role(str, Enum):
    """Role enumeration supplied by the identity provider."""
    CUSTOMER = "CUSTOMER"
    ADMIN = "ADMIN"
    TOUR_GUIDE = "TOUR_GUIDE"
    # Internal only: payment notifications, status polling and the sweeper.
    SYSTEM = "SYSTEM"


@dataclass(frozen=True)
class Actor:
    """The user (or internal process) on whose behalf an operation runs."""

    user_id: str
    role: Role

    @property
    def is_admin(self) -> bool:
        return self.role == Role.ADMIN

    @property
    def is_system(self) -> bool:
        return self.role == Role.SYSTEM

    def owns(self, owner_id: str | None) -> bool:
        return owner_id is not None and self.user_id == owner_id


SYSTEM_ACTOR = Actor(user_id="system", role=Role.SYSTEM)

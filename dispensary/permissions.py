"""
dispensary.permissions
======================

Role → capability lookup table and the :class:`Actor` passed explicitly
into every service call.  An unknown or missing role falls back to the
lowest privilege (technician).
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, FrozenSet, Optional

from .errors import PermissionDenied

logger = logging.getLogger(__name__)


class Role(Enum):
    ADMIN = "admin"
    PHARMACIST = "pharmacist"
    TECHNICIAN = "technician"

    def __str__(self) -> str:
        return self.value

    @classmethod
    def parse(cls, value: Any) -> "Role":
        """Role for *value*, or TECHNICIAN when it is unknown."""
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).lower())
        except ValueError:
            return cls.TECHNICIAN


class Capability(Enum):
    DELETE_USERS = "delete_users"
    EDIT_SETTINGS = "edit_settings"
    MANAGE_INVENTORY = "manage_inventory"
    SEND_NOTIFICATIONS = "send_notifications"

    def __str__(self) -> str:
        return self.value


ROLE_CAPABILITIES: Dict[Role, FrozenSet[Capability]] = {
    Role.ADMIN: frozenset(Capability),
    Role.PHARMACIST: frozenset({Capability.MANAGE_INVENTORY, Capability.SEND_NOTIFICATIONS}),
    Role.TECHNICIAN: frozenset(),
}


@dataclass(frozen=True)
class Actor:
    """The signed-in user performing an operation."""
    user_id: str
    role: Role = Role.TECHNICIAN
    pharmacy_id: Optional[str] = None
    display_name: Optional[str] = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "role", Role.parse(self.role))

    def can(self, capability: Capability) -> bool:
        return has_capability(self.role, capability)


def capabilities(role: Any) -> FrozenSet[Capability]:
    return ROLE_CAPABILITIES[Role.parse(role)]


def has_capability(role: Any, capability: Capability) -> bool:
    return capability in capabilities(role)


def require(actor: Actor, capability: Capability) -> None:
    """Raise :class:`PermissionDenied` unless *actor* holds *capability*."""
    if not actor.can(capability):
        logger.warning(f"{actor.user_id} ({actor.role}) denied {capability}")
        raise PermissionDenied(actor.role, capability)

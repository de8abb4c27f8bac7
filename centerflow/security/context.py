"""Identity of whoever triggers or inspects an execution."""

from __future__ import annotations

from typing import TYPE_CHECKING, List, Optional

from pydantic import BaseModel, Field

if TYPE_CHECKING:
    from ..db.models import User


class Actor(BaseModel):
    """Authenticated caller as seen by the execution core.

    Built by whatever authenticates the request. The core only reads it: the
    id becomes ``initiated_by``, ``center_id`` and ``is_super_admin`` drive
    scope checks and ``permissions`` drive ``Agent.can_execute``.
    """

    id: int
    name: Optional[str] = None
    center_id: Optional[int] = Field(default=None, description="Home center, if any")
    roles: List[str] = Field(default_factory=list)
    permissions: List[str] = Field(default_factory=list)
    is_super_admin: bool = False

    def has_role(self, role: str) -> bool:
        return role in self.roles

    def can(self, permission: str) -> bool:
        return self.is_super_admin or permission in self.permissions

    @classmethod
    def from_user(cls, user: "User") -> "Actor":
        return cls(
            id=user.id,
            name=user.name,
            center_id=user.center_id,
            roles=list(user.roles or []),
            permissions=list(user.permissions or []),
            is_super_admin=user.is_super_admin,
        )

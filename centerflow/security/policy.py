"""Center scoping for actors."""

from __future__ import annotations

from typing import List, Optional, Protocol

from ..db.models import AgentExecution
from ..errors import ScopeAccessDenied
from .context import Actor


class ScopeAccessChecker(Protocol):
    """Decides which centers an actor may act on or inspect."""

    def assert_actor_has_scope(self, actor: Actor, center_id: int) -> None:
        """Raise :class:`ScopeAccessDenied` unless ``actor`` may use ``center_id``."""

    def is_global_admin(self, actor: Actor) -> bool:
        """Return ``True`` if ``actor`` is unrestricted."""

    def accessible_center_ids(self, actor: Actor) -> Optional[List[int]]:
        """Centers visible to ``actor``; ``None`` means all of them."""

    def assert_same_scope(self, actor: Actor, execution: AgentExecution) -> None:
        """Raise :class:`ScopeAccessDenied` unless ``actor`` may see ``execution``."""


class CenterScopeService:
    """Default scope rules.

    A super admin without a home center is a global admin. Everyone else is
    confined to their own center; an actor with neither sees nothing.
    """

    def is_global_admin(self, actor: Actor) -> bool:
        return actor.is_super_admin and actor.center_id is None

    def accessible_center_ids(self, actor: Actor) -> Optional[List[int]]:
        if self.is_global_admin(actor):
            return None
        if actor.center_id is None:
            return []
        return [actor.center_id]

    def assert_actor_has_scope(self, actor: Actor, center_id: int) -> None:
        allowed = self.accessible_center_ids(actor)
        if allowed is not None and center_id not in allowed:
            raise ScopeAccessDenied(actor.id, center_id)

    def assert_same_scope(self, actor: Actor, execution: AgentExecution) -> None:
        self.assert_actor_has_scope(actor, execution.center_id)

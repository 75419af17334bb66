"""Lifecycle state machine for catalog entities.

Every catalog entity (root, option, value, product, bridge) is soft
deleted through its ``archived_on`` timestamp. The state machine is
deliberately tiny: ACTIVE can become ARCHIVED, and ARCHIVED is terminal.
A retired entity is never reactivated; a new one is created instead.
"""

from datetime import datetime
from enum import Enum

from dairycart.domain.exceptions import NotFoundError


class LifecycleState(str, Enum):
    """Entity lifecycle states.

    State diagram:
        ACTIVE ──── archive ────► ARCHIVED (terminal)
    """

    ACTIVE = "active"
    ARCHIVED = "archived"

    @classmethod
    def of(cls, archived_on: datetime | None) -> "LifecycleState":
        """Derive the state from an ``archived_on`` column value.

        Args:
            archived_on: Archive timestamp, None while active.

        Returns:
            The corresponding lifecycle state.
        """
        return cls.ACTIVE if archived_on is None else cls.ARCHIVED

    def can_transition_to(self, target: "LifecycleState") -> bool:
        """Check if transition to target state is valid.

        Args:
            target: Target state to transition to.

        Returns:
            True if transition is valid.
        """
        return target in _LIFECYCLE_TRANSITIONS.get(self, set())

    def allowed_transitions(self) -> list["LifecycleState"]:
        """Get list of valid target states."""
        return list(_LIFECYCLE_TRANSITIONS.get(self, set()))

    def is_terminal(self) -> bool:
        """Check if this is a terminal (final) state."""
        return len(_LIFECYCLE_TRANSITIONS.get(self, set())) == 0


_LIFECYCLE_TRANSITIONS: dict[LifecycleState, set[LifecycleState]] = {
    LifecycleState.ACTIVE: {LifecycleState.ARCHIVED},
    LifecycleState.ARCHIVED: set(),  # Terminal state
}


def validate_archival(
    entity_type: str,
    entity_id: int,
    archived_on: datetime | None,
) -> None:
    """Validate that an entity may be archived.

    An entity that is already archived is indistinguishable from a missing
    one for callers, so the failure is reported as NotFoundError.

    Args:
        entity_type: Type of entity for the error message.
        entity_id: Entity identifier.
        archived_on: Current archive timestamp of the entity.

    Raises:
        NotFoundError: If the entity is already archived.
    """
    if not LifecycleState.of(archived_on).can_transition_to(LifecycleState.ARCHIVED):
        raise NotFoundError(entity_type, entity_id)

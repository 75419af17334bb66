"""Domain layer - exceptions, lifecycle state machine, domain events."""

from dairycart.domain.events import EVENT_REGISTRY, DomainEvent, get_event_class
from dairycart.domain.exceptions import (
    ConflictError,
    DomainError,
    DuplicateNameError,
    InvariantViolationError,
    NotFoundError,
    SkuCollisionError,
    StorageFailureError,
)
from dairycart.domain.lifecycle import LifecycleState, validate_archival

__all__ = [
    # Events
    "DomainEvent",
    "EVENT_REGISTRY",
    "get_event_class",
    # Exceptions
    "ConflictError",
    "DomainError",
    "DuplicateNameError",
    "InvariantViolationError",
    "NotFoundError",
    "SkuCollisionError",
    "StorageFailureError",
    # Lifecycle
    "LifecycleState",
    "validate_archival",
]

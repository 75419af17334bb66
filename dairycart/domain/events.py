"""Domain events for the catalog.

Domain events describe catalog changes that other systems may react to
(webhook subscribers, search indexers). The service collects them while a
unit of work runs and hands them to the notifier only after the
transaction commits.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, ClassVar
from uuid import UUID, uuid4


# ============================================================================
# Domain Event Base
# ============================================================================


@dataclass(frozen=True)
class DomainEvent(ABC):
    """Base class for domain events.

    Domain events represent something significant that happened
    in the domain. They are immutable and contain all information
    about what happened.

    Attributes:
        event_id: Unique identifier for this event instance.
        event_type: String identifier for the event type (set by subclass).
        occurred_at: Timestamp when the event occurred.
        aggregate_id: ID of the aggregate that emitted this event.
        aggregate_type: Type name of the aggregate.
    """

    event_type: ClassVar[str]

    event_id: UUID = field(default_factory=uuid4)
    occurred_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    aggregate_id: str = field(default="")
    aggregate_type: str = field(default="")

    def to_dict(self) -> dict[str, Any]:
        """Convert event to dictionary for serialization.

        Returns:
            Dictionary representation of the event.
        """
        return {
            "event_id": str(self.event_id),
            "event_type": self.event_type,
            "occurred_at": self.occurred_at.isoformat(),
            "aggregate_id": self.aggregate_id,
            "aggregate_type": self.aggregate_type,
            "payload": self._payload(),
        }

    @abstractmethod
    def _payload(self) -> dict[str, Any]:
        """Get event-specific payload data.

        Returns:
            Dictionary with event-specific data.
        """
        pass


# ============================================================================
# Product Root Events
# ============================================================================


@dataclass(frozen=True)
class ProductRootCreated(DomainEvent):
    """Event raised when a product root is created."""

    event_type: ClassVar[str] = "product_root_created"

    root_id: int = 0
    name: str = ""
    sku_prefix: str = ""

    def _payload(self) -> dict[str, Any]:
        """Get event-specific payload."""
        return {
            "root_id": self.root_id,
            "name": self.name,
            "sku_prefix": self.sku_prefix,
        }


@dataclass(frozen=True)
class ProductRootUpdated(DomainEvent):
    """Event raised when product root fields are edited."""

    event_type: ClassVar[str] = "product_root_updated"

    root_id: int = 0
    changed_fields: tuple[str, ...] = ()

    def _payload(self) -> dict[str, Any]:
        """Get event-specific payload."""
        return {
            "root_id": self.root_id,
            "changed_fields": list(self.changed_fields),
        }


@dataclass(frozen=True)
class ProductRootArchived(DomainEvent):
    """Event raised when a product root and its descendants are archived."""

    event_type: ClassVar[str] = "product_root_archived"

    root_id: int = 0
    archived_option_count: int = 0
    archived_value_count: int = 0
    archived_variant_count: int = 0

    def _payload(self) -> dict[str, Any]:
        """Get event-specific payload."""
        return {
            "root_id": self.root_id,
            "archived_option_count": self.archived_option_count,
            "archived_value_count": self.archived_value_count,
            "archived_variant_count": self.archived_variant_count,
        }


# ============================================================================
# Option Events
# ============================================================================


@dataclass(frozen=True)
class OptionAdded(DomainEvent):
    """Event raised when an option is added to a root."""

    event_type: ClassVar[str] = "option_added"

    root_id: int = 0
    option_id: int = 0
    name: str = ""

    def _payload(self) -> dict[str, Any]:
        """Get event-specific payload."""
        return {
            "root_id": self.root_id,
            "option_id": self.option_id,
            "name": self.name,
        }


@dataclass(frozen=True)
class OptionRenamed(DomainEvent):
    """Event raised when an option is renamed."""

    event_type: ClassVar[str] = "option_renamed"

    root_id: int = 0
    option_id: int = 0
    old_name: str = ""
    new_name: str = ""

    def _payload(self) -> dict[str, Any]:
        """Get event-specific payload."""
        return {
            "root_id": self.root_id,
            "option_id": self.option_id,
            "old_name": self.old_name,
            "new_name": self.new_name,
        }


@dataclass(frozen=True)
class OptionArchived(DomainEvent):
    """Event raised when an option and its values are archived."""

    event_type: ClassVar[str] = "option_archived"

    root_id: int = 0
    option_id: int = 0

    def _payload(self) -> dict[str, Any]:
        """Get event-specific payload."""
        return {
            "root_id": self.root_id,
            "option_id": self.option_id,
        }


# ============================================================================
# Option Value Events
# ============================================================================


@dataclass(frozen=True)
class OptionValueAdded(DomainEvent):
    """Event raised when a value is added to an option."""

    event_type: ClassVar[str] = "option_value_added"

    root_id: int = 0
    option_id: int = 0
    value_id: int = 0
    value: str = ""

    def _payload(self) -> dict[str, Any]:
        """Get event-specific payload."""
        return {
            "root_id": self.root_id,
            "option_id": self.option_id,
            "value_id": self.value_id,
            "value": self.value,
        }


@dataclass(frozen=True)
class OptionValueRenamed(DomainEvent):
    """Event raised when an option value is renamed."""

    event_type: ClassVar[str] = "option_value_renamed"

    root_id: int = 0
    option_id: int = 0
    value_id: int = 0
    old_value: str = ""
    new_value: str = ""

    def _payload(self) -> dict[str, Any]:
        """Get event-specific payload."""
        return {
            "root_id": self.root_id,
            "option_id": self.option_id,
            "value_id": self.value_id,
            "old_value": self.old_value,
            "new_value": self.new_value,
        }


@dataclass(frozen=True)
class OptionValueArchived(DomainEvent):
    """Event raised when a single option value is retired."""

    event_type: ClassVar[str] = "option_value_archived"

    root_id: int = 0
    option_id: int = 0
    value_id: int = 0

    def _payload(self) -> dict[str, Any]:
        """Get event-specific payload."""
        return {
            "root_id": self.root_id,
            "option_id": self.option_id,
            "value_id": self.value_id,
        }


# ============================================================================
# Variant Events
# ============================================================================


@dataclass(frozen=True)
class VariantCreated(DomainEvent):
    """Event raised when materialization creates a product variant."""

    event_type: ClassVar[str] = "variant_created"

    root_id: int = 0
    product_id: int = 0
    sku: str = ""
    option_summary: str = ""
    value_ids: tuple[int, ...] = ()

    def _payload(self) -> dict[str, Any]:
        """Get event-specific payload."""
        return {
            "root_id": self.root_id,
            "product_id": self.product_id,
            "sku": self.sku,
            "option_summary": self.option_summary,
            "value_ids": list(self.value_ids),
        }


@dataclass(frozen=True)
class VariantUpdated(DomainEvent):
    """Event raised when a variant is edited or its SKU or summary is regenerated."""

    event_type: ClassVar[str] = "variant_updated"

    root_id: int = 0
    product_id: int = 0
    old_sku: str = ""
    sku: str = ""
    option_summary: str = ""
    changed_fields: tuple[str, ...] = ()

    def _payload(self) -> dict[str, Any]:
        """Get event-specific payload."""
        return {
            "root_id": self.root_id,
            "product_id": self.product_id,
            "old_sku": self.old_sku,
            "sku": self.sku,
            "option_summary": self.option_summary,
            "changed_fields": list(self.changed_fields),
        }


@dataclass(frozen=True)
class VariantArchived(DomainEvent):
    """Event raised when a variant is archived."""

    event_type: ClassVar[str] = "variant_archived"

    root_id: int = 0
    product_id: int = 0
    sku: str = ""

    def _payload(self) -> dict[str, Any]:
        """Get event-specific payload."""
        return {
            "root_id": self.root_id,
            "product_id": self.product_id,
            "sku": self.sku,
        }


# ============================================================================
# Event Registry
# ============================================================================


# Registry of all event types for webhook subscription validation
EVENT_REGISTRY: dict[str, type[DomainEvent]] = {
    # Product root events
    ProductRootCreated.event_type: ProductRootCreated,
    ProductRootUpdated.event_type: ProductRootUpdated,
    ProductRootArchived.event_type: ProductRootArchived,
    # Option events
    OptionAdded.event_type: OptionAdded,
    OptionRenamed.event_type: OptionRenamed,
    OptionArchived.event_type: OptionArchived,
    # Option value events
    OptionValueAdded.event_type: OptionValueAdded,
    OptionValueRenamed.event_type: OptionValueRenamed,
    OptionValueArchived.event_type: OptionValueArchived,
    # Variant events
    VariantCreated.event_type: VariantCreated,
    VariantUpdated.event_type: VariantUpdated,
    VariantArchived.event_type: VariantArchived,
}


def get_event_class(event_type: str) -> type[DomainEvent] | None:
    """Get event class by event type string.

    Args:
        event_type: Event type identifier (e.g., 'variant_created').

    Returns:
        Event class if found, None otherwise.
    """
    return EVENT_REGISTRY.get(event_type)

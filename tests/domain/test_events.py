"""Tests for catalog domain events."""

import pytest

from dairycart.domain.events import (
    EVENT_REGISTRY,
    OptionRenamed,
    VariantCreated,
    get_event_class,
)


class TestDomainEvents:
    """Tests for event serialization."""

    def test_to_dict(self) -> None:
        """Events serialize their envelope and payload."""
        event = VariantCreated(
            aggregate_id="3",
            aggregate_type="product_root",
            root_id=3,
            product_id=12,
            sku="tshirt-red-s",
            option_summary="Color: Red, Size: S",
            value_ids=(10, 20),
        )

        data = event.to_dict()

        assert data["event_type"] == "variant_created"
        assert data["aggregate_id"] == "3"
        assert data["event_id"] == str(event.event_id)
        assert data["payload"] == {
            "root_id": 3,
            "product_id": 12,
            "sku": "tshirt-red-s",
            "option_summary": "Color: Red, Size: S",
            "value_ids": [10, 20],
        }

    def test_events_are_immutable(self) -> None:
        event = OptionRenamed(option_id=1, old_name="Color", new_name="Colour")
        with pytest.raises(AttributeError):
            event.new_name = "Shade"  # type: ignore[misc]

    def test_each_event_gets_unique_id(self) -> None:
        assert OptionRenamed().event_id != OptionRenamed().event_id


class TestEventRegistry:
    """Tests for the event registry."""

    def test_registry_keys_match_event_types(self) -> None:
        for event_type, event_class in EVENT_REGISTRY.items():
            assert event_class.event_type == event_type
        assert len(EVENT_REGISTRY) == 12

    def test_lookup(self) -> None:
        assert get_event_class("variant_created") is VariantCreated
        assert get_event_class("cart_created") is None

"""Tests for domain exceptions."""

from dairycart.domain.exceptions import (
    ConflictError,
    DomainError,
    DuplicateNameError,
    InvariantViolationError,
    NotFoundError,
    SkuCollisionError,
    StorageFailureError,
)


def test_error_codes() -> None:
    """Each error family carries its machine-readable code."""
    assert NotFoundError("product", 1).error_code == "NOT_FOUND"
    assert ConflictError("taken").error_code == "CONFLICT"
    assert DuplicateNameError("product_option", "Color", 1).error_code == "CONFLICT"
    assert SkuCollisionError(1, ["a"]).error_code == "CONFLICT"
    assert InvariantViolationError("bad").error_code == "INVARIANT_VIOLATION"
    assert StorageFailureError("add_value", "timed out").error_code == "STORAGE_FAILURE"


def test_hierarchy() -> None:
    assert issubclass(DuplicateNameError, ConflictError)
    assert issubclass(SkuCollisionError, ConflictError)
    for error_type in (NotFoundError, ConflictError, InvariantViolationError, StorageFailureError):
        assert issubclass(error_type, DomainError)


def test_duplicate_name_details() -> None:
    error = DuplicateNameError("product_option_value", "Red", 4)
    assert error.message == "product_option_value with the name 'Red' already exists"
    assert error.details == {"entity_type": "product_option_value", "name": "Red", "parent_id": 4}


def test_sku_collision_lists_skus() -> None:
    error = SkuCollisionError(2, ["mug-red", "mug-blue"])
    assert "mug-red, mug-blue" in str(error)
    assert error.details["skus"] == ["mug-red", "mug-blue"]


def test_default_details() -> None:
    assert DomainError("boom").details == {}

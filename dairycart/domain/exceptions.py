"""Domain exceptions.

All catalog errors that represent business rule violations or storage
failures. Components raise these inside a unit of work; the unit of work
rolls back and the error reaches the caller unchanged.
"""

from typing import Any


class DomainError(Exception):
    """Base class for all domain exceptions.

    All domain errors should inherit from this class to allow
    catching domain-specific errors at the application layer.
    """

    error_code: str = "DOMAIN_ERROR"

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        """Initialize domain error.

        Args:
            message: Human-readable error message.
            details: Optional dictionary with additional error context.
        """
        super().__init__(message)
        self.message = message
        self.details = details or {}


# ============================================================================
# Lookup Errors
# ============================================================================


class NotFoundError(DomainError):
    """Raised when a referenced entity is missing or already archived."""

    error_code = "NOT_FOUND"

    def __init__(self, entity_type: str, entity_id: Any) -> None:
        """Initialize not found error.

        Args:
            entity_type: Type of entity (e.g., "product_root", "product_option").
            entity_id: ID of the entity that was looked up.
        """
        super().__init__(
            f"{entity_type} with id {entity_id} does not exist or is archived",
            details={"entity_type": entity_type, "entity_id": entity_id},
        )


# ============================================================================
# Uniqueness Errors
# ============================================================================


class ConflictError(DomainError):
    """Raised when a write would duplicate an active name, value or SKU."""

    error_code = "CONFLICT"


class DuplicateNameError(ConflictError):
    """Raised when an active sibling already uses a name (case-insensitive)."""

    def __init__(self, entity_type: str, name: str, parent_id: Any) -> None:
        """Initialize duplicate name error.

        Args:
            entity_type: Type of entity being named.
            name: The conflicting name.
            parent_id: ID of the owning root or option.
        """
        super().__init__(
            f"{entity_type} with the name '{name}' already exists",
            details={"entity_type": entity_type, "name": name, "parent_id": parent_id},
        )


class SkuCollisionError(ConflictError):
    """Raised when a materialized SKU is already used by an active product.

    Only possible under a concurrent write race or a degenerate slug
    collision. The service retries the unit of work once on this error.
    """

    def __init__(self, root_id: int, skus: list[str]) -> None:
        """Initialize SKU collision error.

        Args:
            root_id: Root being materialized.
            skus: The colliding SKUs.
        """
        super().__init__(
            f"SKU collision while materializing product root {root_id}: {', '.join(skus)}",
            details={"root_id": root_id, "skus": skus},
        )


# ============================================================================
# Invariant Errors
# ============================================================================


class InvariantViolationError(DomainError):
    """Raised when a bridge set or input breaks a catalog invariant."""

    error_code = "INVARIANT_VIOLATION"


# ============================================================================
# Storage Errors
# ============================================================================


class StorageFailureError(DomainError):
    """Raised when the persistence layer fails or a transaction times out."""

    error_code = "STORAGE_FAILURE"

    def __init__(self, operation: str, reason: str) -> None:
        """Initialize storage failure error.

        Args:
            operation: Name of the operation that was running.
            reason: Description of the underlying failure.
        """
        super().__init__(
            f"Storage failure during {operation}: {reason}",
            details={"operation": operation, "reason": reason},
        )

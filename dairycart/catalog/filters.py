"""Query filter and pagination helper.

List operations in the catalog never paginate by hand: they build a base
select and hand it to ``apply_filter`` together with a ``QueryFilter``.
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Generic, TypeVar

from sqlalchemy import Select

T = TypeVar("T")

DEFAULT_LIMIT = 25
MAX_LIMIT = 50


@dataclass
class QueryFilter:
    """Generic list filter.

    Attributes:
        page: Page number (1-indexed).
        limit: Items per page, clamped to MAX_LIMIT.
        created_after: Only rows created after this instant.
        created_before: Only rows created before this instant.
        updated_after: Only rows updated after this instant.
        updated_before: Only rows updated before this instant.
        include_archived: Include soft-deleted rows.
    """

    page: int = 1
    limit: int = DEFAULT_LIMIT
    created_after: datetime | None = None
    created_before: datetime | None = None
    updated_after: datetime | None = None
    updated_before: datetime | None = None
    include_archived: bool = False

    def __post_init__(self) -> None:
        self.page = max(self.page, 1)
        self.limit = max(min(self.limit, MAX_LIMIT), 0)

    @property
    def offset(self) -> int:
        """Calculate offset from page number."""
        return (self.page - 1) * self.limit

    @classmethod
    def from_params(cls, params: dict[str, Any]) -> "QueryFilter":
        """Build a filter from raw query-string parameters.

        Unparseable values fall back to the defaults. Time bounds are
        given as unix timestamps.

        Args:
            params: Mapping of parameter name to string value.

        Returns:
            Parsed QueryFilter.
        """
        qf = cls()
        qf.page = max(_parse_int(params.get("page"), qf.page), 1)
        qf.limit = max(min(_parse_int(params.get("limit"), qf.limit), MAX_LIMIT), 0)
        for name in ("created_after", "created_before", "updated_after", "updated_before"):
            timestamp = _parse_int(params.get(name), None)
            if timestamp is not None:
                setattr(qf, name, datetime.fromtimestamp(timestamp).astimezone())
        include_archived = params.get("include_archived")
        if include_archived is not None:
            qf.include_archived = str(include_archived).lower() in {"1", "true", "yes"}
        return qf


@dataclass
class PaginatedResult(Generic[T]):
    """Paginated result container.

    Attributes:
        items: List of items.
        total: Total count.
        page: Current page.
        limit: Items per page.
    """

    items: list[T]
    total: int
    page: int
    limit: int

    @property
    def total_pages(self) -> int:
        """Calculate total pages."""
        if self.limit == 0:
            return 0
        return (self.total + self.limit - 1) // self.limit

    @property
    def has_next(self) -> bool:
        """Check if there's a next page."""
        return self.page < self.total_pages

    @property
    def has_prev(self) -> bool:
        """Check if there's a previous page."""
        return self.page > 1


def apply_conditions(query: Select, model: Any, qf: QueryFilter) -> Select:
    """Add the time-bound and archive conditions of a filter to a query.

    Args:
        query: Base select over ``model``.
        model: Mapped class with created_on/updated_on/archived_on columns.
        qf: Filter to apply.

    Returns:
        The filtered select, without ordering or paging.
    """
    conditions = []

    if qf.created_after is not None:
        conditions.append(model.created_on > qf.created_after)
    if qf.created_before is not None:
        conditions.append(model.created_on < qf.created_before)
    if qf.updated_after is not None:
        conditions.append(model.updated_on > qf.updated_after)
    if qf.updated_before is not None:
        conditions.append(model.updated_on < qf.updated_before)
    if not qf.include_archived:
        conditions.append(model.archived_on.is_(None))

    if conditions:
        query = query.where(*conditions)
    return query


def apply_filter(query: Select, model: Any, qf: QueryFilter) -> Select:
    """Produce a bounded, ordered query from a base select.

    Rows are ordered by primary key, which follows creation order.

    Args:
        query: Base select over ``model``.
        model: Mapped class being listed.
        qf: Filter to apply.

    Returns:
        Filtered, ordered and paged select.
    """
    query = apply_conditions(query, model, qf)
    return query.order_by(model.id.asc()).limit(qf.limit).offset(qf.offset)


def _parse_int(raw: Any, default: int | None) -> int | None:
    if raw is None:
        return default
    try:
        return int(float(raw))
    except (TypeError, ValueError):
        return default

"""Catalog repository for database operations.

Provides the lookups shared by the option registry, the materializer and
the archival cascade. The repository never commits; transactions belong
to the service's unit of work.
"""

from collections.abc import Iterable, Sequence
from datetime import datetime

from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from dairycart.catalog.filters import PaginatedResult, QueryFilter, apply_conditions, apply_filter
from dairycart.catalog.models import (
    Product,
    ProductOption,
    ProductOptionValue,
    ProductRoot,
    utcnow,
)


class CatalogRepository:
    """Repository for product roots, options, values and variants.

    Example usage:
        async with session_factory() as session:
            repo = CatalogRepository(session)
            options = await repo.options_for_root(root_id)
    """

    def __init__(self, session: AsyncSession) -> None:
        """Initialize repository with database session.

        Args:
            session: Async SQLAlchemy session.
        """
        self.session = session

    async def save(self, entity: object) -> None:
        """Add an entity and flush so its primary key is assigned."""
        self.session.add(entity)
        await self.session.flush()

    async def archive(
        self,
        model: type,
        ids: Iterable[int],
        archived_on: datetime | None = None,
    ) -> int:
        """Soft delete the still-active rows of a model by ID.

        Rows that are already archived keep their original timestamp.

        Args:
            model: Mapped class with an ``archived_on`` column.
            ids: Primary keys to archive.
            archived_on: Archive timestamp (defaults to now).

        Returns:
            Number of rows archived.
        """
        ids = list(ids)
        if not ids:
            return 0
        result = await self.session.execute(
            update(model)
            .where(model.id.in_(ids), model.archived_on.is_(None))
            .values(archived_on=archived_on or utcnow())
        )
        return result.rowcount

    # ------------------------------------------------------------------
    # Product roots
    # ------------------------------------------------------------------

    async def get_root(
        self,
        root_id: int,
        include_archived: bool = False,
    ) -> ProductRoot | None:
        """Get product root by ID.

        Args:
            root_id: Product root ID.
            include_archived: Whether archived roots are returned.

        Returns:
            ProductRoot if found, None otherwise.
        """
        query = select(ProductRoot).where(ProductRoot.id == root_id)
        if not include_archived:
            query = query.where(ProductRoot.archived_on.is_(None))
        result = await self.session.execute(query)
        return result.scalar_one_or_none()

    async def lock_root(self, root_id: int) -> ProductRoot | None:
        """Load an active root with a row lock held until the transaction ends.

        This is the per-root mutual exclusion for materialization: a second
        transaction touching the same root blocks here until the first one
        commits or rolls back.

        Args:
            root_id: Product root ID.

        Returns:
            Locked ProductRoot, or None if missing/archived.
        """
        query = (
            select(ProductRoot)
            .where(ProductRoot.id == root_id, ProductRoot.archived_on.is_(None))
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        result = await self.session.execute(query)
        return result.scalar_one_or_none()

    async def sku_prefix_in_use(self, sku_prefix: str) -> bool:
        """Check whether an active root already uses a SKU prefix."""
        query = select(func.count(ProductRoot.id)).where(
            ProductRoot.sku_prefix == sku_prefix,
            ProductRoot.archived_on.is_(None),
        )
        result = await self.session.execute(query)
        return result.scalar_one() > 0

    async def list_roots(self, qf: QueryFilter) -> PaginatedResult[ProductRoot]:
        """List product roots with filtering and pagination."""
        return await self._paginate(ProductRoot, qf)

    # ------------------------------------------------------------------
    # Options and values
    # ------------------------------------------------------------------

    async def get_option(
        self,
        option_id: int,
        include_archived: bool = False,
    ) -> ProductOption | None:
        """Get product option by ID."""
        query = select(ProductOption).where(ProductOption.id == option_id)
        if not include_archived:
            query = query.where(ProductOption.archived_on.is_(None))
        result = await self.session.execute(query)
        return result.scalar_one_or_none()

    async def get_value(
        self,
        value_id: int,
        include_archived: bool = False,
    ) -> ProductOptionValue | None:
        """Get product option value by ID."""
        query = select(ProductOptionValue).where(ProductOptionValue.id == value_id)
        if not include_archived:
            query = query.where(ProductOptionValue.archived_on.is_(None))
        result = await self.session.execute(query)
        return result.scalar_one_or_none()

    async def option_named(
        self,
        root_id: int,
        name: str,
        exclude_id: int | None = None,
    ) -> ProductOption | None:
        """Find an active option of a root by case-insensitive name.

        Args:
            root_id: Owning product root.
            name: Name to look for.
            exclude_id: Option to ignore (the one being renamed).

        Returns:
            Matching option, if any.
        """
        query = select(ProductOption).where(
            ProductOption.product_root_id == root_id,
            func.lower(ProductOption.name) == name.lower(),
            ProductOption.archived_on.is_(None),
        )
        if exclude_id is not None:
            query = query.where(ProductOption.id != exclude_id)
        result = await self.session.execute(query.limit(1))
        return result.scalar_one_or_none()

    async def value_named(
        self,
        option_id: int,
        value: str,
        exclude_id: int | None = None,
    ) -> ProductOptionValue | None:
        """Find an active value of an option by case-insensitive text."""
        query = select(ProductOptionValue).where(
            ProductOptionValue.product_option_id == option_id,
            func.lower(ProductOptionValue.value) == value.lower(),
            ProductOptionValue.archived_on.is_(None),
        )
        if exclude_id is not None:
            query = query.where(ProductOptionValue.id != exclude_id)
        result = await self.session.execute(query.limit(1))
        return result.scalar_one_or_none()

    async def options_for_root(
        self,
        root_id: int,
        include_archived: bool = False,
    ) -> Sequence[ProductOption]:
        """Get the options of a root in creation order."""
        query = select(ProductOption).where(ProductOption.product_root_id == root_id)
        if not include_archived:
            query = query.where(ProductOption.archived_on.is_(None))
        result = await self.session.execute(query.order_by(ProductOption.id))
        return result.scalars().all()

    async def values_for_options(
        self,
        option_ids: Sequence[int],
        include_archived: bool = False,
    ) -> dict[int, list[ProductOptionValue]]:
        """Get the values of several options, each list in creation order.

        Args:
            option_ids: Options to load values for.
            include_archived: Whether archived values are included.

        Returns:
            Mapping of option ID to its ordered values (empty list if none).
        """
        values: dict[int, list[ProductOptionValue]] = {oid: [] for oid in option_ids}
        if not option_ids:
            return values

        query = select(ProductOptionValue).where(
            ProductOptionValue.product_option_id.in_(option_ids)
        )
        if not include_archived:
            query = query.where(ProductOptionValue.archived_on.is_(None))
        result = await self.session.execute(query.order_by(ProductOptionValue.id))
        for value in result.scalars().all():
            values[value.product_option_id].append(value)
        return values

    # ------------------------------------------------------------------
    # Products
    # ------------------------------------------------------------------

    async def get_product(
        self,
        product_id: int,
        include_archived: bool = False,
    ) -> Product | None:
        """Get product variant by ID."""
        query = select(Product).where(Product.id == product_id)
        if not include_archived:
            query = query.where(Product.archived_on.is_(None))
        result = await self.session.execute(query)
        return result.scalar_one_or_none()

    async def get_product_by_sku(self, sku: str) -> Product | None:
        """Get the active variant holding a SKU."""
        query = select(Product).where(Product.sku == sku, Product.archived_on.is_(None))
        result = await self.session.execute(query)
        return result.scalar_one_or_none()

    async def active_products(self, root_id: int) -> Sequence[Product]:
        """Get the active variants of a root in creation order."""
        query = (
            select(Product)
            .where(Product.product_root_id == root_id, Product.archived_on.is_(None))
            .order_by(Product.id)
        )
        result = await self.session.execute(query)
        return result.scalars().all()

    async def active_skus(self, skus: Sequence[str]) -> set[str]:
        """Return which of the given SKUs are used by active products."""
        if not skus:
            return set()
        query = select(Product.sku).where(
            Product.sku.in_(skus),
            Product.archived_on.is_(None),
        )
        result = await self.session.execute(query)
        return set(result.scalars().all())

    async def list_products(
        self,
        root_id: int,
        qf: QueryFilter,
    ) -> PaginatedResult[Product]:
        """List the variants of a root with filtering and pagination."""
        return await self._paginate(Product, qf, Product.product_root_id == root_id)

    async def _paginate(self, model, qf: QueryFilter, *conditions) -> PaginatedResult:
        items_query = select(model)
        total_query = select(func.count(model.id))
        if conditions:
            items_query = items_query.where(*conditions)
            total_query = total_query.where(*conditions)

        total = (await self.session.execute(apply_conditions(total_query, model, qf))).scalar_one()
        rows = await self.session.execute(apply_filter(items_query, model, qf))
        return PaginatedResult(
            items=list(rows.scalars().all()),
            total=total,
            page=qf.page,
            limit=qf.limit,
        )

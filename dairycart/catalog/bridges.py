"""Variant bridge index.

The bridge table is the source of truth for which option values a variant
represents. A variant of a root with ``n`` active options has exactly
``n`` active bridges, one per option.
"""

from collections.abc import Iterable, Sequence
from datetime import datetime

import structlog
from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from dairycart.catalog.models import (
    Product,
    ProductOption,
    ProductOptionValue,
    ProductVariantBridge,
    utcnow,
)
from dairycart.domain.exceptions import InvariantViolationError, NotFoundError

logger = structlog.get_logger()

Combination = tuple[int, ...]


def combination_key(value_ids: Iterable[int]) -> Combination:
    """Canonical, order-independent key for a set of option value IDs."""
    return tuple(sorted(value_ids))


class VariantBridgeIndex:
    """Maintains the product to option value mapping.

    Example usage:
        index = VariantBridgeIndex(session)
        await index.bridge(product.id, [red.id, small.id])
        assert await index.combination_exists(root.id, [small.id, red.id])
    """

    def __init__(self, session: AsyncSession) -> None:
        """Initialize the index with a database session.

        Args:
            session: Async SQLAlchemy session.
        """
        self.session = session

    async def bridge(
        self,
        product_id: int,
        value_ids: Sequence[int],
    ) -> list[ProductVariantBridge]:
        """Create one bridge row per option value for a product.

        Args:
            product_id: Variant being bridged.
            value_ids: One active value per active option of the root.

        Returns:
            The created bridge rows.

        Raises:
            NotFoundError: If the product is missing or archived.
            InvariantViolationError: If the product is already bridged, the
                value set does not cover every active option exactly once,
                references another root, or is already held by another
                active product.
        """
        product = await self.session.get(Product, product_id)
        if product is None or product.archived_on is not None:
            raise NotFoundError("product", product_id)
        root_id = product.product_root_id

        option_count = await self._active_option_count(root_id)
        if len(value_ids) != option_count:
            raise InvariantViolationError(
                f"Product {product_id} needs {option_count} option values, "
                f"got {len(value_ids)}",
                details={
                    "product_id": product_id,
                    "expected": option_count,
                    "received": len(value_ids),
                },
            )

        owners = await self._value_owners(value_ids)
        foreign = [
            vid
            for vid in value_ids
            if vid not in owners or owners[vid][1] != root_id
        ]
        if foreign:
            raise InvariantViolationError(
                f"Option values {foreign} do not belong to an active option "
                f"of product root {root_id}",
                details={"product_id": product_id, "root_id": root_id, "value_ids": foreign},
            )

        option_ids = [owners[vid][0] for vid in value_ids]
        if len(set(option_ids)) != len(option_ids):
            raise InvariantViolationError(
                f"Product {product_id} received more than one value for the same option",
                details={"product_id": product_id, "value_ids": list(value_ids)},
            )

        current = await self.bridges_for_product(product_id)
        if current:
            raise InvariantViolationError(
                f"Product {product_id} is already bridged to option values {current}",
                details={"product_id": product_id, "value_ids": current},
            )

        owner = await self._combination_owner(root_id, value_ids, exclude=product_id)
        if owner is not None:
            raise InvariantViolationError(
                f"Option values {sorted(value_ids)} already belong to product {owner}",
                details={"product_id": product_id, "owner_id": owner},
            )

        bridges = [
            ProductVariantBridge(product_id=product_id, product_option_value_id=vid)
            for vid in value_ids
        ]
        self.session.add_all(bridges)
        await self.session.flush()
        return bridges

    async def bridges_for_product(self, product_id: int) -> list[int]:
        """Get the active option value IDs of a product, in option order.

        Args:
            product_id: Variant to inspect.

        Returns:
            Value IDs ordered by the creation order of their options.
        """
        query = (
            select(ProductVariantBridge.product_option_value_id)
            .join(
                ProductOptionValue,
                ProductOptionValue.id == ProductVariantBridge.product_option_value_id,
            )
            .where(
                ProductVariantBridge.product_id == product_id,
                ProductVariantBridge.archived_on.is_(None),
            )
            .order_by(ProductOptionValue.product_option_id, ProductOptionValue.id)
        )
        result = await self.session.execute(query)
        return list(result.scalars().all())

    async def combinations_for_root(self, root_id: int) -> dict[int, Combination]:
        """Map every active product of a root to its combination key.

        Products without active bridges map to the empty combination,
        which is the key of a root's base variant.
        """
        products = await self.session.execute(
            select(Product.id).where(
                Product.product_root_id == root_id,
                Product.archived_on.is_(None),
            )
        )
        members: dict[int, list[int]] = {pid: [] for pid in products.scalars().all()}
        if not members:
            return {}

        rows = await self.session.execute(
            select(
                ProductVariantBridge.product_id,
                ProductVariantBridge.product_option_value_id,
            ).where(
                ProductVariantBridge.product_id.in_(list(members)),
                ProductVariantBridge.archived_on.is_(None),
            )
        )
        for product_id, value_id in rows.all():
            members[product_id].append(value_id)

        return {pid: combination_key(vids) for pid, vids in members.items()}

    async def combination_exists(self, root_id: int, value_ids: Sequence[int]) -> bool:
        """Check whether an active product of a root has exactly this value set."""
        key = combination_key(value_ids)
        combinations = await self.combinations_for_root(root_id)
        return key in combinations.values()

    async def products_using_values(self, value_ids: Iterable[int]) -> set[int]:
        """Get the active products holding an active bridge to any given value."""
        value_ids = list(value_ids)
        if not value_ids:
            return set()
        query = (
            select(ProductVariantBridge.product_id)
            .join(Product, Product.id == ProductVariantBridge.product_id)
            .where(
                ProductVariantBridge.product_option_value_id.in_(value_ids),
                ProductVariantBridge.archived_on.is_(None),
                Product.archived_on.is_(None),
            )
        )
        result = await self.session.execute(query)
        return set(result.scalars().all())

    async def archive_for_products(
        self,
        product_ids: Iterable[int],
        archived_on: datetime | None = None,
    ) -> int:
        """Archive every active bridge of the given products.

        Returns:
            Number of bridge rows archived.
        """
        product_ids = list(product_ids)
        if not product_ids:
            return 0
        result = await self.session.execute(
            update(ProductVariantBridge)
            .where(
                ProductVariantBridge.product_id.in_(product_ids),
                ProductVariantBridge.archived_on.is_(None),
            )
            .values(archived_on=archived_on or utcnow())
        )
        logger.debug(
            "Archived variant bridges",
            product_count=len(product_ids),
            bridge_count=result.rowcount,
        )
        return result.rowcount

    async def _combination_owner(
        self,
        root_id: int,
        value_ids: Sequence[int],
        exclude: int,
    ) -> int | None:
        key = combination_key(value_ids)
        for product_id, combination in (await self.combinations_for_root(root_id)).items():
            if product_id != exclude and combination == key:
                return product_id
        return None

    async def _active_option_count(self, root_id: int) -> int:
        result = await self.session.execute(
            select(func.count(ProductOption.id)).where(
                ProductOption.product_root_id == root_id,
                ProductOption.archived_on.is_(None),
            )
        )
        return result.scalar_one()

    async def _value_owners(self, value_ids: Sequence[int]) -> dict[int, tuple[int, int]]:
        """Map active value IDs to ``(option_id, root_id)`` of active options."""
        if not value_ids:
            return {}
        rows = await self.session.execute(
            select(
                ProductOptionValue.id,
                ProductOption.id,
                ProductOption.product_root_id,
            )
            .join(ProductOption, ProductOption.id == ProductOptionValue.product_option_id)
            .where(
                ProductOptionValue.id.in_(value_ids),
                ProductOptionValue.archived_on.is_(None),
                ProductOption.archived_on.is_(None),
            )
        )
        return {value_id: (option_id, root_id) for value_id, option_id, root_id in rows.all()}

"""Archival cascade.

Soft deletion propagates along a small dependency graph::

    ROOT ──► OPTION ──► VALUE ──► PRODUCT ──► BRIDGE
      └──────────────────────────────▲

A value reaches the products bridged to it; a root reaches all of its
products directly. The same walk serves root, option, value and variant
archival, seeded at a different node. Everything reachable from the seed is
collected first and then archived in topological order, inside the
caller's transaction.
"""

from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from enum import Enum

import structlog
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from dairycart.catalog.bridges import VariantBridgeIndex
from dairycart.catalog.materializer import MaterializationResult, VariantMaterializer
from dairycart.catalog.models import (
    Product,
    ProductOption,
    ProductOptionValue,
    ProductRoot,
    ProductVariantBridge,
    utcnow,
)
from dairycart.catalog.repository import CatalogRepository
from dairycart.domain.events import (
    DomainEvent,
    OptionArchived,
    OptionValueArchived,
    ProductRootArchived,
    VariantArchived,
)
from dairycart.domain.exceptions import NotFoundError
from dairycart.domain.lifecycle import validate_archival

logger = structlog.get_logger()


class Node(str, Enum):
    """Kinds of entity in the archival graph, in topological order."""

    ROOT = "product_root"
    OPTION = "product_option"
    VALUE = "product_option_value"
    PRODUCT = "product"
    BRIDGE = "product_variant_bridge"

    @property
    def model(self) -> type:
        return _NODE_MODELS[self]


_NODE_MODELS: dict[Node, type] = {
    Node.ROOT: ProductRoot,
    Node.OPTION: ProductOption,
    Node.VALUE: ProductOptionValue,
    Node.PRODUCT: Product,
    Node.BRIDGE: ProductVariantBridge,
}

TOPOLOGICAL_ORDER: tuple[Node, ...] = tuple(Node)


@dataclass
class CascadeResult:
    """Entities archived by one cascade, keyed by node kind.

    Attributes:
        root_id: Root whose tree was walked.
        archived: IDs archived per node kind.
        materialization: Re-materialization run after a partial archival.
    """

    root_id: int
    archived: dict[Node, list[int]] = field(
        default_factory=lambda: {node: [] for node in TOPOLOGICAL_ORDER}
    )
    materialization: MaterializationResult | None = None

    def count(self, node: Node) -> int:
        return len(self.archived[node])

    def counts(self) -> dict[str, int]:
        return {node.value: len(ids) for node, ids in self.archived.items()}


Expander = Callable[[list[int]], Awaitable[list[int]]]


class ArchivalCascade:
    """Propagates soft deletion from a root, option, value or variant.

    Every public method locks the owning root before walking, so a cascade
    never interleaves with a materialization of the same root. Events are
    recorded on ``events`` for publication after commit.

    Example usage:
        cascade = ArchivalCascade(session)
        result = await cascade.archive_value(red.id)
        assert result.count(Node.PRODUCT) == 2
    """

    def __init__(
        self,
        session: AsyncSession,
        repository: CatalogRepository | None = None,
        bridges: VariantBridgeIndex | None = None,
        materializer: VariantMaterializer | None = None,
        events: list[DomainEvent] | None = None,
    ) -> None:
        """Initialize the cascade.

        Args:
            session: Async SQLAlchemy session inside an open transaction.
            repository: Catalog repository (created from session if omitted).
            bridges: Bridge index (created from session if omitted).
            materializer: Used to re-materialize after a partial archival.
            events: List to record events on (shared with other components).
        """
        self.session = session
        self.repository = repository or CatalogRepository(session)
        self.bridges = bridges or VariantBridgeIndex(session)
        self.materializer = materializer or VariantMaterializer(
            session, self.repository, self.bridges
        )
        self.events: list[DomainEvent] = [] if events is None else events
        self._edges: dict[Node, list[tuple[Node, Expander]]] = {
            Node.ROOT: [
                (Node.OPTION, self._options_of_roots),
                (Node.PRODUCT, self._products_of_roots),
            ],
            Node.OPTION: [(Node.VALUE, self._values_of_options)],
            Node.VALUE: [(Node.PRODUCT, self._products_of_values)],
            Node.PRODUCT: [(Node.BRIDGE, self._bridges_of_products)],
            Node.BRIDGE: [],
        }

    async def archive_root(self, root_id: int) -> CascadeResult:
        """Archive a root and everything below it.

        Raises:
            NotFoundError: If the root is missing or already archived.
        """
        root = await self.repository.get_root(root_id, include_archived=True)
        if root is None:
            raise NotFoundError(Node.ROOT.value, root_id)
        validate_archival(Node.ROOT.value, root_id, root.archived_on)
        await self.repository.lock_root(root_id)

        result = await self._cascade(root_id, Node.ROOT, root_id)
        self.events.append(
            ProductRootArchived(
                aggregate_id=str(root_id),
                aggregate_type="product_root",
                root_id=root_id,
                archived_option_count=result.count(Node.OPTION),
                archived_value_count=result.count(Node.VALUE),
                archived_variant_count=result.count(Node.PRODUCT),
            )
        )
        return result

    async def archive_option(self, option_id: int) -> CascadeResult:
        """Archive an option, its values and the variants using them.

        The root is re-materialized afterwards, so the remaining options
        still produce a complete variant set.

        Raises:
            NotFoundError: If the option is missing or already archived.
        """
        option = await self.repository.get_option(option_id, include_archived=True)
        if option is None:
            raise NotFoundError(Node.OPTION.value, option_id)
        validate_archival(Node.OPTION.value, option_id, option.archived_on)
        root = await self._lock_owner(option.product_root_id)

        result = await self._cascade(root.id, Node.OPTION, option_id)
        self.events.append(
            OptionArchived(
                aggregate_id=str(root.id),
                aggregate_type="product_root",
                root_id=root.id,
                option_id=option_id,
            )
        )
        result.materialization = await self.materializer.materialize(root)
        self.events.extend(result.materialization.events())
        return result

    async def archive_value(self, value_id: int) -> CascadeResult:
        """Archive a single option value and only the variants bridged to it.

        Raises:
            NotFoundError: If the value is missing or already archived.
        """
        value = await self.repository.get_value(value_id, include_archived=True)
        if value is None:
            raise NotFoundError(Node.VALUE.value, value_id)
        validate_archival(Node.VALUE.value, value_id, value.archived_on)
        option = await self.repository.get_option(value.product_option_id, include_archived=True)
        root = await self._lock_owner(option.product_root_id)

        result = await self._cascade(root.id, Node.VALUE, value_id)
        self.events.append(
            OptionValueArchived(
                aggregate_id=str(root.id),
                aggregate_type="product_root",
                root_id=root.id,
                option_id=option.id,
                value_id=value_id,
            )
        )
        result.materialization = await self.materializer.materialize(root)
        self.events.extend(result.materialization.events())
        return result

    async def archive_product(self, product_id: int) -> CascadeResult:
        """Archive one variant and its bridges.

        The root is not re-materialized here; the retired combination
        comes back on the next materialization of the root.

        Raises:
            NotFoundError: If the product is missing or already archived.
        """
        product = await self.repository.get_product(product_id, include_archived=True)
        if product is None:
            raise NotFoundError(Node.PRODUCT.value, product_id)
        validate_archival(Node.PRODUCT.value, product_id, product.archived_on)
        root = await self._lock_owner(product.product_root_id)

        return await self._cascade(root.id, Node.PRODUCT, product_id)

    async def _lock_owner(self, root_id: int) -> ProductRoot:
        root = await self.repository.lock_root(root_id)
        if root is None:
            raise NotFoundError(Node.ROOT.value, root_id)
        return root

    async def _cascade(self, root_id: int, seed: Node, seed_id: int) -> CascadeResult:
        result = CascadeResult(root_id=root_id)
        reached = await self._walk(seed, seed_id)

        skus = await self._skus(reached[Node.PRODUCT])
        archived_on = utcnow()
        for node in TOPOLOGICAL_ORDER:
            ids = reached[node]
            if not ids:
                continue
            await self.repository.archive(node.model, ids, archived_on)
            result.archived[node] = ids

        for product_id in result.archived[Node.PRODUCT]:
            self.events.append(
                VariantArchived(
                    aggregate_id=str(root_id),
                    aggregate_type="product_root",
                    root_id=root_id,
                    product_id=product_id,
                    sku=skus[product_id],
                )
            )

        logger.info(
            "Archival cascade completed",
            root_id=root_id,
            seed=seed.value,
            seed_id=seed_id,
            **{f"{node.name.lower()}_count": result.count(node) for node in TOPOLOGICAL_ORDER},
        )
        return result

    async def _walk(self, seed: Node, seed_id: int) -> dict[Node, list[int]]:
        """Collect every active entity reachable from the seed."""
        reached: dict[Node, set[int]] = {node: set() for node in TOPOLOGICAL_ORDER}
        reached[seed].add(seed_id)
        for node in TOPOLOGICAL_ORDER:
            parents = sorted(reached[node])
            if not parents:
                continue
            for child, expand in self._edges[node]:
                reached[child].update(await expand(parents))
        return {node: sorted(ids) for node, ids in reached.items()}

    async def _skus(self, product_ids: list[int]) -> dict[int, str]:
        if not product_ids:
            return {}
        rows = await self.session.execute(
            select(Product.id, Product.sku).where(Product.id.in_(product_ids))
        )
        return dict(rows.all())

    # ------------------------------------------------------------------
    # Edges
    # ------------------------------------------------------------------

    async def _options_of_roots(self, root_ids: list[int]) -> list[int]:
        return await self._active_ids(
            ProductOption, ProductOption.product_root_id.in_(root_ids)
        )

    async def _products_of_roots(self, root_ids: list[int]) -> list[int]:
        return await self._active_ids(Product, Product.product_root_id.in_(root_ids))

    async def _values_of_options(self, option_ids: list[int]) -> list[int]:
        return await self._active_ids(
            ProductOptionValue, ProductOptionValue.product_option_id.in_(option_ids)
        )

    async def _products_of_values(self, value_ids: list[int]) -> list[int]:
        return sorted(await self.bridges.products_using_values(value_ids))

    async def _bridges_of_products(self, product_ids: list[int]) -> list[int]:
        return await self._active_ids(
            ProductVariantBridge, ProductVariantBridge.product_id.in_(product_ids)
        )

    async def _active_ids(self, model: type, condition) -> list[int]:
        rows = await self.session.execute(
            select(model.id).where(condition, model.archived_on.is_(None))
        )
        return list(rows.scalars().all())

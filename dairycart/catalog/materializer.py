"""Variant materializer.

Computes the variant set implied by a product root's active options and
values and applies the difference to the stored products. The target set
is the cartesian product of each option's active values, in option
creation order; a root without options has a single base variant.

Existing variants whose bridge set is still a target combination are
never touched, so independently edited fields (quantity, price) survive
re-materialization. Only the delta is created or archived.
"""

import itertools
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field

import structlog
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from dairycart.catalog.bridges import Combination, VariantBridgeIndex, combination_key
from dairycart.catalog.models import (
    Product,
    ProductOption,
    ProductOptionValue,
    ProductRoot,
    utcnow,
)
from dairycart.catalog.repository import CatalogRepository
from dairycart.catalog.slugs import build_option_summary, build_sku
from dairycart.domain.events import (
    DomainEvent,
    VariantArchived,
    VariantCreated,
    VariantUpdated,
)
from dairycart.domain.exceptions import SkuCollisionError

logger = structlog.get_logger()


# ============================================================================
# Planning
# ============================================================================


@dataclass(frozen=True)
class PlannedVariant:
    """One combination of the target variant set.

    Attributes:
        choices: ``(option, value)`` pairs in option order.
        sku: Derived SKU.
        option_summary: Derived option summary.
    """

    choices: tuple[tuple[ProductOption, ProductOptionValue], ...]
    sku: str
    option_summary: str

    @property
    def value_ids(self) -> tuple[int, ...]:
        """Value IDs in option order."""
        return tuple(value.id for _, value in self.choices)

    @property
    def key(self) -> Combination:
        return combination_key(self.value_ids)


@dataclass
class MaterializationPlan:
    """Difference between the target variant set and stored variants.

    Attributes:
        to_create: Target combinations with no active product.
        to_archive: Products whose combination is not (or no longer) a
            target, including duplicates of a combination already kept.
        unchanged: Products kept as they are.
    """

    to_create: list[PlannedVariant] = field(default_factory=list)
    to_archive: list[int] = field(default_factory=list)
    unchanged: list[int] = field(default_factory=list)

    @property
    def is_noop(self) -> bool:
        return not self.to_create and not self.to_archive


def plan_variants(
    root: ProductRoot,
    options: Sequence[ProductOption],
    values_by_option: Mapping[int, Sequence[ProductOptionValue]],
) -> list[PlannedVariant]:
    """Compute the target variant set of a root.

    Args:
        root: Product root supplying the SKU prefix.
        options: Active options in creation order.
        values_by_option: Active values of each option in creation order.

    Returns:
        One PlannedVariant per combination, in lexicographic option order.
        An option without values yields an empty set.
    """
    axes = [
        [(option, value) for value in values_by_option.get(option.id, [])]
        for option in options
    ]
    planned = []
    for choices in itertools.product(*axes):
        planned.append(
            PlannedVariant(
                choices=tuple(choices),
                sku=build_sku(root.sku_prefix, [value.value for _, value in choices]),
                option_summary=build_option_summary(
                    (option.name, value.value) for option, value in choices
                ),
            )
        )
    return planned


def diff_variants(
    planned: Sequence[PlannedVariant],
    existing: Mapping[int, Combination],
) -> MaterializationPlan:
    """Diff the target set against the stored product combinations.

    Args:
        planned: Target variant set.
        existing: Active product ID to its combination key.

    Returns:
        The plan of products to create, archive and keep.
    """
    plan = MaterializationPlan()
    target = {variant.key: variant for variant in planned}

    kept: set[Combination] = set()
    for product_id in sorted(existing):
        key = existing[product_id]
        if key in target and key not in kept:
            kept.add(key)
            plan.unchanged.append(product_id)
        else:
            plan.to_archive.append(product_id)

    plan.to_create = [variant for variant in planned if variant.key not in kept]
    return plan


# ============================================================================
# Materializer
# ============================================================================


@dataclass
class MaterializationResult:
    """Outcome of a materialization run.

    Attributes:
        root_id: Root that was materialized.
        created: Products created in this run.
        archived: Products archived in this run.
        unchanged: Number of products left untouched.
        combinations: Value IDs (in option order) of each created product.
    """

    root_id: int
    created: list[Product] = field(default_factory=list)
    archived: list[Product] = field(default_factory=list)
    unchanged: int = 0
    combinations: dict[int, tuple[int, ...]] = field(default_factory=dict)

    def events(self) -> list[DomainEvent]:
        """Variant events to emit once the transaction commits."""
        events: list[DomainEvent] = []
        for product in self.archived:
            events.append(
                VariantArchived(
                    aggregate_id=str(self.root_id),
                    aggregate_type="product_root",
                    root_id=self.root_id,
                    product_id=product.id,
                    sku=product.sku,
                )
            )
        for product in self.created:
            events.append(
                VariantCreated(
                    aggregate_id=str(self.root_id),
                    aggregate_type="product_root",
                    root_id=self.root_id,
                    product_id=product.id,
                    sku=product.sku,
                    option_summary=product.option_summary,
                    value_ids=self.combinations.get(product.id, ()),
                )
            )
        return events


class VariantMaterializer:
    """Computes and persists the variant set of a product root.

    Callers hold the root's row lock (see CatalogRepository.lock_root) for
    the whole transaction, which serializes materialization per root.

    Example usage:
        root = await repository.lock_root(root_id)
        result = await VariantMaterializer(session).materialize(root)
    """

    def __init__(
        self,
        session: AsyncSession,
        repository: CatalogRepository | None = None,
        bridges: VariantBridgeIndex | None = None,
    ) -> None:
        """Initialize the materializer.

        Args:
            session: Async SQLAlchemy session inside an open transaction.
            repository: Catalog repository (created from session if omitted).
            bridges: Bridge index (created from session if omitted).
        """
        self.session = session
        self.repository = repository or CatalogRepository(session)
        self.bridges = bridges or VariantBridgeIndex(session)

    async def plan(self, root: ProductRoot) -> tuple[list[PlannedVariant], MaterializationPlan]:
        """Compute the target set of a root and its diff against storage."""
        options = await self.repository.options_for_root(root.id)
        values = await self.repository.values_for_options([o.id for o in options])
        planned = plan_variants(root, options, values)
        existing = await self.bridges.combinations_for_root(root.id)
        return planned, diff_variants(planned, existing)

    async def materialize(self, root: ProductRoot) -> MaterializationResult:
        """Bring the stored variants of a root in line with its options.

        Args:
            root: Locked, active product root.

        Returns:
            What was created, archived and kept.

        Raises:
            SkuCollisionError: If a new SKU is held by another active product.
        """
        _, plan = await self.plan(root)
        result = MaterializationResult(root_id=root.id, unchanged=len(plan.unchanged))

        if plan.is_noop:
            logger.debug(
                "Variant set unchanged",
                root_id=root.id,
                variant_count=len(plan.unchanged),
            )
            return result

        if plan.to_archive:
            result.archived = await self._archive(plan.to_archive)

        if plan.to_create:
            result.created = await self._create(root, plan.to_create)
            result.combinations = {
                product.id: variant.value_ids
                for product, variant in zip(result.created, plan.to_create)
            }

        logger.info(
            "Materialized product variants",
            root_id=root.id,
            created=len(result.created),
            archived=len(result.archived),
            unchanged=result.unchanged,
        )
        return result

    async def regenerate_labels(self, root: ProductRoot) -> list[DomainEvent]:
        """Recompute SKU and option summary of every active variant.

        Used after an option or value rename: the labels are derived from
        the bridge set, so they are rebuilt rather than patched.

        Args:
            root: Locked, active product root.

        Returns:
            VariantUpdated events for the variants whose labels changed.

        Raises:
            SkuCollisionError: If a regenerated SKU is held by another product.
        """
        options = await self.repository.options_for_root(root.id)
        values = await self.repository.values_for_options([o.id for o in options])
        position = {option.id: index for index, option in enumerate(options)}
        choice_of = {
            value.id: (option, value)
            for option in options
            for value in values[option.id]
        }

        combinations = await self.bridges.combinations_for_root(root.id)
        products = {p.id: p for p in await self.repository.active_products(root.id)}

        changes: list[tuple[Product, str, str]] = []
        for product_id, key in combinations.items():
            if any(value_id not in choice_of for value_id in key):
                continue
            choices = sorted(
                (choice_of[value_id] for value_id in key),
                key=lambda choice: position[choice[0].id],
            )
            sku = build_sku(root.sku_prefix, [value.value for _, value in choices])
            summary = build_option_summary((o.name, v.value) for o, v in choices)
            product = products[product_id]
            if product.sku != sku or product.option_summary != summary:
                changes.append((product, sku, summary))

        if not changes:
            return []

        renamed = {product.id for product, _, _ in changes}
        new_skus = [sku for product, sku, _ in changes if product.sku != sku]
        taken = await self.repository.active_skus(new_skus)
        taken -= {products[pid].sku for pid in renamed}
        if taken:
            raise SkuCollisionError(root.id, sorted(taken))

        events: list[DomainEvent] = []
        for product, sku, summary in changes:
            events.append(
                VariantUpdated(
                    aggregate_id=str(root.id),
                    aggregate_type="product_root",
                    root_id=root.id,
                    product_id=product.id,
                    old_sku=product.sku,
                    sku=sku,
                    option_summary=summary,
                    changed_fields=tuple(
                        name
                        for name, value in (("sku", sku), ("option_summary", summary))
                        if getattr(product, name) != value
                    ),
                )
            )
            product.sku = sku
            product.option_summary = summary
            product.updated_on = utcnow()

        await self._flush(root.id, new_skus)
        logger.info(
            "Regenerated variant labels",
            root_id=root.id,
            updated=len(changes),
        )
        return events

    async def _archive(self, product_ids: list[int]) -> list[Product]:
        rows = await self.session.execute(
            select(Product).where(Product.id.in_(product_ids)).order_by(Product.id)
        )
        products = list(rows.scalars().all())
        archived_on = utcnow()
        await self.repository.archive(Product, product_ids, archived_on)
        await self.bridges.archive_for_products(product_ids, archived_on)
        return products

    async def _create(self, root: ProductRoot, planned: list[PlannedVariant]) -> list[Product]:
        skus = [variant.sku for variant in planned]
        taken = await self.repository.active_skus(skus)
        duplicates = {sku for sku in skus if skus.count(sku) > 1}
        if taken or duplicates:
            raise SkuCollisionError(root.id, sorted(taken | duplicates))

        inherited = root.inherited_values()
        products = []
        for variant in planned:
            product = Product(
                product_root_id=root.id,
                sku=variant.sku,
                option_summary=variant.option_summary,
                **inherited,
            )
            products.append(product)
        self.session.add_all(products)
        await self._flush(root.id, skus)

        for product, variant in zip(products, planned):
            if variant.value_ids:
                await self.bridges.bridge(product.id, list(variant.value_ids))
        return products

    async def _flush(self, root_id: int, skus: list[str]) -> None:
        try:
            await self.session.flush()
        except IntegrityError as e:
            logger.warning(
                "SKU uniqueness violated during materialization",
                root_id=root_id,
                error=str(e.orig),
            )
            raise SkuCollisionError(root_id, sorted(skus)) from e

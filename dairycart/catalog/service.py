"""Catalog application service.

Orchestrates the product root registry:
- Creating, editing and archiving product roots
- Editing and retiring individual variants
- Adding, renaming and archiving options and values
- Materializing variants after every change to the option set
- Publishing catalog events once the change has committed

Each mutating call is one unit of work: a single transaction that locks
the affected root before anything is diffed.
"""

import asyncio
from collections.abc import Awaitable, Callable, Sequence
from dataclasses import dataclass, field
from typing import Any, TypeVar

import structlog
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from dairycart.catalog.archival import ArchivalCascade, CascadeResult
from dairycart.catalog.bridges import VariantBridgeIndex
from dairycart.catalog.filters import PaginatedResult, QueryFilter
from dairycart.catalog.materializer import MaterializationResult, VariantMaterializer
from dairycart.catalog.models import Product, ProductRoot, utcnow
from dairycart.catalog.options import OptionListing, OptionRegistry
from dairycart.catalog.repository import CatalogRepository
from dairycart.catalog.schemas import ProductRootCreate, ProductRootUpdate, ProductUpdate
from dairycart.domain.events import (
    DomainEvent,
    ProductRootCreated,
    ProductRootUpdated,
    VariantUpdated,
)
from dairycart.domain.exceptions import (
    ConflictError,
    NotFoundError,
    SkuCollisionError,
    StorageFailureError,
)
from dairycart.infrastructure.config import Settings, settings as default_settings
from dairycart.notifications.webhooks import InMemoryNotifier, Notifier

logger = structlog.get_logger()

T = TypeVar("T")


# ============================================================================
# Unit of Work
# ============================================================================


@dataclass
class UnitOfWork:
    """Components sharing one session and transaction.

    Attributes:
        session: Session with an open transaction.
        events: Events recorded by the service and its components, in order.
    """

    session: AsyncSession
    events: list[DomainEvent] = field(default_factory=list)

    def __post_init__(self) -> None:
        self.repository = CatalogRepository(self.session)
        self.bridges = VariantBridgeIndex(self.session)
        self.materializer = VariantMaterializer(self.session, self.repository, self.bridges)
        self.options = OptionRegistry(self.session, self.repository, self.events)
        self.cascade = ArchivalCascade(
            self.session, self.repository, self.bridges, self.materializer, self.events
        )

    def record(self, events: Sequence[DomainEvent]) -> None:
        self.events.extend(events)

    def collect_events(self) -> list[DomainEvent]:
        """All events of the unit in the order they were recorded."""
        return list(self.events)

    async def lock_root(self, root_id: int) -> ProductRoot:
        root = await self.repository.lock_root(root_id)
        if root is None:
            raise NotFoundError("product_root", root_id)
        return root


# ============================================================================
# Catalog Service
# ============================================================================


class CatalogService:
    """Product root registry and entry point to the variant engine.

    Example usage:
        service = CatalogService(get_session_factory(), WebhookNotifier(...))
        root_id = await service.create_root(
            ProductRootCreate(
                name="T-Shirt",
                sku_prefix="tshirt",
                options=[OptionCreate(name="Color", values=["Red", "Blue"])],
            )
        )
        await service.add_value(color_id, "Green")
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        notifier: Notifier | None = None,
        settings: Settings | None = None,
    ) -> None:
        """Initialize service.

        Args:
            session_factory: Factory for catalog sessions.
            notifier: Receives events after commit (in-memory if omitted).
            settings: Transaction settings (module settings if omitted).
        """
        self.session_factory = session_factory
        self.notifier = notifier or InMemoryNotifier()
        self.settings = settings or default_settings

    # ------------------------------------------------------------------
    # Product roots
    # ------------------------------------------------------------------

    async def create_root(
        self,
        data: ProductRootCreate | dict[str, Any],
        timeout: float | None = None,
    ) -> int:
        """Create a product root with its inline options and variants.

        Args:
            data: Root fields and optional inline options/values.
            timeout: Transaction timeout in seconds.

        Returns:
            ID of the new root.

        Raises:
            pydantic.ValidationError: If the data is malformed.
            ConflictError: If an active root already uses the SKU prefix,
                or an inline option/value is duplicated.
        """
        if not isinstance(data, ProductRootCreate):
            data = ProductRootCreate.model_validate(data)

        async def work(uow: UnitOfWork) -> int:
            if await uow.repository.sku_prefix_in_use(data.sku_prefix):
                raise _sku_prefix_conflict(data.sku_prefix)

            root = ProductRoot(**data.root_values())
            try:
                await uow.repository.save(root)
            except IntegrityError as e:
                raise _sku_prefix_conflict(data.sku_prefix) from e
            uow.record([
                ProductRootCreated(
                    aggregate_id=str(root.id),
                    aggregate_type="product_root",
                    root_id=root.id,
                    name=root.name,
                    sku_prefix=root.sku_prefix,
                )
            ])

            root = await uow.lock_root(root.id)
            for option in data.options:
                await uow.options.add_option(root.id, option.name, option.values)
            result = await uow.materializer.materialize(root)
            uow.record(result.events())
            return root.id

        return await self._run("create_root", work, timeout)

    async def update_root(
        self,
        root_id: int,
        changes: ProductRootUpdate | dict[str, Any],
        timeout: float | None = None,
    ) -> ProductRoot:
        """Edit root fields.

        Existing variants keep the values they inherited; only variants
        materialized afterwards see the new defaults.

        Raises:
            pydantic.ValidationError: If the changes are malformed or try to
                change the SKU prefix.
            NotFoundError: If the root is missing or archived.
        """
        if not isinstance(changes, ProductRootUpdate):
            changes = ProductRootUpdate.model_validate(changes)

        async def work(uow: UnitOfWork) -> ProductRoot:
            root = await uow.lock_root(root_id)
            changed = []
            for name, value in changes.changes().items():
                if getattr(root, name) != value:
                    setattr(root, name, value)
                    changed.append(name)
            if changed:
                root.updated_on = utcnow()
                await uow.session.flush()
                uow.record([
                    ProductRootUpdated(
                        aggregate_id=str(root_id),
                        aggregate_type="product_root",
                        root_id=root_id,
                        changed_fields=tuple(changed),
                    )
                ])
            return root

        return await self._run("update_root", work, timeout)

    async def delete_root(self, root_id: int, timeout: float | None = None) -> CascadeResult:
        """Archive a root with all its options, values, variants and bridges.

        Raises:
            NotFoundError: If the root is missing or already archived.
        """

        async def work(uow: UnitOfWork) -> CascadeResult:
            return await uow.cascade.archive_root(root_id)

        return await self._run("delete_root", work, timeout)

    async def materialize(
        self,
        root_id: int,
        timeout: float | None = None,
    ) -> MaterializationResult:
        """Re-run materialization of a root explicitly.

        Raises:
            NotFoundError: If the root is missing or archived.
        """

        async def work(uow: UnitOfWork) -> MaterializationResult:
            root = await uow.lock_root(root_id)
            result = await uow.materializer.materialize(root)
            uow.record(result.events())
            return result

        return await self._run("materialize", work, timeout)

    async def get_root(self, root_id: int) -> ProductRoot:
        """Get an active product root.

        Raises:
            NotFoundError: If the root is missing or archived.
        """

        async def read(session: AsyncSession) -> ProductRoot:
            root = await CatalogRepository(session).get_root(root_id)
            if root is None:
                raise NotFoundError("product_root", root_id)
            return root

        return await self._read("get_root", read)

    async def list_roots(self, qf: QueryFilter | None = None) -> PaginatedResult[ProductRoot]:
        """List product roots page by page."""
        qf = qf or QueryFilter()

        async def read(session: AsyncSession) -> PaginatedResult[ProductRoot]:
            return await CatalogRepository(session).list_roots(qf)

        return await self._read("list_roots", read)

    async def list_variants(
        self,
        root_id: int,
        qf: QueryFilter | None = None,
    ) -> PaginatedResult[Product]:
        """List the variants of a root page by page.

        Raises:
            NotFoundError: If the root does not exist (or is archived and
                the filter excludes archived rows).
        """
        qf = qf or QueryFilter()

        async def read(session: AsyncSession) -> PaginatedResult[Product]:
            repository = CatalogRepository(session)
            root = await repository.get_root(root_id, include_archived=qf.include_archived)
            if root is None:
                raise NotFoundError("product_root", root_id)
            return await repository.list_products(root_id, qf)

        return await self._read("list_variants", read)

    # ------------------------------------------------------------------
    # Variants
    # ------------------------------------------------------------------

    async def get_variant_by_sku(self, sku: str) -> Product:
        """Get the active variant holding a SKU.

        Raises:
            NotFoundError: If no active variant has the SKU.
        """

        async def read(session: AsyncSession) -> Product:
            product = await CatalogRepository(session).get_product_by_sku(sku)
            if product is None:
                raise NotFoundError("product", sku)
            return product

        return await self._read("get_variant_by_sku", read)

    async def update_variant(
        self,
        product_id: int,
        changes: ProductUpdate | dict[str, Any],
        timeout: float | None = None,
    ) -> Product:
        """Edit the fields of one variant.

        Edits survive later materializations of the root as long as the
        variant's combination stays in the target set.

        Raises:
            pydantic.ValidationError: If the changes are malformed or touch
                the SKU or option summary.
            NotFoundError: If the variant is missing or archived.
        """
        if not isinstance(changes, ProductUpdate):
            changes = ProductUpdate.model_validate(changes)

        async def work(uow: UnitOfWork) -> Product:
            product = await uow.repository.get_product(product_id)
            if product is None:
                raise NotFoundError("product", product_id)
            await uow.lock_root(product.product_root_id)
            changed = []
            for name, value in changes.changes().items():
                if getattr(product, name) != value:
                    setattr(product, name, value)
                    changed.append(name)
            if changed:
                product.updated_on = utcnow()
                await uow.session.flush()
                uow.record([
                    VariantUpdated(
                        aggregate_id=str(product.product_root_id),
                        aggregate_type="product_root",
                        root_id=product.product_root_id,
                        product_id=product.id,
                        old_sku=product.sku,
                        sku=product.sku,
                        option_summary=product.option_summary,
                        changed_fields=tuple(changed),
                    )
                ])
            return product

        return await self._run("update_variant", work, timeout)

    async def archive_variant(self, product_id: int, timeout: float | None = None) -> CascadeResult:
        """Archive one variant and its bridges.

        Raises:
            NotFoundError: If the variant is missing or already archived.
        """

        async def work(uow: UnitOfWork) -> CascadeResult:
            return await uow.cascade.archive_product(product_id)

        return await self._run("archive_variant", work, timeout)

    # ------------------------------------------------------------------
    # Options and values
    # ------------------------------------------------------------------

    async def add_option(
        self,
        root_id: int,
        name: str,
        values: Sequence[str] = (),
        timeout: float | None = None,
    ) -> int:
        """Add an option (and optionally its values) and re-materialize.

        Returns:
            ID of the new option.

        Raises:
            NotFoundError: If the root is missing or archived.
            ConflictError: If an active option of the root has this name.
        """

        async def work(uow: UnitOfWork) -> int:
            root = await uow.lock_root(root_id)
            option = await uow.options.add_option(root.id, name, values)
            uow.record((await uow.materializer.materialize(root)).events())
            return option.id

        return await self._run("add_option", work, timeout)

    async def add_value(self, option_id: int, value: str, timeout: float | None = None) -> int:
        """Add a value to an option and re-materialize.

        Returns:
            ID of the new value.

        Raises:
            NotFoundError: If the option is missing or archived.
            ConflictError: If an active value of the option has this text.
        """

        async def work(uow: UnitOfWork) -> int:
            option = await uow.repository.get_option(option_id)
            if option is None:
                raise NotFoundError("product_option", option_id)
            root = await uow.lock_root(option.product_root_id)
            option_value = await uow.options.add_value(option_id, value)
            uow.record((await uow.materializer.materialize(root)).events())
            return option_value.id

        return await self._run("add_value", work, timeout)

    async def rename_option(self, option_id: int, name: str, timeout: float | None = None) -> None:
        """Rename an option and regenerate the labels of its root's variants.

        Raises:
            NotFoundError: If the option is missing or archived.
            ConflictError: If another active option of the root has this name.
        """

        async def work(uow: UnitOfWork) -> None:
            option = await uow.repository.get_option(option_id)
            if option is None:
                raise NotFoundError("product_option", option_id)
            root = await uow.lock_root(option.product_root_id)
            await uow.options.rename_option(option_id, name)
            uow.record(await uow.materializer.regenerate_labels(root))

        await self._run("rename_option", work, timeout)

    async def rename_value(self, value_id: int, value: str, timeout: float | None = None) -> None:
        """Rename an option value and regenerate dependent variant labels.

        Raises:
            NotFoundError: If the value or its option is missing or archived.
            ConflictError: If another active value of the option has this text.
        """

        async def work(uow: UnitOfWork) -> None:
            option_value = await uow.repository.get_value(value_id)
            if option_value is None:
                raise NotFoundError("product_option_value", value_id)
            option = await uow.repository.get_option(option_value.product_option_id)
            if option is None:
                raise NotFoundError("product_option", option_value.product_option_id)
            root = await uow.lock_root(option.product_root_id)
            await uow.options.rename_value(value_id, value)
            uow.record(await uow.materializer.regenerate_labels(root))

        await self._run("rename_value", work, timeout)

    async def archive_option(self, option_id: int, timeout: float | None = None) -> CascadeResult:
        """Archive an option with its values and the variants using them."""

        async def work(uow: UnitOfWork) -> CascadeResult:
            return await uow.cascade.archive_option(option_id)

        return await self._run("archive_option", work, timeout)

    async def archive_value(self, value_id: int, timeout: float | None = None) -> CascadeResult:
        """Archive one option value and the variants bridged to it."""

        async def work(uow: UnitOfWork) -> CascadeResult:
            return await uow.cascade.archive_value(value_id)

        return await self._run("archive_value", work, timeout)

    async def list_options(
        self,
        root_id: int,
        include_archived: bool = False,
    ) -> list[OptionListing]:
        """List the options of a root with their values, in creation order."""

        async def read(session: AsyncSession) -> list[OptionListing]:
            return await OptionRegistry(session).list_options(root_id, include_archived)

        return await self._read("list_options", read)

    # ------------------------------------------------------------------
    # Bridges
    # ------------------------------------------------------------------

    async def bridge(
        self,
        product_id: int,
        value_ids: Sequence[int],
        timeout: float | None = None,
    ) -> None:
        """Bridge a variant to one value per active option of its root.

        Raises:
            NotFoundError: If the product is missing or archived.
            InvariantViolationError: If the value set has the wrong shape.
        """

        async def work(uow: UnitOfWork) -> None:
            product = await uow.repository.get_product(product_id)
            if product is None:
                raise NotFoundError("product", product_id)
            await uow.lock_root(product.product_root_id)
            await uow.bridges.bridge(product_id, value_ids)

        await self._run("bridge", work, timeout)

    async def bridges_for_product(self, product_id: int) -> list[int]:
        """Get the active value IDs of a variant, in option order."""

        async def read(session: AsyncSession) -> list[int]:
            return await VariantBridgeIndex(session).bridges_for_product(product_id)

        return await self._read("bridges_for_product", read)

    async def combination_exists(self, root_id: int, value_ids: Sequence[int]) -> bool:
        """Check whether an active variant of a root has exactly these values."""

        async def read(session: AsyncSession) -> bool:
            return await VariantBridgeIndex(session).combination_exists(root_id, value_ids)

        return await self._read("combination_exists", read)

    # ------------------------------------------------------------------
    # Transactions
    # ------------------------------------------------------------------

    async def _run(
        self,
        operation: str,
        work: Callable[[UnitOfWork], Awaitable[T]],
        timeout: float | None = None,
    ) -> T:
        """Run work in a unit of work, then publish its events.

        A SKU collision rolls the whole unit back; it is retried (with a
        freshly computed diff) up to ``sku_collision_retries`` times.
        """
        attempt = 0
        while True:
            attempt += 1
            try:
                result, events = await self._attempt(operation, work, timeout)
            except SkuCollisionError as e:
                if attempt > self.settings.sku_collision_retries:
                    logger.error(
                        "SKU collision persisted after retry",
                        operation=operation,
                        skus=e.details.get("skus"),
                    )
                    raise
                logger.warning(
                    "SKU collision, retrying unit of work",
                    operation=operation,
                    attempt=attempt,
                    skus=e.details.get("skus"),
                )
                continue

            for event in events:
                await self.notifier.notify(event)
            return result

    async def _attempt(
        self,
        operation: str,
        work: Callable[[UnitOfWork], Awaitable[T]],
        timeout: float | None,
    ) -> tuple[T, list[DomainEvent]]:
        timeout = self.settings.transaction_timeout_seconds if timeout is None else timeout
        try:
            async with asyncio.timeout(timeout):
                async with self.session_factory() as session:
                    async with session.begin():
                        uow = UnitOfWork(session)
                        result = await work(uow)
                    return result, uow.collect_events()
        except TimeoutError as e:
            logger.error("Unit of work timed out", operation=operation, timeout=timeout)
            raise StorageFailureError(operation, f"timed out after {timeout}s") from e
        except SQLAlchemyError as e:
            logger.error("Unit of work failed", operation=operation, error=str(e))
            raise StorageFailureError(operation, str(e)) from e

    async def _read(self, operation: str, read: Callable[[AsyncSession], Awaitable[T]]) -> T:
        try:
            async with self.session_factory() as session:
                return await read(session)
        except SQLAlchemyError as e:
            logger.error("Catalog read failed", operation=operation, error=str(e))
            raise StorageFailureError(operation, str(e)) from e


def _sku_prefix_conflict(sku_prefix: str) -> ConflictError:
    return ConflictError(
        f"product root with the sku prefix '{sku_prefix}' already exists",
        details={"sku_prefix": sku_prefix},
    )

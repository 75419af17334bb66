"""Option registry.

Owns the lifecycle of product options and option values for a root:
adding, renaming and listing them. The registry only persists the change;
re-materialization of the variant set is driven by the service in the
same transaction.
"""

from collections.abc import Sequence
from dataclasses import dataclass, field

import structlog
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from dairycart.catalog.models import ProductOption, ProductOptionValue, utcnow
from dairycart.catalog.repository import CatalogRepository
from dairycart.catalog.slugs import require_slug
from dairycart.domain.events import (
    DomainEvent,
    OptionAdded,
    OptionRenamed,
    OptionValueAdded,
    OptionValueRenamed,
)
from dairycart.domain.exceptions import (
    DuplicateNameError,
    InvariantViolationError,
    NotFoundError,
)

logger = structlog.get_logger()


@dataclass
class OptionListing:
    """An option together with its values, both in creation order."""

    option: ProductOption
    values: list[ProductOptionValue] = field(default_factory=list)

    def to_dict(self) -> dict:
        data = self.option.to_dict()
        data["values"] = [value.to_dict() for value in self.values]
        return data


class OptionRegistry:
    """Adds, renames and lists the options and values of product roots.

    Events describing each change are recorded on ``events`` and are
    published by the caller after the transaction commits.

    Example usage:
        registry = OptionRegistry(session)
        color = await registry.add_option(root.id, "Color", ["Red", "Blue"])
        await registry.add_value(color.id, "Green")
    """

    def __init__(
        self,
        session: AsyncSession,
        repository: CatalogRepository | None = None,
        events: list[DomainEvent] | None = None,
    ) -> None:
        """Initialize the registry.

        Args:
            session: Async SQLAlchemy session inside an open transaction.
            repository: Catalog repository (created from session if omitted).
            events: List to record events on (shared with other components).
        """
        self.session = session
        self.repository = repository or CatalogRepository(session)
        self.events: list[DomainEvent] = [] if events is None else events

    def _record_event(self, event: DomainEvent) -> None:
        self.events.append(event)

    async def add_option(
        self,
        root_id: int,
        name: str,
        values: Sequence[str] = (),
    ) -> ProductOption:
        """Add an option to a root, optionally with its initial values.

        Args:
            root_id: Owning product root.
            name: Option name, unique (case-insensitive) among the root's
                active options.
            values: Values to add in order.

        Returns:
            The new option.

        Raises:
            NotFoundError: If the root is missing or archived.
            DuplicateNameError: If an active option already has this name.
            InvariantViolationError: If the name is blank.
        """
        name = _require_text("product_option", name)
        root = await self.repository.get_root(root_id)
        if root is None:
            raise NotFoundError("product_root", root_id)
        if await self.repository.option_named(root_id, name) is not None:
            raise DuplicateNameError("product_option", name, root_id)

        option = ProductOption(product_root_id=root_id, name=name)
        await self._save(option, name, root_id)
        self._record_event(
            OptionAdded(
                aggregate_id=str(root_id),
                aggregate_type="product_root",
                root_id=root_id,
                option_id=option.id,
                name=name,
            )
        )
        logger.info("Option added", root_id=root_id, option_id=option.id, name=name)

        for value in values:
            await self.add_value(option.id, value)
        return option

    async def add_value(self, option_id: int, value: str) -> ProductOptionValue:
        """Add a value to an option.

        Args:
            option_id: Owning option.
            value: Value text, unique (case-insensitive) among the option's
                active values and non-empty once slugified.

        Returns:
            The new option value.

        Raises:
            NotFoundError: If the option is missing or archived.
            DuplicateNameError: If an active value already has this text.
            InvariantViolationError: If the value yields an empty SKU token.
        """
        value = _require_text("product_option_value", value)
        require_slug(value)
        option = await self.repository.get_option(option_id)
        if option is None:
            raise NotFoundError("product_option", option_id)
        if await self.repository.value_named(option_id, value) is not None:
            raise DuplicateNameError("product_option_value", value, option_id)

        option_value = ProductOptionValue(product_option_id=option_id, value=value)
        await self._save(option_value, value, option_id)
        self._record_event(
            OptionValueAdded(
                aggregate_id=str(option.product_root_id),
                aggregate_type="product_root",
                root_id=option.product_root_id,
                option_id=option_id,
                value_id=option_value.id,
                value=value,
            )
        )
        logger.info(
            "Option value added",
            root_id=option.product_root_id,
            option_id=option_id,
            value_id=option_value.id,
        )
        return option_value

    async def rename_option(self, option_id: int, name: str) -> ProductOption:
        """Rename an option.

        Raises:
            NotFoundError: If the option is missing or archived.
            DuplicateNameError: If another active option of the root has
                this name.
        """
        name = _require_text("product_option", name)
        option = await self.repository.get_option(option_id)
        if option is None:
            raise NotFoundError("product_option", option_id)
        if await self.repository.option_named(
            option.product_root_id, name, exclude_id=option_id
        ) is not None:
            raise DuplicateNameError("product_option", name, option.product_root_id)

        old_name = option.name
        if old_name == name:
            return option

        option.name = name
        option.updated_on = utcnow()
        await self._save(option, name, option.product_root_id)
        self._record_event(
            OptionRenamed(
                aggregate_id=str(option.product_root_id),
                aggregate_type="product_root",
                root_id=option.product_root_id,
                option_id=option_id,
                old_name=old_name,
                new_name=name,
            )
        )
        logger.info("Option renamed", option_id=option_id, old_name=old_name, new_name=name)
        return option

    async def rename_value(self, value_id: int, value: str) -> ProductOptionValue:
        """Rename an option value.

        Raises:
            NotFoundError: If the value or its option is missing or archived.
            DuplicateNameError: If another active value of the option has
                this text.
            InvariantViolationError: If the value yields an empty SKU token.
        """
        value = _require_text("product_option_value", value)
        require_slug(value)
        option_value = await self.repository.get_value(value_id)
        if option_value is None:
            raise NotFoundError("product_option_value", value_id)
        option = await self.repository.get_option(option_value.product_option_id)
        if option is None:
            raise NotFoundError("product_option", option_value.product_option_id)
        if await self.repository.value_named(
            option.id, value, exclude_id=value_id
        ) is not None:
            raise DuplicateNameError("product_option_value", value, option.id)

        old_value = option_value.value
        if old_value == value:
            return option_value

        option_value.value = value
        option_value.updated_on = utcnow()
        await self._save(option_value, value, option.id)
        self._record_event(
            OptionValueRenamed(
                aggregate_id=str(option.product_root_id),
                aggregate_type="product_root",
                root_id=option.product_root_id,
                option_id=option.id,
                value_id=value_id,
                old_value=old_value,
                new_value=value,
            )
        )
        logger.info(
            "Option value renamed",
            option_id=option.id,
            value_id=value_id,
            old_value=old_value,
            new_value=value,
        )
        return option_value

    async def list_options(
        self,
        root_id: int,
        include_archived: bool = False,
    ) -> list[OptionListing]:
        """List the options of a root with their values.

        Raises:
            NotFoundError: If the root is missing (or archived, unless
                include_archived is set).
        """
        root = await self.repository.get_root(root_id, include_archived=include_archived)
        if root is None:
            raise NotFoundError("product_root", root_id)
        options = await self.repository.options_for_root(root_id, include_archived)
        values = await self.repository.values_for_options(
            [option.id for option in options], include_archived
        )
        return [OptionListing(option=option, values=values[option.id]) for option in options]

    async def _save(self, entity: object, name: str, parent_id: int) -> None:
        # The partial unique indexes catch a sibling committed after the
        # lookup above.
        try:
            await self.repository.save(entity)
        except IntegrityError as e:
            entity_type = (
                "product_option" if isinstance(entity, ProductOption) else "product_option_value"
            )
            raise DuplicateNameError(entity_type, name, parent_id) from e


def _require_text(entity_type: str, text: str) -> str:
    stripped = text.strip()
    if not stripped:
        raise InvariantViolationError(
            f"{entity_type} name must not be blank",
            details={"entity_type": entity_type},
        )
    return stripped

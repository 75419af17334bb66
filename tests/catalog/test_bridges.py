"""Tests for the variant bridge index."""

import pytest

from dairycart.catalog.bridges import VariantBridgeIndex, combination_key
from dairycart.catalog.models import Product
from dairycart.catalog.schemas import OptionCreate, ProductRootCreate
from dairycart.domain.exceptions import InvariantViolationError, NotFoundError


def test_combination_key_is_sorted() -> None:
    assert combination_key([21, 10]) == (10, 21)
    assert combination_key([]) == ()


async def _custom_product(session, root_id: int) -> Product:
    product = Product(product_root_id=root_id, name="T-Shirt", sku="tshirt-custom")
    session.add(product)
    await session.flush()
    return product


class TestBridge:
    """Tests for VariantBridgeIndex.bridge."""

    @pytest.mark.asyncio
    async def test_bridges_one_value_per_option(self, service, session, tshirt, stored) -> None:
        red = await stored.value_id(tshirt, "Color", "Red")
        small = await stored.value_id(tshirt, "Size", "S")
        await service.archive_variant((await stored.active_products(tshirt))[0].id)
        product = await _custom_product(session, tshirt)

        bridges = await VariantBridgeIndex(session).bridge(product.id, [small, red])

        assert [b.product_option_value_id for b in bridges] == [small, red]
        assert await VariantBridgeIndex(session).bridges_for_product(product.id) == [red, small]

    @pytest.mark.asyncio
    async def test_already_bridged_product(self, service, tshirt, stored) -> None:
        red_s = (await stored.active_products(tshirt))[0]
        blue = await stored.value_id(tshirt, "Color", "Blue")
        medium = await stored.value_id(tshirt, "Size", "M")

        with pytest.raises(InvariantViolationError) as exc_info:
            await service.bridge(red_s.id, [blue, medium])

        assert exc_info.value.details["product_id"] == red_s.id
        assert len(await stored.active_bridges(red_s.id)) == 2
        assert await service.bridges_for_product(red_s.id) == [
            await stored.value_id(tshirt, "Color", "Red"),
            await stored.value_id(tshirt, "Size", "S"),
        ]

    @pytest.mark.asyncio
    async def test_combination_held_by_another_product(self, session, tshirt, stored) -> None:
        blue_m = (await stored.active_products(tshirt))[3]
        blue = await stored.value_id(tshirt, "Color", "Blue")
        medium = await stored.value_id(tshirt, "Size", "M")
        product = await _custom_product(session, tshirt)

        with pytest.raises(InvariantViolationError) as exc_info:
            await VariantBridgeIndex(session).bridge(product.id, [medium, blue])

        assert exc_info.value.details["owner_id"] == blue_m.id
        assert await VariantBridgeIndex(session).bridges_for_product(product.id) == []

    @pytest.mark.asyncio
    async def test_wrong_value_count(self, service, tshirt, stored) -> None:
        product = (await stored.active_products(tshirt))[0]
        red = await stored.value_id(tshirt, "Color", "Red")

        with pytest.raises(InvariantViolationError) as exc_info:
            await service.bridge(product.id, [red])

        assert exc_info.value.details["expected"] == 2
        assert exc_info.value.details["received"] == 1

    @pytest.mark.asyncio
    async def test_two_values_of_one_option(self, service, tshirt, stored) -> None:
        product = (await stored.active_products(tshirt))[0]
        red = await stored.value_id(tshirt, "Color", "Red")
        blue = await stored.value_id(tshirt, "Color", "Blue")

        with pytest.raises(InvariantViolationError):
            await service.bridge(product.id, [red, blue])

        assert len(await stored.active_bridges(product.id)) == 2

    @pytest.mark.asyncio
    async def test_value_of_another_root(self, service, tshirt, stored) -> None:
        hoodie = await service.create_root(
            ProductRootCreate(
                name="Hoodie",
                sku_prefix="hoodie",
                options=[OptionCreate(name="Color", values=["Grey"])],
            )
        )
        product = (await stored.active_products(tshirt))[0]
        grey = await stored.value_id(hoodie, "Color", "Grey")
        small = await stored.value_id(tshirt, "Size", "S")

        with pytest.raises(InvariantViolationError) as exc_info:
            await service.bridge(product.id, [grey, small])

        assert exc_info.value.details["value_ids"] == [grey]

    @pytest.mark.asyncio
    async def test_archived_value_is_rejected(self, service, tshirt, stored) -> None:
        red = await stored.value_id(tshirt, "Color", "Red")
        blue_s = (await stored.active_products(tshirt))[2]
        small = await stored.value_id(tshirt, "Size", "S")
        await service.archive_value(red)

        with pytest.raises(InvariantViolationError):
            await service.bridge(blue_s.id, [red, small])

    @pytest.mark.asyncio
    async def test_missing_product(self, service) -> None:
        with pytest.raises(NotFoundError):
            await service.bridge(999, [])


class TestQueries:
    """Tests for the bridge index read side."""

    @pytest.mark.asyncio
    async def test_bridges_for_product_in_option_order(self, service, tshirt, stored) -> None:
        red = await stored.value_id(tshirt, "Color", "Red")
        medium = await stored.value_id(tshirt, "Size", "M")
        red_m = (await stored.active_products(tshirt))[1]

        assert await service.bridges_for_product(red_m.id) == [red, medium]

    @pytest.mark.asyncio
    async def test_bridges_for_archived_product_is_empty(self, service, tshirt, stored) -> None:
        product = (await stored.active_products(tshirt))[0]
        await service.delete_root(tshirt)
        assert await service.bridges_for_product(product.id) == []

    @pytest.mark.asyncio
    async def test_combination_exists_in_any_order(self, service, tshirt, stored) -> None:
        blue = await stored.value_id(tshirt, "Color", "Blue")
        medium = await stored.value_id(tshirt, "Size", "M")

        assert await service.combination_exists(tshirt, [medium, blue])
        assert await service.combination_exists(tshirt, [blue, medium])
        assert not await service.combination_exists(tshirt, [blue])

    @pytest.mark.asyncio
    async def test_combination_gone_after_value_archival(self, service, tshirt, stored) -> None:
        blue = await stored.value_id(tshirt, "Color", "Blue")
        medium = await stored.value_id(tshirt, "Size", "M")

        await service.archive_value(blue)

        assert not await service.combination_exists(tshirt, [blue, medium])

    @pytest.mark.asyncio
    async def test_base_variant_has_empty_combination(self, service) -> None:
        root_id = await service.create_root(ProductRootCreate(name="Mug", sku_prefix="mug"))
        assert await service.combination_exists(root_id, [])

    @pytest.mark.asyncio
    async def test_products_using_values(self, session, tshirt, stored) -> None:
        red = await stored.value_id(tshirt, "Color", "Red")
        red_ids = {p.id for p in (await stored.active_products(tshirt))[:2]}

        assert await VariantBridgeIndex(session).products_using_values([red]) == red_ids
        assert await VariantBridgeIndex(session).products_using_values([]) == set()

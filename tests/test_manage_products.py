from decimal import Decimal

import pytest

from conftest import NOW
from farm2city.application.create_order import CreateOrderDTO, CreateOrderUseCase
from farm2city.application.manage_products import (
    CreateProductDTO, CreateProductUseCase, DeleteProductUseCase, GetProductUseCase, ListProductsUseCase,
    UpdateProductDTO, UpdateProductUseCase
)
from farm2city.domain.exceptions import (
    InvalidProductError, PermissionDeniedError, ProductNotFoundError, ProductUnavailableError
)


def new_product(**overrides) -> CreateProductDTO:
    return CreateProductDTO(**{"farmer_id": "farmer-1", "name": "Okra", "price": Decimal("42.25"), "quantity": 60,
                               **overrides})


async def test_farmer_lists_product_for_sale(uow, seeded, clock):
    product = await CreateProductUseCase(uow, clock)(new_product())

    assert product.availability
    assert product.unit == "kg"
    assert product.created_at == NOW

    stored = await GetProductUseCase(uow)(product.id)
    assert stored.price == Decimal("42.25")
    assert stored.quantity == 60


async def test_listed_product_can_be_ordered(uow, seeded, notifications):
    product = await CreateProductUseCase(uow)(new_product())

    order = await CreateOrderUseCase(uow, notifications)(
        CreateOrderDTO(buyer_id="shop-1", product_id=product.id, quantity=4)
    )

    assert order.farmer_id == "farmer-1"
    assert order.total_amount == Decimal("169.00")


@pytest.mark.parametrize("overrides", [
    {"name": "  "},
    {"price": Decimal("0")},
    {"quantity": 0},
])
async def test_invalid_product_rejected(uow, seeded, overrides):
    with pytest.raises(InvalidProductError):
        await CreateProductUseCase(uow)(new_product(**overrides))


@pytest.mark.parametrize("farmer_id", ["shop-1", "trader-1"])
async def test_only_farmers_list_products(uow, seeded, farmer_id):
    with pytest.raises(PermissionDeniedError):
        await CreateProductUseCase(uow)(new_product(farmer_id=farmer_id))


async def test_list_products_by_farmer(uow, seeded):
    await CreateProductUseCase(uow)(new_product())

    names = {product.name for product in await ListProductsUseCase(uow)("farmer-1")}

    assert names == {"Tomato", "Mango", "Okra"}
    assert await ListProductsUseCase(uow)("shop-1") == []


async def test_toggle_availability(uow, seeded, notifications):
    update = UpdateProductUseCase(uow)
    await update("tomato", UpdateProductDTO(farmer_id="farmer-1", availability=False))

    with pytest.raises(ProductUnavailableError):
        await CreateOrderUseCase(uow, notifications)(
            CreateOrderDTO(buyer_id="shop-1", product_id="tomato", quantity=1)
        )

    restored = await update("tomato", UpdateProductDTO(farmer_id="farmer-1", availability=True, price=Decimal("18")))
    assert restored.availability
    assert (await GetProductUseCase(uow)("tomato")).price == Decimal("18")


async def test_update_keeps_untouched_fields(uow, seeded):
    updated = await UpdateProductUseCase(uow)("tomato", UpdateProductDTO(farmer_id="farmer-1", quantity=250))

    assert updated.quantity == 250
    assert updated.name == "Tomato"
    assert updated.price == Decimal("15.5")


async def test_update_rejects_invalid_values(uow, seeded):
    with pytest.raises(InvalidProductError):
        await UpdateProductUseCase(uow)("tomato", UpdateProductDTO(farmer_id="farmer-1", price=Decimal("-1")))

    assert (await GetProductUseCase(uow)("tomato")).price == Decimal("15.5")


async def test_only_owner_changes_product(uow, seeded):
    with pytest.raises(PermissionDeniedError):
        await UpdateProductUseCase(uow)("tomato", UpdateProductDTO(farmer_id="shop-1", availability=False))
    with pytest.raises(PermissionDeniedError):
        await DeleteProductUseCase(uow)("tomato", "shop-1")


async def test_delete_product(uow, seeded):
    product = await CreateProductUseCase(uow)(new_product())
    delete = DeleteProductUseCase(uow)

    await delete(product.id, "farmer-1")

    with pytest.raises(ProductNotFoundError):
        await GetProductUseCase(uow)(product.id)
    with pytest.raises(ProductNotFoundError):
        await delete(product.id, "farmer-1")


async def test_ordered_product_cannot_be_deleted(uow, place_order):
    await place_order()

    with pytest.raises(InvalidProductError):
        await DeleteProductUseCase(uow)("tomato", "farmer-1")

    assert (await GetProductUseCase(uow)("tomato")).id == "tomato"

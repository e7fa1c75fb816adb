from datetime import timedelta
from decimal import Decimal

import pytest

from conftest import NOW, FakeNotifications
from farm2city.application.create_order import CreateOrderDTO, CreateOrderUseCase
from farm2city.application.get_order import GetOrderUseCase, ListOrdersUseCase
from farm2city.domain.exceptions import (
    InvalidOrderError, OrderNotFoundError, PermissionDeniedError, ProductNotFoundError, ProductUnavailableError,
    UserNotFoundError
)
from farm2city.domain.models import NotificationType, OrderStatus, PaymentStatus


async def test_create_order_prices_in_decimal_and_notifies_farmer(uow, seeded, notifications, clock):
    use_case = CreateOrderUseCase(uow, notifications, clock)

    order = await use_case(CreateOrderDTO(buyer_id="shop-1", product_id="tomato", quantity=20))

    assert order.status == OrderStatus.PENDING
    assert order.payment_status == PaymentStatus.PENDING
    assert order.farmer_id == "farmer-1"
    assert order.total_amount == Decimal("310.0")
    assert order.created_at == NOW

    [notification] = notifications.sent
    assert notification.user_id == "farmer-1"
    assert notification.title == "New Order Received"
    assert notification.message == "Shop-1 placed an order for 20 kg of Tomato"
    assert notification.type == NotificationType.ORDER
    assert notification.data == {"order_id": order.id}


async def test_created_order_is_persisted_with_outbox_event(uow, seeded, notifications):
    order = await CreateOrderUseCase(uow, notifications)(
        CreateOrderDTO(buyer_id="trader-1", product_id="tomato", quantity=3, notes="до обеда")
    )

    stored = await GetOrderUseCase(uow)(order.id)
    assert stored.total_amount == Decimal("46.5")
    assert stored.notes == "до обеда"

    async with uow() as tx:
        [event] = await tx.outbox.get_pending()
    assert event["event_type"] == "order.created"
    assert event["aggregate_id"] == order.id


@pytest.mark.parametrize("quantity", [0, -5])
async def test_non_positive_quantity_rejected(uow, seeded, notifications, quantity):
    with pytest.raises(InvalidOrderError):
        await CreateOrderUseCase(uow, notifications)(
            CreateOrderDTO(buyer_id="shop-1", product_id="tomato", quantity=quantity)
        )
    assert notifications.sent == []


async def test_delivery_date_in_the_past_rejected(uow, seeded, notifications, clock):
    dto = CreateOrderDTO(
        buyer_id="shop-1", product_id="tomato", quantity=1, delivery_date=(NOW - timedelta(days=1)).date()
    )

    with pytest.raises(InvalidOrderError):
        await CreateOrderUseCase(uow, notifications, clock)(dto)


async def test_unknown_buyer(uow, seeded, notifications):
    with pytest.raises(UserNotFoundError):
        await CreateOrderUseCase(uow, notifications)(
            CreateOrderDTO(buyer_id="ghost", product_id="tomato", quantity=1)
        )


async def test_farmer_cannot_place_orders(uow, seeded, notifications):
    with pytest.raises(PermissionDeniedError):
        await CreateOrderUseCase(uow, notifications)(
            CreateOrderDTO(buyer_id="farmer-1", product_id="tomato", quantity=1)
        )


async def test_unknown_product(uow, seeded, notifications):
    with pytest.raises(ProductNotFoundError):
        await CreateOrderUseCase(uow, notifications)(
            CreateOrderDTO(buyer_id="shop-1", product_id="durian", quantity=1)
        )


async def test_unavailable_product(uow, seeded, notifications):
    with pytest.raises(ProductUnavailableError):
        await CreateOrderUseCase(uow, notifications)(
            CreateOrderDTO(buyer_id="shop-1", product_id="mango", quantity=1)
        )

    assert await ListOrdersUseCase(uow)() == []


async def test_failed_notification_does_not_fail_order(uow, seeded):
    order = await CreateOrderUseCase(uow, FakeNotifications(fail=True))(
        CreateOrderDTO(buyer_id="shop-1", product_id="tomato", quantity=2)
    )

    assert (await GetOrderUseCase(uow)(order.id)).id == order.id


async def test_get_missing_order(uow, seeded):
    with pytest.raises(OrderNotFoundError):
        await GetOrderUseCase(uow)("missing")


async def test_list_orders_filters(uow, place_order):
    shop_order = await place_order(buyer_id="shop-1")
    trader_order = await place_order(buyer_id="trader-1", quantity=5)

    list_orders = ListOrdersUseCase(uow)

    assert {o.id for o in await list_orders(farmer_id="farmer-1")} == {shop_order.id, trader_order.id}
    assert [o.id for o in await list_orders(buyer_id="trader-1")] == [trader_order.id]
    assert len(await list_orders(status=OrderStatus.PENDING)) == 2
    assert await list_orders(status=OrderStatus.DELIVERED) == []

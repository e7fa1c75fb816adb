import httpx
import pytest

from conftest import NOW, FakeNotifications
from farm2city.application.change_order_status import ChangeOrderStatusDTO, ChangeOrderStatusUseCase
from farm2city.application.get_order import GetOrderUseCase
from farm2city.domain.exceptions import (
    ConcurrentUpdateError, InvalidTransitionError, OrderNotFoundError, PermissionDeniedError
)
from farm2city.domain.models import NotificationType, OrderStatus
from farm2city.infrastructure.notifications import HTTPNotificationsClient
from farm2city.infrastructure.repositories import SQLAlchemyInventoryRepository, SQLAlchemyOrderRepository


def change(order_id: str, status: OrderStatus, actor_id: str = "farmer-1") -> ChangeOrderStatusDTO:
    return ChangeOrderStatusDTO(order_id=order_id, actor_id=actor_id, status=status)


async def test_confirm_notifies_buyer(uow, place_order, notifications, clock):
    order = await place_order()
    use_case = ChangeOrderStatusUseCase(uow, notifications, clock=clock)

    confirmed = await use_case(change(order.id, OrderStatus.CONFIRMED))

    assert confirmed.status == OrderStatus.CONFIRMED
    assert confirmed.updated_at == NOW
    assert (await GetOrderUseCase(uow)(order.id)).status == OrderStatus.CONFIRMED

    [notification] = notifications.sent
    assert notification.user_id == "shop-1"
    assert notification.title == "Order Confirmed"
    assert notification.type == NotificationType.ORDER
    assert notification.data == {"order_id": order.id, "status": "confirmed"}


async def test_only_farmer_of_order_changes_status(uow, place_order, notifications):
    order = await place_order()

    with pytest.raises(PermissionDeniedError):
        await ChangeOrderStatusUseCase(uow, notifications)(change(order.id, OrderStatus.CONFIRMED, "shop-1"))

    assert (await GetOrderUseCase(uow)(order.id)).status == OrderStatus.PENDING
    assert notifications.sent == []


async def test_missing_order(uow, seeded, notifications):
    with pytest.raises(OrderNotFoundError):
        await ChangeOrderStatusUseCase(uow, notifications)(change("missing", OrderStatus.CONFIRMED))


async def test_pending_order_cannot_be_delivered(uow, place_order, notifications):
    order = await place_order()

    with pytest.raises(InvalidTransitionError) as exc_info:
        await ChangeOrderStatusUseCase(uow, notifications)(change(order.id, OrderStatus.DELIVERED))

    assert exc_info.value.current == "pending"
    assert exc_info.value.target == "delivered"


@pytest.mark.parametrize("target", [OrderStatus.CONFIRMED, OrderStatus.REJECTED, OrderStatus.DELIVERED])
async def test_rejected_order_is_final(uow, place_order, notifications, target):
    order = await place_order()
    use_case = ChangeOrderStatusUseCase(uow, notifications)
    await use_case(change(order.id, OrderStatus.REJECTED))

    with pytest.raises(InvalidTransitionError):
        await use_case(change(order.id, target))

    assert (await GetOrderUseCase(uow)(order.id)).status == OrderStatus.REJECTED


async def test_stale_read_loses_to_concurrent_change(uow, place_order, notifications, monkeypatch):
    order = await place_order()
    use_case = ChangeOrderStatusUseCase(uow, notifications)
    await use_case(change(order.id, OrderStatus.REJECTED))

    # Второй обработчик прочитал заказ до отклонения
    async def stale_get_by_id(self, order_id):
        return order

    monkeypatch.setattr(SQLAlchemyOrderRepository, "get_by_id", stale_get_by_id)

    with pytest.raises(InvalidTransitionError):
        await use_case(change(order.id, OrderStatus.CONFIRMED))

    monkeypatch.undo()
    assert (await GetOrderUseCase(uow)(order.id)).status == OrderStatus.REJECTED


async def test_delivery_to_shopkeeper_moves_stock(uow, place_order, notifications):
    order = await place_order(buyer_id="shop-1", quantity=20)
    use_case = ChangeOrderStatusUseCase(uow, notifications)
    await use_case(change(order.id, OrderStatus.CONFIRMED))

    delivered = await use_case(change(order.id, OrderStatus.DELIVERED))

    assert delivered.status == OrderStatus.DELIVERED
    async with uow() as tx:
        record = await tx.inventory.get("shop-1", "tomato")
        product = await tx.products.get_by_id("tomato")
        events = [event["event_type"] for event in await tx.outbox.get_pending(limit=50)]
    assert record.quantity_in == 20
    assert record.current_stock == 20
    assert product.quantity == 80
    assert events == ["order.created", "order.confirmed", "order.delivered"]
    assert notifications.sent[-1].title == "Order Delivered"


async def test_delivery_to_trader_keeps_no_inventory(uow, place_order, notifications):
    order = await place_order(buyer_id="trader-1", quantity=30)
    use_case = ChangeOrderStatusUseCase(uow, notifications)
    await use_case(change(order.id, OrderStatus.CONFIRMED))
    await use_case(change(order.id, OrderStatus.DELIVERED))

    async with uow() as tx:
        assert await tx.inventory.get("trader-1", "tomato") is None
        assert (await tx.products.get_by_id("tomato")).quantity == 70


async def test_farmer_quantity_does_not_go_negative(uow, place_order, notifications):
    order = await place_order(quantity=150)
    use_case = ChangeOrderStatusUseCase(uow, notifications)
    await use_case(change(order.id, OrderStatus.CONFIRMED))
    await use_case(change(order.id, OrderStatus.DELIVERED))

    async with uow() as tx:
        assert (await tx.products.get_by_id("tomato")).quantity == 0


async def test_delivery_runs_reorder_check_for_shopkeeper(uow, place_order, notifications):
    calls = []

    async def reorder_check(shopkeeper_id, product_id):
        calls.append((shopkeeper_id, product_id))

    order = await place_order()
    use_case = ChangeOrderStatusUseCase(uow, notifications, reorder_check=reorder_check)
    await use_case(change(order.id, OrderStatus.CONFIRMED))
    assert calls == []

    await use_case(change(order.id, OrderStatus.DELIVERED))

    assert calls == [("shop-1", "tomato")]


async def test_stored_order_carries_clock_timestamp(uow, place_order, notifications, clock):
    order = await place_order()
    clock.advance(hours=3)

    use_case = ChangeOrderStatusUseCase(uow, notifications, clock=clock)

    confirmed = await use_case(change(order.id, OrderStatus.CONFIRMED))

    stored = await GetOrderUseCase(uow)(order.id)
    assert stored.updated_at == confirmed.updated_at == clock.now


async def test_status_change_survives_failed_notification(uow, place_order):
    order = await place_order()

    confirmed = await ChangeOrderStatusUseCase(uow, FakeNotifications(fail=True))(
        change(order.id, OrderStatus.CONFIRMED)
    )

    assert confirmed.status == OrderStatus.CONFIRMED
    assert (await GetOrderUseCase(uow)(order.id)).status == OrderStatus.CONFIRMED


async def test_status_change_survives_crashing_notifications_backend(uow, place_order):
    def handler(request: httpx.Request) -> httpx.Response:
        raise RuntimeError("unexpected transport failure")

    client = HTTPNotificationsClient(
        "http://notifications.test", "secret", max_retries=2, retry_delay=0, transport=httpx.MockTransport(handler)
    )
    order = await place_order()

    confirmed = await ChangeOrderStatusUseCase(uow, client)(change(order.id, OrderStatus.CONFIRMED))

    assert confirmed.status == OrderStatus.CONFIRMED
    assert (await GetOrderUseCase(uow)(order.id)).status == OrderStatus.CONFIRMED


async def test_lost_inventory_race_rolls_back_delivery(uow, place_order, notifications, monkeypatch):
    order = await place_order()
    use_case = ChangeOrderStatusUseCase(uow, notifications)
    await use_case(change(order.id, OrderStatus.CONFIRMED))

    # Счетчики успели измениться между чтением и условным обновлением
    async def stale_update(self, previous, record):
        return False

    monkeypatch.setattr(SQLAlchemyInventoryRepository, "update", stale_update)

    with pytest.raises(ConcurrentUpdateError):
        await use_case(change(order.id, OrderStatus.DELIVERED))

    monkeypatch.undo()
    async with uow() as tx:
        assert (await tx.orders.get_by_id(order.id)).status == OrderStatus.CONFIRMED
        assert (await tx.products.get_by_id("tomato")).quantity == 100
        assert await tx.inventory.get("shop-1", "tomato") is None
        events = [event["event_type"] for event in await tx.outbox.get_pending(limit=50)]
    assert "order.delivered" not in events

from conftest import NOW, FakeNotifications
from farm2city.application.adjust_stock import AdjustStockDTO, AdjustStockUseCase
from farm2city.application.reorder_rules import (
    CreateReorderRuleUseCase, CreateRuleDTO, UpdateReorderRuleUseCase, UpdateRuleDTO
)
from farm2city.application.run_reorder_check import RunReorderCheckUseCase, ScanReorderRulesUseCase
from farm2city.domain.models import NotificationType


async def create_rule(uow, **overrides):
    dto = CreateRuleDTO(**{"shopkeeper_id": "shop-1", "product_id": "tomato", **overrides})
    return await CreateReorderRuleUseCase(uow)(dto)


async def set_stock(uow, stock: int):
    await AdjustStockUseCase(uow)(AdjustStockDTO(shopkeeper_id="shop-1", product_id="tomato", delta=stock))


async def test_fires_below_minimum_and_records_trigger(uow, seeded, notifications, clock):
    rule = await create_rule(uow)
    await set_stock(uow, 5)

    event = await RunReorderCheckUseCase(uow, notifications, clock)("shop-1", "tomato")

    assert event.rule_id == rule.id
    assert event.recommended_quantity == 50
    assert event.current_stock == 5
    async with uow() as tx:
        stored = await tx.reorder_rules.get_by_id(rule.id)
        [outbox] = await tx.outbox.get_pending()
    assert stored.last_triggered_at == NOW
    assert outbox["event_type"] == "reorder.triggered"
    assert outbox["event_data"]["recommended_quantity"] == 50

    [notification] = notifications.sent
    assert notification.user_id == "shop-1"
    assert notification.title == "Low Stock Alert"
    assert notification.type == NotificationType.SYSTEM


async def test_fires_once_per_window(uow, seeded, notifications, clock):
    await create_rule(uow)
    await set_stock(uow, 5)
    check = RunReorderCheckUseCase(uow, notifications, clock)

    assert await check("shop-1", "tomato") is not None
    clock.advance(days=2)
    assert await check("shop-1", "tomato") is None
    clock.advance(days=5)
    assert await check("shop-1", "tomato") is not None
    assert len(notifications.sent) == 2


async def test_missing_inventory_counts_as_empty(uow, seeded, notifications, clock):
    await create_rule(uow, min_stock=1)

    event = await RunReorderCheckUseCase(uow, notifications, clock)("shop-1", "tomato")

    assert event.current_stock == 0


async def test_no_rule_no_event(uow, seeded, notifications, clock):
    assert await RunReorderCheckUseCase(uow, notifications, clock)("shop-1", "tomato") is None
    assert notifications.sent == []


async def test_disabled_rule_does_not_fire(uow, seeded, notifications, clock):
    rule = await create_rule(uow)
    await UpdateReorderRuleUseCase(uow)(rule.id, UpdateRuleDTO(enabled=False))

    assert await RunReorderCheckUseCase(uow, notifications, clock)("shop-1", "tomato") is None


async def test_stock_out_below_minimum_fires_through_adjustment(uow, seeded, notifications, clock):
    await create_rule(uow)
    check = RunReorderCheckUseCase(uow, notifications, clock)
    use_case = AdjustStockUseCase(uow, reorder_check=check, clock=clock)

    await use_case(AdjustStockDTO(shopkeeper_id="shop-1", product_id="tomato", delta=30))
    assert notifications.sent == []

    await use_case(AdjustStockDTO(shopkeeper_id="shop-1", product_id="tomato", delta=-25))
    [notification] = notifications.sent
    assert notification.data["current_stock"] == 5


async def test_scan_counts_fired_rules(uow, seeded, notifications, clock):
    await create_rule(uow)
    await create_rule(uow, product_id="mango", min_stock=0)
    await set_stock(uow, 3)
    scan = ScanReorderRulesUseCase(uow, RunReorderCheckUseCase(uow, notifications, clock))

    assert await scan() == 1
    assert await scan() == 0


class FlakyNotifications(FakeNotifications):
    """Падает на первом уведомлении"""

    def __init__(self):
        super().__init__()
        self.calls = 0

    async def send(self, notification) -> bool:
        self.calls += 1
        if self.calls == 1:
            raise RuntimeError("notifications backend crashed")
        return await super().send(notification)


async def test_scan_continues_after_failing_rule(uow, seeded, clock):
    tomato = await create_rule(uow)
    mango = await create_rule(uow, product_id="mango", min_stock=5)
    await set_stock(uow, 3)
    notifications = FlakyNotifications()
    scan = ScanReorderRulesUseCase(uow, RunReorderCheckUseCase(uow, notifications, clock))

    assert await scan() == 1

    async with uow() as tx:
        for rule in (tomato, mango):
            assert (await tx.reorder_rules.get_by_id(rule.id)).last_triggered_at == NOW

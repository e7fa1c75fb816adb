import logging
from datetime import datetime, timezone
from typing import Optional

from farm2city.domain.models import ReorderEvent, Notification, NotificationType
from farm2city.domain.reorder import evaluate
from farm2city.application.interfaces import NotificationsService

logger = logging.getLogger(__name__)


class RunReorderCheckUseCase:
    def __init__(self, unit_of_work, notifications_service: NotificationsService, clock=None):
        self._uow = unit_of_work
        self._notifications = notifications_service
        self._clock = clock or (lambda: datetime.now(timezone.utc))

    async def __call__(self, shopkeeper_id: str, product_id: str) -> Optional[ReorderEvent]:
        """Проверяет правило автозаказа для пары и фиксирует срабатывание.

        last_triggered_at обновляется условно по прочитанному значению:
        если другой обработчик успел сработать раньше, событие не создается.
        """
        now = self._clock()
        async with self._uow() as uow:
            rule = await uow.reorder_rules.get(shopkeeper_id, product_id)
            if not rule:
                return None

            record = await uow.inventory.get(shopkeeper_id, product_id)
            current_stock = record.current_stock if record else 0

            event = evaluate(rule, current_stock, rule.last_triggered_at, now)
            if event is None:
                return None

            if not await uow.reorder_rules.mark_triggered(rule.id, rule.last_triggered_at, now):
                logger.info(f"Автозаказ по правилу {rule.id} уже сработал в другом обработчике")
                return None

            await uow.outbox.create(
                event_type="reorder.triggered",
                event_data=event.model_dump(mode="json"),
                aggregate_id=rule.id
            )
            product = await uow.products.get_by_id(product_id)
            await uow.commit()

        logger.info(
            f"Автозаказ {shopkeeper_id}/{product_id}: остаток {current_stock} < {rule.min_stock}, "
            f"рекомендовано {event.recommended_quantity}"
        )

        product_name = product.name if product else product_id
        sent = await self._notifications.send(Notification(
            user_id=shopkeeper_id,
            title="Low Stock Alert",
            message=(
                f"Stock for {product_name} is {current_stock}, below your minimum of {rule.min_stock}. "
                f"Recommended reorder: {event.recommended_quantity}"
            ),
            type=NotificationType.SYSTEM,
            data=event.model_dump(mode="json")
        ))
        if not sent:
            logger.warning(f"Не отправлено уведомление об автозаказе по правилу {rule.id}")

        return event


class ScanReorderRulesUseCase:
    def __init__(self, unit_of_work, reorder_check: RunReorderCheckUseCase):
        self._uow = unit_of_work
        self._reorder_check = reorder_check

    async def __call__(self) -> int:
        """Проверяет все включенные правила. Возвращает количество срабатываний."""
        async with self._uow() as uow:
            rules = await uow.reorder_rules.list_enabled()

        fired = 0
        for rule in rules:
            try:
                if await self._reorder_check(rule.shopkeeper_id, rule.product_id):
                    fired += 1
            except Exception as e:
                logger.error(f"Ошибка проверки правила {rule.id}: {e}", exc_info=True)
        return fired

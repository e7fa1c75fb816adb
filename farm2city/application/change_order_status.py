import logging
from datetime import datetime, timezone
from pydantic import BaseModel

from farm2city.domain.models import Order, OrderStatus, UserRole, Notification, NotificationType
from farm2city.domain.exceptions import (
    InvalidTransitionError, OrderNotFoundError, PermissionDeniedError
)
from farm2city.application.interfaces import NotificationsService
from farm2city.application.adjust_stock import apply_stock_delta

logger = logging.getLogger(__name__)


_TITLES = {
    OrderStatus.CONFIRMED: "Order Confirmed",
    OrderStatus.REJECTED: "Order Rejected",
    OrderStatus.DELIVERED: "Order Delivered",
}


class ChangeOrderStatusDTO(BaseModel):
    order_id: str
    actor_id: str
    status: OrderStatus


class ChangeOrderStatusUseCase:
    """Переходы заказа, выполняемые фермером: confirm, reject, deliver.

    Запись статуса условная (where status = текущий), поэтому из двух
    параллельных взаимоисключающих запросов проходит только один, второй
    получает InvalidTransitionError. При доставке в той же транзакции
    списывается остаток фермера, а если покупатель — магазин, товар
    приходуется на его склад. Уведомление покупателю отправляется после
    коммита и на результат не влияет.
    """

    def __init__(self, unit_of_work, notifications_service: NotificationsService, reorder_check=None, clock=None):
        self._uow = unit_of_work
        self._notifications = notifications_service
        self._reorder_check = reorder_check
        self._clock = clock or (lambda: datetime.now(timezone.utc))

    async def __call__(self, dto: ChangeOrderStatusDTO) -> Order:
        logger.info(f"Смена статуса заказа {dto.order_id} на {dto.status.value} пользователем {dto.actor_id}")

        now = self._clock()
        restocked_shopkeeper = None
        async with self._uow() as uow:
            order = await uow.orders.get_by_id(dto.order_id)
            if not order:
                raise OrderNotFoundError(f"Заказ {dto.order_id} не найден")
            if dto.actor_id != order.farmer_id:
                raise PermissionDeniedError(f"Только фермер заказа может менять его статус ({dto.order_id})")
            if not order.can_transition_to(dto.status):
                logger.warning(f"Заказ {order.id} не может перейти {order.status.value} -> {dto.status.value}")
                raise InvalidTransitionError(order.id, order.status.value, dto.status.value)

            if not await uow.orders.update_status(order.id, order.status, dto.status, now):
                # Статус успели поменять параллельно
                logger.warning(f"Заказ {order.id} изменен параллельно, переход {dto.status.value} отклонен")
                raise InvalidTransitionError(order.id, order.status.value, dto.status.value)

            if dto.status == OrderStatus.DELIVERED:
                await uow.products.decrease_quantity(order.product_id, order.quantity)
                buyer = await uow.users.get_by_id(order.buyer_id)
                if buyer and buyer.role == UserRole.SHOPKEEPER:
                    await apply_stock_delta(uow, buyer.id, order.product_id, order.quantity, now)
                    restocked_shopkeeper = buyer.id

            product = await uow.products.get_by_id(order.product_id)
            await uow.outbox.create(
                event_type=f"order.{dto.status.value}",
                event_data={
                    "order_id": order.id,
                    "buyer_id": order.buyer_id,
                    "farmer_id": order.farmer_id,
                    "product_id": order.product_id,
                    "quantity": order.quantity,
                    "previous_status": order.status.value,
                    "status": dto.status.value
                },
                aggregate_id=order.id
            )
            await uow.commit()

        updated = order.model_copy(update={"status": dto.status, "updated_at": now})
        logger.info(f"Заказ {order.id} отмечен {dto.status.value}")

        product_name = product.name if product else order.product_id
        sent = await self._notifications.send(Notification(
            user_id=order.buyer_id,
            title=_TITLES[dto.status],
            message=f"Your order for {order.quantity} of {product_name} is now {dto.status.value}",
            type=NotificationType.ORDER,
            data={"order_id": order.id, "status": dto.status.value}
        ))
        if not sent:
            logger.warning(f"Не отправлено уведомление о статусе {dto.status.value} для {order.id}")

        if restocked_shopkeeper and self._reorder_check:
            try:
                await self._reorder_check(restocked_shopkeeper, order.product_id)
            except Exception as e:
                logger.warning(f"Проверка автозаказа после доставки {order.id} не выполнена: {e}")

        return updated

import logging
from datetime import datetime, timezone
from pydantic import BaseModel
from typing import Optional

from farm2city.domain.models import (
    Order, PaymentStatus, PaymentMethod, PaymentRequest, Notification, NotificationType
)
from farm2city.domain.exceptions import (
    ConcurrentUpdateError, OrderNotFoundError, PaymentError, PermissionDeniedError
)
from farm2city.application.interfaces import NotificationsService, PaymentGateway

logger = logging.getLogger(__name__)


class PayOrderDTO(BaseModel):
    order_id: str
    buyer_id: str
    method: PaymentMethod


class PayOrderResult(BaseModel):
    order: Order
    transaction_id: Optional[str] = None
    success: bool
    error: Optional[str] = None


class PayOrderUseCase:
    def __init__(
        self, unit_of_work, payment_gateway: PaymentGateway, notifications_service: NotificationsService, clock=None
    ):
        self._uow = unit_of_work
        self._gateway = payment_gateway
        self._notifications = notifications_service
        self._clock = clock or (lambda: datetime.now(timezone.utc))

    async def __call__(self, dto: PayOrderDTO) -> PayOrderResult:
        logger.info(f"Оплата заказа {dto.order_id} ({dto.method.value})")

        async with self._uow() as uow:
            order = await uow.orders.get_by_id(dto.order_id)
            if not order:
                raise OrderNotFoundError(f"Заказ {dto.order_id} не найден")
        if dto.buyer_id != order.buyer_id:
            raise PermissionDeniedError(f"Оплатить заказ {order.id} может только покупатель")
        if not order.can_be_paid():
            raise PaymentError(
                f"Заказ {order.id} нельзя оплатить (status: {order.status.value}, payment: {order.payment_status.value})"
            )

        initiated = await self._gateway.initiate_payment(
            PaymentRequest(amount=order.total_amount, order_id=order.id, description=f"Order {order.id}"),
            dto.method
        )
        if not initiated.success:
            raise PaymentError(initiated.error or "Не удалось создать платеж")

        processed = await self._gateway.process_payment(initiated.transaction_id, dto.method)
        new_status = PaymentStatus.PAID if processed.success else PaymentStatus.FAILED
        now = self._clock()

        async with self._uow() as uow:
            if not await uow.orders.update_payment_status(order.id, order.payment_status, new_status, now):
                if processed.success:
                    await self._gateway.refund_payment(initiated.transaction_id)
                logger.warning(f"Статус оплаты заказа {order.id} изменен параллельно")
                raise ConcurrentUpdateError(f"Статус оплаты заказа {order.id} изменен параллельно")
            await uow.outbox.create(
                event_type=f"order.payment_{new_status.value}",
                event_data={
                    "order_id": order.id,
                    "transaction_id": initiated.transaction_id,
                    "amount": str(order.total_amount),
                    "payment_status": new_status.value
                },
                aggregate_id=order.id
            )
            await uow.commit()

        logger.info(f"Заказ {order.id}: оплата {new_status.value}")
        updated = order.model_copy(update={"payment_status": new_status, "updated_at": now})

        if processed.success:
            notification = Notification(
                user_id=order.farmer_id,
                title="Payment Received",
                message=f"Payment of {order.total_amount} received for order {order.id}",
                type=NotificationType.PAYMENT,
                data={"order_id": order.id, "transaction_id": initiated.transaction_id}
            )
        else:
            notification = Notification(
                user_id=order.buyer_id,
                title="Payment Failed",
                message=processed.error or "Payment failed. Please try again.",
                type=NotificationType.PAYMENT,
                data={"order_id": order.id, "transaction_id": initiated.transaction_id}
            )
        if not await self._notifications.send(notification):
            logger.warning(f"Не отправлено уведомление об оплате заказа {order.id}")

        return PayOrderResult(
            order=updated,
            transaction_id=initiated.transaction_id,
            success=processed.success,
            error=processed.error
        )

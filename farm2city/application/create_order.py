import logging
import uuid
from datetime import date, datetime, timezone
from typing import Optional
from pydantic import BaseModel

from farm2city.domain.models import Order, OrderStatus, PaymentStatus, UserRole, Notification, NotificationType
from farm2city.domain.exceptions import (
    InvalidOrderError, UserNotFoundError, ProductNotFoundError, ProductUnavailableError, PermissionDeniedError
)
from farm2city.application.interfaces import NotificationsService


logger = logging.getLogger(__name__)


class CreateOrderDTO(BaseModel):
    buyer_id: str
    product_id: str
    quantity: int
    delivery_date: Optional[date] = None
    notes: Optional[str] = None


class CreateOrderUseCase:
    def __init__(self, unit_of_work, notifications_service: NotificationsService, clock=None):
        self._uow = unit_of_work
        self._notifications = notifications_service
        self._clock = clock or (lambda: datetime.now(timezone.utc))

    async def __call__(self, order_data: CreateOrderDTO) -> Order:
        logger.info(f"Создание заказа покупателя {order_data.buyer_id}, товар {order_data.product_id}")

        now = self._clock()
        if order_data.quantity <= 0:
            raise InvalidOrderError(f"Количество должно быть больше нуля: {order_data.quantity}")
        if order_data.delivery_date and order_data.delivery_date < now.date():
            raise InvalidOrderError(f"Дата доставки {order_data.delivery_date} уже прошла")

        async with self._uow() as uow:
            buyer = await uow.users.get_by_id(order_data.buyer_id)
            if not buyer:
                raise UserNotFoundError(f"Пользователь {order_data.buyer_id} не найден")
            if buyer.role == UserRole.FARMER:
                raise PermissionDeniedError("Фермер не может оформлять заказы")

            product = await uow.products.get_by_id(order_data.product_id)
            if not product:
                raise ProductNotFoundError(f"Товар {order_data.product_id} не найден")
            if not product.availability:
                raise ProductUnavailableError(f"Товар {product.id} недоступен для заказа")

            # Цена фиксируется на момент заказа, сумма считается в Decimal
            order = Order(
                id=str(uuid.uuid4()),
                buyer_id=buyer.id,
                farmer_id=product.farmer_id,
                product_id=product.id,
                quantity=order_data.quantity,
                unit_price=product.price,
                total_amount=product.price * order_data.quantity,
                status=OrderStatus.PENDING,
                payment_status=PaymentStatus.PENDING,
                delivery_date=order_data.delivery_date,
                notes=order_data.notes,
                created_at=now,
                updated_at=now
            )
            await uow.orders.create(order)
            await uow.outbox.create(
                event_type="order.created",
                event_data=order.model_dump(mode="json"),
                aggregate_id=order.id
            )
            await uow.commit()
        logger.info(f"Заказ создан: {order.id}")

        unit = f" {product.unit}" if product.unit else ""
        sent = await self._notifications.send(Notification(
            user_id=order.farmer_id,
            title="New Order Received",
            message=f"{buyer.name} placed an order for {order.quantity}{unit} of {product.name}",
            type=NotificationType.ORDER,
            data={"order_id": order.id}
        ))
        if not sent:
            logger.warning(f"Не отправлено уведомление о новом заказе {order.id}")

        return order

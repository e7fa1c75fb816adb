from datetime import datetime, date, timedelta
from decimal import Decimal
from enum import Enum
from typing import Optional
from pydantic import BaseModel

from farm2city.domain.exceptions import InsufficientStockError, InvalidAdjustmentError


class UserRole(str, Enum):
    FARMER = "farmer"
    TRADER = "trader"
    SHOPKEEPER = "shopkeeper"


class OrderStatus(str, Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    REJECTED = "rejected"
    DELIVERED = "delivered"


class PaymentStatus(str, Enum):
    PENDING = "pending"
    PAID = "paid"
    FAILED = "failed"


class NotificationType(str, Enum):
    ORDER = "order"
    CHAT = "chat"
    PAYMENT = "payment"
    SYSTEM = "system"


class StockStatus(str, Enum):
    OUT = "out"
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class ReorderFrequency(str, Enum):
    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"

    @property
    def window(self) -> timedelta:
        return _FREQUENCY_WINDOWS[self]


_FREQUENCY_WINDOWS = {
    ReorderFrequency.DAILY: timedelta(hours=24),
    ReorderFrequency.WEEKLY: timedelta(days=7),
    ReorderFrequency.MONTHLY: timedelta(days=30),
}

# Терминальные статусы не имеют исходящих переходов
ORDER_TRANSITIONS = {
    OrderStatus.PENDING: frozenset({OrderStatus.CONFIRMED, OrderStatus.REJECTED}),
    OrderStatus.CONFIRMED: frozenset({OrderStatus.DELIVERED}),
    OrderStatus.REJECTED: frozenset(),
    OrderStatus.DELIVERED: frozenset(),
}


class User(BaseModel):
    """Value Object — профиль пользователя (только чтение)"""
    id: str
    name: str
    email: str
    role: UserRole
    created_at: datetime


class Product(BaseModel):
    """Value Object — товар фермера"""
    id: str
    farmer_id: str
    name: str
    price: Decimal
    quantity: int
    unit: str | None = None
    availability: bool = True
    created_at: datetime


class Order(BaseModel):
    """Domain Entity — заказ покупателя у фермера"""
    id: str
    buyer_id: str
    farmer_id: str
    product_id: str
    quantity: int
    unit_price: Decimal
    total_amount: Decimal
    status: OrderStatus
    payment_status: PaymentStatus
    delivery_date: Optional[date] = None
    notes: Optional[str] = None
    created_at: datetime
    updated_at: datetime

    @property
    def is_terminal(self) -> bool:
        return not ORDER_TRANSITIONS[self.status]

    def can_transition_to(self, status: OrderStatus) -> bool:
        return status in ORDER_TRANSITIONS[self.status]

    def can_be_confirmed(self) -> bool:
        """Бизнес-правило: подтвердить можно только pending заказ"""
        return self.can_transition_to(OrderStatus.CONFIRMED)

    def can_be_rejected(self) -> bool:
        """Бизнес-правило: отклонить можно только pending заказ"""
        return self.can_transition_to(OrderStatus.REJECTED)

    def can_be_delivered(self) -> bool:
        """Бизнес-правило: доставить можно только confirmed заказ"""
        return self.can_transition_to(OrderStatus.DELIVERED)

    def can_be_paid(self) -> bool:
        """Бизнес-правило: оплачивается подтвержденный или доставленный заказ, еще не оплаченный"""
        return (
            self.status in (OrderStatus.CONFIRMED, OrderStatus.DELIVERED)
            and self.payment_status in (PaymentStatus.PENDING, PaymentStatus.FAILED)
        )


class InventoryRecord(BaseModel):
    """Domain Entity — складской учет магазина по товару"""
    shopkeeper_id: str
    product_id: str
    quantity_in: int = 0
    quantity_out: int = 0
    current_stock: int = 0
    updated_at: datetime | None = None

    def apply(self, delta: int, now: datetime) -> "InventoryRecord":
        """Возвращает новую запись после изменения остатка на delta.

        Положительный delta — приход, отрицательный — расход. Исходная
        запись не меняется, поэтому при ошибке состояние остается прежним.
        """
        if delta == 0:
            raise InvalidAdjustmentError("Изменение остатка не может быть нулевым")
        if self.current_stock + delta < 0:
            raise InsufficientStockError(self.current_stock, -delta)

        quantity_in = self.quantity_in + delta if delta > 0 else self.quantity_in
        quantity_out = self.quantity_out - delta if delta < 0 else self.quantity_out
        return self.model_copy(update={
            "quantity_in": quantity_in,
            "quantity_out": quantity_out,
            "current_stock": max(quantity_in - quantity_out, 0),
            "updated_at": now,
        })


class AutoReorderRule(BaseModel):
    """Настройка автозаказа магазина по товару"""
    id: str
    shopkeeper_id: str
    product_id: str
    min_stock: int
    reorder_quantity: int
    frequency: ReorderFrequency
    enabled: bool = True
    last_triggered_at: datetime | None = None
    created_at: datetime


class ReorderEvent(BaseModel):
    """Рекомендация на дозаказ, не хранится отдельно"""
    rule_id: str
    shopkeeper_id: str
    product_id: str
    recommended_quantity: int
    current_stock: int
    triggered_at: datetime


class Notification(BaseModel):
    user_id: str
    title: str
    message: str
    type: NotificationType
    data: dict = {}


def get_stock_status(current_stock: int, low_threshold: int = 10, medium_threshold: int = 50) -> StockStatus:
    if current_stock <= 0:
        return StockStatus.OUT
    if current_stock < low_threshold:
        return StockStatus.LOW
    if current_stock < medium_threshold:
        return StockStatus.MEDIUM
    return StockStatus.HIGH


class PaymentMethod(str, Enum):
    UPI = "upi"
    CARD = "card"
    NET_BANKING = "netbanking"
    WALLET = "wallet"


class TransactionStatus(str, Enum):
    PENDING = "pending"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"


class PaymentRequest(BaseModel):
    amount: Decimal
    currency: str = "INR"
    order_id: str
    description: str = ""


class PaymentResponse(BaseModel):
    success: bool
    transaction_id: str | None = None
    payment_url: str | None = None
    error: str | None = None


class PaymentTransaction(BaseModel):
    transaction_id: str
    order_id: str
    status: TransactionStatus
    amount: Decimal
    currency: str
    timestamp: datetime

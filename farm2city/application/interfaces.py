from abc import ABC, abstractmethod
from datetime import datetime
from decimal import Decimal
from typing import Optional, List
from farm2city.domain.models import (
    Order, OrderStatus, PaymentStatus, Product, User, InventoryRecord, AutoReorderRule, Notification,
    PaymentMethod, PaymentRequest, PaymentResponse, PaymentTransaction
)


class UserRepository(ABC):
    @abstractmethod
    async def get_by_id(self, user_id: str) -> Optional[User]:
        pass

    @abstractmethod
    async def create(self, user: User) -> None:
        pass


class ProductRepository(ABC):
    @abstractmethod
    async def get_by_id(self, product_id: str) -> Optional[Product]:
        pass

    @abstractmethod
    async def create(self, product: Product) -> None:
        pass

    @abstractmethod
    async def list_by_farmer(self, farmer_id: str) -> List[Product]:
        pass

    @abstractmethod
    async def update(self, product: Product) -> None:
        pass

    @abstractmethod
    async def delete(self, product_id: str) -> bool:
        pass

    @abstractmethod
    async def decrease_quantity(self, product_id: str, quantity: int) -> None:
        pass


class OrderRepository(ABC):
    @abstractmethod
    async def get_by_id(self, order_id: str) -> Optional[Order]:
        pass

    @abstractmethod
    async def search(
        self,
        buyer_id: Optional[str] = None,
        farmer_id: Optional[str] = None,
        status: Optional[OrderStatus] = None,
        product_id: Optional[str] = None,
    ) -> List[Order]:
        pass

    @abstractmethod
    async def create(self, order: Order) -> None:
        pass

    @abstractmethod
    async def update_status(
        self, order_id: str, expected: OrderStatus, status: OrderStatus, updated_at: datetime
    ) -> bool:
        """Условное обновление: True, если статус был равен expected"""
        pass

    @abstractmethod
    async def update_payment_status(
        self, order_id: str, expected: PaymentStatus, status: PaymentStatus, updated_at: datetime
    ) -> bool:
        pass


class InventoryRepository(ABC):
    @abstractmethod
    async def get(self, shopkeeper_id: str, product_id: str) -> Optional[InventoryRecord]:
        pass

    @abstractmethod
    async def list_by_shopkeeper(self, shopkeeper_id: str) -> List[InventoryRecord]:
        pass

    @abstractmethod
    async def create(self, record: InventoryRecord) -> None:
        pass

    @abstractmethod
    async def update(self, previous: InventoryRecord, record: InventoryRecord) -> bool:
        """Условное обновление: True, если счетчики совпадали с previous"""
        pass


class AutoReorderRuleRepository(ABC):
    @abstractmethod
    async def get_by_id(self, rule_id: str) -> Optional[AutoReorderRule]:
        pass

    @abstractmethod
    async def get(self, shopkeeper_id: str, product_id: str) -> Optional[AutoReorderRule]:
        pass

    @abstractmethod
    async def list_by_shopkeeper(self, shopkeeper_id: str) -> List[AutoReorderRule]:
        pass

    @abstractmethod
    async def list_enabled(self) -> List[AutoReorderRule]:
        pass

    @abstractmethod
    async def create(self, rule: AutoReorderRule) -> None:
        pass

    @abstractmethod
    async def update(self, rule: AutoReorderRule) -> None:
        pass

    @abstractmethod
    async def delete(self, rule_id: str) -> bool:
        pass

    @abstractmethod
    async def mark_triggered(self, rule_id: str, previous: Optional[datetime], triggered_at: datetime) -> bool:
        """Условное обновление last_triggered_at: True, если значение было равно previous"""
        pass


class OutboxRepository(ABC):
    @abstractmethod
    async def create(self, event_type: str, event_data: dict, aggregate_id: str) -> str:
        pass

    @abstractmethod
    async def get_pending(self, limit: int = 10) -> List[dict]:
        pass

    @abstractmethod
    async def mark_as_published(self, event_id: str) -> None:
        pass


class UnitOfWork(ABC):
    @property
    @abstractmethod
    def users(self) -> UserRepository:
        pass

    @property
    @abstractmethod
    def products(self) -> ProductRepository:
        pass

    @property
    @abstractmethod
    def orders(self) -> OrderRepository:
        pass

    @property
    @abstractmethod
    def inventory(self) -> InventoryRepository:
        pass

    @property
    @abstractmethod
    def reorder_rules(self) -> AutoReorderRuleRepository:
        pass

    @property
    @abstractmethod
    def outbox(self) -> OutboxRepository:
        pass

    @abstractmethod
    async def __call__(self):
        pass

    @abstractmethod
    async def commit(self):
        pass

    @abstractmethod
    async def rollback(self):
        pass


class NotificationsService(ABC):
    @abstractmethod
    async def send(self, notification: Notification) -> bool:
        """Best-effort: ошибки логируются, возвращается False"""
        pass


class EventPublisher(ABC):
    @abstractmethod
    async def publish(self, event_type: str, key: str, payload: dict) -> bool:
        pass


class TransactionStore(ABC):
    @abstractmethod
    async def get(self, transaction_id: str) -> Optional[PaymentTransaction]:
        pass

    @abstractmethod
    async def save(self, transaction: PaymentTransaction) -> None:
        pass


class PaymentGateway(ABC):
    @abstractmethod
    async def initiate_payment(self, request: PaymentRequest, method: PaymentMethod) -> PaymentResponse:
        pass

    @abstractmethod
    async def process_payment(self, transaction_id: str, method: PaymentMethod) -> PaymentResponse:
        pass

    @abstractmethod
    async def get_payment_status(self, transaction_id: str) -> Optional[PaymentTransaction]:
        pass

    @abstractmethod
    async def refund_payment(self, transaction_id: str, amount: Optional[Decimal] = None) -> PaymentResponse:
        pass

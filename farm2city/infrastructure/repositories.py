import uuid
from typing import Optional, List
from datetime import datetime, timezone
from sqlalchemy import select, insert, update, delete, case
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from farm2city.domain.models import (
    Order, OrderStatus, PaymentStatus, Product, User, UserRole, InventoryRecord, AutoReorderRule,
    ReorderFrequency
)
from farm2city.domain.exceptions import ConcurrentUpdateError, InvalidProductError, InvalidRuleError
from farm2city.infrastructure.db_schema import (
    users_tbl, products_tbl, orders_tbl, inventory_tbl, auto_reorder_rules_tbl, outbox_events_tbl
)
from farm2city.application.interfaces import (
    UserRepository, ProductRepository, OrderRepository, InventoryRepository, AutoReorderRuleRepository,
    OutboxRepository
)


def _utc(value: Optional[datetime]) -> Optional[datetime]:
    """SQLite возвращает naive datetime, считаем его UTC"""
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


class SQLAlchemyUserRepository(UserRepository):
    def __init__(self, session: AsyncSession):
        self._session = session

    async def get_by_id(self, user_id: str) -> Optional[User]:
        result = await self._session.execute(
            select(users_tbl).where(users_tbl.c.id == user_id)
        )
        row = result.fetchone()
        return self._to_domain(row) if row else None

    async def create(self, user: User) -> None:
        stmt = insert(users_tbl).values(
            id=user.id,
            name=user.name,
            email=user.email,
            role=user.role,
            created_at=user.created_at
        )
        await self._session.execute(stmt)

    def _to_domain(self, row) -> User:
        return User(
            id=row.id,
            name=row.name,
            email=row.email,
            role=UserRole(row.role),
            created_at=_utc(row.created_at)
        )


class SQLAlchemyProductRepository(ProductRepository):
    def __init__(self, session: AsyncSession):
        self._session = session

    async def get_by_id(self, product_id: str) -> Optional[Product]:
        result = await self._session.execute(
            select(products_tbl).where(products_tbl.c.id == product_id)
        )
        row = result.fetchone()
        return self._to_domain(row) if row else None

    async def create(self, product: Product) -> None:
        stmt = insert(products_tbl).values(
            id=product.id,
            farmer_id=product.farmer_id,
            name=product.name,
            price=product.price,
            quantity=product.quantity,
            unit=product.unit,
            availability=product.availability,
            created_at=product.created_at
        )
        await self._session.execute(stmt)

    async def list_by_farmer(self, farmer_id: str) -> List[Product]:
        result = await self._session.execute(
            select(products_tbl)
            .where(products_tbl.c.farmer_id == farmer_id)
            .order_by(products_tbl.c.created_at.desc())
        )
        return [self._to_domain(row) for row in result.fetchall()]

    async def update(self, product: Product) -> None:
        stmt = (
            update(products_tbl)
            .where(products_tbl.c.id == product.id)
            .values(
                name=product.name,
                price=product.price,
                quantity=product.quantity,
                unit=product.unit,
                availability=product.availability
            )
        )
        await self._session.execute(stmt)

    async def delete(self, product_id: str) -> bool:
        try:
            result = await self._session.execute(
                delete(products_tbl).where(products_tbl.c.id == product_id)
            )
        except IntegrityError:
            raise InvalidProductError(f"Товар {product_id} используется и не может быть удален")
        return result.rowcount == 1

    async def decrease_quantity(self, product_id: str, quantity: int) -> None:
        # Остаток фермера не уходит ниже нуля
        stmt = (
            update(products_tbl)
            .where(products_tbl.c.id == product_id)
            .values(
                quantity=case(
                    (products_tbl.c.quantity >= quantity, products_tbl.c.quantity - quantity),
                    else_=0
                )
            )
        )
        await self._session.execute(stmt)

    def _to_domain(self, row) -> Product:
        return Product(
            id=row.id,
            farmer_id=row.farmer_id,
            name=row.name,
            price=row.price,
            quantity=row.quantity,
            unit=row.unit,
            availability=row.availability,
            created_at=_utc(row.created_at)
        )


class SQLAlchemyOrderRepository(OrderRepository):
    def __init__(self, session: AsyncSession):
        self._session = session

    async def get_by_id(self, order_id: str) -> Optional[Order]:
        result = await self._session.execute(
            select(orders_tbl).where(orders_tbl.c.id == order_id)
        )
        row = result.fetchone()
        return self._to_domain(row) if row else None

    async def search(
        self,
        buyer_id: Optional[str] = None,
        farmer_id: Optional[str] = None,
        status: Optional[OrderStatus] = None,
        product_id: Optional[str] = None,
    ) -> List[Order]:
        stmt = select(orders_tbl)
        if buyer_id:
            stmt = stmt.where(orders_tbl.c.buyer_id == buyer_id)
        if farmer_id:
            stmt = stmt.where(orders_tbl.c.farmer_id == farmer_id)
        if status:
            stmt = stmt.where(orders_tbl.c.status == status)
        if product_id:
            stmt = stmt.where(orders_tbl.c.product_id == product_id)
        result = await self._session.execute(stmt.order_by(orders_tbl.c.created_at.desc()))
        return [self._to_domain(row) for row in result.fetchall()]

    async def create(self, order: Order) -> None:
        stmt = insert(orders_tbl).values(
            id=order.id,
            buyer_id=order.buyer_id,
            farmer_id=order.farmer_id,
            product_id=order.product_id,
            quantity=order.quantity,
            unit_price=order.unit_price,
            total_amount=order.total_amount,
            status=order.status,
            payment_status=order.payment_status,
            delivery_date=order.delivery_date,
            notes=order.notes,
            created_at=order.created_at,
            updated_at=order.updated_at
        )
        await self._session.execute(stmt)

    async def update_status(
        self, order_id: str, expected: OrderStatus, status: OrderStatus, updated_at: datetime
    ) -> bool:
        stmt = (
            update(orders_tbl)
            .where(orders_tbl.c.id == order_id, orders_tbl.c.status == expected)
            .values(
                status=status,
                updated_at=updated_at
            )
        )
        result = await self._session.execute(stmt)
        return result.rowcount == 1

    async def update_payment_status(
        self, order_id: str, expected: PaymentStatus, status: PaymentStatus, updated_at: datetime
    ) -> bool:
        stmt = (
            update(orders_tbl)
            .where(orders_tbl.c.id == order_id, orders_tbl.c.payment_status == expected)
            .values(
                payment_status=status,
                updated_at=updated_at
            )
        )
        result = await self._session.execute(stmt)
        return result.rowcount == 1

    def _to_domain(self, row) -> Order:
        """Трансформация DB → Domain"""
        return Order(
            id=row.id,
            buyer_id=row.buyer_id,
            farmer_id=row.farmer_id,
            product_id=row.product_id,
            quantity=row.quantity,
            unit_price=row.unit_price,
            total_amount=row.total_amount,
            status=OrderStatus(row.status),
            payment_status=PaymentStatus(row.payment_status),
            delivery_date=row.delivery_date,
            notes=row.notes,
            created_at=_utc(row.created_at),
            updated_at=_utc(row.updated_at)
        )


class SQLAlchemyInventoryRepository(InventoryRepository):
    def __init__(self, session: AsyncSession):
        self._session = session

    async def get(self, shopkeeper_id: str, product_id: str) -> Optional[InventoryRecord]:
        result = await self._session.execute(
            select(inventory_tbl).where(
                inventory_tbl.c.shopkeeper_id == shopkeeper_id,
                inventory_tbl.c.product_id == product_id
            )
        )
        row = result.fetchone()
        return self._to_domain(row) if row else None

    async def list_by_shopkeeper(self, shopkeeper_id: str) -> List[InventoryRecord]:
        result = await self._session.execute(
            select(inventory_tbl)
            .where(inventory_tbl.c.shopkeeper_id == shopkeeper_id)
            .order_by(inventory_tbl.c.product_id)
        )
        return [self._to_domain(row) for row in result.fetchall()]

    async def create(self, record: InventoryRecord) -> None:
        stmt = insert(inventory_tbl).values(
            shopkeeper_id=record.shopkeeper_id,
            product_id=record.product_id,
            quantity_in=record.quantity_in,
            quantity_out=record.quantity_out,
            current_stock=record.current_stock,
            updated_at=record.updated_at
        )
        try:
            await self._session.execute(stmt)
        except IntegrityError:
            raise ConcurrentUpdateError(
                f"Складская запись {record.shopkeeper_id}/{record.product_id} уже создана параллельно"
            )

    async def update(self, previous: InventoryRecord, record: InventoryRecord) -> bool:
        stmt = (
            update(inventory_tbl)
            .where(
                inventory_tbl.c.shopkeeper_id == previous.shopkeeper_id,
                inventory_tbl.c.product_id == previous.product_id,
                inventory_tbl.c.quantity_in == previous.quantity_in,
                inventory_tbl.c.quantity_out == previous.quantity_out
            )
            .values(
                quantity_in=record.quantity_in,
                quantity_out=record.quantity_out,
                current_stock=record.current_stock,
                updated_at=record.updated_at
            )
        )
        result = await self._session.execute(stmt)
        return result.rowcount == 1

    def _to_domain(self, row) -> InventoryRecord:
        return InventoryRecord(
            shopkeeper_id=row.shopkeeper_id,
            product_id=row.product_id,
            quantity_in=row.quantity_in,
            quantity_out=row.quantity_out,
            current_stock=row.current_stock,
            updated_at=_utc(row.updated_at)
        )


class SQLAlchemyAutoReorderRuleRepository(AutoReorderRuleRepository):
    def __init__(self, session: AsyncSession):
        self._session = session

    async def get_by_id(self, rule_id: str) -> Optional[AutoReorderRule]:
        result = await self._session.execute(
            select(auto_reorder_rules_tbl).where(auto_reorder_rules_tbl.c.id == rule_id)
        )
        row = result.fetchone()
        return self._to_domain(row) if row else None

    async def get(self, shopkeeper_id: str, product_id: str) -> Optional[AutoReorderRule]:
        result = await self._session.execute(
            select(auto_reorder_rules_tbl).where(
                auto_reorder_rules_tbl.c.shopkeeper_id == shopkeeper_id,
                auto_reorder_rules_tbl.c.product_id == product_id
            )
        )
        row = result.fetchone()
        return self._to_domain(row) if row else None

    async def list_by_shopkeeper(self, shopkeeper_id: str) -> List[AutoReorderRule]:
        result = await self._session.execute(
            select(auto_reorder_rules_tbl)
            .where(auto_reorder_rules_tbl.c.shopkeeper_id == shopkeeper_id)
            .order_by(auto_reorder_rules_tbl.c.created_at.asc())
        )
        return [self._to_domain(row) for row in result.fetchall()]

    async def list_enabled(self) -> List[AutoReorderRule]:
        result = await self._session.execute(
            select(auto_reorder_rules_tbl).where(auto_reorder_rules_tbl.c.enabled.is_(True))
        )
        return [self._to_domain(row) for row in result.fetchall()]

    async def create(self, rule: AutoReorderRule) -> None:
        stmt = insert(auto_reorder_rules_tbl).values(
            id=rule.id,
            shopkeeper_id=rule.shopkeeper_id,
            product_id=rule.product_id,
            min_stock=rule.min_stock,
            reorder_quantity=rule.reorder_quantity,
            frequency=rule.frequency,
            enabled=rule.enabled,
            last_triggered_at=rule.last_triggered_at,
            created_at=rule.created_at
        )
        try:
            await self._session.execute(stmt)
        except IntegrityError:
            raise InvalidRuleError(
                f"Правило для {rule.shopkeeper_id}/{rule.product_id} уже существует"
            )

    async def update(self, rule: AutoReorderRule) -> None:
        stmt = (
            update(auto_reorder_rules_tbl)
            .where(auto_reorder_rules_tbl.c.id == rule.id)
            .values(
                min_stock=rule.min_stock,
                reorder_quantity=rule.reorder_quantity,
                frequency=rule.frequency,
                enabled=rule.enabled
            )
        )
        await self._session.execute(stmt)

    async def delete(self, rule_id: str) -> bool:
        result = await self._session.execute(
            delete(auto_reorder_rules_tbl).where(auto_reorder_rules_tbl.c.id == rule_id)
        )
        return result.rowcount == 1

    async def mark_triggered(self, rule_id: str, previous: Optional[datetime], triggered_at: datetime) -> bool:
        if previous is None:
            condition = auto_reorder_rules_tbl.c.last_triggered_at.is_(None)
        else:
            condition = auto_reorder_rules_tbl.c.last_triggered_at == previous
        stmt = (
            update(auto_reorder_rules_tbl)
            .where(auto_reorder_rules_tbl.c.id == rule_id, condition)
            .values(last_triggered_at=triggered_at)
        )
        result = await self._session.execute(stmt)
        return result.rowcount == 1

    def _to_domain(self, row) -> AutoReorderRule:
        return AutoReorderRule(
            id=row.id,
            shopkeeper_id=row.shopkeeper_id,
            product_id=row.product_id,
            min_stock=row.min_stock,
            reorder_quantity=row.reorder_quantity,
            frequency=ReorderFrequency(row.frequency),
            enabled=row.enabled,
            last_triggered_at=_utc(row.last_triggered_at),
            created_at=_utc(row.created_at)
        )


class SQLAlchemyOutboxRepository(OutboxRepository):
    def __init__(self, session: AsyncSession):
        self._session = session

    async def create(self, event_type: str, event_data: dict, aggregate_id: str) -> str:
        event_id = str(uuid.uuid4())
        stmt = insert(outbox_events_tbl).values(
            id=event_id,
            event_type=event_type,
            event_data=event_data,  # SQLAlchemy JSON column сериализует автоматически
            aggregate_id=aggregate_id,
            status="pending",
            created_at=datetime.now(timezone.utc)
        )
        await self._session.execute(stmt)
        return event_id

    async def get_pending(self, limit: int = 10) -> List[dict]:
        result = await self._session.execute(
            select(outbox_events_tbl)
            .where(outbox_events_tbl.c.status == "pending")
            .order_by(outbox_events_tbl.c.created_at.asc())
            .limit(limit)
        )
        rows = result.fetchall()

        return [
            {
                "id": row.id,
                "event_type": row.event_type,
                "event_data": row.event_data,
                "aggregate_id": row.aggregate_id
            }
            for row in rows
        ]

    async def mark_as_published(self, event_id: str) -> None:
        stmt = (
            update(outbox_events_tbl)
            .where(outbox_events_tbl.c.id == event_id)
            .values(status="published")
        )
        await self._session.execute(stmt)

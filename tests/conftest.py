from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from farm2city.application.create_order import CreateOrderDTO, CreateOrderUseCase
from farm2city.application.interfaces import EventPublisher, NotificationsService
from farm2city.database import create_tables
from farm2city.domain.models import Product, User, UserRole
from farm2city.infrastructure.unit_of_work import UnitOfWork

NOW = datetime(2026, 10, 19, 12, 0, tzinfo=timezone.utc)


class FakeNotifications(NotificationsService):
    def __init__(self, fail: bool = False):
        self.sent = []
        self.fail = fail

    async def send(self, notification) -> bool:
        if self.fail:
            return False
        self.sent.append(notification)
        return True


class FakePublisher(EventPublisher):
    def __init__(self, fail: bool = False):
        self.published = []
        self.fail = fail

    async def publish(self, event_type: str, key: str, payload: dict) -> bool:
        if self.fail:
            return False
        self.published.append((event_type, key, payload))
        return True


class Clock:
    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs):
        self.now += timedelta(**kwargs)


@pytest.fixture
async def session_factory(tmp_path):
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'farm2city_test.db'}")
    await create_tables(engine)
    yield async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    await engine.dispose()


@pytest.fixture
async def uow(session_factory):
    return UnitOfWork(session_factory)


@pytest.fixture
def notifications():
    return FakeNotifications()


@pytest.fixture
def clock():
    return Clock(NOW)


@pytest.fixture
async def seeded(uow):
    """Фермер, торговец, магазин и два товара фермера"""
    async with uow() as tx:
        for user_id, role in (("farmer-1", UserRole.FARMER), ("trader-1", UserRole.TRADER),
                              ("shop-1", UserRole.SHOPKEEPER)):
            await tx.users.create(User(
                id=user_id, name=user_id.title(), email=f"{user_id}@farm2city.test", role=role, created_at=NOW
            ))
        await tx.products.create(Product(
            id="tomato", farmer_id="farmer-1", name="Tomato", price=Decimal("15.5"), quantity=100,
            unit="kg", availability=True, created_at=NOW
        ))
        await tx.products.create(Product(
            id="mango", farmer_id="farmer-1", name="Mango", price=Decimal("80"), quantity=0,
            unit="kg", availability=False, created_at=NOW
        ))
        await tx.commit()


@pytest.fixture
async def place_order(uow, seeded):
    async def _place(buyer_id="shop-1", product_id="tomato", quantity=20):
        use_case = CreateOrderUseCase(uow, FakeNotifications())
        return await use_case(CreateOrderDTO(buyer_id=buyer_id, product_id=product_id, quantity=quantity))
    return _place

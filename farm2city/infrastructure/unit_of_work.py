import logging
from contextlib import asynccontextmanager
from sqlalchemy.exc import OperationalError, InterfaceError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from farm2city.domain.exceptions import StoreUnavailableError
from farm2city.infrastructure.repositories import (
    SQLAlchemyUserRepository,
    SQLAlchemyProductRepository,
    SQLAlchemyOrderRepository,
    SQLAlchemyInventoryRepository,
    SQLAlchemyAutoReorderRuleRepository,
    SQLAlchemyOutboxRepository
)

logger = logging.getLogger(__name__)


class UnitOfWork:
    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self._session_factory = session_factory

    @asynccontextmanager
    async def __call__(self):
        try:
            async with self._session_factory() as session:
                try:
                    uow_impl = _UnitOfWorkImpl(session)
                    yield uow_impl
                    # Если commit не вызван — rollback
                    await session.rollback()
                except Exception:
                    await session.rollback()
                    raise
        except (OperationalError, InterfaceError) as e:
            logger.error(f"Хранилище недоступно: {e}")
            raise StoreUnavailableError(f"Хранилище недоступно: {e}") from e


class _UnitOfWorkImpl:
    def __init__(self, session: AsyncSession):
        self._session = session
        self.users = SQLAlchemyUserRepository(session)
        self.products = SQLAlchemyProductRepository(session)
        self.orders = SQLAlchemyOrderRepository(session)
        self.inventory = SQLAlchemyInventoryRepository(session)
        self.reorder_rules = SQLAlchemyAutoReorderRuleRepository(session)
        self.outbox = SQLAlchemyOutboxRepository(session)

    async def commit(self):
        await self._session.commit()

    async def rollback(self):
        await self._session.rollback()

import logging
from contextlib import asynccontextmanager
from fastapi import FastAPI

from farm2city.config import settings
from farm2city.database import create_tables
from farm2city.infrastructure.payments import MockPaymentGateway, InMemoryTransactionStore
from farm2city.presentation.api import router

logging.basicConfig(
    level=settings.LOG_LEVEL,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Управление жизненным циклом приложения"""
    await create_tables()
    logger.info("Таблицы созданы")

    # Один платежный шлюз на процесс
    app.state.payment_gateway = MockPaymentGateway(
        InMemoryTransactionStore(),
        success_rate=settings.PAYMENT_SUCCESS_RATE,
        delay=settings.PAYMENT_DELAY_SECONDS
    )

    yield

    logger.info("Приложение останавливается...")

app = FastAPI(
    title="Farm2City Order Service",
    description="Заказы, склад магазинов и автозаказ",
    version="1.0.0",
    lifespan=lifespan
)

app.include_router(router, prefix="/api")

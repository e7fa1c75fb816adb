import asyncio
import logging

from farm2city.config import settings
from farm2city.database import AsyncSessionLocal
from farm2city.infrastructure.unit_of_work import UnitOfWork
from farm2city.infrastructure.notifications import build_notifications_service
from farm2city.application.run_reorder_check import RunReorderCheckUseCase, ScanReorderRulesUseCase

logger = logging.getLogger(__name__)


async def reorder_worker(scan_interval: float):
    """Периодическая проверка правил автозаказа"""
    logger.info(f"Reorder worker запущен, интервал {scan_interval} с")

    while True:
        try:
            uow = UnitOfWork(AsyncSessionLocal)
            reorder_check = RunReorderCheckUseCase(uow, build_notifications_service(
                AsyncSessionLocal, settings.NOTIFICATIONS_BASE_URL, settings.API_TOKEN
            ))
            triggered = await ScanReorderRulesUseCase(uow, reorder_check)()
            logger.info(f"Проверка автозаказа завершена, срабатываний: {triggered}")

        except Exception as e:
            logger.error(f"Ошибка в reorder worker: {e}", exc_info=True)

        await asyncio.sleep(scan_interval)


async def main():
    await reorder_worker(settings.REORDER_SCAN_INTERVAL)


if __name__ == "__main__":
    logging.basicConfig(
        level=settings.LOG_LEVEL,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )
    asyncio.run(main())

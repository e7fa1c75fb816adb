import asyncio
import logging

from farm2city.config import settings
from farm2city.database import AsyncSessionLocal
from farm2city.infrastructure.unit_of_work import UnitOfWork
from farm2city.infrastructure.kafka_producer import KafkaProducerClient
from farm2city.application.process_outbox import ProcessOutboxEventsUseCase

logger = logging.getLogger(__name__)


async def outbox_worker(producer: KafkaProducerClient, poll_interval: float):
    """Worker для публикации outbox событий в Kafka"""
    logger.info("Outbox worker запущен")

    await producer.start()
    try:
        while True:
            try:
                uow = UnitOfWork(AsyncSessionLocal)
                use_case = ProcessOutboxEventsUseCase(unit_of_work=uow, publisher=producer)

                published = await use_case(limit=20)
                if published:
                    logger.info(f"Опубликовано {published} outbox events")

                await asyncio.sleep(poll_interval)

            except Exception as e:
                logger.error(f"Ошибка в outbox worker: {e}", exc_info=True)
                await asyncio.sleep(poll_interval * 3)
    finally:
        await producer.stop()


async def main():
    producer = KafkaProducerClient(settings.KAFKA_BOOTSTRAP_SERVERS, settings.KAFKA_TOPIC)
    await outbox_worker(producer, settings.OUTBOX_POLL_INTERVAL)


if __name__ == "__main__":
    logging.basicConfig(
        level=settings.LOG_LEVEL,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )
    asyncio.run(main())

import uuid
import asyncio
import logging
from datetime import datetime, timezone

import httpx
from sqlalchemy import insert
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from farm2city.domain.models import Notification
from farm2city.application.interfaces import NotificationsService
from farm2city.infrastructure.db_schema import notifications_tbl

logger = logging.getLogger(__name__)


class SQLAlchemyNotificationsService(NotificationsService):
    """Пишет уведомления в таблицу notifications в отдельной сессии"""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self._session_factory = session_factory

    async def send(self, notification: Notification) -> bool:
        try:
            async with self._session_factory() as session:
                await session.execute(
                    insert(notifications_tbl).values(
                        id=str(uuid.uuid4()),
                        user_id=notification.user_id,
                        title=notification.title,
                        message=notification.message,
                        type=notification.type,
                        read=False,
                        data=notification.data,
                        created_at=datetime.now(timezone.utc)
                    )
                )
                await session.commit()
            logger.info(f"Уведомление '{notification.title}' записано для {notification.user_id}")
            return True
        except Exception as e:
            logger.warning(f"Не удалось записать уведомление для {notification.user_id}: {e}")
            return False


class HTTPNotificationsClient(NotificationsService):
    def __init__(
        self,
        base_url: str,
        api_token: str,
        max_retries: int = 3,
        retry_delay: float = 1.0,
        transport: httpx.AsyncBaseTransport | None = None
    ):
        self._base_url = base_url
        self._api_token = api_token
        self._max_retries = max_retries
        self._retry_delay = retry_delay
        self._transport = transport

    async def send(self, notification: Notification) -> bool:
        """Отправка уведомления с повторными попытками"""
        for attempt in range(self._max_retries):
            try:
                async with httpx.AsyncClient(transport=self._transport) as client:
                    response = await client.post(
                        f"{self._base_url}/api/notifications",
                        json={
                            "user_id": notification.user_id,
                            "title": notification.title,
                            "message": notification.message,
                            "type": notification.type.value,
                            "data": notification.data
                        },
                        headers={"X-API-Key": self._api_token},
                        timeout=10.0
                    )

                    if response.status_code == 201:
                        logger.info(f"Уведомление отправлено (попытка {attempt + 1})")
                        return True
                    else:
                        logger.warning(f"Уведомление вернуло статус {response.status_code}")

            except Exception as e:
                logger.warning(f"Ошибка отправки уведомления (попытка {attempt + 1}/{self._max_retries}): {e}")

            # Ждем перед следующей попыткой (кроме последней)
            if attempt < self._max_retries - 1:
                await asyncio.sleep(self._retry_delay)

        logger.error(f"Не удалось отправить уведомление после {self._max_retries} попыток")
        return False


def build_notifications_service(session_factory, base_url: str = "", api_token: str = "") -> NotificationsService:
    """HTTP-клиент, если задан адрес сервиса уведомлений, иначе запись в таблицу"""
    if base_url:
        return HTTPNotificationsClient(base_url, api_token)
    return SQLAlchemyNotificationsService(session_factory)

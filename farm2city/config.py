import os
from dotenv import load_dotenv

load_dotenv()


class Settings:
    # Database
    DATABASE_CONNECTION_STRING: str = os.getenv(
        "DATABASE_URL", "sqlite+aiosqlite:///./farm2city.db"
    )

    # Notifications: если URL пуст — уведомления пишутся в таблицу notifications
    NOTIFICATIONS_BASE_URL: str = os.getenv("NOTIFICATIONS_BASE_URL", "")
    API_TOKEN: str = os.getenv("API_TOKEN", "")

    # Kafka
    KAFKA_BOOTSTRAP_SERVERS: str = os.getenv("KAFKA_BOOTSTRAP_SERVERS", "localhost:9092")
    KAFKA_TOPIC: str = os.getenv("KAFKA_TOPIC", "farm2city.events")

    # Inventory
    LOW_STOCK_THRESHOLD: int = int(os.getenv("LOW_STOCK_THRESHOLD", "10"))
    MEDIUM_STOCK_THRESHOLD: int = int(os.getenv("MEDIUM_STOCK_THRESHOLD", "50"))

    # Workers
    REORDER_SCAN_INTERVAL: float = float(os.getenv("REORDER_SCAN_INTERVAL", "3600"))
    OUTBOX_POLL_INTERVAL: float = float(os.getenv("OUTBOX_POLL_INTERVAL", "3"))

    # Mock payments
    PAYMENT_SUCCESS_RATE: float = float(os.getenv("PAYMENT_SUCCESS_RATE", "0.9"))
    PAYMENT_DELAY_SECONDS: float = float(os.getenv("PAYMENT_DELAY_SECONDS", "1.0"))

    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")

    @property
    def DATABASE_URL(self) -> str:
        """Асинхронный URL для приложения"""
        return self.DATABASE_CONNECTION_STRING.replace("postgres://", "postgresql+asyncpg://")

    @property
    def SYNC_DATABASE_URL(self) -> str:
        """Синхронный URL для Alembic"""
        return (
            self.DATABASE_URL
            .replace("postgresql+asyncpg://", "postgresql://")
            .replace("sqlite+aiosqlite://", "sqlite://")
        )


settings = Settings()

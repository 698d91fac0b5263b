"""Конфигурация приложения"""
from dataclasses import dataclass
from typing import List, Optional, Tuple

from pydantic_settings import BaseSettings


@dataclass(frozen=True)
class AuctionPolicy:
    """Правила аукциона, передаются в сервисы при создании"""

    # Длительность аукциона (в днях), если продавец не указал свою
    default_duration_days: int = 1
    allowed_durations: Tuple[int, ...] = (1, 2, 3)
    # Сколько раз повторять ставку при конфликте записи
    max_bid_attempts: int = 3


class Settings(BaseSettings):
    """Настройки приложения"""

    # Telegram Bot
    BOT_TOKEN: str = ""

    # Database
    # Полный URL имеет приоритет над DB_*
    DATABASE_URL: Optional[str] = None
    DB_HOST: str = "localhost"
    DB_PORT: int = 5432
    DB_USER: str = ""
    DB_PASSWORD: str = ""
    DB_NAME: str = ""

    # Admin
    ADMIN_USER_IDS: str = ""

    # Auction Settings
    AUCTION_DEFAULT_DURATION_DAYS: int = 1
    AUCTION_ALLOWED_DURATIONS: str = "1,2,3"
    BID_MAX_ATTEMPTS: int = 3
    # Как часто планировщик закрывает истекшие аукционы
    SWEEP_INTERVAL_SECONDS: int = 60

    LOG_LEVEL: str = "INFO"

    @property
    def admin_ids_list(self) -> List[int]:
        """Список ID администраторов"""
        if not self.ADMIN_USER_IDS:
            return []
        return [int(uid.strip()) for uid in self.ADMIN_USER_IDS.split(",") if uid.strip()]

    @property
    def allowed_durations(self) -> Tuple[int, ...]:
        """Допустимые длительности аукциона в днях"""
        return tuple(
            int(days.strip()) for days in self.AUCTION_ALLOWED_DURATIONS.split(",") if days.strip()
        )

    @property
    def database_url(self) -> str:
        """URL подключения к базе данных"""
        if self.DATABASE_URL:
            return self.DATABASE_URL
        return f"postgresql+asyncpg://{self.DB_USER}:{self.DB_PASSWORD}@{self.DB_HOST}:{self.DB_PORT}/{self.DB_NAME}"

    @property
    def auction_policy(self) -> AuctionPolicy:
        """Правила аукциона из переменных окружения"""
        return AuctionPolicy(
            default_duration_days=self.AUCTION_DEFAULT_DURATION_DAYS,
            allowed_durations=self.allowed_durations,
            max_bid_attempts=self.BID_MAX_ATTEMPTS,
        )

    class Config:
        env_file = ".env"
        case_sensitive = True


settings = Settings()

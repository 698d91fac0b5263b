"""Подключение к базе данных"""
from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import declarative_base
from config import settings


def build_engine(url: str, **kwargs) -> AsyncEngine:
    """Создать асинхронный движок (для SQLite включаем внешние ключи)"""
    engine = create_async_engine(url, echo=False, future=True, **kwargs)

    if engine.dialect.name == "sqlite":
        @event.listens_for(engine.sync_engine, "connect")
        def _enable_foreign_keys(dbapi_connection, connection_record):
            cursor = dbapi_connection.cursor()
            cursor.execute("PRAGMA foreign_keys=ON")
            cursor.close()

    return engine


def build_session_maker(engine: AsyncEngine) -> async_sessionmaker:
    """Фабрика сессий для движка"""
    return async_sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False
    )


# Создаем движок для асинхронной работы
engine = build_engine(settings.database_url)

# Создаем фабрику сессий
async_session_maker = build_session_maker(engine)

# Базовый класс для моделей
Base = declarative_base()


async def create_schema(target: AsyncEngine = engine) -> None:
    """Создать таблицы (для разработки и тестов, без миграций)"""
    # Регистрируем модели в метаданных
    import database.models  # noqa: F401

    async with target.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

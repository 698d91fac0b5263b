"""
Настройка pytest и общие фикстуры
"""
import os
import sys
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import AsyncGenerator
from unittest.mock import AsyncMock, MagicMock

import pytest

# Модуль подключения создает движок при импорте, подменяем БД до него
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")

# Корень проекта в пути импорта
PROJECT_ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

from config import AuctionPolicy  # noqa: E402
from database.connection import build_engine, build_session_maker, create_schema  # noqa: E402
from database.models.user import User  # noqa: E402
from services.bidding import BidAcceptor  # noqa: E402
from services.lifecycle import AuctionLifecycle  # noqa: E402
from services.winner import WinnerResolver  # noqa: E402


# =============================================================================
# Настройка pytest
# =============================================================================


def pytest_configure(config):
    """Маркеры тестов"""
    config.addinivalue_line(
        "markers", "slow: marks tests as slow (deselect with '-m \"not slow\"')"
    )
    config.addinivalue_line(
        "markers", "integration: marks tests as integration tests"
    )


# =============================================================================
# Время
# =============================================================================


START = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)


class FakeClock:
    """Управляемые часы для тестов"""

    def __init__(self, now: datetime = START):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> datetime:
        self.now = self.now + timedelta(**kwargs)
        return self.now


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


# =============================================================================
# База данных
# =============================================================================


@pytest.fixture
async def engine(tmp_path):
    """
    SQLite во временном файле

    Файл, а не :memory:, чтобы параллельные сессии видели одну базу.
    """
    test_engine = build_engine(f"sqlite+aiosqlite:///{tmp_path / 'auction.db'}")
    await create_schema(test_engine)
    yield test_engine
    await test_engine.dispose()


@pytest.fixture
def session_maker(engine):
    return build_session_maker(engine)


@pytest.fixture
async def session(session_maker) -> AsyncGenerator:
    async with session_maker() as db_session:
        yield db_session


@pytest.fixture
def user_factory(session):
    """Создание пользователей в тестовой базе"""
    counter = {"telegram_id": 1000}

    async def create(username: str = None, first_name: str = "Тест", is_moderator: bool = False) -> User:
        counter["telegram_id"] += 1
        user = User(
            telegram_id=counter["telegram_id"],
            username=username,
            first_name=first_name,
            is_moderator=is_moderator
        )
        session.add(user)
        await session.commit()
        await session.refresh(user)
        return user

    return create


# =============================================================================
# Сервисы
# =============================================================================


@pytest.fixture
def policy() -> AuctionPolicy:
    return AuctionPolicy()


@pytest.fixture
def lifecycle(policy, clock) -> AuctionLifecycle:
    return AuctionLifecycle(policy, clock)


@pytest.fixture
def acceptor(policy, clock) -> BidAcceptor:
    return BidAcceptor(policy, clock)


@pytest.fixture
def resolver(policy, clock) -> WinnerResolver:
    return WinnerResolver(policy, clock)


@pytest.fixture
def live_auction(session, lifecycle, user_factory):
    """Одобренный аукцион: стартовая цена 100, длительность 1 день"""

    async def create(starting_price: str = "100", duration_days: int = 1, seller=None):
        if seller is None:
            seller = await user_factory(username="seller")
        auction = await lifecycle.submit(
            session,
            seller_id=seller.id,
            title="Ковер ручной работы",
            starting_price=starting_price,
            duration_days=duration_days
        )
        return await lifecycle.approve(session, auction.id)

    return create


# =============================================================================
# Telegram
# =============================================================================


@pytest.fixture
def tg_user():
    """Пользователь Telegram"""
    user = MagicMock()
    user.id = 555
    user.username = "buyer"
    user.first_name = "Покупатель"
    user.last_name = None
    return user


@pytest.fixture
def message(tg_user):
    """Сообщение Telegram"""
    msg = AsyncMock()
    msg.from_user = tg_user
    msg.text = ""
    return msg


@pytest.fixture
def callback(tg_user, message):
    """Callback-запрос Telegram"""
    cb = AsyncMock()
    cb.from_user = tg_user
    cb.message = message
    cb.data = ""
    return cb

"""Сервис для работы с пользователями"""
import logging
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, update
from sqlalchemy.exc import SQLAlchemyError
from database.models.user import User

logger = logging.getLogger(__name__)


async def get_or_create_user(
    session: AsyncSession,
    telegram_id: int,
    username: str = None,
    first_name: str = None,
    last_name: str = None
) -> User:
    """Получить или создать пользователя"""
    result = await session.execute(
        select(User).where(User.telegram_id == telegram_id)
    )
    user = result.scalar_one_or_none()

    if not user:
        user = User(
            telegram_id=telegram_id,
            username=username,
            first_name=first_name,
            last_name=last_name
        )
        session.add(user)
        await session.commit()
        await session.refresh(user)
    else:
        # Обновляем данные, если изменились
        if username != user.username or first_name != user.first_name:
            user.username = username
            user.first_name = first_name
            user.last_name = last_name
            await session.commit()

    return user


async def describe_user(session: AsyncSession, user_id: Optional[int]) -> str:
    """Имя пользователя для текста ошибок и сообщений"""
    if user_id is None:
        return "площадка"

    user = await session.get(User, user_id)
    if not user:
        return f"ID: {user_id}"
    return user.display_name


async def increment_bids_count(session: AsyncSession, user_id: int) -> None:
    """
    Увеличить счетчик ставок пользователя

    Счетчик для профиля не требует строгой согласованности: ошибка
    записывается в лог и не отменяет уже принятую ставку.
    """
    try:
        await session.execute(
            update(User)
            .where(User.id == user_id)
            .values(bids_count=User.bids_count + 1)
            .execution_options(synchronize_session=False)
        )
        await session.commit()
    except SQLAlchemyError as e:
        await session.rollback()
        logger.warning(f"Не удалось обновить счетчик ставок пользователя {user_id}: {e}")

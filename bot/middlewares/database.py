"""Middleware для работы с базой данных"""
from typing import Callable, Dict, Any, Awaitable, Optional
from aiogram import BaseMiddleware
from aiogram.types import TelegramObject
from sqlalchemy.ext.asyncio import async_sessionmaker
from database.connection import async_session_maker


class DatabaseMiddleware(BaseMiddleware):
    """Middleware для создания сессии БД"""

    def __init__(self, session_maker: Optional[async_sessionmaker] = None):
        self.session_maker = session_maker or async_session_maker

    async def __call__(
        self,
        handler: Callable[[TelegramObject, Dict[str, Any]], Awaitable[Any]],
        event: TelegramObject,
        data: Dict[str, Any]
    ) -> Any:
        async with self.session_maker() as session:
            data["session"] = session
            return await handler(event, data)

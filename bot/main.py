"""Главный файл бота"""
import asyncio
import logging
from aiogram import Bot, Dispatcher
from aiogram.client.default import DefaultBotProperties
from aiogram.enums import ParseMode
from config import settings
from database.connection import async_session_maker, create_schema
from bot.handlers import auction, moderation
from bot.middlewares.database import DatabaseMiddleware
from services.bidding import BidAcceptor
from services.lifecycle import AuctionLifecycle
from services.scheduler import start_scheduler
from services.winner import WinnerResolver

# Настройка логирования
logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)


def build_dispatcher() -> Dispatcher:
    """Собрать диспетчер с сервисами аукциона"""
    policy = settings.auction_policy
    resolver = WinnerResolver(policy)

    # Сервисы попадают в обработчики по имени аргумента
    dp = Dispatcher(
        lifecycle=AuctionLifecycle(policy),
        acceptor=BidAcceptor(policy),
        resolver=resolver,
    )

    # Регистрируем middleware
    dp.message.middleware(DatabaseMiddleware(async_session_maker))
    dp.callback_query.middleware(DatabaseMiddleware(async_session_maker))

    # Регистрируем роутеры
    dp.include_router(moderation.router)
    dp.include_router(auction.router)
    return dp


async def main():
    """Запуск бота"""
    if not settings.BOT_TOKEN:
        raise RuntimeError("BOT_TOKEN не задан")

    bot = Bot(
        token=settings.BOT_TOKEN,
        default=DefaultBotProperties(parse_mode=ParseMode.HTML)
    )
    # Таблицы создаются, если их еще нет
    await create_schema()

    dp = build_dispatcher()

    # Запускаем планировщик для завершения аукционов
    start_scheduler(async_session_maker, dp["resolver"], settings.SWEEP_INTERVAL_SECONDS)

    logger.info("Бот запущен")

    # Запускаем polling
    await dp.start_polling(bot)


if __name__ == "__main__":
    asyncio.run(main())

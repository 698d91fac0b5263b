"""Планировщик задач для завершения аукционов"""
import asyncio
import logging
from typing import Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import async_sessionmaker

from exceptions import AuctionError
from services.auction import list_due_auction_ids
from services.winner import WinnerResolver

logger = logging.getLogger(__name__)


async def settle_due_auctions(
    session_maker: async_sessionmaker,
    resolver: WinnerResolver
) -> int:
    """
    Зафиксировать итог всех истекших аукционов

    Использует то же условие now >= auction_end_time, что и чтение.
    Каждый аукцион закрывается в своей сессии, ошибка одного (в том числе
    ошибка БД) не останавливает остальные. Возвращает число закрытых аукционов.
    """
    async with session_maker() as session:
        due_ids = await list_due_auction_ids(session, resolver.clock())

    settled = 0
    for auction_id in due_ids:
        async with session_maker() as session:
            try:
                winner = await resolver.resolve(session, auction_id)
                settled += 1
                logger.info(
                    f"Аукцион {auction_id} закрыт планировщиком. "
                    f"Победитель: {winner.bidder_id if winner else None}"
                )
            except AuctionError as e:
                logger.error(f"Ошибка при завершении аукциона {auction_id}: {e}")
            except SQLAlchemyError as e:
                logger.error(
                    f"Ошибка БД при завершении аукциона {auction_id}: {e}",
                    exc_info=True
                )

    return settled


async def scheduler_loop(
    session_maker: async_sessionmaker,
    resolver: WinnerResolver,
    interval_seconds: int,
    max_iterations: Optional[int] = None
):
    """Основной цикл планировщика"""
    iteration = 0

    while max_iterations is None or iteration < max_iterations:
        iteration += 1
        try:
            settled = await settle_due_auctions(session_maker, resolver)
            if settled:
                logger.info(f"Планировщик закрыл аукционов: {settled}")
        except Exception as e:
            logger.error(f"Ошибка в планировщике: {e}", exc_info=True)

        await asyncio.sleep(interval_seconds)


def start_scheduler(
    session_maker: async_sessionmaker,
    resolver: WinnerResolver,
    interval_seconds: int
) -> asyncio.Task:
    """Запустить планировщик"""
    task = asyncio.create_task(scheduler_loop(session_maker, resolver, interval_seconds))
    logger.info("Планировщик аукционов запущен")
    return task

"""
Прием ставок

Ставка принимается одной транзакцией: блокировка строки аукциона,
повторная проверка по свежему состоянию, compare-and-swap цены и запись
в журнал. Конфликт записи повторяется ограниченное число раз, после
чего вызывающий получает TransientConflictError.
"""
import logging
from typing import Any, Awaitable, Callable, List

from sqlalchemy.exc import OperationalError
from sqlalchemy.ext.asyncio import AsyncSession

from config import AuctionPolicy
from database.models.bid import Bid
from exceptions import BidRejectedError, TransientConflictError
from services.auction import lock_auction, record_bid
from services.clock import Clock, utcnow
from services.user import increment_bids_count
from services.validation import AuctionSnapshot, check_bid_against, parse_amount

logger = logging.getLogger(__name__)

BidListener = Callable[[Bid], Awaitable[None]]


class BidAcceptor:
    """Принимает ставки на аукционы"""

    def __init__(self, policy: AuctionPolicy, clock: Clock = utcnow):
        self.policy = policy
        self.clock = clock
        self._listeners: List[BidListener] = []

    def add_listener(self, listener: BidListener) -> None:
        """Подписаться на принятые ставки (вызывается только после коммита)"""
        self._listeners.append(listener)

    async def place_bid(
        self,
        session: AsyncSession,
        auction_id: int,
        bidder_id: int,
        amount: Any
    ) -> Bid:
        """
        Сделать ставку

        Args:
            session: сессия БД вызывающего
            auction_id: ID аукциона
            bidder_id: ID участника (уже аутентифицирован выше)
            amount: сумма ставки

        Returns:
            Принятая ставка

        Raises:
            InvalidAmountError, NotBiddableError, AuctionEndedError,
            SelfBidError, BidTooLowError: ставка отклонена
            AuctionNotFoundError: аукциона нет
            TransientConflictError: не удалось записать из-за конкурентных ставок
        """
        value = parse_amount(amount)
        attempts = self.policy.max_bid_attempts

        for attempt in range(1, attempts + 1):
            try:
                auction = await lock_auction(session, auction_id)
                snapshot = AuctionSnapshot.from_record(auction)
                now = self.clock()
                check_bid_against(snapshot, bidder_id, value, now)

                bid = await record_bid(session, auction, bidder_id, value, now)
                if bid is None:
                    await session.rollback()
                    logger.warning(
                        f"Конфликт версии при ставке на аукцион {auction_id} "
                        f"(попытка {attempt}/{attempts})"
                    )
                    continue

                await session.commit()
            except BidRejectedError as e:
                await session.rollback()
                logger.info(
                    f"Ставка {value} от пользователя {bidder_id} на аукцион {auction_id} "
                    f"отклонена: {e.code}"
                )
                raise
            except OperationalError as e:
                await session.rollback()
                logger.warning(
                    f"Ошибка блокировки при ставке на аукцион {auction_id} "
                    f"(попытка {attempt}/{attempts}): {e}"
                )
                continue
            except Exception:
                await session.rollback()
                raise

            logger.info(
                f"Пользователь {bidder_id} сделал ставку {value} на аукцион {auction_id} "
                f"(ставка {bid.id})"
            )
            await self._after_commit(session, bid)
            return bid

        logger.error(f"Ставка на аукцион {auction_id} не записана после {attempts} попыток")
        raise TransientConflictError(auction_id, attempts)

    async def _after_commit(self, session: AsyncSession, bid: Bid) -> None:
        """Побочные эффекты после коммита. Их ошибки не отменяют ставку"""
        # Ставка уже записана, отвязываем ее от сессии до следующих записей
        session.expunge(bid)
        await increment_bids_count(session, bid.bidder_id)

        for listener in self._listeners:
            try:
                await listener(bid)
            except Exception as e:
                logger.error(f"Ошибка обработчика ставки {bid.id}: {e}", exc_info=True)

"""Определение победителя завершенного аукциона"""
import logging
from dataclasses import dataclass
from decimal import Decimal
from typing import Optional

from sqlalchemy.exc import OperationalError
from sqlalchemy.ext.asyncio import AsyncSession

from config import AuctionPolicy
from database.models.auction import Auction, AuctionStatus, SETTLED_STATUSES
from exceptions import TransientConflictError
from services import auction as store
from services.clock import Clock, utcnow
from services.lifecycle import effective_status, invalid_transition

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Winner:
    """Победитель аукциона"""

    auction_id: int
    bidder_id: int
    amount: Decimal


def winner_of(auction: Auction) -> Optional[Winner]:
    """Победитель по проекции цены (None для аукциона без ставок)"""
    if auction.status != AuctionStatus.SOLD.value or auction.highest_bidder_id is None:
        return None
    return Winner(
        auction_id=auction.id,
        bidder_id=auction.highest_bidder_id,
        amount=Decimal(auction.current_price),
    )


class WinnerResolver:
    """Фиксирует итог аукциона: sold или unsold"""

    def __init__(self, policy: AuctionPolicy, clock: Clock = utcnow):
        self.policy = policy
        self.clock = clock

    async def resolve(self, session: AsyncSession, auction_id: int) -> Optional[Winner]:
        """
        Завершить аукцион и определить победителя

        Победитель берется из highest_bidder/current_price, журнал ставок
        не пересчитывается. Повторный вызов для уже закрытого аукциона
        возвращает того же победителя и ничего не меняет.

        Raises:
            AuctionNotFoundError: аукциона нет
            InvalidTransitionError: торги еще идут или лот не одобрен
            TransientConflictError: не удалось записать из-за конкурентных ставок
        """
        attempts = self.policy.max_bid_attempts

        for attempt in range(1, attempts + 1):
            try:
                auction = await store.lock_auction(session, auction_id)

                if auction.status in SETTLED_STATUSES:
                    winner = winner_of(auction)
                    await session.rollback()
                    return winner

                target = AuctionStatus.SOLD if auction.total_bid_count > 0 else AuctionStatus.UNSOLD
                current = effective_status(auction, self.clock())
                if current != AuctionStatus.ENDED.value:
                    raise invalid_transition(auction.id, current, target)

                changed = await store.change_status(
                    session,
                    auction,
                    target,
                    settled_at=self.clock()
                )
                if not changed:
                    await session.rollback()
                    logger.warning(
                        f"Конфликт версии при закрытии аукциона {auction_id} "
                        f"(попытка {attempt}/{attempts})"
                    )
                    continue

                await session.commit()
            except OperationalError as e:
                await session.rollback()
                logger.warning(
                    f"Ошибка блокировки при закрытии аукциона {auction_id} "
                    f"(попытка {attempt}/{attempts}): {e}"
                )
                continue
            except Exception:
                await session.rollback()
                raise

            auction = await store.get_auction(session, auction_id)
            winner = winner_of(auction)
            logger.info(
                f"Аукцион {auction_id} завершен: {auction.status}, "
                f"победитель {winner.bidder_id if winner else None}, "
                f"цена {auction.current_price}"
            )
            return winner

        logger.error(f"Аукцион {auction_id} не закрыт после {attempts} попыток")
        raise TransientConflictError(auction_id, attempts)

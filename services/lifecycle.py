"""
Жизненный цикл аукциона

pending -> approved | rejected
approved -> ended (когда now >= auction_end_time)
ended -> sold | unsold (services.winner)

Любой другой переход завершается InvalidTransitionError. Статус ended
вычисляется при чтении и сохраняется только expire(), планировщиком или
при фиксации победителя.
"""
import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from decimal import Decimal
from typing import Any, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from config import AuctionPolicy
from database.models.auction import Auction, AuctionStatus, SETTLED_STATUSES
from exceptions import InvalidAmountError, InvalidListingError, InvalidTransitionError
from services import auction as store
from services.clock import Clock, as_utc, is_due, utcnow
from services.validation import parse_amount

logger = logging.getLogger(__name__)

ALLOWED_TRANSITIONS = {
    AuctionStatus.PENDING: (AuctionStatus.APPROVED, AuctionStatus.REJECTED),
    AuctionStatus.APPROVED: (AuctionStatus.ENDED,),
    AuctionStatus.ENDED: (AuctionStatus.SOLD, AuctionStatus.UNSOLD),
}


def effective_status(auction: Auction, now: datetime) -> str:
    """Статус с учетом истечения времени (approved + время вышло = ended)"""
    if auction.status == AuctionStatus.APPROVED.value and is_due(auction.auction_end_time, now):
        return AuctionStatus.ENDED.value
    return auction.status


def invalid_transition(auction_id: int, current: str, target: AuctionStatus) -> InvalidTransitionError:
    """Записать недопустимый переход в лог отдельно от обычных отказов"""
    logger.error(f"INVALID_TRANSITION аукцион {auction_id}: {current} -> {target.value}")
    return InvalidTransitionError(current, target.value)


def ensure_transition(auction: Auction, current: str, target: AuctionStatus) -> None:
    """Проверить, что переход разрешен"""
    if target not in ALLOWED_TRANSITIONS.get(AuctionStatus(current), ()):
        raise invalid_transition(auction.id, current, target)


@dataclass(frozen=True)
class AuctionView:
    """Проекция аукциона для чтения"""

    id: int
    seller_id: Optional[int]
    title: str
    description: Optional[str]
    starting_price: Decimal
    current_price: Decimal
    highest_bidder_id: Optional[int]
    total_bid_count: int
    status: str
    stored_status: str
    duration_days: int
    auction_end_time: Optional[datetime]
    approved_at: Optional[datetime]
    settled_at: Optional[datetime]
    rejection_reason: Optional[str]
    time_left: Optional[timedelta]

    @property
    def is_live(self) -> bool:
        return self.status == AuctionStatus.APPROVED.value

    @property
    def is_settled(self) -> bool:
        return self.status in SETTLED_STATUSES

    @classmethod
    def build(cls, auction: Auction, now: datetime) -> "AuctionView":
        end = as_utc(auction.auction_end_time)
        status = effective_status(auction, now)
        time_left = None
        if end is not None and status == AuctionStatus.APPROVED.value:
            time_left = end - now
        return cls(
            id=auction.id,
            seller_id=auction.seller_id,
            title=auction.title,
            description=auction.description,
            starting_price=Decimal(auction.starting_price),
            current_price=Decimal(auction.current_price),
            highest_bidder_id=auction.highest_bidder_id,
            total_bid_count=auction.total_bid_count,
            status=status,
            stored_status=auction.status,
            duration_days=auction.duration_days,
            auction_end_time=end,
            approved_at=as_utc(auction.approved_at),
            settled_at=as_utc(auction.settled_at),
            rejection_reason=auction.rejection_reason,
            time_left=time_left,
        )


class AuctionLifecycle:
    """Переходы состояний аукциона"""

    def __init__(self, policy: AuctionPolicy, clock: Clock = utcnow):
        self.policy = policy
        self.clock = clock

    async def submit(
        self,
        session: AsyncSession,
        seller_id: Optional[int],
        title: str,
        starting_price: Any,
        duration_days: Optional[int] = None,
        description: Optional[str] = None
    ) -> Auction:
        """Выставить лот на модерацию"""
        title = (title or "").strip()
        if not title:
            raise InvalidListingError("Название лота обязательно")

        try:
            price = parse_amount(starting_price)
        except InvalidAmountError:
            raise InvalidListingError(f"Некорректная начальная цена: {starting_price}")

        days = duration_days if duration_days is not None else self.policy.default_duration_days
        if days not in self.policy.allowed_durations:
            allowed = ", ".join(str(d) for d in self.policy.allowed_durations)
            raise InvalidListingError(f"Длительность аукциона должна быть одной из: {allowed} дн.")

        auction = await store.create_auction(
            session,
            seller_id=seller_id,
            title=title,
            starting_price=price,
            duration_days=days,
            description=description
        )
        logger.info(f"Аукцион {auction.id} создан продавцом {seller_id}: {price}, {days} дн.")
        return auction

    async def approve(
        self,
        session: AsyncSession,
        auction_id: int,
        duration_days: Optional[int] = None,
        moderator_id: Optional[int] = None
    ) -> Auction:
        """
        Одобрить аукцион и запустить торги

        auction_end_time = now + длительность (переданная, выбранная
        продавцом или по умолчанию). Повторное одобрение завершается
        InvalidTransitionError и не сдвигает время окончания.
        """
        if duration_days is not None and duration_days <= 0:
            raise InvalidListingError(f"Некорректная длительность: {duration_days}")

        try:
            auction = await store.lock_auction(session, auction_id)
            ensure_transition(auction, auction.status, AuctionStatus.APPROVED)

            now = self.clock()
            days = duration_days or auction.duration_days or self.policy.default_duration_days
            changed = await store.change_status(
                session,
                auction,
                AuctionStatus.APPROVED,
                approved_at=now,
                auction_end_time=now + timedelta(days=days),
                duration_days=days,
                moderator_id=moderator_id
            )
            if not changed:
                await self._raise_lost_race(session, auction_id, AuctionStatus.APPROVED)

            await session.commit()
        except Exception:
            await session.rollback()
            raise

        auction = await store.get_auction(session, auction_id)
        logger.info(
            f"Аукцион {auction_id} одобрен модератором {moderator_id}, "
            f"окончание {as_utc(auction.auction_end_time)}"
        )
        return auction

    async def reject(
        self,
        session: AsyncSession,
        auction_id: int,
        reason: str,
        moderator_id: Optional[int] = None
    ) -> Auction:
        """Отклонить аукцион с обязательной причиной"""
        reason = (reason or "").strip()
        if not reason:
            raise InvalidListingError("Причина отклонения обязательна")

        try:
            auction = await store.lock_auction(session, auction_id)
            ensure_transition(auction, auction.status, AuctionStatus.REJECTED)

            changed = await store.change_status(
                session,
                auction,
                AuctionStatus.REJECTED,
                rejection_reason=reason,
                moderator_id=moderator_id
            )
            if not changed:
                await self._raise_lost_race(session, auction_id, AuctionStatus.REJECTED)

            await session.commit()
        except Exception:
            await session.rollback()
            raise

        logger.info(f"Аукцион {auction_id} отклонен модератором {moderator_id}: {reason}")
        return await store.get_auction(session, auction_id)

    async def expire(self, session: AsyncSession, auction_id: int) -> bool:
        """
        Сохранить статус ended для истекшего аукциона

        Идемпотентно: для уже завершенного аукциона возвращает False.
        """
        try:
            auction = await store.lock_auction(session, auction_id)
            if auction.status in (AuctionStatus.ENDED.value,) + SETTLED_STATUSES:
                await session.rollback()
                return False

            current = effective_status(auction, self.clock())
            if current != AuctionStatus.ENDED.value:
                raise invalid_transition(auction.id, current, AuctionStatus.ENDED)

            changed = await store.change_status(session, auction, AuctionStatus.ENDED)
            if not changed:
                # Аукцион успели закрыть параллельно
                await session.rollback()
                return False

            await session.commit()
        except Exception:
            await session.rollback()
            raise

        logger.info(f"Аукцион {auction_id} завершен по времени")
        return True

    async def get_auction_view(self, session: AsyncSession, auction_id: int) -> AuctionView:
        """Получить аукцион с вычисленным статусом"""
        auction = await store.get_auction(session, auction_id)
        return AuctionView.build(auction, self.clock())

    async def list_live(self, session: AsyncSession) -> list[AuctionView]:
        """Аукционы, на которые сейчас можно ставить"""
        now = self.clock()
        auctions = await store.list_live_auctions(session, now)
        return [AuctionView.build(auction, now) for auction in auctions]

    async def list_pending(self, session: AsyncSession) -> list[AuctionView]:
        """Очередь модерации, старые сначала"""
        now = self.clock()
        auctions = await store.list_pending_auctions(session)
        return [AuctionView.build(auction, now) for auction in auctions]

    async def _raise_lost_race(
        self,
        session: AsyncSession,
        auction_id: int,
        target: AuctionStatus
    ) -> None:
        """Строку изменили между чтением и записью: сообщить актуальный статус"""
        await session.rollback()
        auction = await store.get_auction(session, auction_id)
        raise invalid_transition(auction_id, auction.status, target)

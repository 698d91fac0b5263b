"""
Хранилище аукционов и ставок

Единственное место, где меняются цена, лидер, счетчик ставок и статус
аукциона. Все записи идут через compare-and-swap по колонке version,
поэтому параллельные транзакции над одним лотом не затирают друг друга,
а транзакции над разными лотами не блокируют друг друга.
"""
import logging
from datetime import datetime
from decimal import Decimal
from typing import Optional

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from database.models.auction import Auction, AuctionStatus
from database.models.bid import Bid
from exceptions import AuctionNotFoundError

logger = logging.getLogger(__name__)


async def create_auction(
    session: AsyncSession,
    seller_id: Optional[int],
    title: str,
    starting_price: Decimal,
    duration_days: int,
    description: Optional[str] = None
) -> Auction:
    """Создать аукцион в статусе pending"""
    auction = Auction(
        seller_id=seller_id,
        title=title,
        description=description,
        starting_price=starting_price,
        current_price=starting_price,
        total_bid_count=0,
        duration_days=duration_days,
        status=AuctionStatus.PENDING.value,
        version=1
    )
    session.add(auction)
    await session.commit()
    await session.refresh(auction)
    return auction


async def get_auction(session: AsyncSession, auction_id: int) -> Auction:
    """Прочитать актуальное состояние аукциона"""
    result = await session.execute(
        select(Auction)
        .where(Auction.id == auction_id)
        .execution_options(populate_existing=True)
    )
    auction = result.scalar_one_or_none()

    if not auction:
        raise AuctionNotFoundError(auction_id)
    return auction


async def lock_auction(session: AsyncSession, auction_id: int) -> Auction:
    """Прочитать аукцион с блокировкой строки (SELECT ... FOR UPDATE)"""
    result = await session.execute(
        select(Auction)
        .where(Auction.id == auction_id)
        .with_for_update()
        .execution_options(populate_existing=True)
    )
    auction = result.scalar_one_or_none()

    if not auction:
        raise AuctionNotFoundError(auction_id)
    return auction


async def record_bid(
    session: AsyncSession,
    auction: Auction,
    bidder_id: int,
    amount: Decimal,
    now: datetime
) -> Optional[Bid]:
    """
    Обновить проекцию цены и добавить ставку в журнал

    Выполняется в транзакции вызывающего. Возвращает None, если версия
    аукциона изменилась после чтения: тогда вызывающий откатывает
    транзакцию и перечитывает лот.
    """
    result = await session.execute(
        update(Auction)
        .where(
            Auction.id == auction.id,
            Auction.version == auction.version,
            Auction.status == AuctionStatus.APPROVED.value,
            Auction.current_price < amount
        )
        .values(
            current_price=amount,
            highest_bidder_id=bidder_id,
            total_bid_count=Auction.total_bid_count + 1,
            version=Auction.version + 1
        )
        .execution_options(synchronize_session=False)
    )
    if result.rowcount != 1:
        return None

    bid = Bid(
        auction_id=auction.id,
        bidder_id=bidder_id,
        amount=amount,
        created_at=now
    )
    session.add(bid)
    await session.flush()
    return bid


async def change_status(
    session: AsyncSession,
    auction: Auction,
    target_status: AuctionStatus,
    **values
) -> bool:
    """
    Перевести аукцион в новый статус, если его версия не изменилась

    Возвращает False, если строку успел изменить кто-то другой.
    """
    result = await session.execute(
        update(Auction)
        .where(
            Auction.id == auction.id,
            Auction.version == auction.version,
            Auction.status == auction.status
        )
        .values(
            status=target_status.value,
            version=Auction.version + 1,
            **values
        )
        .execution_options(synchronize_session=False)
    )
    return result.rowcount == 1


async def list_bids(session: AsyncSession, auction_id: int) -> list[Bid]:
    """Журнал ставок аукциона в порядке принятия"""
    result = await session.execute(
        select(Bid)
        .where(Bid.auction_id == auction_id)
        .order_by(Bid.id.asc())
    )
    return list(result.scalars().all())


async def list_bidder_bids(
    session: AsyncSession,
    bidder_id: int,
    limit: Optional[int] = None
) -> list[tuple[Bid, Auction]]:
    """Ставки пользователя вместе с их аукционами, новые сначала"""
    query = (
        select(Bid, Auction)
        .join(Auction, Bid.auction_id == Auction.id)
        .where(Bid.bidder_id == bidder_id)
        .order_by(Bid.id.desc())
        .execution_options(populate_existing=True)
    )
    if limit is not None:
        query = query.limit(limit)

    result = await session.execute(query)
    return [(bid, auction) for bid, auction in result.all()]


async def list_live_auctions(session: AsyncSession, now: datetime) -> list[Auction]:
    """Получить аукционы, на которые сейчас можно ставить"""
    result = await session.execute(
        select(Auction)
        .where(
            Auction.status == AuctionStatus.APPROVED.value,
            Auction.auction_end_time > now
        )
        .order_by(Auction.auction_end_time.asc())
    )
    return list(result.scalars().all())


async def list_pending_auctions(session: AsyncSession) -> list[Auction]:
    """Получить аукционы, ожидающие модерации"""
    result = await session.execute(
        select(Auction)
        .where(Auction.status == AuctionStatus.PENDING.value)
        .order_by(Auction.created_at.asc(), Auction.id.asc())
    )
    return list(result.scalars().all())


async def list_due_auction_ids(session: AsyncSession, now: datetime) -> list[int]:
    """ID аукционов, у которых истекло время, но победитель не зафиксирован"""
    result = await session.execute(
        select(Auction.id)
        .where(
            Auction.status.in_((AuctionStatus.APPROVED.value, AuctionStatus.ENDED.value)),
            Auction.auction_end_time <= now
        )
        .order_by(Auction.auction_end_time.asc())
    )
    return list(result.scalars().all())

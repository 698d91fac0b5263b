"""
История ставок участника

Статус ставки вычисляется при чтении по состоянию аукциона: пока торги
идут, ставка активна; после окончания она выиграла, если участник
остался лидером, и проиграла в остальных случаях.
"""
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession

from database.models.auction import Auction, AuctionStatus
from database.models.bid import Bid
from services.auction import list_bidder_bids
from services.lifecycle import effective_status

BID_ACTIVE = "active"
BID_WON = "won"
BID_LOST = "lost"
BID_ENDED = "ended"

BID_HISTORY_STATUSES = (BID_ACTIVE, BID_WON, BID_LOST, BID_ENDED)


def classify_bid(auction: Auction, bidder_id: int, now: datetime) -> str:
    """Статус ставки участника по состоянию ее аукциона"""
    if effective_status(auction, now) == AuctionStatus.APPROVED.value:
        return BID_ACTIVE
    if auction.highest_bidder_id is None:
        return BID_ENDED
    if auction.highest_bidder_id == bidder_id:
        return BID_WON
    return BID_LOST


def matches_status(entry_status: str, status: Optional[str]) -> bool:
    """Фильтр ended включает все завершенные ставки, остальные точные"""
    if status is None:
        return True
    if status == BID_ENDED:
        return entry_status != BID_ACTIVE
    return entry_status == status


@dataclass(frozen=True)
class BidHistoryEntry:
    """Строка истории ставок"""

    bid_id: int
    auction_id: int
    title: str
    amount: Decimal
    created_at: datetime
    status: str

    @classmethod
    def build(cls, bid: Bid, auction: Auction, now: datetime) -> "BidHistoryEntry":
        return cls(
            bid_id=bid.id,
            auction_id=auction.id,
            title=auction.title,
            amount=Decimal(bid.amount),
            created_at=bid.created_at,
            status=classify_bid(auction, bid.bidder_id, now),
        )


@dataclass(frozen=True)
class BidHistory:
    """История ставок со сводкой по всем ставкам участника"""

    entries: list
    counts: dict = field(default_factory=dict)
    total_amount: Decimal = Decimal("0")

    @property
    def total(self) -> int:
        return sum(self.counts.values())

    @property
    def won(self) -> int:
        return self.counts.get(BID_WON, 0)

    @property
    def lost(self) -> int:
        return self.counts.get(BID_LOST, 0)

    @property
    def active(self) -> int:
        return self.counts.get(BID_ACTIVE, 0)


async def build_bid_history(
    session: AsyncSession,
    bidder_id: int,
    now: datetime,
    status: Optional[str] = None,
    limit: int = 20
) -> BidHistory:
    """
    Собрать историю ставок участника, новые сначала

    Сводка считается по всем ставкам, фильтр status и limit применяются
    только к списку entries. Неизвестный статус дает ValueError.
    """
    if status is not None and status not in BID_HISTORY_STATUSES:
        raise ValueError(f"Неизвестный статус ставки: {status}")

    rows = await list_bidder_bids(session, bidder_id)
    all_entries = [BidHistoryEntry.build(bid, auction, now) for bid, auction in rows]

    counts = {name: 0 for name in BID_HISTORY_STATUSES}
    for entry in all_entries:
        counts[entry.status] += 1

    entries = [entry for entry in all_entries if matches_status(entry.status, status)]
    return BidHistory(
        entries=entries[:limit],
        counts=counts,
        total_amount=sum((entry.amount for entry in all_entries), Decimal("0")),
    )

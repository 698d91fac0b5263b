"""
Проверка ставки

Чистые функции без побочных эффектов. Работают со снимком аукциона,
поэтому результат проверки до транзакции носит рекомендательный
характер: окончательно ставку проверяет services.bidding под
блокировкой строки.
"""
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal, InvalidOperation
from typing import Any, Optional

from database.models.auction import MAX_PRICE, Auction, AuctionStatus
from exceptions import (
    AuctionEndedError,
    BidTooLowError,
    InvalidAmountError,
    NotBiddableError,
    SelfBidError,
)
from services.clock import as_utc, is_due

CENT = Decimal("0.01")


@dataclass(frozen=True)
class AuctionSnapshot:
    """Снимок аукциона только для чтения"""

    auction_id: int
    seller_id: Optional[int]
    status: str
    current_price: Decimal
    auction_end_time: Optional[datetime]
    version: int

    @classmethod
    def from_record(cls, auction: Auction) -> "AuctionSnapshot":
        return cls(
            auction_id=auction.id,
            seller_id=auction.seller_id,
            status=auction.status,
            current_price=Decimal(auction.current_price),
            auction_end_time=as_utc(auction.auction_end_time),
            version=auction.version,
        )


def parse_amount(amount: Any) -> Decimal:
    """
    Привести сумму к Decimal с точностью до копеек

    Отклоняет NaN, бесконечность, ноль, отрицательные значения, суммы
    с более чем двумя знаками после запятой и суммы больше MAX_PRICE,
    которые не помещаются в денежные колонки.
    """
    if isinstance(amount, bool):
        raise InvalidAmountError(amount)
    try:
        value = amount if isinstance(amount, Decimal) else Decimal(str(amount).strip())
        if not value.is_finite() or value <= 0:
            raise InvalidAmountError(amount)
        normalized = value.quantize(CENT)
    except (InvalidOperation, ValueError):
        raise InvalidAmountError(amount)

    if value != normalized or normalized > MAX_PRICE:
        raise InvalidAmountError(amount)
    return normalized


def check_bid_against(snapshot: AuctionSnapshot, bidder_id: int, amount: Decimal, now: datetime) -> None:
    """Проверки 2-5: статус, время, своя ставка, цена"""
    if snapshot.status != AuctionStatus.APPROVED.value:
        raise NotBiddableError(snapshot.status)

    if is_due(snapshot.auction_end_time, now):
        raise AuctionEndedError(snapshot.auction_end_time)

    if snapshot.seller_id is not None and bidder_id == snapshot.seller_id:
        raise SelfBidError(snapshot.seller_id)

    if amount <= snapshot.current_price:
        raise BidTooLowError(snapshot.current_price, amount)


def validate_bid(snapshot: AuctionSnapshot, bidder_id: int, amount: Any, now: datetime) -> Decimal:
    """
    Проверить ставку по снимку аукциона

    Проверки идут строго по порядку и прерываются на первой ошибке:
    сумма, статус, время, своя ставка, цена. Возвращает нормализованную
    сумму; при отказе выбрасывает BidRejectedError с кодом причины.
    """
    value = parse_amount(amount)
    check_bid_against(snapshot, bidder_id, value, now)
    return value

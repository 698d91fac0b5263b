"""
Исключения ядра аукциона

Каждое исключение несет стабильный код причины (code) и контекст,
достаточный клиенту, чтобы решить, повторять ли запрос.
"""
from datetime import datetime
from decimal import Decimal
from typing import Any, Optional


class AuctionError(Exception):
    """Базовое исключение аукциона"""

    code = "auction_error"
    retryable = False

    def __init__(self, message: str = "Ошибка аукциона"):
        self.message = message
        super().__init__(self.message)


class AuctionNotFoundError(AuctionError):
    """Аукцион не найден"""

    code = "not_found"

    def __init__(self, auction_id: int):
        self.auction_id = auction_id
        super().__init__(f"Аукцион не найден: {auction_id}")


class InvalidListingError(AuctionError):
    """Некорректные параметры лота"""

    code = "invalid_listing"

    def __init__(self, reason: str):
        self.reason = reason
        super().__init__(reason)


# =============================================================================
# Отклонение ставки
# =============================================================================


class BidRejectedError(AuctionError):
    """Ставка отклонена проверкой. Повторять без изменения нельзя"""

    code = "bid_rejected"


class InvalidAmountError(BidRejectedError):
    """Некорректная сумма ставки"""

    code = "invalid_amount"

    def __init__(self, amount: Any):
        self.amount = amount
        super().__init__(f"Некорректная сумма ставки: {amount}")


class NotBiddableError(BidRejectedError):
    """Аукцион не принимает ставки в текущем статусе"""

    code = "not_biddable"

    def __init__(self, status: str):
        self.status = status
        super().__init__(f"Аукцион не принимает ставки (статус: {status})")


class AuctionEndedError(BidRejectedError):
    """Время аукциона истекло"""

    code = "auction_ended"

    def __init__(self, auction_end_time: Optional[datetime]):
        self.auction_end_time = auction_end_time
        ends = auction_end_time.isoformat() if auction_end_time else "-"
        super().__init__(f"Аукцион завершен ({ends})")


class SelfBidError(BidRejectedError):
    """Продавец не может делать ставки на свой лот"""

    code = "self_bid"

    def __init__(self, seller_id: int):
        self.seller_id = seller_id
        super().__init__("Продавец не может делать ставки на свой лот")


class BidTooLowError(BidRejectedError):
    """Ставка не выше текущей цены"""

    code = "bid_too_low"

    def __init__(self, current_price: Decimal, amount: Decimal):
        self.current_price = current_price
        self.amount = amount
        super().__init__(
            f"Ставка должна быть выше текущей цены ({current_price}), предложено: {amount}"
        )


# =============================================================================
# Состояние и конкурентность
# =============================================================================


class InvalidTransitionError(AuctionError):
    """Переход состояния недопустим из текущего статуса"""

    code = "invalid_transition"

    def __init__(self, current_status: str, target_status: str):
        self.current_status = current_status
        self.target_status = target_status
        super().__init__(
            f"Недопустимый переход: {current_status} -> {target_status}"
        )


class TransientConflictError(AuctionError):
    """Конфликт конкурентной записи, можно повторить позже"""

    code = "transient_conflict"
    retryable = True

    def __init__(self, auction_id: int, attempts: int):
        self.auction_id = auction_id
        self.attempts = attempts
        super().__init__(
            f"Аукцион {auction_id} занят другими ставками, попробуйте еще раз "
            f"(попыток: {attempts})"
        )

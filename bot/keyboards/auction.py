"""Клавиатуры для аукционов"""
from decimal import Decimal
from aiogram.types import InlineKeyboardMarkup, InlineKeyboardButton
from aiogram.utils.keyboard import InlineKeyboardBuilder

# Шаг быстрых ставок поверх текущей цены
QUICK_INCREMENTS = (Decimal("10"), Decimal("50"), Decimal("100"))


def get_auction_keyboard(auction_id: int) -> InlineKeyboardMarkup:
    """Клавиатура для активного аукциона"""
    builder = InlineKeyboardBuilder()
    for increment in QUICK_INCREMENTS:
        builder.add(InlineKeyboardButton(
            text=f"+ {increment:,}",
            callback_data=f"bid:quick:{auction_id}:{increment}"
        ))
    builder.add(InlineKeyboardButton(
        text="📊 История ставок",
        callback_data=f"auction:bids:{auction_id}"
    ))
    # Каждая кнопка в своей строке
    builder.adjust(1)
    return builder.as_markup()

"""Клавиатуры бота"""
from .auction import get_auction_keyboard, QUICK_INCREMENTS
from .moderation import get_moderation_keyboard

__all__ = [
    "get_auction_keyboard",
    "get_moderation_keyboard",
    "QUICK_INCREMENTS",
]

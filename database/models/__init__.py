"""Модели базы данных"""
from .user import User
from .auction import Auction, AuctionStatus
from .bid import Bid

__all__ = [
    "User",
    "Auction",
    "AuctionStatus",
    "Bid",
]

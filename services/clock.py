"""Работа со временем аукционов (всегда UTC)"""
from datetime import datetime, timezone
from typing import Callable, Optional

Clock = Callable[[], datetime]


def utcnow() -> datetime:
    """Текущее время с явным указанием UTC"""
    return datetime.now(timezone.utc)


def as_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Привести время из БД к UTC (SQLite возвращает naive datetime)"""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def is_due(auction_end_time: Optional[datetime], now: datetime) -> bool:
    """Единое условие окончания торгов: now >= auction_end_time"""
    end = as_utc(auction_end_time)
    return end is not None and now >= end

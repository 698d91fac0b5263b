"""Модель аукциона"""
from sqlalchemy import Column, BigInteger, Integer, DateTime, ForeignKey, Numeric, String, Text, CheckConstraint
from sqlalchemy.sql import func
from sqlalchemy.orm import relationship
import enum
from decimal import Decimal
from database.connection import Base

# Точность денежных колонок: 10 знаков до запятой, 2 после
PRICE_PRECISION = 12
PRICE_SCALE = 2
MAX_PRICE = Decimal("9999999999.99")


class AuctionStatus(str, enum.Enum):
    """Статус аукциона"""
    PENDING = "pending"  # Ожидает модерации
    APPROVED = "approved"  # Одобрен, идут торги
    REJECTED = "rejected"  # Отклонен модератором
    ENDED = "ended"  # Время истекло, победитель не зафиксирован
    SOLD = "sold"  # Продан победителю
    UNSOLD = "unsold"  # Завершен без ставок


SETTLED_STATUSES = (AuctionStatus.SOLD.value, AuctionStatus.UNSOLD.value)


class Auction(Base):
    """Модель аукциона"""
    __tablename__ = "auctions"
    __table_args__ = (
        CheckConstraint("current_price >= starting_price", name="ck_auctions_price_floor"),
        CheckConstraint("total_bid_count >= 0", name="ck_auctions_bid_count"),
    )

    id = Column(BigInteger().with_variant(Integer, "sqlite"), primary_key=True, index=True)
    # NULL - лот площадки, а не продавца
    seller_id = Column(BigInteger, ForeignKey("users.id"), nullable=True, index=True)
    title = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    starting_price = Column(Numeric(PRICE_PRECISION, PRICE_SCALE), nullable=False)  # Начальная цена
    current_price = Column(Numeric(PRICE_PRECISION, PRICE_SCALE), nullable=False)  # Текущая цена
    highest_bidder_id = Column(BigInteger, ForeignKey("users.id"), nullable=True, index=True)
    total_bid_count = Column(Integer, default=0, nullable=False)
    status = Column(String(50), default=AuctionStatus.PENDING.value, nullable=False, index=True)
    duration_days = Column(Integer, nullable=False)  # Выбрана продавцом при создании
    auction_end_time = Column(DateTime(timezone=True), nullable=True, index=True)
    approved_at = Column(DateTime(timezone=True), nullable=True)
    settled_at = Column(DateTime(timezone=True), nullable=True)
    moderator_id = Column(BigInteger, ForeignKey("users.id"), nullable=True)
    rejection_reason = Column(Text, nullable=True)  # Причина отклонения
    # Увеличивается при каждой записи, используется для compare-and-swap
    version = Column(Integer, default=1, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    # Связи
    seller = relationship("User", foreign_keys=[seller_id])
    highest_bidder = relationship("User", foreign_keys=[highest_bidder_id])
    bids = relationship("Bid", back_populates="auction", order_by="Bid.id")

    def __repr__(self) -> str:
        return f"<Auction(id={self.id}, status='{self.status}', current_price={self.current_price})>"

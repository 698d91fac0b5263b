"""Модель ставки"""
from sqlalchemy import Column, BigInteger, Integer, DateTime, ForeignKey, Numeric
from sqlalchemy.sql import func
from sqlalchemy.orm import relationship
from database.connection import Base
from database.models.auction import PRICE_PRECISION, PRICE_SCALE


class Bid(Base):
    """Принятая ставка. Записи только добавляются, не изменяются"""
    __tablename__ = "bids"

    id = Column(BigInteger().with_variant(Integer, "sqlite"), primary_key=True, index=True)
    auction_id = Column(
        BigInteger,
        ForeignKey("auctions.id", ondelete="RESTRICT"),
        nullable=False,
        index=True
    )
    bidder_id = Column(BigInteger, ForeignKey("users.id"), nullable=False, index=True)
    amount = Column(Numeric(PRICE_PRECISION, PRICE_SCALE), nullable=False)  # Сумма ставки
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False, index=True)

    # Связи
    auction = relationship("Auction", back_populates="bids")
    bidder = relationship("User")

    def __repr__(self) -> str:
        return f"<Bid(id={self.id}, auction_id={self.auction_id}, amount={self.amount})>"

"""Модель пользователя"""
from sqlalchemy import Column, BigInteger, String, DateTime, Boolean, Integer
from sqlalchemy.sql import func
from database.connection import Base


class User(Base):
    """Модель пользователя Telegram"""
    __tablename__ = "users"
    
    id = Column(BigInteger().with_variant(Integer, "sqlite"), primary_key=True, index=True)
    telegram_id = Column(BigInteger, unique=True, nullable=False, index=True)
    username = Column(String(255), nullable=True)
    first_name = Column(String(255), nullable=True)
    last_name = Column(String(255), nullable=True)
    # Счетчик ставок для профиля, обновляется без гарантий после коммита ставки
    bids_count = Column(Integer, default=0, nullable=False)
    is_moderator = Column(Boolean, default=False, nullable=False)  # Является ли модератором
    is_active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), onupdate=func.now(), nullable=True)

    @property
    def display_name(self) -> str:
        """Имя для сообщений"""
        if self.username:
            return f"@{self.username}"
        return self.first_name or f"ID: {self.telegram_id}"

# finbot/models/user.py
# Declares Base, the account User and its Telegram link.

from __future__ import annotations

from datetime import datetime

from sqlalchemy import Boolean, BigInteger, Column, DateTime, ForeignKey, Integer, String
from sqlalchemy.orm import declarative_base, relationship

Base = declarative_base()


class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True)
    email = Column(String(255), unique=True, index=True, nullable=False)
    display_name = Column(String(100), nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)

    operations = relationship("Operation", back_populates="user")
    telegram_links = relationship("TelegramUser", back_populates="user")


class TelegramUser(Base):
    """Telegram account -> registered user; one active row per telegram_id."""

    __tablename__ = "telegram_users"

    id = Column(Integer, primary_key=True)
    telegram_id = Column(BigInteger, unique=True, index=True, nullable=False)
    chat_id = Column(BigInteger, nullable=False)
    first_name = Column(String(100), nullable=True)
    username = Column(String(100), nullable=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)
    linked_at = Column(DateTime, default=datetime.utcnow)

    user = relationship("User", back_populates="telegram_links")

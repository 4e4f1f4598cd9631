# finbot/models/operation.py

from __future__ import annotations

from datetime import datetime
from sqlalchemy import Column, Date, DateTime, ForeignKey, Integer, Numeric, String
from sqlalchemy.orm import relationship

from finbot.models.user import Base


class Operation(Base):
    __tablename__ = "operations"

    id = Column(Integer, primary_key=True)
    user_id = Column(Integer, ForeignKey("users.id"), index=True, nullable=False)
    amount = Column(Numeric(14, 2), nullable=False)
    category = Column(String(100), nullable=False)
    description = Column(String(255), nullable=True)
    type = Column(String(10), nullable=False)  # 'income' | 'expense'
    date = Column(Date, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow)

    user = relationship("User", back_populates="operations")

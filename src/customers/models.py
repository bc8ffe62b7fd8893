from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING, List

from sqlalchemy import Integer, String, DateTime, Index, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy.sql import func

from src.common.utils import utcnow
from src.db.main import Base

if TYPE_CHECKING:
    from src.transactions.models import Transaction


class Customer(Base):
    """Customer of a shop, resolved by exact name per user."""
    __tablename__ = 'customers'

    __table_args__ = (
        UniqueConstraint('user_id', 'name', name='uq_customers_user_id_name'),
        Index('idx_customers_user_id', 'user_id'),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    user_id: Mapped[int] = mapped_column(Integer, nullable=False)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow, server_default=func.now())
    transactions: Mapped[List['Transaction']] = relationship('Transaction', back_populates='customer')

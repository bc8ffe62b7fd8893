from __future__ import annotations

import enum
from datetime import datetime
from decimal import Decimal
from typing import TYPE_CHECKING, Any, Optional

from sqlalchemy import (
    Integer, String, DateTime, Text,
    ForeignKey, Index, CheckConstraint, Numeric, Enum as SAEnum
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy.sql import func

from src.common.utils import utcnow
from src.db.main import Base

if TYPE_CHECKING:
    from src.customers.models import Customer


class TransactionType(str, enum.Enum):
    SALE = "sale"
    PURCHASE = "purchase"
    EXPENSE = "expense"
    DEBT = "debt"
    LOAN = "loan"


class TransactionStatus(str, enum.Enum):
    PAID = "paid"
    UNPAID = "unpaid"


def _enum_values(enum_cls):
    return [member.value for member in enum_cls]


class Transaction(Base):
    """
    Confirmed business transaction.
    Only created from an explicit user confirmation of a pending candidate.
    """
    __tablename__ = 'transactions'

    __table_args__ = (
        CheckConstraint('amount >= 0', name='check_transaction_amount_positive'),
        Index('idx_transactions_user_id_created_at', 'user_id', 'created_at'),
        Index('idx_transactions_user_id_type', 'user_id', 'type'),
        {'comment': 'Transactions recorded through the chat assistant'}
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    user_id: Mapped[int] = mapped_column(Integer, nullable=False)
    type: Mapped[TransactionType] = mapped_column(SAEnum(TransactionType, name='transaction_type', values_callable=_enum_values), nullable=False)
    amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    # [{name, quantity, unit, unitPrice, totalPrice, itemId}]
    items: Mapped[list[dict[str, Any]]] = mapped_column(JSONB, nullable=False, default=list)
    customer_id: Mapped[Optional[int]] = mapped_column(Integer, ForeignKey('customers.id', ondelete='SET NULL'), nullable=True)
    customer_name: Mapped[Optional[str]] = mapped_column(String(255))
    occurred_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow)
    status: Mapped[TransactionStatus] = mapped_column(SAEnum(TransactionStatus, name='transaction_status', values_callable=_enum_values), nullable=False, default=TransactionStatus.PAID)
    conversation_text: Mapped[Optional[str]] = mapped_column(Text)
    extracted_data: Mapped[Optional[dict[str, Any]]] = mapped_column(JSONB, comment='Audit copy of the extracted candidate')
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow, server_default=func.now())
    customer: Mapped[Optional['Customer']] = relationship('Customer', back_populates='transactions')

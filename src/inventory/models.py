from __future__ import annotations

import enum
from datetime import datetime
from decimal import Decimal
from typing import List, Optional

from sqlalchemy import (
    Integer, String, DateTime, Text,
    ForeignKey, Index, UniqueConstraint, Numeric, Enum as SAEnum
)
from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy.sql import func

from src.common.utils import utcnow
from src.db.main import Base


class MovementType(str, enum.Enum):
    SALE = "sale"
    RESTOCK = "restock"
    SPOILAGE = "spoilage"
    ADJUSTMENT = "adjustment"


class InventoryItem(Base):
    """
    Current stock level of one product for one user.
    Quantity only changes together with a StockMovement row.
    """
    __tablename__ = 'inventory_items'

    __table_args__ = (
        UniqueConstraint('user_id', 'normalized_name', name='uq_inventory_user_id_normalized_name'),
        Index('idx_inventory_user_id', 'user_id'),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    user_id: Mapped[int] = mapped_column(Integer, nullable=False)
    item_name: Mapped[str] = mapped_column(String(255), nullable=False)
    normalized_name: Mapped[str] = mapped_column(String(255), nullable=False)
    current_quantity: Mapped[Decimal] = mapped_column(Numeric(12, 3), nullable=False, default=Decimal("0"), server_default="0")
    unit: Mapped[str] = mapped_column(String(32), nullable=False, default="pieces", server_default="pieces")
    buying_price: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False, default=Decimal("0"), server_default="0")
    selling_price: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False, default=Decimal("0"), server_default="0")
    supplier_name: Mapped[Optional[str]] = mapped_column(String(255))
    last_restocked_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))
    raw_input: Mapped[Optional[str]] = mapped_column(Text)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow, server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow, server_default=func.now(), onupdate=utcnow)
    movements: Mapped[List['StockMovement']] = relationship('StockMovement', back_populates='inventory_item')


class StockMovement(Base):
    """
    Append-only ledger of stock changes.
    new_quantity == previous_quantity + quantity for every row.
    """
    __tablename__ = 'stock_movements'

    __table_args__ = (
        Index('idx_stock_movements_inventory_id', 'inventory_id'),
        Index('idx_stock_movements_user_id_created_at', 'user_id', 'created_at'),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    inventory_id: Mapped[int] = mapped_column(Integer, ForeignKey('inventory_items.id', ondelete='CASCADE'), nullable=False)
    user_id: Mapped[int] = mapped_column(Integer, nullable=False)
    type: Mapped[MovementType] = mapped_column(SAEnum(MovementType, name='movement_type', values_callable=lambda enum_cls: [member.value for member in enum_cls]), nullable=False)
    quantity: Mapped[Decimal] = mapped_column(Numeric(12, 3), nullable=False, comment='Signed delta')
    previous_quantity: Mapped[Decimal] = mapped_column(Numeric(12, 3), nullable=False)
    new_quantity: Mapped[Decimal] = mapped_column(Numeric(12, 3), nullable=False)
    unit_price: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False, default=Decimal("0"), server_default="0")
    reason: Mapped[Optional[str]] = mapped_column(Text)
    supplier_name: Mapped[Optional[str]] = mapped_column(String(255))
    raw_input: Mapped[Optional[str]] = mapped_column(Text)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow, server_default=func.now())
    inventory_item: Mapped['InventoryItem'] = relationship('InventoryItem', back_populates='movements')

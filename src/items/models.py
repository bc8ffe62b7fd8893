from datetime import datetime
from decimal import Decimal

from sqlalchemy import Integer, String, DateTime, Numeric, Index, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.sql import func

from src.common.utils import utcnow
from src.db.main import Base


class Item(Base):
    """
    Catalog item (product a shop sells or buys).
    Created on first confirmation of a transaction mentioning it.
    """
    __tablename__ = 'items'

    __table_args__ = (
        UniqueConstraint('user_id', 'name', name='uq_items_user_id_name'),
        Index('idx_items_user_id', 'user_id'),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    user_id: Mapped[int] = mapped_column(Integer, nullable=False)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    unit: Mapped[str] = mapped_column(String(32), nullable=False, default="unit", server_default="unit")
    price: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False, default=Decimal("0"), server_default="0")
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow, server_default=func.now())

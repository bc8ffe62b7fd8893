from datetime import datetime
from typing import Any, Optional

from pydantic import Field

from src.common.schemas import CamelModel, PaginatedResponse
from src.extraction.schemas import TransactionTypeLiteral
from src.transactions.models import TransactionStatus, TransactionType


class TransactionItemData(CamelModel):
    name: str = Field(..., min_length=1)
    quantity: float = Field(default=1.0, ge=0)
    unit: str = "unit"
    unit_price: float = Field(default=0.0, ge=0)
    total_price: float = Field(default=0.0, ge=0)


class TransactionConfirmData(CamelModel):
    """
    Pending transaction as shown on the confirmation card and sent back on confirm.
    """
    type: TransactionTypeLiteral
    amount: float = Field(..., ge=0)
    items: list[TransactionItemData] = Field(default_factory=list)
    customer_name: Optional[str] = None
    date: Optional[str] = Field(None, description="ISO date (YYYY-MM-DD)")
    notes: Optional[str] = None
    user_message: Optional[str] = Field(None, description="Original chat message")
    conversation_text: Optional[str] = None
    extracted_data: Optional[dict[str, Any]] = None


class TransactionResponse(CamelModel):
    id: int
    user_id: int
    type: TransactionType
    amount: float
    items: list[dict[str, Any]]
    customer_id: Optional[int] = None
    customer_name: Optional[str] = None
    occurred_at: datetime
    status: TransactionStatus
    conversation_text: Optional[str] = None
    extracted_data: Optional[dict[str, Any]] = None
    created_at: datetime


class TransactionUpdate(CamelModel):
    """Fields the owner may change after confirmation (e.g. settling a debt)."""
    status: Optional[TransactionStatus] = Field(None, description="paid | unpaid")
    customer_name: Optional[str] = Field(None, min_length=1, max_length=255)


class TransactionListResponse(PaginatedResponse[TransactionResponse]):
    pass

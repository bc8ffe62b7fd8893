from datetime import datetime
from typing import Any, Optional

from pydantic import Field

from src.common.schemas import CamelModel
from src.extraction.schemas import ExtractedCandidate, ExtractedItem, PendingStockUpdate, TransactionTypeLiteral
from src.inventory.schemas import InventoryItemResponse, StockMovementResponse
from src.transactions.schemas import TransactionConfirmData, TransactionResponse


class MessageRequest(CamelModel):
    text: str = Field(default="", description="User message in English or Swahili")
    conversation_id: Optional[str] = Field(None, max_length=64)


class PendingTransaction(CamelModel):
    """Unsaved transaction shown to the user for confirmation."""
    type: TransactionTypeLiteral
    amount: float
    items: list[ExtractedItem]
    customer_name: Optional[str] = None
    date: Optional[str] = None
    notes: Optional[str] = None
    user_message: str
    conversation_id: str
    extracted_data: ExtractedCandidate


class MessageResponse(CamelModel):
    reply: str
    conversation_id: str
    pending_transaction: Optional[PendingTransaction] = None
    pending_stock: Optional[PendingStockUpdate] = None
    extracted_data: ExtractedCandidate
    timestamp: datetime


class ConfirmTransactionRequest(CamelModel):
    transaction_data: TransactionConfirmData
    conversation_id: Optional[str] = None


class ConfirmTransactionResponse(CamelModel):
    success: bool
    duplicate: bool
    message: Optional[str] = None
    transaction: TransactionResponse


class ConfirmStockRequest(CamelModel):
    stock_data: PendingStockUpdate
    conversation_id: Optional[str] = None
    raw_input: Optional[str] = Field(None, description="Original chat message, kept on the stock movement")


class ConfirmStockResponse(CamelModel):
    success: bool
    duplicate: bool
    message: Optional[str] = None
    inventory_item: Optional[InventoryItemResponse] = None
    movement: Optional[StockMovementResponse] = None


class ChatMessageResponse(CamelModel):
    id: int
    conversation_id: str
    sender: str
    message: str
    message_type: str
    processed_data: Optional[dict[str, Any]] = None
    message_metadata: Optional[dict[str, Any]] = None
    created_at: datetime


class ChatHistoryResponse(CamelModel):
    messages: list[ChatMessageResponse]
    total: int


class ConversationSummary(CamelModel):
    conversation_id: str
    title: str = Field(..., description="First message of the conversation, cut to 50 characters")
    last_message_at: datetime
    message_count: int


class ConversationListResponse(CamelModel):
    conversations: list[ConversationSummary]


class ConversationMessagesResponse(CamelModel):
    conversation_id: str
    messages: list[ChatMessageResponse]

from datetime import datetime
from typing import Any, Optional

from sqlalchemy import Integer, String, DateTime, Text, Boolean, Index
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.sql import func

from src.common.utils import utcnow
from src.db.main import Base


class ChatMessage(Base):
    """One message of a conversation between a user and the assistant."""
    __tablename__ = 'chat_messages'

    __table_args__ = (
        Index('idx_chat_messages_user_id_conversation_id', 'user_id', 'conversation_id', 'created_at'),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    user_id: Mapped[int] = mapped_column(Integer, nullable=False)
    conversation_id: Mapped[str] = mapped_column(String(64), nullable=False)
    sender: Mapped[str] = mapped_column(String(16), nullable=False, comment='user | ai')
    message: Mapped[str] = mapped_column(Text, nullable=False)
    message_type: Mapped[str] = mapped_column(String(16), nullable=False, default="text", server_default="text")
    processed_data: Mapped[Optional[dict[str, Any]]] = mapped_column(JSONB)
    # "metadata" is reserved on declarative models
    message_metadata: Mapped[Optional[dict[str, Any]]] = mapped_column('metadata', JSONB)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow, server_default=func.now())


class AIUsage(Base):
    """Per-call record of LLM usage for monitoring."""
    __tablename__ = 'ai_usage'

    __table_args__ = (
        Index('idx_ai_usage_user_id_created_at', 'user_id', 'created_at'),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    user_id: Mapped[int] = mapped_column(Integer, nullable=False)
    message_type: Mapped[str] = mapped_column(String(16), nullable=False, default="text")
    tokens_used: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    model: Mapped[Optional[str]] = mapped_column(String(100))
    response_time_ms: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    success: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    error_message: Mapped[Optional[str]] = mapped_column(Text)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow, server_default=func.now())

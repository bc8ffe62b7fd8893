from typing import Literal, Optional
from pydantic import Field
from src.common.schemas import AppBaseModel

class ChatTurn(AppBaseModel):
    """One previous message of the conversation passed to the LLM as context."""
    role: Literal["user", "assistant"] = Field(..., description="Author of the message")
    content: str = Field(..., description="Message text")

class LLMReply(AppBaseModel):
    """
    Result of a single LLM invocation.
    """
    reply: str = Field(..., description="Raw reply text")
    tokens_used: int = Field(default=0, ge=0, description="Prompt + completion tokens")
    model: Optional[str] = Field(None, description="Model identifier reported by the provider")

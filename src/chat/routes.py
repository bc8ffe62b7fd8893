from typing import Annotated, Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession
from src.db.main import get_session
from src.deps import CurrentUserId
from src.ai.client import GeminiLLMClient
from src.ai.dependencies import get_llm_client
from src.chat.schemas import (
    ChatHistoryResponse,
    ConfirmStockRequest,
    ConfirmStockResponse,
    ConfirmTransactionRequest,
    ConfirmTransactionResponse,
    ConversationListResponse,
    ConversationMessagesResponse,
    MessageRequest,
    MessageResponse,
)
from src.chat.services import ChatHistoryService, ChatService

router = APIRouter()

async def get_chat_service(
    session: Annotated[AsyncSession, Depends(get_session)],
    llm_client: Annotated[GeminiLLMClient, Depends(get_llm_client)],
) -> ChatService:
    return ChatService(session, llm_client)

ServiceDependency = Annotated[ChatService, Depends(get_chat_service)]

async def get_history_service(session: Annotated[AsyncSession, Depends(get_session)]) -> ChatHistoryService:
    return ChatHistoryService(session)

HistoryDependency = Annotated[ChatHistoryService, Depends(get_history_service)]

@router.post("/message", response_model=MessageResponse, status_code=status.HTTP_200_OK, summary="Send a chat message")
async def send_message(data: MessageRequest, user_id: CurrentUserId, service: ServiceDependency):
    """
    Reply to a chat message and propose (never save) a pending transaction
    and/or stock update extracted from it.
    """
    return await service.handle_message(user_id, data.text, data.conversation_id)

@router.post("/confirm-transaction", response_model=ConfirmTransactionResponse, status_code=status.HTTP_200_OK, summary="Confirm a pending transaction")
async def confirm_transaction(data: ConfirmTransactionRequest, user_id: CurrentUserId, service: ServiceDependency):
    return await service.confirm_transaction(user_id, data)

@router.post("/confirm-stock", response_model=ConfirmStockResponse, status_code=status.HTTP_200_OK, summary="Confirm a pending stock update")
async def confirm_stock(data: ConfirmStockRequest, user_id: CurrentUserId, service: ServiceDependency):
    return await service.confirm_stock(user_id, data)

@router.get("/history", response_model=ChatHistoryResponse, status_code=status.HTTP_200_OK, summary="Latest chat messages")
async def get_history(user_id: CurrentUserId, service: HistoryDependency, conversation_id: Optional[str] = Query(None, alias="conversationId", max_length=64), limit: int = Query(50, ge=1, le=200)):
    messages = await service.get_history(user_id, conversation_id=conversation_id, limit=limit)
    return {"messages": messages, "total": len(messages)}

@router.get("/conversations", response_model=ConversationListResponse, status_code=status.HTTP_200_OK, summary="List my conversations")
async def get_conversations(user_id: CurrentUserId, service: HistoryDependency):
    return {"conversations": await service.list_conversations(user_id)}

@router.get("/conversations/{conversation_id}", response_model=ConversationMessagesResponse, status_code=status.HTTP_200_OK, summary="Messages of one conversation")
async def get_conversation(conversation_id: str, user_id: CurrentUserId, service: HistoryDependency):
    messages = await service.get_conversation(user_id, conversation_id)
    return {"conversation_id": conversation_id, "messages": messages}

@router.delete("/conversations/{conversation_id}", status_code=status.HTTP_204_NO_CONTENT, summary="Delete a conversation")
async def delete_conversation(conversation_id: str, user_id: CurrentUserId, service: HistoryDependency):
    await service.delete_conversation(user_id, conversation_id)
    return None

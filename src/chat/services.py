import logging
import time
from typing import Any, Optional
from uuid import uuid4

from sqlalchemy import delete, func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from src.config import settings
from src.ai.classifier import classify_message
from src.ai.client import GeminiLLMClient
from src.ai.exceptions import LLMServiceError
from src.ai.schemas import ChatTurn
from src.chat.exceptions import EmptyMessageError
from src.chat.models import AIUsage, ChatMessage
from src.chat.schemas import (
    ConfirmStockRequest,
    ConfirmStockResponse,
    ConfirmTransactionRequest,
    ConfirmTransactionResponse,
    MessageResponse,
    PendingTransaction,
)
from src.common.exceptions import ResourceNotFoundError
from src.common.services import AppService
from src.common.utils import utcnow
from src.extraction.intent import is_strong_intent
from src.extraction.prompts import APOLOGY_REPLY, ASSISTANT_PROMPT
from src.extraction.schemas import ExtractedCandidate, PendingStockUpdate
from src.extraction.service import TransactionExtractor
from src.extraction.stock import StockExtractor
from src.inventory.schemas import InventoryItemResponse, StockMovementResponse
from src.inventory.services import InventoryService
from src.transactions.schemas import TransactionResponse
from src.transactions.services import TransactionService

logger = logging.getLogger(__name__)

CONVERSATION_LIST_LIMIT = 50
CONVERSATION_TITLE_LENGTH = 50


class ChatService:
    """
    Orchestrates one chat turn and the two confirmation flows.

    A chat turn never writes business records: it only proposes a pending
    transaction and/or a pending stock update. Records are created by
    ``confirm_transaction`` / ``confirm_stock`` once the user accepts.
    """

    def __init__(
        self,
        session: AsyncSession,
        llm_client: GeminiLLMClient,
        transaction_service: Optional[TransactionService] = None,
        inventory_service: Optional[InventoryService] = None,
    ):
        self.session = session
        self.llm_client = llm_client
        self.inventory_service = inventory_service or InventoryService(session)
        self.transaction_service = transaction_service or TransactionService(
            session, inventory_service=self.inventory_service
        )
        self.extractor = TransactionExtractor(llm_client)
        self.stock_extractor = StockExtractor(llm_client)

    async def _recent_history(self, user_id: int, conversation_id: str) -> list[ChatTurn]:
        """Last CHAT_HISTORY_LIMIT messages of the conversation, oldest first."""
        stmt = (
            select(ChatMessage)
            .where(
                ChatMessage.user_id == user_id,
                ChatMessage.conversation_id == conversation_id,
            )
            .order_by(ChatMessage.created_at.desc(), ChatMessage.id.desc())
            .limit(settings.CHAT_HISTORY_LIMIT)
        )
        result = await self.session.execute(stmt)
        messages = list(result.scalars().all())
        messages.reverse()
        return [
            ChatTurn(role="user" if message.sender == "user" else "assistant", content=message.message)
            for message in messages
        ]

    async def _track_usage(
        self,
        user_id: int,
        tokens_used: int,
        model: Optional[str],
        response_time_ms: int,
        error_message: Optional[str],
    ) -> None:
        """Best effort: a failing insert is logged and never fails the request."""
        try:
            self.session.add(AIUsage(
                user_id=user_id,
                message_type="text",
                tokens_used=tokens_used,
                model=model or settings.GEMINI_MODEL,
                response_time_ms=response_time_ms,
                success=error_message is None,
                error_message=error_message,
            ))
            await self.session.commit()
        except SQLAlchemyError as e:
            await self.session.rollback()
            logger.warning(f"AI usage tracking failed for user {user_id}: {str(e)}")

    async def _pending_stock(self, message: str) -> Optional[PendingStockUpdate]:
        try:
            if await classify_message(self.llm_client, message) != "stock":
                return None
            return await self.stock_extractor.extract(message)
        except Exception as e:
            logger.error(f"Stock processing error: {str(e)}", exc_info=True)
            return None

    def _pending_transaction(
        self,
        message: str,
        conversation_id: str,
        candidate: ExtractedCandidate,
    ) -> Optional[PendingTransaction]:
        if not is_strong_intent(message, candidate):
            return None
        return PendingTransaction(
            type=candidate.transaction_type,
            amount=candidate.total_amount,
            items=candidate.items,
            customer_name=candidate.customer_name,
            date=candidate.date,
            notes=candidate.notes,
            user_message=message,
            conversation_id=conversation_id,
            extracted_data=candidate,
        )

    async def handle_message(
        self,
        user_id: int,
        text: Optional[str],
        conversation_id: Optional[str] = None,
    ) -> MessageResponse:
        """
        Process one user chat message.

        Flow:
        1. Conversational reply (last CHAT_HISTORY_LIMIT messages as context);
           an LLM failure yields a fixed apology instead of an error
        2. Transaction extraction (LLM with heuristic fallback)
        3. Stock classification and extraction
        4. Intent gate decides whether a pending transaction is offered
        5. Persist both chat messages, then record AI usage

        Raises:
            EmptyMessageError: If the text is empty or whitespace
        """
        message = (text or "").strip()
        if not message:
            raise EmptyMessageError()

        started = time.perf_counter()
        conversation_id = conversation_id or str(uuid4())
        history = await self._recent_history(user_id, conversation_id)

        error_message = None
        tokens_used = 0
        model = None
        llm_started = time.perf_counter()
        try:
            llm_reply = await self.llm_client.invoke(
                message,
                ASSISTANT_PROMPT,
                history=history,
                temperature=settings.LLM_CHAT_TEMPERATURE,
            )
            reply = llm_reply.reply
            tokens_used = llm_reply.tokens_used
            model = llm_reply.model
        except LLMServiceError as e:
            logger.warning(f"Conversational reply failed for user {user_id}: {str(e)}")
            reply = APOLOGY_REPLY
            error_message = str(e)
        llm_response_time_ms = int((time.perf_counter() - llm_started) * 1000)

        candidate = await self.extractor.extract(message)
        pending_stock = await self._pending_stock(message)
        pending_transaction = self._pending_transaction(message, conversation_id, candidate)

        processed_data = candidate.model_dump(mode="json", by_alias=True)
        self.session.add(ChatMessage(
            user_id=user_id,
            conversation_id=conversation_id,
            sender="user",
            message=message,
            message_type="text",
            processed_data=processed_data,
        ))
        self.session.add(ChatMessage(
            user_id=user_id,
            conversation_id=conversation_id,
            sender="ai",
            message=reply,
            message_type="text",
            processed_data=processed_data,
            message_metadata={
                "model": model or settings.GEMINI_MODEL,
                "processingTimeMs": int((time.perf_counter() - started) * 1000),
                "confidence": candidate.confidence,
            },
        ))
        try:
            await self.session.commit()
        except SQLAlchemyError:
            await self.session.rollback()
            raise

        await self._track_usage(user_id, tokens_used, model, llm_response_time_ms, error_message)

        return MessageResponse(
            reply=reply,
            conversation_id=conversation_id,
            pending_transaction=pending_transaction,
            pending_stock=pending_stock,
            extracted_data=candidate,
            timestamp=utcnow(),
        )

    async def confirm_transaction(self, user_id: int, request: ConfirmTransactionRequest) -> ConfirmTransactionResponse:
        result = await self.transaction_service.confirm(user_id, request.transaction_data)
        return ConfirmTransactionResponse(
            success=True,
            duplicate=result.duplicate,
            message="Transaction already recorded." if result.duplicate else "Transaction recorded.",
            transaction=TransactionResponse.model_validate(result.transaction),
        )

    async def confirm_stock(self, user_id: int, request: ConfirmStockRequest) -> ConfirmStockResponse:
        result = await self.inventory_service.confirm_stock(
            user_id,
            request.stock_data,
            raw_input=request.raw_input,
        )
        return ConfirmStockResponse(
            success=True,
            duplicate=result.duplicate,
            message="Stock update already recorded." if result.duplicate else "Stock updated.",
            inventory_item=InventoryItemResponse.model_validate(result.inventory_item),
            movement=StockMovementResponse.model_validate(result.movement) if result.movement else None,
        )


class ChatHistoryService(AppService[ChatMessage]):
    """Read back and delete stored conversations of one user."""

    def __init__(self, session: AsyncSession):
        super().__init__(model=ChatMessage, session=session)

    async def get_history(self, user_id: int, conversation_id: Optional[str] = None, limit: int = 50) -> list[ChatMessage]:
        """Latest ``limit`` messages (optionally of one conversation), oldest first."""
        stmt = select(ChatMessage).where(ChatMessage.user_id == user_id)
        if conversation_id:
            stmt = stmt.where(ChatMessage.conversation_id == conversation_id)
        stmt = stmt.order_by(ChatMessage.created_at.desc(), ChatMessage.id.desc()).limit(limit)
        result = await self.session.execute(stmt)
        messages = list(result.scalars().all())
        messages.reverse()
        return messages

    async def list_conversations(self, user_id: int, limit: int = CONVERSATION_LIST_LIMIT) -> list[dict[str, Any]]:
        """
        One summary per conversation, most recently active first.

        The title is the first message of the conversation.
        """
        grouped = (
            select(
                ChatMessage.conversation_id,
                func.min(ChatMessage.id).label("first_id"),
                func.max(ChatMessage.id).label("last_id"),
                func.max(ChatMessage.created_at).label("last_message_at"),
                func.count(ChatMessage.id).label("message_count"),
            )
            .where(ChatMessage.user_id == user_id)
            .group_by(ChatMessage.conversation_id)
            .subquery()
        )
        stmt = (
            select(
                grouped.c.conversation_id,
                grouped.c.last_message_at,
                grouped.c.message_count,
                ChatMessage.message,
            )
            .join(ChatMessage, ChatMessage.id == grouped.c.first_id)
            .order_by(grouped.c.last_message_at.desc(), grouped.c.last_id.desc())
            .limit(limit)
        )
        rows = (await self.session.execute(stmt)).all()
        return [
            {
                "conversation_id": row.conversation_id,
                "title": row.message[:CONVERSATION_TITLE_LENGTH],
                "last_message_at": row.last_message_at,
                "message_count": row.message_count,
            }
            for row in rows
        ]

    async def get_conversation(self, user_id: int, conversation_id: str) -> list[ChatMessage]:
        stmt = (
            select(ChatMessage)
            .where(
                ChatMessage.user_id == user_id,
                ChatMessage.conversation_id == conversation_id,
            )
            .order_by(ChatMessage.created_at, ChatMessage.id)
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def delete_conversation(self, user_id: int, conversation_id: str) -> int:
        """
        Delete every message of a conversation.

        Raises:
            ResourceNotFoundError: If the user has no message in that conversation
        """
        stmt = delete(ChatMessage).where(
            ChatMessage.user_id == user_id,
            ChatMessage.conversation_id == conversation_id,
        )
        try:
            result = await self.session.execute(stmt)
            if result.rowcount == 0:
                raise ResourceNotFoundError("Conversation", conversation_id)
            await self.session.commit()
        except SQLAlchemyError:
            await self.session.rollback()
            raise

        logger.info(f"Deleted conversation {conversation_id} ({result.rowcount} messages) for user {user_id}")
        return result.rowcount

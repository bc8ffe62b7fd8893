import logging
import re
from typing import Literal, Optional

from src.config import settings
from src.ai.client import GeminiLLMClient
from src.ai.exceptions import LLMServiceError
from src.extraction.lexicon import detect_stock_action, has_intent_keyword, mentions_stock
from src.extraction.prompts import MESSAGE_CLASSIFIER_PROMPT

logger = logging.getLogger(__name__)

MessageLabel = Literal["stock", "transaction"]

_LABEL_RE = re.compile(r"[a-z]+")


def classify_heuristically(message: str) -> Optional[MessageLabel]:
    """Keyword-only classification used when the model gives no usable label."""
    text = (message or "").lower()
    action = detect_stock_action(text)
    if action and (mentions_stock(text) or not has_intent_keyword(text)):
        return "stock"
    if has_intent_keyword(text):
        return "transaction"
    return None


async def classify_message(llm_client: GeminiLLMClient, message: str) -> Optional[MessageLabel]:
    """
    Label a message as "stock", "transaction" or None (neither).

    The model is asked first; adapter failures and unknown labels fall back to
    the lexicon heuristic.
    """
    try:
        result = await llm_client.invoke(
            message,
            MESSAGE_CLASSIFIER_PROMPT,
            temperature=settings.LLM_EXTRACTION_TEMPERATURE,
        )
    except LLMServiceError as e:
        logger.info(f"Classifier LLM unavailable, using keywords: {str(e)}")
        return classify_heuristically(message)

    match = _LABEL_RE.search(result.reply.lower())
    label = match.group(0) if match else ""
    if label in ("stock", "transaction"):
        return label
    if label == "none":
        return None

    logger.warning(f"Unknown classifier label '{result.reply[:40]}', using keywords")
    return classify_heuristically(message)

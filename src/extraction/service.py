import json
import logging
from typing import Optional

from pydantic import ValidationError

from src.config import settings
from src.ai.client import GeminiLLMClient
from src.ai.exceptions import LLMServiceError
from src.extraction.fallback import extract_fallback
from src.extraction.heuristics import apply_type_heuristics
from src.extraction.normalization import normalize
from src.extraction.prompts import TRANSACTION_EXTRACTION_PROMPT
from src.extraction.schemas import (
    ExtractedCandidate,
    ExtractionResult,
    FallbackExtraction,
    LLMTransactionExtraction,
    ParsedExtraction,
)

logger = logging.getLogger(__name__)


def find_json_object(text: str) -> Optional[str]:
    """
    Return the first balanced ``{...}`` span of ``text``.

    Braces inside JSON strings are ignored. Returns None when no opening
    brace exists or the first object is never closed.
    """
    if not text:
        return None
    start = text.find("{")
    if start == -1:
        return None

    depth = 0
    in_string = False
    escaped = False
    for index in range(start, len(text)):
        char = text[index]
        if in_string:
            if escaped:
                escaped = False
            elif char == "\\":
                escaped = True
            elif char == '"':
                in_string = False
            continue
        if char == '"':
            in_string = True
        elif char == "{":
            depth += 1
        elif char == "}":
            depth -= 1
            if depth == 0:
                return text[start:index + 1]
    return None


def parse_llm_reply(reply: str, message: str, model: Optional[str] = None) -> ExtractionResult:
    """
    Turn a raw LLM reply into a tagged extraction result.

    Any problem (no JSON object, invalid JSON, shape mismatch) yields a
    ``FallbackExtraction`` built from the original message.
    """
    span = find_json_object(reply)
    if span is None:
        return FallbackExtraction(raw=extract_fallback(message), reason="no JSON object in reply")

    try:
        data = json.loads(span)
    except json.JSONDecodeError as e:
        return FallbackExtraction(raw=extract_fallback(message), reason=f"invalid JSON: {e.msg}")

    if not isinstance(data, dict):
        return FallbackExtraction(raw=extract_fallback(message), reason="JSON is not an object")

    try:
        LLMTransactionExtraction.model_validate(data)
    except ValidationError as e:
        return FallbackExtraction(
            raw=extract_fallback(message),
            reason=f"schema mismatch ({e.error_count()} errors)",
        )

    return ParsedExtraction(raw=data, model=model)


class TransactionExtractor:
    """
    Field extractor: message -> normalized ExtractedCandidate.

    Flow:
    1. Ask the LLM (no conversation history) for strict JSON
    2. Parse the reply, fall back to the regex extractor on any failure
    3. Normalize, then let keyword heuristics override the transaction type

    ``extract`` never raises.
    """

    def __init__(self, llm_client: GeminiLLMClient):
        self.llm_client = llm_client

    async def extract_raw(self, message: str) -> ExtractionResult:
        try:
            result = await self.llm_client.invoke(
                message,
                TRANSACTION_EXTRACTION_PROMPT,
                history=None,
                temperature=settings.LLM_EXTRACTION_TEMPERATURE,
                json_mode=True,
            )
        except LLMServiceError as e:
            return FallbackExtraction(raw=extract_fallback(message), reason=f"LLM unavailable: {str(e)}")
        except Exception as e:
            logger.error(f"Unexpected LLM adapter error: {str(e)}", exc_info=True)
            return FallbackExtraction(raw=extract_fallback(message), reason="LLM adapter error")

        return parse_llm_reply(result.reply, message, model=result.model)

    async def extract(self, message: str) -> ExtractedCandidate:
        extraction = await self.extract_raw(message)
        if isinstance(extraction, FallbackExtraction):
            logger.info(f"Using heuristic extraction: {extraction.reason}")

        candidate = normalize(extraction.raw)
        return apply_type_heuristics(message, candidate)

import logging
import time
from typing import Optional, Sequence

import google.generativeai as genai
from google.api_core import exceptions as google_exceptions
from tenacity import retry, stop_after_attempt, wait_exponential, retry_if_exception

from src.config import settings
from src.ai.exceptions import LLMServiceError
from src.ai.schemas import ChatTurn, LLMReply

logger = logging.getLogger(__name__)


def _should_retry_gemini_error(exception: Exception) -> bool:
    """
    Decide whether a Gemini error is transient.

    Not retried:
    - InvalidArgument (bad request)
    - PermissionDenied (bad API key)

    Retried:
    - ResourceExhausted (429 Too Many Requests)
    - ServiceUnavailable (503)
    - InternalServerError (500)
    - DeadlineExceeded (timeout)
    """
    if isinstance(exception, (
        google_exceptions.ResourceExhausted,
        google_exceptions.ServiceUnavailable,
        google_exceptions.InternalServerError,
        google_exceptions.DeadlineExceeded,
        google_exceptions.Aborted,
    )):
        logger.warning(f"Gemini API error (will retry): {str(exception)}")
        return True

    return False


def _to_gemini_contents(user_message: str, history: Optional[Sequence[ChatTurn]]) -> list[dict]:
    contents = [
        {
            "role": "user" if turn.role == "user" else "model",
            "parts": [turn.content],
        }
        for turn in (history or [])
        if turn.content
    ]
    contents.append({"role": "user", "parts": [user_message]})
    return contents


class GeminiLLMClient:
    """
    Thin adapter over the Gemini API.

    One call = one system prompt + optional conversation history + the user
    message. Every provider failure surfaces as ``LLMServiceError``, callers
    decide whether to fall back.
    """

    def __init__(self, api_key: Optional[str] = None, model_name: Optional[str] = None):
        self.api_key = api_key if api_key is not None else settings.GEMINI_API_KEY
        self.model_name = model_name or settings.GEMINI_MODEL
        if self.api_key:
            genai.configure(api_key=self.api_key)

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=1, max=4),
        retry=retry_if_exception(_should_retry_gemini_error),
        reraise=True
    )
    async def _generate(
        self,
        contents: list[dict],
        system_prompt: str,
        temperature: float,
        json_mode: bool,
    ):
        model = genai.GenerativeModel(self.model_name, system_instruction=system_prompt)
        generation_config = genai.GenerationConfig(
            temperature=temperature,
            max_output_tokens=settings.LLM_MAX_OUTPUT_TOKENS,
            response_mime_type="application/json" if json_mode else "text/plain",
        )
        return await model.generate_content_async(
            contents,
            generation_config=generation_config,
            request_options={"timeout": settings.GEMINI_TIMEOUT},
        )

    async def invoke(
        self,
        user_message: str,
        system_prompt: str,
        history: Optional[Sequence[ChatTurn]] = None,
        temperature: Optional[float] = None,
        json_mode: bool = False,
    ) -> LLMReply:
        """
        Send one message to the model and return its text reply.

        Args:
            user_message: Latest user input
            system_prompt: Instructions for the model
            history: Previous turns, oldest first
            temperature: Sampling temperature (defaults to LLM_CHAT_TEMPERATURE)
            json_mode: Ask the provider for an application/json reply

        Raises:
            LLMServiceError: Provider not configured, call failed or reply was empty/blocked
        """
        if not self.api_key:
            raise LLMServiceError("LLM provider is not configured (GEMINI_API_KEY missing)")

        if temperature is None:
            temperature = settings.LLM_CHAT_TEMPERATURE

        started = time.perf_counter()
        try:
            response = await self._generate(
                _to_gemini_contents(user_message, history),
                system_prompt,
                temperature,
                json_mode,
            )
            # .text raises ValueError when the candidate was blocked
            text = response.text
        except google_exceptions.GoogleAPIError as e:
            logger.error(f"Gemini API call failed: {str(e)}")
            raise LLMServiceError(f"Gemini API error: {str(e)}") from e
        except ValueError as e:
            logger.warning(f"Gemini returned no usable text: {str(e)}")
            raise LLMServiceError("Gemini returned an empty or blocked reply") from e

        if not text or not text.strip():
            raise LLMServiceError("Gemini returned an empty reply")

        usage = getattr(response, "usage_metadata", None)
        tokens_used = int(getattr(usage, "total_token_count", 0) or 0)

        logger.debug(
            f"Gemini reply in {int((time.perf_counter() - started) * 1000)}ms "
            f"({tokens_used} tokens)"
        )
        return LLMReply(reply=text.strip(), tokens_used=tokens_used, model=self.model_name)

"""
Dependency Injection for the LLM adapter.

Tests override ``get_llm_client`` with a stub exposing the same ``invoke`` coroutine.
"""
from functools import lru_cache

from src.ai.client import GeminiLLMClient


@lru_cache(maxsize=1)
def get_llm_client() -> GeminiLLMClient:
    """Process-wide Gemini client (stateless, safe to share)."""
    return GeminiLLMClient()

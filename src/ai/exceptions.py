from src.common.exceptions import AppError

class AIError(AppError):
    """Base exception for AI module."""
    pass

class LLMServiceError(AIError):
    """Raised when the LLM provider call fails (network, quota, blocked or empty reply)."""
    pass

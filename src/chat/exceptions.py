from src.common.exceptions import AppError


class ChatError(AppError):
    """Base exception for chat module."""
    pass


class EmptyMessageError(ChatError):
    def __init__(self):
        self.message = "Message text is required"
        super().__init__(self.message)

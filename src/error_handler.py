import logging

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse

from src.common.exceptions import (
    ResourceNotFoundError,
    ResourceAccessDeniedError,
)
from src.ai.exceptions import LLMServiceError
from src.chat.exceptions import EmptyMessageError
from src.inventory.exceptions import InvalidStockQuantityError, StockConflictError

logger = logging.getLogger(__name__)


def exception_handler(app: FastAPI) -> None:
    """
    Registers global exception handlers for the FastAPI application.
    Translates domain exceptions into HTTP responses.
    """

    @app.exception_handler(ResourceNotFoundError)
    async def resource_not_found_handler(request: Request, exc: ResourceNotFoundError):
        return JSONResponse(
            status_code=status.HTTP_404_NOT_FOUND,
            content={"detail": exc.message},
        )

    @app.exception_handler(ResourceAccessDeniedError)
    async def resource_access_denied_handler(request: Request, exc: ResourceAccessDeniedError):
        return JSONResponse(
            status_code=status.HTTP_403_FORBIDDEN,
            content={"detail": exc.message},
        )

    @app.exception_handler(EmptyMessageError)
    async def empty_message_handler(request: Request, exc: EmptyMessageError):
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content={"detail": exc.message},
        )

    @app.exception_handler(InvalidStockQuantityError)
    async def invalid_stock_quantity_handler(request: Request, exc: InvalidStockQuantityError):
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content={"detail": exc.message},
        )

    @app.exception_handler(StockConflictError)
    async def stock_conflict_handler(request: Request, exc: StockConflictError):
        return JSONResponse(
            status_code=status.HTTP_409_CONFLICT,
            content={"detail": exc.message},
        )

    @app.exception_handler(LLMServiceError)
    async def llm_service_error_handler(request: Request, exc: LLMServiceError):
        logger.error(f"LLM error reached the HTTP layer: {str(exc)}")
        return JSONResponse(
            status_code=status.HTTP_502_BAD_GATEWAY,
            content={"detail": "AI Service temporarily unavailable"},
        )

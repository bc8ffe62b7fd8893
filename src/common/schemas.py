from typing import Generic, TypeVar
from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

T = TypeVar("T")

class AppBaseModel(BaseModel):
    """
    Global base model for the application.
    Centralizes Pydantic configuration (strict mode, stripping, etc.).
    """
    model_config = ConfigDict(
        strict=True,                # No implicit type coercion (ex: "1" != 1)
        str_strip_whitespace=True,  # Auto-strip whitespace from strings
        validate_assignment=True,   # Validate values even when setting attributes after creation
        from_attributes=True,       # Enable ORM mode (SQLAlchemy -> Pydantic)
        frozen=False                # Allow mutation (default)
    )

class CamelModel(AppBaseModel):
    """
    Base for payloads exchanged with the web client.

    The client speaks camelCase JSON and sends numbers as strings now and then,
    so these models accept both field spellings and run in lax mode.
    """
    model_config = ConfigDict(
        strict=False,
        alias_generator=to_camel,
        populate_by_name=True,
    )

class PaginatedResponse(CamelModel, Generic[T]):
    """
    Generic wrapper for paginated responses.

    Usage:
        class TransactionListResponse(PaginatedResponse[TransactionResponse]): pass
    """
    items: list[T] = Field(
        ...,
        description="List of items for the current page"
    )

    total: int = Field(
        ...,
        ge=0,
        description="Total number of items matching the query"
    )

    skip: int = Field(
        ...,
        ge=0,
        description="Number of skipped items"
    )

    limit: int = Field(
        ...,
        ge=1,
        le=100,
        description="Number of items per page"
    )

from typing import Literal, Optional, Union

from pydantic import ConfigDict, Field

from src.common.schemas import AppBaseModel, CamelModel

TransactionTypeLiteral = Literal["sale", "purchase", "expense", "debt", "loan"]
StockActionLiteral = Literal["add_stock", "remove_stock", "update_stock"]


class ExtractedItem(CamelModel):
    """Single line item of a candidate, already normalized."""
    name: str = Field(..., description="Lowercased, trimmed item name")
    quantity: float = Field(default=1.0, ge=0, description="Quantity")
    unit: str = Field(default="unit", description="Canonical unit name")
    unit_price: float = Field(default=0.0, ge=0, description="Price per unit")
    total_price: float = Field(default=0.0, ge=0, description="unit_price * quantity")


class ExtractedCandidate(CamelModel):
    """
    Normalized, unsaved transaction candidate.

    Produced by the normalizer from either the LLM reply or the heuristic
    fallback. ``confidence`` is always a float in [0, 1] at this point.
    """
    transaction_type: Optional[TransactionTypeLiteral] = Field(None, description="None means 'not a transaction'")
    items: list[ExtractedItem] = Field(..., min_length=1)
    total_amount: float = Field(default=0.0, ge=0)
    customer_name: Optional[str] = None
    date: Optional[str] = Field(None, description="ISO date (YYYY-MM-DD)")
    notes: Optional[str] = None
    payment_status: Optional[Literal["paid", "unpaid"]] = None
    confidence: float = Field(default=0.0, ge=0.0, le=1.0)


# Lax schema for the LLM reply: validates shape only, numbers may arrive as strings.
class LLMExtractedItem(AppBaseModel):
    model_config = ConfigDict(strict=False, extra="ignore")

    name: Optional[str] = None
    quantity: Optional[Union[float, str]] = None
    unit: Optional[str] = None
    unitPrice: Optional[Union[float, str]] = None


class LLMTransactionExtraction(AppBaseModel):
    model_config = ConfigDict(strict=False, extra="ignore")

    transactionType: Optional[str] = None
    items: Optional[list[LLMExtractedItem]] = None
    totalAmount: Optional[Union[float, str]] = None
    customerName: Optional[str] = None
    date: Optional[str] = None
    notes: Optional[str] = None
    paymentStatus: Optional[str] = None
    confidence: Optional[Union[float, str]] = None


class ParsedExtraction(AppBaseModel):
    """The LLM reply contained a JSON object matching the extraction schema."""
    model_config = ConfigDict(strict=False)

    source: Literal["llm"] = "llm"
    raw: dict
    model: Optional[str] = None


class FallbackExtraction(AppBaseModel):
    """The heuristic extractor produced the raw candidate."""
    model_config = ConfigDict(strict=False)

    source: Literal["fallback"] = "fallback"
    raw: dict
    reason: str


ExtractionResult = Union[ParsedExtraction, FallbackExtraction]


class PendingStockUpdate(CamelModel):
    action_type: StockActionLiteral
    item_name: str = Field(..., min_length=1)
    quantity: float = Field(..., ge=0)
    unit: str = "pieces"
    buying_price_per_unit: float = Field(default=0.0, ge=0)
    selling_price: float = Field(default=0.0, ge=0)
    supplier_name: Optional[str] = None


class LLMStockExtraction(AppBaseModel):
    model_config = ConfigDict(strict=False, extra="ignore")

    actionType: Optional[str] = None
    itemName: Optional[str] = None
    quantity: Optional[Union[float, str]] = None
    unit: Optional[str] = None
    buyingPricePerUnit: Optional[Union[float, str]] = None
    sellingPrice: Optional[Union[float, str]] = None
    supplierName: Optional[str] = None

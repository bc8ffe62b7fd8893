import json
import logging
import re
from typing import Optional

from pydantic import ValidationError

from src.config import settings
from src.ai.client import GeminiLLMClient
from src.ai.exceptions import LLMServiceError
from src.extraction.fallback import WORD_RE, extract_amount, extract_quantities, NUMBER_RE
from src.extraction.lexicon import (
    canonical_unit,
    detect_stock_action,
    find_product,
    has_per_unit_marker,
)
from src.extraction.normalization import parse_number
from src.extraction.prompts import STOCK_EXTRACTION_PROMPT
from src.extraction.schemas import LLMStockExtraction, PendingStockUpdate
from src.extraction.service import find_json_object

logger = logging.getLogger(__name__)

SUPPLIER_RE = re.compile(r"\b(?:from|kutoka\s+kwa|kutoka)\s+([A-Z][a-z]+(?:\s+[A-Z][a-z]+)?)")
# Words that can sit between a quantity and the product name ("20 kg of rice")
_FILLER_WORDS = {"of", "ya", "za", "la", "more", "zaidi", "new", "extra"}
STOCK_ACTION_TYPES = ("add_stock", "remove_stock", "update_stock")


def _clean_name(value: Optional[str]) -> Optional[str]:
    if not isinstance(value, str):
        return None
    cleaned = " ".join(value.split()).lower()
    return cleaned or None


def _name_after(text: str, position: int) -> Optional[str]:
    for word in WORD_RE.findall(text[position:])[:3]:
        lowered = word.lower()
        if lowered in _FILLER_WORDS:
            continue
        return lowered
    return None


def pending_from_llm(data: LLMStockExtraction) -> Optional[PendingStockUpdate]:
    """Build a pending update from the LLM JSON; None without a valid action and item name."""
    action = (data.actionType or "").strip().lower()
    item_name = _clean_name(data.itemName)
    if action not in STOCK_ACTION_TYPES or not item_name:
        return None

    return PendingStockUpdate(
        action_type=action,
        item_name=item_name,
        quantity=max(parse_number(data.quantity, default=0.0), 0.0),
        unit=canonical_unit(data.unit) if data.unit else "pieces",
        buying_price_per_unit=max(parse_number(data.buyingPricePerUnit, default=0.0), 0.0),
        selling_price=max(parse_number(data.sellingPrice, default=0.0), 0.0),
        supplier_name=(data.supplierName or "").strip() or None,
    )


def extract_stock_fallback(message: str) -> Optional[PendingStockUpdate]:
    """
    Keyword / regex reading of a stock command.

    Reads the action verb, the quantity and unit, the product name and an
    optional "from Supplier". Returns None when no stock verb is present.

    Examples:
        >>> extract_stock_fallback("Restock 20 kg onions from Mama Njeri").supplier_name
        'Mama Njeri'
    """
    text = message if isinstance(message, str) else ""
    lowered = text.lower()

    action = detect_stock_action(lowered)
    if action is None:
        return None

    quantities = extract_quantities(text)
    if quantities:
        first = quantities[0]
        quantity, unit = first.quantity, first.unit
        item_name = first.name or _name_after(text, first.end)
    else:
        number = NUMBER_RE.search(text)
        quantity = parse_number(number.group(1), default=0.0) if number else 0.0
        unit = "pieces"
        item_name = _name_after(text, number.end()) if number else None

    item_name = find_product(lowered) if not item_name else item_name
    if not item_name:
        return None

    price = extract_amount(text, quantities) if quantities else 0.0
    if price and has_per_unit_marker(lowered):
        buying_price = price
    elif price and quantity:
        buying_price = round(price / quantity, 2)
    else:
        buying_price = 0.0

    supplier = SUPPLIER_RE.search(text)

    return PendingStockUpdate(
        action_type=action,
        item_name=item_name,
        quantity=quantity,
        unit=unit if unit != "unit" else "pieces",
        buying_price_per_unit=buying_price if action == "add_stock" else 0.0,
        selling_price=0.0,
        supplier_name=supplier.group(1) if supplier else None,
    )


class StockExtractor:
    """
    Stock command extractor: message -> PendingStockUpdate or None.

    Same shape as the transaction extractor: LLM JSON first, regex fallback on
    any adapter or parse failure. Never raises.
    """

    def __init__(self, llm_client: GeminiLLMClient):
        self.llm_client = llm_client

    async def extract(self, message: str) -> Optional[PendingStockUpdate]:
        try:
            result = await self.llm_client.invoke(
                message,
                STOCK_EXTRACTION_PROMPT,
                temperature=settings.LLM_EXTRACTION_TEMPERATURE,
                json_mode=True,
            )
        except LLMServiceError as e:
            logger.info(f"Stock LLM unavailable, using regex fallback: {str(e)}")
            return extract_stock_fallback(message)

        span = find_json_object(result.reply)
        if span is None:
            return extract_stock_fallback(message)
        try:
            data = LLMStockExtraction.model_validate(json.loads(span))
        except (json.JSONDecodeError, ValidationError) as e:
            logger.info(f"Unparsable stock reply, using regex fallback: {str(e)}")
            return extract_stock_fallback(message)

        return pending_from_llm(data) or extract_stock_fallback(message)

"""
Normalization of raw extraction output into an ExtractedCandidate.

Both extraction paths (LLM JSON and heuristic fallback) produce a loosely
typed dict with camelCase keys. Everything here is total: missing or invalid
values degrade to safe defaults instead of raising.
"""
import math
from datetime import date
from typing import Any, Optional

from src.extraction.lexicon import TRANSACTION_TYPES
from src.extraction.schemas import ExtractedCandidate, ExtractedItem

PLACEHOLDER_ITEM_NAME = "unspecified item"
PLACEHOLDER_CONFIDENCE = 0.4
DEFAULT_TRANSACTION_TYPE = "sale"

CATEGORICAL_CONFIDENCE = {
    "high": 0.9,
    "medium": 0.7,
    "low": 0.4,
}

TYPE_ALIASES = {
    "income": "sale",
    "sales": "sale",
    "purchases": "purchase",
    "expenses": "expense",
    "debts": "debt",
    "loans": "loan",
}


def parse_number(value: Any, default: float = 0.0) -> float:
    """
    Tolerant numeric parse.

    Accepts ints, floats and numeric strings (with optional comma grouping).
    Booleans, NaN, infinities and anything unparsable return ``default``.

    Examples:
        >>> parse_number("1,200")
        1200.0
        >>> parse_number("abc", 1.0)
        1.0
    """
    if value is None or isinstance(value, bool):
        return default
    if isinstance(value, (int, float)):
        number = float(value)
    elif isinstance(value, str):
        cleaned = value.strip().replace(",", "")
        if not cleaned:
            return default
        try:
            number = float(cleaned)
        except ValueError:
            return default
    else:
        return default
    if math.isnan(number) or math.isinf(number):
        return default
    return number


def coerce_confidence(value: Any) -> float:
    """
    Map any upstream confidence representation to a float in [0, 1].

    Numbers (or numeric strings) are clamped, the categorical labels
    high/medium/low map to 0.9/0.7/0.4, anything else is 0.
    """
    if isinstance(value, str):
        label = value.strip().lower()
        if label in CATEGORICAL_CONFIDENCE:
            return CATEGORICAL_CONFIDENCE[label]
    number = parse_number(value, default=0.0)
    return min(max(number, 0.0), 1.0)


def normalize_transaction_type(raw: dict) -> Optional[str]:
    if "transactionType" in raw and raw["transactionType"] is None:
        return None
    value = raw.get("transactionType")
    if not isinstance(value, str) or not value.strip():
        return DEFAULT_TRANSACTION_TYPE
    lowered = value.strip().lower()
    lowered = TYPE_ALIASES.get(lowered, lowered)
    if lowered in TRANSACTION_TYPES:
        return lowered
    if lowered in ("null", "none"):
        return None
    return DEFAULT_TRANSACTION_TYPE


def _clean_text(value: Any) -> Optional[str]:
    if not isinstance(value, str):
        return None
    cleaned = value.strip()
    return cleaned or None


def _normalize_date(value: Any) -> Optional[str]:
    text = _clean_text(value)
    if not text:
        return None
    try:
        return date.fromisoformat(text[:10]).isoformat()
    except ValueError:
        return None


def _normalize_payment_status(value: Any) -> Optional[str]:
    text = _clean_text(value)
    if text and text.lower() in ("paid", "unpaid"):
        return text.lower()
    return None


def normalize_item(raw_item: dict) -> ExtractedItem:
    """
    Normalize a single raw item.

    ``total_price`` is always recomputed from ``unit_price * quantity``, a total
    supplied by the raw item is ignored.
    """
    name = raw_item.get("name")
    name = name.strip().lower() if isinstance(name, str) else ""
    quantity = max(parse_number(raw_item.get("quantity"), default=1.0), 0.0) or 1.0
    unit = raw_item.get("unit")
    unit = unit.strip().lower() if isinstance(unit, str) and unit.strip() else "unit"
    unit_price = max(parse_number(raw_item.get("unitPrice"), default=0.0), 0.0)

    return ExtractedItem(
        name=name or "item",
        quantity=quantity,
        unit=unit,
        unit_price=unit_price,
        total_price=round(unit_price * quantity, 2),
    )


def normalize(raw: Any) -> ExtractedCandidate:
    """
    Enforce the canonical candidate shape on a raw extraction dict.

    Rules:
    - numeric fields parsed tolerantly, negatives clamped to 0
    - item names and units lowercased and trimmed
    - per-item total recomputed as unit_price * quantity
    - confidence coerced to a float in [0, 1]
    - empty item list -> one "unspecified item" placeholder carrying the total;
      for a transaction candidate the confidence is then forced to 0.4
    """
    if not isinstance(raw, dict):
        raw = {}

    transaction_type = normalize_transaction_type(raw)
    total_amount = max(parse_number(raw.get("totalAmount"), default=0.0), 0.0)
    confidence = coerce_confidence(raw.get("confidence"))

    raw_items = raw.get("items")
    items = [
        normalize_item(raw_item)
        for raw_item in (raw_items if isinstance(raw_items, list) else [])
        if isinstance(raw_item, dict)
    ]

    if items:
        items_total = round(sum(item.total_price for item in items), 2)
        if total_amount <= 0 and items_total > 0:
            total_amount = items_total
    else:
        items = [
            ExtractedItem(
                name=PLACEHOLDER_ITEM_NAME,
                quantity=1.0,
                unit="unit",
                unit_price=total_amount,
                total_price=total_amount,
            )
        ]
        if transaction_type is not None:
            confidence = PLACEHOLDER_CONFIDENCE

    return ExtractedCandidate(
        transaction_type=transaction_type,
        items=items,
        total_amount=total_amount,
        customer_name=_clean_text(raw.get("customerName")),
        date=_normalize_date(raw.get("date")),
        notes=_clean_text(raw.get("notes")),
        payment_status=_normalize_payment_status(raw.get("paymentStatus")),
        confidence=confidence,
    )

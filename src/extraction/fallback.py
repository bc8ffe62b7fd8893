"""
Deterministic extraction used when the LLM is unavailable or its reply
cannot be parsed.

Pure functions only: no I/O, never raises. The output is a raw candidate dict
(same shape as the LLM JSON) that still goes through ``normalize()``.
"""
import re
from dataclasses import dataclass
from typing import Optional

from src.extraction.lexicon import (
    CURRENCY_WORDS,
    FALLBACK_SCAN_ORDER,
    UNIT_WORDS,
    canonical_unit,
    family_matches,
    find_product,
    has_per_unit_marker,
)

NUMBER_RE = re.compile(r"(?<![\d.,])(\d+(?:,\d{3})*(?:\.\d+)?)(?!\d)")
QUANTITY_RE = re.compile(
    r"(?<![\w.])(\d+(?:\.\d+)?)\s*(" + "|".join(sorted(UNIT_WORDS, key=len, reverse=True)) + r")\b",
    re.IGNORECASE,
)
CUSTOMER_RE = re.compile(r"\b(?:to|from|for)\s+([A-Z][a-z]+(?:\s+[A-Z][a-z]+)?)")
_CURRENCY_ALT = "|".join(CURRENCY_WORDS)
CURRENCY_BEFORE_RE = re.compile(r"\b(?:" + _CURRENCY_ALT + r")\.?\s*$", re.IGNORECASE)
CURRENCY_AFTER_RE = re.compile(r"^\s*(?:" + _CURRENCY_ALT + r")\b", re.IGNORECASE)
WORD_RE = re.compile(r"[^\W\d_]+", re.UNICODE)

NAME_WINDOW_WORDS = 3


@dataclass
class QuantityMatch:
    start: int
    end: int
    quantity: float
    unit: str
    name: Optional[str]


def detect_transaction_type(text: str) -> str:
    """
    Default to "sale"; families are scanned purchase, expense, debt, loan and
    the last match wins, so loan keywords take ultimate precedence.
    """
    transaction_type = "sale"
    for candidate in FALLBACK_SCAN_ORDER:
        if family_matches(candidate, text):
            transaction_type = candidate
    return transaction_type


def _is_currency_amount(text: str, start: int, end: int) -> bool:
    return bool(
        CURRENCY_BEFORE_RE.search(text[max(0, start - 12):start])
        or CURRENCY_AFTER_RE.search(text[end:end + 12])
    )


def _parse_amount(token: str) -> float:
    return float(token.replace(",", ""))


def _name_near(text: str, start: int, end: int) -> Optional[str]:
    # "3 kg onions": the word right after the unit belongs to this quantity
    following = text[end:].split()[:1]
    if following:
        name = find_product(following[0])
        if name:
            return name
    before = " ".join(text[:start].split()[-NAME_WINDOW_WORDS:])
    name = find_product(before)
    if name:
        return name
    after = " ".join(text[end:].split()[:NAME_WINDOW_WORDS])
    return find_product(after)


def _unit_quantities(text: str) -> list[QuantityMatch]:
    return [
        QuantityMatch(
            start=match.start(),
            end=match.end(),
            quantity=float(match.group(1)),
            unit=canonical_unit(match.group(2)),
            name=_name_near(text, match.start(), match.end()),
        )
        for match in QUANTITY_RE.finditer(text)
    ]


def _product_quantities(text: str) -> list[QuantityMatch]:
    """Bare counts next to a known product word: "10 tomatoes", "nyanya 10"."""
    matches = []
    for match in NUMBER_RE.finditer(text):
        if _is_currency_amount(text, match.start(), match.end()):
            continue
        next_word = WORD_RE.search(text, match.end())
        following = text[match.end():next_word.start()] if next_word else ""
        name = None
        if next_word and not following.strip():
            name = find_product(next_word.group(0))
        if not name:
            previous_words = WORD_RE.findall(text[:match.start()])
            gap = text[:match.start()].rstrip()
            if previous_words and gap.lower().endswith(previous_words[-1].lower()):
                name = find_product(previous_words[-1])
        if name:
            matches.append(
                QuantityMatch(
                    start=match.start(),
                    end=match.end(),
                    quantity=_parse_amount(match.group(1)),
                    unit="pieces",
                    name=name,
                )
            )
    return matches


def extract_quantities(text: str) -> list[QuantityMatch]:
    return _unit_quantities(text) or _product_quantities(text)


def extract_amount(text: str, quantities: list[QuantityMatch]) -> float:
    """
    Pick the quoted price.

    Preference: first number attached to a currency word, then the first number
    not already consumed as a quantity. Returns 0 when every number is a quantity.
    """
    consumed = [(q.start, q.end) for q in quantities]
    free_numbers = []
    for match in NUMBER_RE.finditer(text):
        if any(start <= match.start() < end for start, end in consumed):
            continue
        if _is_currency_amount(text, match.start(), match.end()):
            return _parse_amount(match.group(1))
        free_numbers.append(match)
    if free_numbers:
        return _parse_amount(free_numbers[0].group(1))
    return 0.0


def extract_customer_name(text: str) -> Optional[str]:
    match = CUSTOMER_RE.search(text)
    return match.group(1) if match else None


def extract_fallback(message: str) -> dict:
    """
    Regex / keyword extraction of a raw transaction candidate.

    Pricing rule: with a per-unit marker ("each", "per", "kila", "kila moja")
    the quoted number is the unit price of every item. Otherwise it is the
    total of the whole message, shared evenly between the items. Either way
    ``totalAmount`` is the sum of the item totals.

    Examples:
        >>> extract_fallback("Nimeuza nyanya 10 kwa shilingi 200")["items"][0]["unitPrice"]
        20.0
    """
    text = message if isinstance(message, str) else ""
    lowered = text.lower()

    transaction_type = detect_transaction_type(lowered)
    per_unit = has_per_unit_marker(lowered)
    quantities = extract_quantities(text)
    price = extract_amount(text, quantities)

    items = []
    for match in quantities:
        if per_unit:
            unit_price = price
            total_price = unit_price * match.quantity
        else:
            total_price = price / len(quantities)
            unit_price = total_price / match.quantity if match.quantity else 0.0
        items.append({
            "name": match.name or "item",
            "quantity": match.quantity,
            "unit": match.unit,
            "unitPrice": unit_price,
            "totalPrice": total_price,
        })

    if not items:
        items.append({
            "name": find_product(lowered) or "item",
            "quantity": 1,
            "unit": "unit",
            "unitPrice": price,
            "totalPrice": price,
        })

    return {
        "transactionType": transaction_type,
        "items": items,
        "totalAmount": sum(item["totalPrice"] for item in items),
        "customerName": extract_customer_name(text),
        "date": None,
        "notes": None,
        "confidence": "medium",
    }

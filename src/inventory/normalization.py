import re
from typing import Optional

from src.extraction.lexicon import PRODUCTS

_PUNCTUATION_RE = re.compile(r"[^\w\s]", re.UNICODE)


def _singular(word: str) -> str:
    if word.endswith("oes"):
        return word[:-2]
    if word.endswith("s") and not word.endswith("ss"):
        return word[:-1]
    return word


def normalize_item_name(name: Optional[str]) -> str:
    """
    Matching key for inventory lookups.

    Rules:
    1. Lowercase, punctuation removed, whitespace collapsed
    2. Dictionary products (English or Swahili, singular or plural) map to
       their canonical English name

    Examples:
        >>> normalize_item_name("  Nyanya ")
        'tomatoes'
        >>> normalize_item_name("Tomato")
        'tomatoes'
        >>> normalize_item_name("Maize Flour (2kg)")
        'maize flour 2kg'
    """
    if not name:
        return ""

    cleaned = _PUNCTUATION_RE.sub(" ", name.lower())
    cleaned = " ".join(cleaned.split())
    if not cleaned:
        return ""

    if cleaned in PRODUCTS:
        return PRODUCTS[cleaned]
    singular = _singular(cleaned)
    if singular in PRODUCTS:
        return PRODUCTS[singular]
    return cleaned

"""
Bilingual (English / Swahili) lexicon shared by the extraction pipeline.

A single source of truth for every keyword list used by:
- the heuristic fallback extractor (transaction type, units, amounts, products)
- the type-heuristic overrider (transaction family precedence)
- the intent-strength gate (explicit transaction verbs)
- the stock classifier / extractor (stock action verbs)

Matching rules:
- English terms match at the start of a word ("owe" matches "owes" and "owed"
  but not "lower").
- Swahili terms match anywhere in the text. Swahili verbs take subject and
  tense prefixes ("ni-me-uza", "a-li-uza"), so the stem must be found inside
  longer words.
"""
import re
from dataclasses import dataclass
from functools import lru_cache
from typing import Iterable, Optional


EN = "en"
SW = "sw"


@dataclass(frozen=True)
class Keyword:
    term: str
    language: str
    # True for explicit transaction verbs that alone justify surfacing a
    # pending transaction; False for contextual cues that only help typing.
    intent: bool = True


@dataclass(frozen=True)
class KeywordFamily:
    transaction_type: str
    keywords: tuple[Keyword, ...]

    def matches(self, text: str) -> bool:
        return any(keyword_in_text(keyword, text) for keyword in self.keywords)


def _kw(terms: Iterable[str], language: str, intent: bool = True) -> tuple[Keyword, ...]:
    return tuple(Keyword(term=term, language=language, intent=intent) for term in terms)


SALE = KeywordFamily(
    transaction_type="sale",
    keywords=(
        *_kw(["sold", "received"], EN),
        *_kw(["sale", "sell"], EN, intent=False),
        *_kw(["nimeuza", "niliuza", "niuza", "umeduza", "uza", "mauzo"], SW),
    ),
)

PURCHASE = KeywordFamily(
    transaction_type="purchase",
    keywords=(
        *_kw(["bought"], EN),
        *_kw(["buy", "purchase"], EN, intent=False),
        *_kw(["nilinunua", "nimenunua", "numenua", "nunua"], SW),
        *_kw(["stoki"], SW, intent=False),
    ),
)

EXPENSE = KeywordFamily(
    transaction_type="expense",
    keywords=(
        *_kw(["expense", "spent", "paid"], EN),
        *_kw(["rent", "salary", "transport"], EN, intent=False),
        *_kw(["matumizi", "gharama", "nililipia", "nimelipa", "lipa"], SW),
        *_kw(["umeme", "maji"], SW, intent=False),
    ),
)

DEBT = KeywordFamily(
    transaction_type="debt",
    keywords=(
        *_kw(["debt", "owe"], EN),
        *_kw(["deni", "anadai", "nadai", "wadeni"], SW),
    ),
)

LOAN = KeywordFamily(
    transaction_type="loan",
    keywords=(
        *_kw(["loan"], EN),
        *_kw(["mkopo"], SW),
    ),
)

TRANSACTION_FAMILIES: dict[str, KeywordFamily] = {
    family.transaction_type: family
    for family in (SALE, PURCHASE, EXPENSE, DEBT, LOAN)
}

TRANSACTION_TYPES = tuple(TRANSACTION_FAMILIES)

# Fallback extractor: default "sale", families scanned in this order, last match wins.
FALLBACK_SCAN_ORDER = ("purchase", "expense", "debt", "loan")

# Type overrider: first matching family wins.
OVERRIDE_PRECEDENCE = ("loan", "debt", "sale", "purchase", "expense")

PER_UNIT_MARKER_RE = re.compile(r"\b(each|per|kila\s+moja|kila)\b", re.IGNORECASE)

CURRENCY_WORDS = ("ksh", "kes", "shilingi", "shillings", "shilling", "bob")

# Raw unit word -> canonical unit
UNIT_WORDS: dict[str, str] = {
    "kg": "kg",
    "kgs": "kg",
    "kilo": "kg",
    "kilos": "kg",
    "kilogram": "kg",
    "kilograms": "kg",
    "pieces": "pieces",
    "piece": "pieces",
    "pcs": "pieces",
    "liters": "liters",
    "liter": "liters",
    "litres": "liters",
    "litre": "liters",
    "units": "unit",
    "unit": "unit",
    "bags": "bags",
    "bag": "bags",
}

# Product word (English singular stem or Swahili) -> canonical English name
PRODUCTS: dict[str, str] = {
    # English
    "tomato": "tomatoes",
    "onion": "onions",
    "cabbage": "cabbage",
    "carrot": "carrots",
    "potato": "potatoes",
    "spinach": "spinach",
    "kale": "kale",
    "lettuce": "lettuce",
    "pepper": "peppers",
    "bean": "beans",
    # Kiswahili
    "nyanya": "tomatoes",
    "vitunguu": "onions",
    "kabichi": "cabbage",
    "karoti": "carrots",
    "viazi": "potatoes",
    "sukuma": "kale",
    "pilipili": "peppers",
    "kunde": "beans",
    "maharagwe": "beans",
}

STOCK_ACTIONS: dict[str, tuple[Keyword, ...]] = {
    "add_stock": (
        *_kw(["add stock", "added", "restock", "stock up", "received stock", "new stock"], EN),
        *_kw(["ongeza", "nimeongeza", "imeingia", "zimeingia"], SW),
    ),
    "remove_stock": (
        *_kw(["remove", "spoiled", "spoilt", "damaged", "expired", "rotten", "throw away", "threw away"], EN),
        *_kw(["ondoa", "imeharibika", "zimeharibika", "zimeoza", "imeoza"], SW),
    ),
    "update_stock": (
        *_kw(["update stock", "set stock", "stock is", "i have", "remaining"], EN),
        *_kw(["nina ", "zimebaki", "imebaki", "stoki ni"], SW),
    ),
}

STOCK_NOUNS = (
    *_kw(["stock", "inventory"], EN),
    *_kw(["stoki", "bidhaa"], SW),
)


@lru_cache(maxsize=None)
def _pattern_for(keyword: Keyword) -> re.Pattern:
    escaped = re.escape(keyword.term).replace(r"\ ", r"\s+")
    if keyword.language == EN:
        return re.compile(r"\b" + escaped, re.IGNORECASE)
    return re.compile(escaped, re.IGNORECASE)


def keyword_in_text(keyword: Keyword, text: str) -> bool:
    return _pattern_for(keyword).search(text or "") is not None


def family_matches(transaction_type: str, text: str) -> bool:
    return TRANSACTION_FAMILIES[transaction_type].matches(text)


def intent_keywords() -> tuple[Keyword, ...]:
    """Explicit transaction verbs of every family (the intent gate's view)."""
    return tuple(
        keyword
        for family in TRANSACTION_FAMILIES.values()
        for keyword in family.keywords
        if keyword.intent
    )


def has_intent_keyword(text: str) -> bool:
    return any(keyword_in_text(keyword, text) for keyword in intent_keywords())


def has_per_unit_marker(text: str) -> bool:
    return PER_UNIT_MARKER_RE.search(text or "") is not None


def canonical_unit(raw_unit: Optional[str]) -> str:
    if not raw_unit:
        return "unit"
    normalized = raw_unit.strip().lower()
    if normalized in UNIT_WORDS:
        return UNIT_WORDS[normalized]
    if "kilo" in normalized:
        return "kg"
    if "piece" in normalized:
        return "pieces"
    if "liter" in normalized or "litre" in normalized:
        return "liters"
    if "bag" in normalized:
        return "bags"
    return "unit"


def find_product(text: str) -> Optional[str]:
    """Return the canonical product name of the first dictionary word found in ``text``."""
    lowered = (text or "").lower()
    for key, value in PRODUCTS.items():
        if key in lowered:
            return value
    return None


def detect_stock_action(text: str) -> Optional[str]:
    for action, keywords in STOCK_ACTIONS.items():
        if any(keyword_in_text(keyword, text) for keyword in keywords):
            return action
    return None


def mentions_stock(text: str) -> bool:
    return any(keyword_in_text(keyword, text) for keyword in STOCK_NOUNS)

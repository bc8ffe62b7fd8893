from typing import Optional

from src.config import settings
from src.extraction.lexicon import has_intent_keyword
from src.extraction.schemas import ExtractedCandidate


def is_strong_intent(
    message: str,
    candidate: ExtractedCandidate,
    threshold: Optional[float] = None,
) -> bool:
    """
    Decide whether a candidate should be offered to the user as a pending transaction.

    Requires a transaction type and a positive amount, plus either a confidence
    above the threshold or an explicit transaction verb in the raw message. The
    message is re-scanned here instead of trusting the upstream type, so a
    hallucinated transaction in small talk is not promoted.
    """
    if threshold is None:
        threshold = settings.INTENT_CONFIDENCE_THRESHOLD

    if candidate.transaction_type is None or candidate.total_amount <= 0:
        return False

    return candidate.confidence > threshold or has_intent_keyword(message or "")

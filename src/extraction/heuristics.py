from src.extraction.lexicon import OVERRIDE_PRECEDENCE, family_matches
from src.extraction.schemas import ExtractedCandidate


def detect_override_type(message: str):
    """Return the first transaction family (loan > debt > sale > purchase > expense) found in the message."""
    text = (message or "").lower()
    for transaction_type in OVERRIDE_PRECEDENCE:
        if family_matches(transaction_type, text):
            return transaction_type
    return None


def apply_type_heuristics(message: str, candidate: ExtractedCandidate) -> ExtractedCandidate:
    """
    Override the classifier's transaction type with a keyword signal from the
    original message. Keywords win even when the classifier said "not a
    transaction"; without a keyword the candidate is returned unchanged.
    """
    override = detect_override_type(message)
    if override is None or override == candidate.transaction_type:
        return candidate
    return candidate.model_copy(update={"transaction_type": override})

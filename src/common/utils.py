from datetime import datetime, timezone


def utcnow() -> datetime:
    """Timezone-aware current UTC time (column defaults, dedup windows)."""
    return datetime.now(timezone.utc)

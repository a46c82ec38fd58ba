import time
from datetime import datetime, timezone


def utc_now_iso() -> str:
    """Return current UTC time as ISO 8601 string."""
    return datetime.now(timezone.utc).isoformat()


def now_ms() -> int:
    """Return wall-clock milliseconds since the epoch."""
    return time.time_ns() // 1_000_000

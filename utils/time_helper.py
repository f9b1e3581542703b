"""
Epoch-millisecond clock shared by OTP tokens, the session registry and the audit log.
Call through the module (time_helper.now_ms()) so tests can move the clock.
"""
import time
from datetime import datetime, timezone


def now_ms() -> int:
    """Current time in milliseconds since the epoch."""
    return int(time.time() * 1000)


def date_str(timestamp_ms: int) -> str:
    """UTC calendar date (YYYY-MM-DD) of an epoch-ms timestamp."""
    return datetime.fromtimestamp(timestamp_ms / 1000, tz=timezone.utc).strftime('%Y-%m-%d')


def format_timestamp(timestamp_ms) -> str:
    """Human readable UTC timestamp, e.g. '05 Mar 2026, 14:02:11'."""
    if not timestamp_ms:
        return 'N/A'
    return datetime.fromtimestamp(timestamp_ms / 1000, tz=timezone.utc).strftime('%d %b %Y, %H:%M:%S')

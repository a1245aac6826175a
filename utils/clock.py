"""
utils/clock.py
--------------
Timezone-aware current time. Every timestamp stored by the app is UTC.
"""

from datetime import datetime, timezone


def utcnow() -> datetime:
    return datetime.now(timezone.utc)

"""
models/alert.py
---------------
Domain model for alerts: a trace that an item was already notified.
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Optional

NOTICE = 3


@dataclass
class Alert:
    itemtype: str
    items_id: int
    type: int = NOTICE
    date: Optional[datetime] = None
    id: Optional[int] = None

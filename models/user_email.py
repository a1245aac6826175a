"""
models/user_email.py
--------------------
Domain model for the email addresses owned by a user.
"""

from dataclasses import dataclass
from typing import Optional


@dataclass
class UserEmail:
    """One address of a user; at most one per user has `is_default` set."""
    users_id: int
    email: str
    is_default: bool = False
    id: Optional[int] = None

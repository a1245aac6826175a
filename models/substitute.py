"""
models/substitute.py
--------------------
Domain model for validator substitutes (delegations between users).
"""

from dataclasses import dataclass
from typing import Optional


@dataclass
class ValidatorSubstitute:
    """users_id (the delegator) lets users_id_substitute act on its behalf."""
    users_id: int
    users_id_substitute: int
    id: Optional[int] = None

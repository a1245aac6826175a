"""
services/substitute_service.py
------------------------------
Delegation between users: who may act for whom, and when.
"""

from datetime import datetime

from repositories.substitute_repo import SubstituteRepository
from services.user_service import UserService
from utils.clock import utcnow
from utils.logger import get_logger

logger = get_logger(__name__)


def is_substitution_active(start: datetime | None, end: datetime | None, now: datetime | None = None) -> bool:
    """True while `now` lies in [start, end]; a missing bound is open."""
    now = now or utcnow()
    if start is not None and now < start:
        return False
    if end is not None and now > end:
        return False
    return True


class SubstituteService:
    """Handles substitutes (users acting on behalf of a delegator)."""

    def __init__(self, repo: SubstituteRepository | None = None, user_service: UserService | None = None):
        self.repo = repo or SubstituteRepository()
        self.user_service = user_service or UserService()

    def get_substitutes(self, users_id: int) -> list[int]:
        return self.repo.get_substitutes(users_id)

    def get_delegators(self, users_id: int) -> list[int]:
        return self.repo.get_delegators(users_id)

    def update_substitutes(self, users_id: int, substitutes: list[int] | int) -> dict:
        """
        Replace the substitute set of a user.

        Args:
            users_id: The delegator.
            substitutes: New substitute ids. 0 or an empty list clears the set.

        Returns:
            Dict with 'success', 'substitutes' and 'messages'.
        """
        if isinstance(substitutes, int):
            substitutes = [substitutes] if substitutes else []
        if users_id in substitutes:
            message = "A user cannot be their own substitute."
            logger.warning(f"User #{users_id}: {message}")
            return {"success": False, "substitutes": self.get_substitutes(users_id), "messages": [message]}

        cleaned = list(dict.fromkeys(s for s in substitutes if s))
        self.repo.replace(users_id, cleaned)
        return {"success": True, "substitutes": cleaned, "messages": []}

    def is_substitute_of(self, users_id: int, delegator_id: int, use_date_range: bool = True,
                         now: datetime | None = None) -> bool:
        """
        True if `users_id` may act for `delegator_id`.

        With `use_date_range`, the delegator's substitution window must also
        contain `now`.
        """
        if not self.repo.exists(delegator_id, users_id):
            return False
        if not use_date_range:
            return True

        delegator = self.user_service.get_by_id(delegator_id)
        if delegator is None:
            return False
        return is_substitution_active(
            delegator.substitution_start_date, delegator.substitution_end_date, now
        )

    def set_substitution_period(self, users_id: int, start, end) -> dict:
        """Set the window in which substitutes may act; '' or None leaves a bound open."""
        return self.user_service.update(users_id, {
            "substitution_start_date": start,
            "substitution_end_date": end,
        })

"""
services/password_expiration_service.py
---------------------------------------
Periodic task: warn local users whose password is about to expire and
disable the ones whose password expired past the lock delay.
"""

from datetime import datetime, timedelta
from enum import IntEnum
from typing import Callable

from models.alert import NOTICE, Alert
from models.user import User
from repositories.alert_repo import AlertRepository
from repositories.user_repo import UserRepository
from services.password_policy import DISABLED, PasswordPolicy
from utils.clock import utcnow
from utils.logger import get_logger

logger = get_logger(__name__)

# Sends the expiration notice to one user; True once delivered.
Notifier = Callable[[User], bool]


class CronResult(IntEnum):
    PARTIAL = -1
    NOTHING_TO_DO = 0
    DONE = 1


class PasswordExpirationService:
    """Runs the password expiration task."""

    def __init__(
        self,
        user_repo: UserRepository | None = None,
        alert_repo: AlertRepository | None = None,
        policy: PasswordPolicy | None = None,
    ):
        self.user_repo = user_repo or UserRepository()
        self.alert_repo = alert_repo or AlertRepository()
        self.policy = policy or PasswordPolicy.from_config()

    def run(self, limit: int, notifier: Notifier, now: datetime | None = None) -> CronResult:
        """
        Notify then lock users according to the password policy.

        Args:
            limit: Maximum number of notices sent in one run.
            notifier: Delivers one notice.
            now: Reference time, defaults to the current UTC time.

        Returns:
            NOTHING_TO_DO when expiration (or both notice and lock) is disabled,
            PARTIAL when more users were due a notice than `limit`, DONE otherwise.
        """
        policy = self.policy
        if policy.expiration_delay == DISABLED or (
            policy.expiration_notice == DISABLED and policy.expiration_lock_delay == DISABLED
        ):
            return CronResult.NOTHING_TO_DO

        now = now or utcnow()
        result = CronResult.DONE

        if policy.expiration_notice != DISABLED:
            updated_before = now - timedelta(days=policy.expiration_delay - policy.expiration_notice)
            notified_before = now - timedelta(days=1)

            due = self.user_repo.count_password_notice_candidates(updated_before, notified_before)
            if due > limit:
                result = CronResult.PARTIAL

            sent = 0
            for user in self.user_repo.get_password_notice_candidates(updated_before, notified_before, limit):
                if notifier(user):
                    self.alert_repo.replace(Alert(itemtype="User", items_id=user.id, type=NOTICE))
                    sent += 1
                else:
                    logger.warning(f"Password expiration notice not delivered to user #{user.id}")
            logger.info(f"Password expiration: {sent} notice(s) sent, {due} due")

        if policy.expiration_lock_delay != DISABLED:
            updated_before = now - timedelta(days=policy.expiration_delay + policy.expiration_lock_delay)
            locked = self.user_repo.deactivate_expired_passwords(updated_before)
            logger.info(f"Password expiration: {locked} user(s) disabled")

        return result

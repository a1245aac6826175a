"""
services/password_policy.py
---------------------------
Password rules: expiration date arithmetic and password strength/reuse checks.
Everything here is pure; callers pass the policy and, optionally, "now".
"""

import re
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Optional

import config
from models.user import User
from security.credentials import check_password
from utils.clock import utcnow

PASSWORD_TOO_SHORT = "Password too short!"
PASSWORD_NEED_DIGIT = "Password must include at least a digit!"
PASSWORD_NEED_LOWERCASE = "Password must include at least a lowercase letter!"
PASSWORD_NEED_UPPERCASE = "Password must include at least a uppercase letter!"
PASSWORD_NEED_SYMBOL = "Password must include at least a symbol!"
PASSWORD_REUSED = "Password was used too recently."

DISABLED = -1


@dataclass(frozen=True)
class PasswordPolicy:
    """
    Password settings.

    Delays are in days and DISABLED (-1) turns the matching feature off.
    `init_token_delay` is the lost-password token lifetime in seconds.
    `non_reusable_count` covers the current password plus the previous
    `non_reusable_count - 1` ones; 0 disables the reuse check.
    """
    expiration_delay: int = DISABLED
    expiration_notice: int = DISABLED
    expiration_lock_delay: int = DISABLED
    init_token_delay: int = 86400
    use_password_security: bool = False
    min_length: int = 8
    need_number: bool = True
    need_letter: bool = True
    need_caps: bool = True
    need_symbol: bool = True
    non_reusable_count: int = 0

    @classmethod
    def from_config(cls) -> "PasswordPolicy":
        return cls(
            expiration_delay=config.PASSWORD_EXPIRATION_DELAY,
            expiration_notice=config.PASSWORD_EXPIRATION_NOTICE,
            expiration_lock_delay=config.PASSWORD_EXPIRATION_LOCK_DELAY,
            init_token_delay=config.PASSWORD_INIT_TOKEN_DELAY,
            use_password_security=config.USE_PASSWORD_SECURITY,
            min_length=config.PASSWORD_MIN_LENGTH,
            need_number=config.PASSWORD_NEED_NUMBER,
            need_letter=config.PASSWORD_NEED_LETTER,
            need_caps=config.PASSWORD_NEED_CAPS,
            need_symbol=config.PASSWORD_NEED_SYMBOL,
            non_reusable_count=config.NON_REUSABLE_PASSWORDS_COUNT,
        )


# ── Expiration ────────────────────────────────────────────

def get_password_expiration_time(user: User, policy: PasswordPolicy) -> Optional[datetime]:
    """
    When the user's password expires: last password update (or account
    creation if never updated) plus the expiration delay.

    Returns:
        None for unsaved users or when expiration is disabled.
    """
    if user.id is None or policy.expiration_delay == DISABLED:
        return None
    reference = user.password_last_update or user.date_creation
    if reference is None:
        return None
    return reference + timedelta(days=policy.expiration_delay)


def has_password_expired(user: User, policy: PasswordPolicy, now: Optional[datetime] = None) -> bool:
    expiration = get_password_expiration_time(user, policy)
    if expiration is None:
        return False
    return expiration < (now or utcnow())


def should_change_password(user: User, policy: PasswordPolicy, now: Optional[datetime] = None) -> bool:
    """True once inside the notice window before expiration, and after expiration."""
    now = now or utcnow()
    if has_password_expired(user, policy, now):
        return True
    expiration = get_password_expiration_time(user, policy)
    if expiration is None or policy.expiration_notice == DISABLED:
        return False
    return expiration - timedelta(days=policy.expiration_notice) < now


# ── Strength and reuse ────────────────────────────────────

def validate_password(password: str, policy: PasswordPolicy, user: Optional[User] = None) -> list[str]:
    """
    Check a candidate password against the policy.

    Args:
        password: Clear-text candidate.
        policy: Settings to enforce.
        user: Existing account, enables the reuse check.

    Returns:
        Error messages in a fixed order; empty when the password is acceptable.
    """
    errors = []
    if policy.use_password_security:
        if len(password) < policy.min_length:
            errors.append(PASSWORD_TOO_SHORT)
        if policy.need_number and not re.search(r"[0-9]", password):
            errors.append(PASSWORD_NEED_DIGIT)
        if policy.need_letter and not re.search(r"[a-z]", password):
            errors.append(PASSWORD_NEED_LOWERCASE)
        if policy.need_caps and not re.search(r"[A-Z]", password):
            errors.append(PASSWORD_NEED_UPPERCASE)
        if policy.need_symbol and not re.search(r"\W", password):
            errors.append(PASSWORD_NEED_SYMBOL)

    if user is not None and user.id is not None and policy.non_reusable_count > 0:
        recent = [user.password, *user.password_history][:policy.non_reusable_count]
        if any(check_password(password, h) for h in recent):
            errors.append(PASSWORD_REUSED)

    return errors

"""
models/user.py
--------------
Domain model for user accounts.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import IntEnum
from typing import Optional


class AuthType(IntEnum):
    """Where a user's credentials are checked."""
    DB_GLPI = 1
    MAIL = 2
    LDAP = 3
    EXTERNAL = 4
    CAS = 5
    X509 = 6
    API = 7
    COOKIE = 8


@dataclass
class User:
    """
    Represents a user account.

    Attributes:
        name: Login, unique among non-deleted users.
        realname, firstname: Used to build the friendly name.
        password: Password hash, empty string when unset.
        password_last_update: Last time the password changed.
        password_history: Previous password hashes, most recent first.
        personal_token, api_token: Authentication tokens.
        password_forget_token: Lost-password token and its issue date.
        user_dn, user_dn_hash: LDAP distinguished name and its md5.
        sync_field: Identifier used by directory synchronisation.
        authtype, auths_id: Authentication source.
        substitution_start_date, substitution_end_date: Window in which
            this user's substitutes may act for them; None is unbounded.
        telegram_id: Chat linked to this account.
    """
    name: str
    realname: Optional[str] = None
    firstname: Optional[str] = None
    password: str = ""
    password_last_update: Optional[datetime] = None
    password_history: list[str] = field(default_factory=list)
    password_forget_token: Optional[str] = None
    password_forget_token_date: Optional[datetime] = None
    personal_token: Optional[str] = None
    personal_token_date: Optional[datetime] = None
    api_token: Optional[str] = None
    api_token_date: Optional[datetime] = None
    user_dn: Optional[str] = None
    user_dn_hash: Optional[str] = None
    sync_field: Optional[str] = None
    authtype: int = AuthType.DB_GLPI
    auths_id: int = 0
    is_active: bool = True
    is_deleted: bool = False
    entities_id: int = 0
    timezone: Optional[str] = None
    substitution_start_date: Optional[datetime] = None
    substitution_end_date: Optional[datetime] = None
    telegram_id: Optional[int] = None
    id: Optional[int] = None
    date_creation: Optional[datetime] = None
    date_mod: Optional[datetime] = None

    def friendly_name(self) -> str:
        """'realname firstname', 'realname' alone, or the login."""
        if self.realname and self.firstname:
            return f"{self.realname} {self.firstname}"
        if self.realname:
            return self.realname
        return self.name or ""

    def is_local(self) -> bool:
        """True for accounts whose password is stored here."""
        return self.authtype == AuthType.DB_GLPI

    def __str__(self) -> str:
        status = "✅" if self.is_active else "⛔"
        return f"{status} #{self.id} {self.friendly_name()}"

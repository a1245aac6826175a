"""
security/credentials.py
-----------------------
Password hashing, token generation and DN hashing.
"""

import hashlib
import secrets
import string
from typing import Optional

from werkzeug.security import check_password_hash, generate_password_hash

_TOKEN_ALPHABET = string.ascii_letters + string.digits


def hash_password(password: str) -> str:
    """Hash a clear-text password for storage."""
    return generate_password_hash(password)


def check_password(password: str, password_hash: Optional[str]) -> bool:
    """True if `password` matches the stored hash. An empty hash never matches."""
    if not password_hash:
        return False
    return check_password_hash(password_hash, password)


def random_token(length: int = 40) -> str:
    """Random alphanumeric token, used for personal and API tokens."""
    return "".join(secrets.choice(_TOKEN_ALPHABET) for _ in range(length))


def forget_password_token() -> str:
    """40 hex characters, used for lost-password links."""
    return secrets.token_hex(20)


def dn_hash(user_dn: Optional[str]) -> Optional[str]:
    """md5 of an LDAP DN, None for an empty DN. Indexed lookups use it instead of the DN."""
    if not user_dn:
        return None
    return hashlib.md5(user_dn.encode("utf-8")).hexdigest()

"""
config.py
---------
Central configuration module. Loads all environment variables
from the .env file and exposes them as typed constants.
"""

import os
from dotenv import load_dotenv

load_dotenv()


def _int_list(raw: str) -> list[int]:
    return [int(v.strip()) for v in raw.split(",") if v.strip()] if raw else []


def _str_list(raw: str) -> list[str]:
    return [v.strip() for v in raw.split(",") if v.strip()]


# ── Telegram ──────────────────────────────────────────────
TELEGRAM_BOT_TOKEN: str = os.getenv("TELEGRAM_BOT_TOKEN", "")

# ── PostgreSQL ────────────────────────────────────────────
DB_HOST: str = os.getenv("DB_HOST", "localhost")
DB_PORT: int = int(os.getenv("DB_PORT", "5432"))
DB_NAME: str = os.getenv("DB_NAME", "assetdesk")
DB_USER: str = os.getenv("DB_USER", "assetdesk_user")
DB_PASS: str = os.getenv("DB_PASS", "")

DATABASE_URL: str = (
    f"postgresql://{DB_USER}:{DB_PASS}@{DB_HOST}:{DB_PORT}/{DB_NAME}"
)
# Handlers and the daily job share the pool.
DB_POOL_MIN: int = int(os.getenv("DB_POOL_MIN", "1"))
DB_POOL_MAX: int = int(os.getenv("DB_POOL_MAX", "10"))

# ── Security ──────────────────────────────────────────────
ALLOWED_USER_IDS: list[int] = _int_list(os.getenv("ALLOWED_USER_IDS", ""))

# ── Rate Limiting ─────────────────────────────────────────
RATE_LIMIT_MESSAGES: int = int(os.getenv("RATE_LIMIT_MESSAGES", "30"))
RATE_LIMIT_WINDOW_SECONDS: int = int(os.getenv("RATE_LIMIT_WINDOW_SECONDS", "60"))

# ── Asset types ───────────────────────────────────────────
# Item types that can have peripherals attached.
PERIPHERALHOST_TYPES: list[str] = _str_list(
    os.getenv("PERIPHERALHOST_TYPES", "Computer")
)
# Item types that can be directly connected to a host.
DIRECTCONNECT_TYPES: list[str] = _str_list(
    os.getenv("DIRECTCONNECT_TYPES", "Monitor,Peripheral,Phone,Printer")
)

# ── Password expiration ───────────────────────────────────
# Delays are in days, -1 disables the feature.
PASSWORD_EXPIRATION_DELAY: int = int(os.getenv("PASSWORD_EXPIRATION_DELAY", "-1"))
PASSWORD_EXPIRATION_NOTICE: int = int(os.getenv("PASSWORD_EXPIRATION_NOTICE", "-1"))
PASSWORD_EXPIRATION_LOCK_DELAY: int = int(os.getenv("PASSWORD_EXPIRATION_LOCK_DELAY", "-1"))
PASSWORD_EXPIRATION_CRON_LIMIT: int = int(os.getenv("PASSWORD_EXPIRATION_CRON_LIMIT", "100"))
PASSWORD_EXPIRATION_CRON_HOUR: int = int(os.getenv("PASSWORD_EXPIRATION_CRON_HOUR", "6"))

# Lifetime of a lost-password token, in seconds.
PASSWORD_INIT_TOKEN_DELAY: int = int(os.getenv("PASSWORD_INIT_TOKEN_DELAY", "86400"))

# ── Password security policy ──────────────────────────────
USE_PASSWORD_SECURITY: bool = os.getenv("USE_PASSWORD_SECURITY", "0") == "1"
PASSWORD_MIN_LENGTH: int = int(os.getenv("PASSWORD_MIN_LENGTH", "8"))
PASSWORD_NEED_NUMBER: bool = os.getenv("PASSWORD_NEED_NUMBER", "1") == "1"
PASSWORD_NEED_LETTER: bool = os.getenv("PASSWORD_NEED_LETTER", "1") == "1"
PASSWORD_NEED_CAPS: bool = os.getenv("PASSWORD_NEED_CAPS", "1") == "1"
PASSWORD_NEED_SYMBOL: bool = os.getenv("PASSWORD_NEED_SYMBOL", "1") == "1"
NON_REUSABLE_PASSWORDS_COUNT: int = int(os.getenv("NON_REUSABLE_PASSWORDS_COUNT", "0"))

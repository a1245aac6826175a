"""
repositories/user_repo.py
--------------------------
Data access layer for user records.
"""

import json
from datetime import datetime
from typing import Optional

from db.connection import get_connection, release_connection
from models.alert import NOTICE
from models.user import AuthType, User
from utils.logger import get_logger

logger = get_logger(__name__)

_FIELDS = (
    "id", "name", "realname", "firstname", "password",
    "password_last_update", "password_history", "password_forget_token",
    "password_forget_token_date", "personal_token", "personal_token_date",
    "api_token", "api_token_date", "user_dn", "user_dn_hash", "sync_field",
    "authtype", "auths_id", "is_active", "is_deleted", "entities_id", "timezone",
    "substitution_start_date", "substitution_end_date", "telegram_id",
    "date_creation", "date_mod",
)
_COLUMNS = ", ".join(f"users.{f}" for f in _FIELDS)

_UPDATABLE = frozenset(_FIELDS) - {"id", "date_creation", "date_mod"}

# Columns that lookups by arbitrary field are allowed on.
LOOKUP_FIELDS = frozenset({
    "name", "sync_field", "user_dn_hash", "personal_token",
    "api_token", "password_forget_token", "telegram_id", "realname", "firstname",
})


class UserRepository:
    """Repository for CRUD operations on the users table."""

    # ── CREATE ────────────────────────────────────────────

    def add(self, user: User) -> User:
        """
        Insert a new user.

        Returns:
            The same User with `id`, `date_creation` and `date_mod` populated.
        """
        fields = [f for f in _FIELDS if f not in ("id", "date_mod")]
        if user.date_creation is None:
            fields.remove("date_creation")
        sql = f"""
            INSERT INTO users ({", ".join(fields)})
            VALUES ({", ".join(["%s"] * len(fields))})
            RETURNING id, date_creation, date_mod;
        """
        conn = get_connection()
        try:
            with conn.cursor() as cur:
                cur.execute(sql, [self._to_db(f, getattr(user, f)) for f in fields])
                user.id, user.date_creation, user.date_mod = cur.fetchone()
            conn.commit()
            logger.info(f"Added user '{user.name}' #{user.id}")
            return user
        except Exception as e:
            conn.rollback()
            logger.error(f"Failed to add user '{user.name}': {e}")
            raise
        finally:
            release_connection(conn)

    # ── READ ──────────────────────────────────────────────

    def get_by_id(self, user_id: int) -> Optional[User]:
        """Fetch a user by primary key."""
        return self._fetch_one(f"SELECT {_COLUMNS} FROM users WHERE id = %s;", (user_id,))

    def get_by_telegram_id(self, telegram_id: int) -> Optional[User]:
        """Fetch the active user linked to a Telegram chat."""
        sql = f"SELECT {_COLUMNS} FROM users WHERE telegram_id = %s AND is_deleted = FALSE;"
        return self._fetch_one(sql, (telegram_id,))

    def get_by_name_and_auth(self, name: str, authtype: int, auths_id: int) -> Optional[User]:
        sql = f"""
            SELECT {_COLUMNS} FROM users
            WHERE name = %s AND authtype = %s AND auths_id = %s;
        """
        return self._fetch_one(sql, (name, authtype, auths_id))

    def find_by_field(self, field: str, value) -> list[User]:
        """
        All users whose `field` equals `value`.

        Raises:
            ValueError: If `field` is not a lookup column.
        """
        if field not in LOOKUP_FIELDS:
            raise ValueError(f"Lookup on users.{field} is not allowed")
        sql = f"SELECT {_COLUMNS} FROM users WHERE {field} = %s ORDER BY id ASC;"
        return self._fetch_all(sql, (value,))

    def name_exists(self, name: str, exclude_id: Optional[int] = None) -> bool:
        """True if another non-deleted user already has this login."""
        sql = "SELECT COUNT(*) FROM users WHERE name = %s AND is_deleted = FALSE"
        params: list = [name]
        if exclude_id is not None:
            sql += " AND id <> %s"
            params.append(exclude_id)
        conn = get_connection()
        try:
            with conn.cursor() as cur:
                cur.execute(sql + ";", params)
                return cur.fetchone()[0] > 0
        finally:
            release_connection(conn)

    def get_by_forgotten_token(self, token: str, issued_after: datetime) -> Optional[User]:
        """Fetch the user owning a lost-password token issued after `issued_after`."""
        sql = f"""
            SELECT {_COLUMNS} FROM users
            WHERE password_forget_token = %s AND password_forget_token_date >= %s;
        """
        return self._fetch_one(sql, (token, issued_after))

    # ── PASSWORD EXPIRATION ───────────────────────────────

    _NOTICE_WHERE = """
        FROM users
        LEFT JOIN alerts ON alerts.itemtype = 'User' AND alerts.items_id = users.id
                        AND alerts.type = %s
        WHERE users.is_deleted = FALSE AND users.is_active = TRUE
          AND users.authtype = %s
          AND users.password_last_update < %s
          AND (alerts.date IS NULL OR alerts.date < %s)
    """

    def count_password_notice_candidates(self, updated_before: datetime, notified_before: datetime) -> int:
        """
        Count active local users whose password changed before `updated_before`
        and who were not notified since `notified_before`.
        """
        sql = "SELECT COUNT(*) " + self._NOTICE_WHERE + ";"
        conn = get_connection()
        try:
            with conn.cursor() as cur:
                cur.execute(sql, (NOTICE, AuthType.DB_GLPI, updated_before, notified_before))
                return cur.fetchone()[0]
        finally:
            release_connection(conn)

    def get_password_notice_candidates(
        self, updated_before: datetime, notified_before: datetime, limit: int
    ) -> list[User]:
        """Same selection as count_password_notice_candidates, at most `limit` users."""
        sql = f"SELECT {_COLUMNS} " + self._NOTICE_WHERE + " ORDER BY users.id ASC LIMIT %s;"
        return self._fetch_all(sql, (NOTICE, AuthType.DB_GLPI, updated_before, notified_before, limit))

    def deactivate_expired_passwords(self, updated_before: datetime) -> int:
        """
        Disable active local users whose password changed before `updated_before`.

        Returns:
            Number of users disabled.
        """
        sql = """
            UPDATE users SET is_active = FALSE, date_mod = NOW()
            WHERE is_deleted = FALSE AND is_active = TRUE AND authtype = %s
              AND password_last_update < %s;
        """
        conn = get_connection()
        try:
            with conn.cursor() as cur:
                cur.execute(sql, (AuthType.DB_GLPI, updated_before))
                count = cur.rowcount
            conn.commit()
            if count:
                logger.info(f"Disabled {count} user(s) with expired password")
            return count
        except Exception as e:
            conn.rollback()
            logger.error(f"Failed to disable users with expired password: {e}")
            raise
        finally:
            release_connection(conn)

    # ── UPDATE ────────────────────────────────────────────

    def update(self, user_id: int, changes: dict) -> bool:
        """
        Update some columns of a user.

        Raises:
            ValueError: If a column is unknown or read-only.
        """
        unknown = set(changes) - _UPDATABLE
        if unknown:
            raise ValueError(f"Cannot update user columns: {sorted(unknown)}")
        if not changes:
            return False

        assignments = ", ".join(f"{col} = %s" for col in changes)
        sql = f"UPDATE users SET {assignments}, date_mod = NOW() WHERE id = %s;"
        params = [self._to_db(col, value) for col, value in changes.items()]
        conn = get_connection()
        try:
            with conn.cursor() as cur:
                cur.execute(sql, [*params, user_id])
                updated = cur.rowcount > 0
            conn.commit()
            return updated
        except Exception as e:
            conn.rollback()
            logger.error(f"Failed to update user #{user_id}: {e}")
            raise
        finally:
            release_connection(conn)

    # ── HELPERS ───────────────────────────────────────────

    def _fetch_one(self, sql: str, params: tuple) -> Optional[User]:
        conn = get_connection()
        try:
            with conn.cursor() as cur:
                cur.execute(sql, params)
                row = cur.fetchone()
                return self._row_to_user(row) if row else None
        finally:
            release_connection(conn)

    def _fetch_all(self, sql: str, params: tuple) -> list[User]:
        conn = get_connection()
        try:
            with conn.cursor() as cur:
                cur.execute(sql, params)
                return [self._row_to_user(r) for r in cur.fetchall()]
        finally:
            release_connection(conn)

    @staticmethod
    def _to_db(field: str, value):
        if field == "password_history":
            return json.dumps(value or [])
        if field == "authtype":
            return int(value)
        return value

    @staticmethod
    def _row_to_user(row: tuple) -> User:
        """Convert a database row tuple to a User domain object."""
        data = dict(zip(_FIELDS, row))
        data["password_history"] = json.loads(data["password_history"] or "[]")
        return User(**data)

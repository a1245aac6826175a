"""
repositories/user_email_repo.py
-------------------------------
Data access layer for user email addresses.
All SQL queries related to the `user_emails` table live here.
"""

from db.connection import get_connection, release_connection
from models.user_email import UserEmail
from utils.logger import get_logger

logger = get_logger(__name__)

_FIELDS = ("id", "users_id", "email", "is_default")
_COLUMNS = ", ".join(_FIELDS)


class UserEmailRepository:
    """Repository for the user_emails table."""

    # ── CREATE ────────────────────────────────────────────

    def add(self, email: UserEmail) -> UserEmail:
        """Insert an address and populate its `id`."""
        sql = """
            INSERT INTO user_emails (users_id, email, is_default)
            VALUES (%s, %s, %s)
            RETURNING id;
        """
        conn = get_connection()
        try:
            with conn.cursor() as cur:
                cur.execute(sql, (email.users_id, email.email, email.is_default))
                email.id = cur.fetchone()[0]
            conn.commit()
            logger.info(f"Added email #{email.id} to user #{email.users_id}")
            return email
        except Exception as e:
            conn.rollback()
            logger.error(f"Failed to add email to user #{email.users_id}: {e}")
            raise
        finally:
            release_connection(conn)

    # ── READ ──────────────────────────────────────────────

    def list_for_user(self, users_id: int) -> list[UserEmail]:
        """Addresses of a user, oldest first."""
        sql = f"SELECT {_COLUMNS} FROM user_emails WHERE users_id = %s ORDER BY id ASC;"
        conn = get_connection()
        try:
            with conn.cursor() as cur:
                cur.execute(sql, (users_id,))
                return [self._row_to_email(r) for r in cur.fetchall()]
        finally:
            release_connection(conn)

    def find_user_ids(self, email: str) -> list[int]:
        """Ids of the users owning `email` (case-insensitive)."""
        sql = """
            SELECT DISTINCT users_id FROM user_emails
            WHERE LOWER(email) = LOWER(%s) ORDER BY users_id ASC;
        """
        conn = get_connection()
        try:
            with conn.cursor() as cur:
                cur.execute(sql, (email,))
                return [r[0] for r in cur.fetchall()]
        finally:
            release_connection(conn)

    # ── UPDATE / DELETE ───────────────────────────────────

    def update_email(self, email_id: int, email: str) -> bool:
        return self._write("UPDATE user_emails SET email = %s WHERE id = %s;", (email, email_id))

    def set_default(self, users_id: int, email_id: int) -> bool:
        """Make `email_id` the only default address of `users_id`."""
        sql = "UPDATE user_emails SET is_default = (id = %s) WHERE users_id = %s;"
        return self._write(sql, (email_id, users_id))

    def delete(self, email_id: int) -> bool:
        return self._write("DELETE FROM user_emails WHERE id = %s;", (email_id,))

    # ── HELPERS ───────────────────────────────────────────

    @staticmethod
    def _write(sql: str, params: tuple) -> bool:
        conn = get_connection()
        try:
            with conn.cursor() as cur:
                cur.execute(sql, params)
                changed = cur.rowcount > 0
            conn.commit()
            return changed
        except Exception as e:
            conn.rollback()
            logger.error(f"Failed to write user email ({params}): {e}")
            raise
        finally:
            release_connection(conn)

    @staticmethod
    def _row_to_email(row: tuple) -> UserEmail:
        return UserEmail(**dict(zip(_FIELDS, row)))

"""
repositories/substitute_repo.py
-------------------------------
Data access layer for validator substitutes.
All SQL queries related to the `validator_substitutes` table live here.
"""

from db.connection import get_connection, release_connection
from utils.logger import get_logger

logger = get_logger(__name__)


class SubstituteRepository:
    """Repository for the validator_substitutes table."""

    def get_substitutes(self, users_id: int) -> list[int]:
        """Ids of the users allowed to act for `users_id`, in insertion order."""
        sql = """
            SELECT users_id_substitute FROM validator_substitutes
            WHERE users_id = %s ORDER BY id ASC;
        """
        return self._ids(sql, users_id)

    def get_delegators(self, users_id: int) -> list[int]:
        """Ids of the users `users_id` may act for, in insertion order."""
        sql = """
            SELECT users_id FROM validator_substitutes
            WHERE users_id_substitute = %s ORDER BY id ASC;
        """
        return self._ids(sql, users_id)

    def exists(self, users_id: int, users_id_substitute: int) -> bool:
        sql = """
            SELECT COUNT(*) FROM validator_substitutes
            WHERE users_id = %s AND users_id_substitute = %s;
        """
        conn = get_connection()
        try:
            with conn.cursor() as cur:
                cur.execute(sql, (users_id, users_id_substitute))
                return cur.fetchone()[0] > 0
        finally:
            release_connection(conn)

    def replace(self, users_id: int, substitutes: list[int]) -> None:
        """
        Replace the whole substitute set of a user in one transaction.

        Args:
            users_id: The delegator.
            substitutes: New substitute ids; an empty list clears the set.
        """
        conn = get_connection()
        try:
            with conn.cursor() as cur:
                cur.execute("DELETE FROM validator_substitutes WHERE users_id = %s;", (users_id,))
                for substitute_id in substitutes:
                    cur.execute(
                        "INSERT INTO validator_substitutes (users_id, users_id_substitute) VALUES (%s, %s);",
                        (users_id, substitute_id),
                    )
            conn.commit()
            logger.info(f"User #{users_id} substitutes set to {substitutes}")
        except Exception as e:
            conn.rollback()
            logger.error(f"Failed to update substitutes of user #{users_id}: {e}")
            raise
        finally:
            release_connection(conn)

    @staticmethod
    def _ids(sql: str, users_id: int) -> list[int]:
        conn = get_connection()
        try:
            with conn.cursor() as cur:
                cur.execute(sql, (users_id,))
                return [r[0] for r in cur.fetchall()]
        finally:
            release_connection(conn)

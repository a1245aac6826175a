"""
repositories/alert_repo.py
--------------------------
Data access layer for alerts (notification traces).
"""

from db.connection import get_connection, release_connection
from models.alert import Alert
from utils.logger import get_logger

logger = get_logger(__name__)


class AlertRepository:
    """Repository for the alerts table."""

    def replace(self, alert: Alert) -> Alert:
        """
        Drop any previous alert for the same item and record this one.

        Returns:
            The Alert with `id` and `date` populated.
        """
        conn = get_connection()
        try:
            with conn.cursor() as cur:
                cur.execute(
                    "DELETE FROM alerts WHERE itemtype = %s AND items_id = %s;",
                    (alert.itemtype, alert.items_id),
                )
                cur.execute(
                    "INSERT INTO alerts (itemtype, items_id, type) VALUES (%s, %s, %s) RETURNING id, date;",
                    (alert.itemtype, alert.items_id, alert.type),
                )
                alert.id, alert.date = cur.fetchone()
            conn.commit()
            return alert
        except Exception as e:
            conn.rollback()
            logger.error(f"Failed to record alert for {alert.itemtype} #{alert.items_id}: {e}")
            raise
        finally:
            release_connection(conn)

"""
repositories/connection_repo.py
-------------------------------
Data access layer for host ↔ peripheral connections.
All SQL queries related to the `asset_peripheralassets` table live here.
"""

from typing import Optional

from db.connection import get_connection, release_connection
from models.asset import ItemRef
from models.connection import ConnectedItem, Connection
from utils.logger import get_logger

logger = get_logger(__name__)

_FIELDS = (
    "id", "itemtype_asset", "items_id_asset", "itemtype_peripheral",
    "items_id_peripheral", "is_deleted", "is_dynamic", "date_creation", "date_mod",
)
_COLUMNS = ", ".join(_FIELDS)

# Item columns of a listing row, followed by the link columns.
_LISTING_SELECT = """
    SELECT c.id, a.itemtype, a.id, a.name, a.entities_id, a.is_deleted,
           c.is_dynamic, a.serial, a.otherserial
    FROM assets a
    JOIN asset_peripheralassets c ON {join}
    WHERE c.is_deleted = FALSE AND {where}
    ORDER BY a.name ASC, a.id ASC;
"""


class ConnectionRepository:
    """Repository for CRUD operations on the asset_peripheralassets table."""

    # ── CREATE ────────────────────────────────────────────

    def add(self, connection: Connection) -> Connection:
        """
        Insert a new connection.

        Returns:
            The same Connection with `id` and dates populated.
        """
        sql = """
            INSERT INTO asset_peripheralassets
                (itemtype_asset, items_id_asset, itemtype_peripheral, items_id_peripheral,
                 is_deleted, is_dynamic)
            VALUES (%s, %s, %s, %s, %s, %s)
            RETURNING id, date_creation, date_mod;
        """
        conn = get_connection()
        try:
            with conn.cursor() as cur:
                cur.execute(sql, (
                    connection.itemtype_asset, connection.items_id_asset,
                    connection.itemtype_peripheral, connection.items_id_peripheral,
                    connection.is_deleted, connection.is_dynamic,
                ))
                connection.id, connection.date_creation, connection.date_mod = cur.fetchone()
            conn.commit()
            logger.info(f"Added connection {connection}")
            return connection
        except Exception as e:
            conn.rollback()
            logger.error(f"Failed to add connection {connection.host} ↔ {connection.peripheral}: {e}")
            raise
        finally:
            release_connection(conn)

    # ── READ ──────────────────────────────────────────────

    def get_by_id(self, connection_id: int) -> Optional[Connection]:
        """Fetch a single connection by ID, deleted or not."""
        sql = f"SELECT {_COLUMNS} FROM asset_peripheralassets WHERE id = %s;"
        conn = get_connection()
        try:
            with conn.cursor() as cur:
                cur.execute(sql, (connection_id,))
                row = cur.fetchone()
                return self._row_to_connection(row) if row else None
        finally:
            release_connection(conn)

    def exists(self, host: ItemRef, peripheral: ItemRef) -> bool:
        """True if a non-deleted connection already links this host and peripheral."""
        sql = """
            SELECT COUNT(*) FROM asset_peripheralassets
            WHERE itemtype_asset = %s AND items_id_asset = %s
              AND itemtype_peripheral = %s AND items_id_peripheral = %s
              AND is_deleted = FALSE;
        """
        conn = get_connection()
        try:
            with conn.cursor() as cur:
                cur.execute(sql, (host.itemtype, host.id, peripheral.itemtype, peripheral.id))
                return cur.fetchone()[0] > 0
        finally:
            release_connection(conn)

    def list_for_peripheral(self, peripheral: ItemRef, include_deleted: bool = False) -> list[Connection]:
        """All connection rows of a peripheral, oldest first."""
        return self._list_for("itemtype_peripheral", "items_id_peripheral", peripheral, include_deleted)

    def list_for_host(self, host: ItemRef, include_deleted: bool = False) -> list[Connection]:
        """All connection rows of a host, oldest first."""
        return self._list_for("itemtype_asset", "items_id_asset", host, include_deleted)

    def list_peripheral_items(self, host: ItemRef, itemtype: str) -> list[ConnectedItem]:
        """
        Peripherals of one item type connected to a host, ordered by name.

        Args:
            host: The host asset.
            itemtype: Peripheral item type to list (e.g. 'Monitor').
        """
        sql = _LISTING_SELECT.format(
            join="c.items_id_peripheral = a.id AND c.itemtype_peripheral = a.itemtype",
            where="c.itemtype_asset = %s AND c.items_id_asset = %s AND a.itemtype = %s",
        )
        return self._listing(sql, (host.itemtype, host.id, itemtype))

    def list_host_items(self, peripheral: ItemRef, itemtype: str) -> list[ConnectedItem]:
        """Hosts of one item type connected to a peripheral, ordered by name."""
        sql = _LISTING_SELECT.format(
            join="c.items_id_asset = a.id AND c.itemtype_asset = a.itemtype",
            where="c.itemtype_peripheral = %s AND c.items_id_peripheral = %s AND a.itemtype = %s",
        )
        return self._listing(sql, (peripheral.itemtype, peripheral.id, itemtype))

    # ── UPDATE ────────────────────────────────────────────

    def set_peripheral(self, connection_id: int, items_id_peripheral: int) -> bool:
        """Point a connection at another peripheral of the same type."""
        sql = """
            UPDATE asset_peripheralassets
            SET items_id_peripheral = %s, date_mod = NOW()
            WHERE id = %s;
        """
        return self._execute(sql, (items_id_peripheral, connection_id), f"re-point connection #{connection_id}")

    def set_deleted(self, connection_id: int, is_deleted: bool) -> bool:
        """Move a connection to or out of the trash bin."""
        sql = "UPDATE asset_peripheralassets SET is_deleted = %s, date_mod = NOW() WHERE id = %s;"
        return self._execute(sql, (is_deleted, connection_id), f"flag connection #{connection_id}")

    # ── DELETE ────────────────────────────────────────────

    def delete(self, connection_id: int) -> bool:
        """Purge a connection row."""
        sql = "DELETE FROM asset_peripheralassets WHERE id = %s;"
        deleted = self._execute(sql, (connection_id,), f"delete connection #{connection_id}")
        if deleted:
            logger.info(f"Deleted connection #{connection_id}")
        return deleted

    # ── HELPERS ───────────────────────────────────────────

    def _list_for(self, type_col: str, id_col: str, ref: ItemRef, include_deleted: bool) -> list[Connection]:
        sql = f"SELECT {_COLUMNS} FROM asset_peripheralassets WHERE {type_col} = %s AND {id_col} = %s"
        if not include_deleted:
            sql += " AND is_deleted = FALSE"
        sql += " ORDER BY id ASC;"
        conn = get_connection()
        try:
            with conn.cursor() as cur:
                cur.execute(sql, (ref.itemtype, ref.id))
                return [self._row_to_connection(r) for r in cur.fetchall()]
        finally:
            release_connection(conn)

    @staticmethod
    def _listing(sql: str, params: tuple) -> list[ConnectedItem]:
        conn = get_connection()
        try:
            with conn.cursor() as cur:
                cur.execute(sql, params)
                return [
                    ConnectedItem(
                        linkid=r[0], itemtype=r[1], id=r[2], name=r[3], entities_id=r[4],
                        is_deleted=r[5], link_is_dynamic=r[6], serial=r[7], otherserial=r[8],
                    )
                    for r in cur.fetchall()
                ]
        finally:
            release_connection(conn)

    @staticmethod
    def _execute(sql: str, params: tuple, action: str) -> bool:
        conn = get_connection()
        try:
            with conn.cursor() as cur:
                cur.execute(sql, params)
                changed = cur.rowcount > 0
            conn.commit()
            return changed
        except Exception as e:
            conn.rollback()
            logger.error(f"Failed to {action}: {e}")
            raise
        finally:
            release_connection(conn)

    @staticmethod
    def _row_to_connection(row: tuple) -> Connection:
        """Convert a database row tuple to a Connection domain object."""
        return Connection(**dict(zip(_FIELDS, row)))

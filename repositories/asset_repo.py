"""
repositories/asset_repo.py
--------------------------
Data access layer for assets (hosts and peripherals).
All SQL queries related to the `assets` table live here.
"""

from typing import Optional

from db.connection import get_connection, release_connection
from models.asset import Asset, ItemRef
from utils.logger import get_logger

logger = get_logger(__name__)

_FIELDS = (
    "id", "itemtype", "name", "entities_id", "is_recursive", "is_global",
    "locations_id", "users_id", "groups_id", "contact", "contact_num",
    "states_id", "is_dynamic", "is_deleted", "serial", "otherserial",
    "date_creation", "date_mod",
)
_COLUMNS = ", ".join(_FIELDS)

# Columns that may be changed through update(); guards the dynamic SET clause.
_UPDATABLE = frozenset(_FIELDS) - {"id", "itemtype", "date_creation", "date_mod"}


class AssetRepository:
    """Repository for CRUD operations on the assets table."""

    # ── CREATE ────────────────────────────────────────────

    def add(self, asset: Asset) -> Asset:
        """
        Insert a new asset.

        Returns:
            The same Asset with `id`, `date_creation` and `date_mod` populated.
        """
        fields = [f for f in _FIELDS if f not in ("id", "date_creation", "date_mod")]
        sql = f"""
            INSERT INTO assets ({", ".join(fields)})
            VALUES ({", ".join(["%s"] * len(fields))})
            RETURNING id, date_creation, date_mod;
        """
        conn = get_connection()
        try:
            with conn.cursor() as cur:
                cur.execute(sql, [getattr(asset, f) for f in fields])
                asset.id, asset.date_creation, asset.date_mod = cur.fetchone()
            conn.commit()
            logger.info(f"Added asset {asset.ref} '{asset.name}'")
            return asset
        except Exception as e:
            conn.rollback()
            logger.error(f"Failed to add asset '{asset.name}': {e}")
            raise
        finally:
            release_connection(conn)

    # ── READ ──────────────────────────────────────────────

    def get(self, ref: ItemRef) -> Optional[Asset]:
        """Fetch an asset by type and id. The stored itemtype must match."""
        sql = f"SELECT {_COLUMNS} FROM assets WHERE id = %s AND itemtype = %s;"
        conn = get_connection()
        try:
            with conn.cursor() as cur:
                cur.execute(sql, (ref.id, ref.itemtype))
                row = cur.fetchone()
                return self._row_to_asset(row) if row else None
        finally:
            release_connection(conn)

    # ── UPDATE ────────────────────────────────────────────

    def update(self, ref: ItemRef, changes: dict) -> bool:
        """
        Update some columns of an asset.

        Args:
            ref: The asset to update.
            changes: Column → new value. Unknown columns raise ValueError.

        Returns:
            True if a row was updated.
        """
        unknown = set(changes) - _UPDATABLE
        if unknown:
            raise ValueError(f"Cannot update asset columns: {sorted(unknown)}")
        if not changes:
            return False

        assignments = ", ".join(f"{col} = %s" for col in changes)
        sql = f"UPDATE assets SET {assignments}, date_mod = NOW() WHERE id = %s AND itemtype = %s;"
        conn = get_connection()
        try:
            with conn.cursor() as cur:
                cur.execute(sql, [*changes.values(), ref.id, ref.itemtype])
                updated = cur.rowcount > 0
            conn.commit()
            if updated:
                logger.info(f"Updated asset {ref}: {sorted(changes)}")
            return updated
        except Exception as e:
            conn.rollback()
            logger.error(f"Failed to update asset {ref}: {e}")
            raise
        finally:
            release_connection(conn)

    # ── HELPERS ───────────────────────────────────────────

    @staticmethod
    def _row_to_asset(row: tuple) -> Asset:
        """Convert a database row tuple to an Asset domain object."""
        return Asset(**dict(zip(_FIELDS, row)))

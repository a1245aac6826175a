"""
repositories/entity_repo.py
---------------------------
Data access layer for entities and their connection settings.
"""

from typing import Optional

from db.connection import get_connection, release_connection
from models.entity import CONNECTION_SETTINGS, Entity
from utils.logger import get_logger

logger = get_logger(__name__)

_FIELDS = ("id", "name", "entities_id", *CONNECTION_SETTINGS)
_COLUMNS = ", ".join(_FIELDS)


class EntityRepository:
    """Repository for the entities table."""

    def add(self, entity: Entity) -> Entity:
        """Insert a new entity and populate its `id`."""
        fields = _FIELDS[1:]
        sql = f"""
            INSERT INTO entities ({", ".join(fields)})
            VALUES ({", ".join(["%s"] * len(fields))})
            RETURNING id;
        """
        conn = get_connection()
        try:
            with conn.cursor() as cur:
                cur.execute(sql, [getattr(entity, f) for f in fields])
                entity.id = cur.fetchone()[0]
            conn.commit()
            logger.info(f"Added entity '{entity.name}' #{entity.id}")
            return entity
        except Exception as e:
            conn.rollback()
            logger.error(f"Failed to add entity '{entity.name}': {e}")
            raise
        finally:
            release_connection(conn)

    def get(self, entity_id: int) -> Optional[Entity]:
        """Fetch one entity by id."""
        sql = f"SELECT {_COLUMNS} FROM entities WHERE id = %s;"
        conn = get_connection()
        try:
            with conn.cursor() as cur:
                cur.execute(sql, (entity_id,))
                row = cur.fetchone()
                return Entity(**dict(zip(_FIELDS, row))) if row else None
        finally:
            release_connection(conn)

    def update_settings(self, entity_id: int, settings: dict) -> bool:
        """
        Change connection settings of an entity.

        Raises:
            ValueError: If a key is not a known setting.
        """
        unknown = set(settings) - set(CONNECTION_SETTINGS)
        if unknown:
            raise ValueError(f"Unknown entity settings: {sorted(unknown)}")
        if not settings:
            return False

        assignments = ", ".join(f"{key} = %s" for key in settings)
        sql = f"UPDATE entities SET {assignments} WHERE id = %s;"
        conn = get_connection()
        try:
            with conn.cursor() as cur:
                cur.execute(sql, [*settings.values(), entity_id])
                updated = cur.rowcount > 0
            conn.commit()
            return updated
        except Exception as e:
            conn.rollback()
            logger.error(f"Failed to update entity #{entity_id}: {e}")
            raise
        finally:
            release_connection(conn)

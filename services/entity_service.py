"""
services/entity_service.py
--------------------------
Resolves per-entity settings through the entity tree.
"""

from models.entity import CONFIG_PARENT, CONNECTION_SETTINGS
from repositories.entity_repo import EntityRepository
from utils.logger import get_logger

logger = get_logger(__name__)


class EntityConfigService:
    """Reads entity settings, following CONFIG_PARENT up to the root."""

    def __init__(self, repo: EntityRepository | None = None):
        self.repo = repo or EntityRepository()

    def get_used_config(self, entity_id: int, setting: str, default: int = 0) -> int:
        """
        Value of `setting` that applies to an entity.

        Walks from the entity towards the root and returns the first value
        that is not CONFIG_PARENT.

        Args:
            entity_id: Entity to resolve for.
            setting: One of CONNECTION_SETTINGS.
            default: Returned when nothing in the chain sets a value.
        """
        if setting not in CONNECTION_SETTINGS:
            raise ValueError(f"Unknown entity setting: {setting}")

        seen: set[int] = set()
        current = entity_id
        while current is not None and current not in seen:
            seen.add(current)
            entity = self.repo.get(current)
            if entity is None:
                logger.warning(f"Entity #{current} not found while resolving '{setting}'")
                break
            value = getattr(entity, setting)
            if value != CONFIG_PARENT:
                return int(value)
            if entity.is_root():
                break
            current = entity.entities_id
        return default

    def set_config(self, entity_id: int, **settings: int) -> bool:
        """Change settings of one entity; CONFIG_PARENT restores inheritance."""
        return self.repo.update_settings(entity_id, settings)

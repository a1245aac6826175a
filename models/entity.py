"""
models/entity.py
----------------
Domain model for entities and their connection-related settings.
"""

from dataclasses import dataclass
from typing import Optional

# Setting value meaning "use the parent entity's value".
CONFIG_PARENT = -2

# Names of the per-entity settings read by the connection rules.
CONNECTION_SETTINGS = (
    "is_location_autoupdate",
    "is_user_autoupdate",
    "is_group_autoupdate",
    "is_contact_autoupdate",
    "state_autoupdate_mode",
    "is_location_autoclean",
    "is_user_autoclean",
    "is_group_autoclean",
    "is_contact_autoclean",
    "state_autoclean_mode",
)


@dataclass
class Entity:
    """
    An organisational unit. Settings left at CONFIG_PARENT are inherited.

    State modes: -1 copies (autoupdate) or clears (autoclean) the status,
    0 does nothing, a positive value forces that state id.
    """
    name: str
    entities_id: Optional[int] = None
    is_location_autoupdate: int = CONFIG_PARENT
    is_user_autoupdate: int = CONFIG_PARENT
    is_group_autoupdate: int = CONFIG_PARENT
    is_contact_autoupdate: int = CONFIG_PARENT
    state_autoupdate_mode: int = CONFIG_PARENT
    is_location_autoclean: int = CONFIG_PARENT
    is_user_autoclean: int = CONFIG_PARENT
    is_group_autoclean: int = CONFIG_PARENT
    is_contact_autoclean: int = CONFIG_PARENT
    state_autoclean_mode: int = CONFIG_PARENT
    id: Optional[int] = None

    def is_root(self) -> bool:
        return self.entities_id is None

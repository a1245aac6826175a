"""
models/asset.py
---------------
Domain model for inventory assets: host assets (computers) and
peripheral assets (monitors, printers, phones, ...).
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Optional


@dataclass(frozen=True)
class ItemRef:
    """Polymorphic reference to an asset: its item type plus its id."""
    itemtype: str
    id: int

    @classmethod
    def parse(cls, text: str) -> "ItemRef":
        """Build a reference from ``"Monitor:12"``."""
        itemtype, _, raw_id = text.partition(":")
        if not itemtype or not raw_id:
            raise ValueError(f"Invalid item reference: {text!r}")
        return cls(itemtype.strip(), int(raw_id))

    def __str__(self) -> str:
        return f"{self.itemtype}:{self.id}"


@dataclass
class Asset:
    """
    Represents one inventory item.

    Attributes:
        itemtype: Kind of asset ('Computer', 'Monitor', 'Printer', ...).
        name: Display name.
        entities_id: Owning entity.
        is_recursive: Whether the item is visible in child entities.
        is_global: A global peripheral can be connected to many hosts at once.
        locations_id, users_id, groups_id, states_id: Foreign keys, None when unset.
        contact, contact_num: Alternate username and number.
        is_dynamic: Managed by automatic inventory.
        is_deleted: In the trash bin.
        serial, otherserial: Serial and inventory numbers.
    """
    itemtype: str
    name: str = ""
    entities_id: int = 0
    is_recursive: bool = False
    is_global: bool = False
    locations_id: Optional[int] = None
    users_id: Optional[int] = None
    groups_id: Optional[int] = None
    contact: str = ""
    contact_num: str = ""
    states_id: Optional[int] = None
    is_dynamic: bool = False
    is_deleted: bool = False
    serial: Optional[str] = None
    otherserial: Optional[str] = None
    id: Optional[int] = None
    date_creation: Optional[datetime] = None
    date_mod: Optional[datetime] = None

    @property
    def ref(self) -> ItemRef:
        return ItemRef(self.itemtype, self.id)

    def __str__(self) -> str:
        flag = " 🌐" if self.is_global else ""
        return f"{self.itemtype} #{self.id} {self.name}{flag}"

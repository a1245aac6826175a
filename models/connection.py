"""
models/connection.py
--------------------
Domain model for the connection between a host asset and a peripheral asset.
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from models.asset import ItemRef


@dataclass
class Connection:
    """
    A link from one host asset to one peripheral asset.

    Attributes:
        itemtype_asset, items_id_asset: The host side.
        itemtype_peripheral, items_id_peripheral: The peripheral side.
        is_deleted: Soft-delete flag; deleted rows do not count as connections.
        is_dynamic: Created by automatic inventory.
    """
    itemtype_asset: str
    items_id_asset: int
    itemtype_peripheral: str
    items_id_peripheral: int
    is_deleted: bool = False
    is_dynamic: bool = False
    id: Optional[int] = None
    date_creation: Optional[datetime] = None
    date_mod: Optional[datetime] = None

    @property
    def host(self) -> ItemRef:
        return ItemRef(self.itemtype_asset, self.items_id_asset)

    @property
    def peripheral(self) -> ItemRef:
        return ItemRef(self.itemtype_peripheral, self.items_id_peripheral)

    def __str__(self) -> str:
        return f"#{self.id} {self.host} ↔ {self.peripheral}"


@dataclass
class ConnectedItem:
    """One row of a connection listing: the item on the other side plus link data."""
    linkid: int
    itemtype: str
    id: int
    name: str
    entities_id: int
    is_deleted: bool
    link_is_dynamic: bool
    serial: Optional[str] = None
    otherserial: Optional[str] = None

    @property
    def ref(self) -> ItemRef:
        return ItemRef(self.itemtype, self.id)

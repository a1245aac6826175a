"""
services/connection_service.py
------------------------------
Business logic for connections between host assets and peripheral assets.

Responsibilities:
    - Validate new connections (no duplicates, non-global peripherals on one host only).
    - Propagate location/user/group/contact/status from host to peripheral on connect.
    - Clean the same fields on the peripheral on disconnect.
    - Listings, counters, unglobalization and bulk (massive) actions.
"""

from dataclasses import replace
from typing import Callable

import config
from models.asset import Asset, ItemRef
from models.connection import ConnectedItem, Connection
from repositories.asset_repo import AssetRepository
from repositories.connection_repo import ConnectionRepository
from services.entity_service import EntityConfigService
from utils.logger import get_logger

logger = get_logger(__name__)

# (entity_id, setting) -> resolved value
ConfigGetter = Callable[[int, str], int]

MSG_LOCATION_UPDATED = "Location updated. The connected items have been moved in the same location."
MSG_USER_GROUP_UPDATED = "User or group updated. The connected items have been moved in the same values."
MSG_CONTACT_UPDATED = (
    "Alternate username updated. The connected items have been updated using this alternate username."
)
MSG_STATUS_UPDATED = "Status updated. The connected items have been updated using this status."


# ── Field propagation rules ───────────────────────────────

def compute_connect_updates(host: Asset, peripheral: Asset, get_config: ConfigGetter) -> tuple[dict, list[str]]:
    """
    Fields to copy from the host to a non-global peripheral when they get connected.

    Location, user and group settings are read on the host's entity;
    contact and status settings on the peripheral's entity.

    Returns:
        (updates, messages). `updates` is empty when nothing changes.
    """
    updates: dict = {}
    messages: list[str] = []

    if get_config(host.entities_id, "is_location_autoupdate") and host.locations_id != peripheral.locations_id:
        updates["locations_id"] = host.locations_id
        messages.append(MSG_LOCATION_UPDATED)

    user_auto = get_config(host.entities_id, "is_user_autoupdate")
    group_auto = get_config(host.entities_id, "is_group_autoupdate")
    if (user_auto and host.users_id != peripheral.users_id) or (
        group_auto and host.groups_id != peripheral.groups_id
    ):
        if user_auto:
            updates["users_id"] = host.users_id
        if group_auto:
            updates["groups_id"] = host.groups_id
        messages.append(MSG_USER_GROUP_UPDATED)

    if get_config(peripheral.entities_id, "is_contact_autoupdate") and (
        host.contact != peripheral.contact or host.contact_num != peripheral.contact_num
    ):
        updates["contact"] = host.contact or ""
        updates["contact_num"] = host.contact_num or ""
        updates["is_dynamic"] = host.is_dynamic
        messages.append(MSG_CONTACT_UPDATED)

    state_mode = get_config(peripheral.entities_id, "state_autoupdate_mode")
    if state_mode < 0 and host.states_id != peripheral.states_id:
        updates["states_id"] = host.states_id
        messages.append(MSG_STATUS_UPDATED)
    if state_mode > 0 and peripheral.states_id != state_mode:
        updates["states_id"] = state_mode

    return updates, messages


def compute_disconnect_updates(host: Asset, peripheral: Asset, get_config: ConfigGetter) -> dict:
    """
    Fields to reset on a non-global peripheral when it is disconnected.

    All settings are read on the peripheral's entity.
    """
    entity = peripheral.entities_id
    updates: dict = {}

    if get_config(entity, "is_location_autoclean"):
        updates["locations_id"] = None
    if get_config(entity, "is_user_autoclean"):
        updates["users_id"] = None
    if get_config(entity, "is_group_autoclean"):
        updates["groups_id"] = None
    if get_config(entity, "is_contact_autoclean"):
        updates["contact"] = ""
        updates["contact_num"] = ""

    state_mode = get_config(entity, "state_autoclean_mode")
    if state_mode < 0:
        updates["states_id"] = None
    if state_mode > 0 and peripheral.states_id != state_mode:
        updates["states_id"] = state_mode

    # Keep the peripheral dynamic so inventory-locked fields stay consistent
    if updates and peripheral.is_dynamic and host.is_dynamic:
        updates["is_dynamic"] = True

    return updates


class ConnectionService:
    """
    Handles all business logic for host ↔ peripheral connections.

    Every mutating operation returns a dict with a 'success' flag and a
    'messages' list meant for the operator.
    """

    FORBIDDEN_MASSIVE_ACTIONS = ("update",)

    def __init__(
        self,
        repo: ConnectionRepository | None = None,
        asset_repo: AssetRepository | None = None,
        entity_config: EntityConfigService | None = None,
        host_types: list[str] | None = None,
        peripheral_types: list[str] | None = None,
    ):
        self.repo = repo or ConnectionRepository()
        self.asset_repo = asset_repo or AssetRepository()
        self.entity_config = entity_config or EntityConfigService()
        self.host_types = list(host_types if host_types is not None else config.PERIPHERALHOST_TYPES)
        self.peripheral_types = list(
            peripheral_types if peripheral_types is not None else config.DIRECTCONNECT_TYPES
        )

    # ── Connect / disconnect ──────────────────────────────

    def connect(self, host_ref: ItemRef, peripheral_ref: ItemRef, is_dynamic: bool = False) -> dict:
        """
        Connect a peripheral to a host.

        Args:
            host_ref: The host asset (e.g. Computer:3).
            peripheral_ref: The peripheral asset (e.g. Monitor:8).
            is_dynamic: Connection created by automatic inventory.

        Returns:
            Dict with 'success', 'connection' (or None) and 'messages'.
        """
        peripheral = self._get_peripheral(peripheral_ref)
        if peripheral is None:
            return self._failure(f"{peripheral_ref} is not a known peripheral.")
        if not peripheral.is_global and self.count_linked_assets(peripheral_ref) > 0:
            return self._failure(f"{peripheral_ref} is already connected to another item.")

        host = self._get_host(host_ref)
        if host is None:
            return self._failure(f"{host_ref} cannot have peripherals.")
        if self.repo.exists(host_ref, peripheral_ref):
            return self._failure(f"{peripheral_ref} is already connected to {host_ref}.")

        messages: list[str] = []
        if not peripheral.is_global:
            updates, messages = compute_connect_updates(host, peripheral, self.entity_config.get_used_config)
            if updates:
                self.asset_repo.update(peripheral_ref, updates)
                logger.info(f"Propagated {sorted(updates)} from {host_ref} to {peripheral_ref}")

        connection = self.repo.add(Connection(
            itemtype_asset=host_ref.itemtype,
            items_id_asset=host_ref.id,
            itemtype_peripheral=peripheral_ref.itemtype,
            items_id_peripheral=peripheral_ref.id,
            is_dynamic=is_dynamic,
        ))
        return {"success": True, "connection": connection, "messages": messages}

    def disconnect(self, connection_id: int, no_auto_action: bool = False) -> dict:
        """
        Purge a connection, cleaning the peripheral's fields per entity settings.

        Args:
            connection_id: Connection to remove.
            no_auto_action: Skip the autoclean step.

        Returns:
            Dict with 'success', 'updates' applied to the peripheral and 'messages'.
        """
        connection = self.repo.get_by_id(connection_id)
        if connection is None:
            return self._failure(f"Connection #{connection_id} not found.")

        updates: dict = {}
        if not no_auto_action:
            updates = self._autoclean(connection)

        self.repo.delete(connection_id)
        return {"success": True, "updates": updates, "messages": [f"Disconnected {connection}."]}

    def trash(self, connection_id: int) -> dict:
        """Soft-delete a connection. The peripheral is left untouched."""
        if not self.repo.set_deleted(connection_id, True):
            return self._failure(f"Connection #{connection_id} not found.")
        return {"success": True, "messages": [f"Connection #{connection_id} moved to the trash bin."]}

    def restore(self, connection_id: int) -> dict:
        """Bring a soft-deleted connection back if the connection rules still allow it."""
        connection = self.repo.get_by_id(connection_id)
        if connection is None:
            return self._failure(f"Connection #{connection_id} not found.")
        if not connection.is_deleted:
            return {"success": True, "messages": []}

        peripheral = self.asset_repo.get(connection.peripheral)
        if peripheral is not None and not peripheral.is_global and self.count_linked_assets(connection.peripheral) > 0:
            return self._failure(f"{connection.peripheral} is already connected to another item.")
        if self.repo.exists(connection.host, connection.peripheral):
            return self._failure(f"{connection.peripheral} is already connected to {connection.host}.")

        self.repo.set_deleted(connection_id, False)
        return {"success": True, "messages": [f"Connection #{connection_id} restored."]}

    # ── Listings & counters ───────────────────────────────

    def list_peripherals(self, host_ref: ItemRef) -> list[ConnectedItem]:
        """Peripherals connected to a host, grouped by peripheral type then by name."""
        items: list[ConnectedItem] = []
        for itemtype in self.peripheral_types:
            items.extend(self.repo.list_peripheral_items(host_ref, itemtype))
        return items

    def list_hosts(self, peripheral_ref: ItemRef) -> list[ConnectedItem]:
        """Hosts a peripheral is connected to, grouped by host type then by name."""
        items: list[ConnectedItem] = []
        for itemtype in self.host_types:
            items.extend(self.repo.list_host_items(peripheral_ref, itemtype))
        return items

    def list_connections(self, item_ref: ItemRef) -> list[ConnectedItem]:
        """Items on the other side of `item_ref`'s connections, whichever side it is on."""
        if item_ref.itemtype in self.peripheral_types:
            return self.list_hosts(item_ref)
        if item_ref.itemtype in self.host_types:
            return self.list_peripherals(item_ref)
        return []

    def count_peripherals(self, host_ref: ItemRef) -> int:
        return len(self.list_peripherals(host_ref))

    def count_linked_assets(self, peripheral_ref: ItemRef) -> int:
        return len(self.list_hosts(peripheral_ref))

    def count_for_item(self, item_ref: ItemRef) -> int:
        """Number of hosts linked to an item."""
        return self.count_linked_assets(item_ref)

    def get_item_field(self, itemtype: str) -> str:
        """Connection column holding the id of an item of this type."""
        if itemtype in self.host_types:
            return "items_id_asset"
        if itemtype in self.peripheral_types:
            return "items_id_peripheral"
        raise ValueError(f"{itemtype} takes no part in connections")

    # ── Global peripherals ────────────────────────────────

    def unglobalize(self, peripheral_ref: ItemRef) -> dict:
        """
        Turn a global peripheral into unit management.

        The original item keeps its first connection; every other connection
        gets its own copy of the item.

        Returns:
            Dict with 'success', 'clones' (new asset ids) and 'messages'.
        """
        peripheral = self._get_peripheral(peripheral_ref)
        if peripheral is None:
            return self._failure(f"{peripheral_ref} is not a known peripheral.")
        if not peripheral.is_global:
            return self._failure(f"{peripheral_ref} is not global.")

        self.asset_repo.update(peripheral_ref, {"is_global": False})
        clones: list[int] = []
        for connection in self.repo.list_for_peripheral(peripheral_ref, include_deleted=True)[1:]:
            clone = self.asset_repo.add(replace(
                peripheral, id=None, is_global=False, date_creation=None, date_mod=None,
            ))
            self.repo.set_peripheral(connection.id, clone.id)
            clones.append(clone.id)

        logger.info(f"Unglobalized {peripheral_ref} into {len(clones)} extra item(s)")
        return {
            "success": True,
            "clones": clones,
            "messages": [f"{peripheral_ref} is now managed per unit ({len(clones)} copies created)."],
        }

    # ── Entity checks ─────────────────────────────────────

    def can_unrecurs(self, item_ref: ItemRef, entities: list[int]) -> bool:
        """
        True if every item connected to `item_ref` belongs to one of `entities`,
        so the item can stop being visible in child entities.
        """
        if item_ref.itemtype in self.host_types:
            others = [c.peripheral for c in self.repo.list_for_host(item_ref, include_deleted=True)]
        else:
            others = [c.host for c in self.repo.list_for_peripheral(item_ref, include_deleted=True)]

        for ref in others:
            asset = self.asset_repo.get(ref)
            if asset is not None and asset.entities_id not in entities:
                return False
        return True

    # ── Massive actions ───────────────────────────────────

    def massive_actions_for_itemtype(self, itemtype: str) -> dict[str, str]:
        """Bulk actions offered on a list of `itemtype` items: action key → label."""
        if itemtype in self.peripheral_types:
            return {"add": "Connect", "remove": "Disconnect"}
        return {}

    def relation_peer_for_subform(self, itemtypes: list[str]) -> int:
        """
        Which side of the relation the bulk form must ask for.

        Returns:
            1 when a peripheral type is selected, 2 when only host types are
            selected, 0 when it cannot be decided.
        """
        if any(t in self.peripheral_types for t in itemtypes):
            return 1
        if itemtypes and all(t in self.host_types for t in itemtypes):
            return 2
        return 0

    def massive_connect(self, peripherals: list[ItemRef], host_ref: ItemRef) -> dict:
        """Connect many peripherals to one host. Returns 'ok', 'ko' and 'messages'."""
        result = {"ok": 0, "ko": 0, "messages": []}
        for ref in peripherals:
            outcome = self.connect(host_ref, ref)
            result["ok" if outcome["success"] else "ko"] += 1
            result["messages"].extend(outcome["messages"])
        return result

    def massive_disconnect(self, items: list[ItemRef]) -> dict:
        """
        Remove every connection of each item at once.

        An item without connections counts as a failure.
        """
        result = {"ok": 0, "ko": 0, "messages": []}
        for ref in items:
            if ref.itemtype in self.peripheral_types:
                connections = self.repo.list_for_peripheral(ref)
            elif ref.itemtype in self.host_types:
                connections = self.repo.list_for_host(ref)
            else:
                connections = []

            if not connections:
                result["ko"] += 1
                result["messages"].append(f"No connection found for {ref}.")
                continue

            outcomes = [self.disconnect(c.id) for c in connections]
            result["ok" if all(o["success"] for o in outcomes) else "ko"] += 1
        return result

    # ── HELPERS ───────────────────────────────────────────

    def _autoclean(self, connection: Connection) -> dict:
        host = self.asset_repo.get(connection.host)
        if host is None:
            return {}
        peripheral = self.asset_repo.get(connection.peripheral)
        if peripheral is None or peripheral.is_global:
            return {}

        updates = compute_disconnect_updates(host, peripheral, self.entity_config.get_used_config)
        if updates:
            self.asset_repo.update(connection.peripheral, updates)
            logger.info(f"Cleaned {sorted(updates)} on {connection.peripheral}")
        return updates

    def _get_peripheral(self, ref: ItemRef) -> Asset | None:
        if ref.itemtype not in self.peripheral_types:
            return None
        return self.asset_repo.get(ref)

    def _get_host(self, ref: ItemRef) -> Asset | None:
        if ref.itemtype not in self.host_types:
            return None
        return self.asset_repo.get(ref)

    @staticmethod
    def _failure(message: str) -> dict:
        logger.warning(message)
        return {"success": False, "connection": None, "messages": [message]}

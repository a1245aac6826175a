"""
In-memory stand-ins for the repositories, so services run without PostgreSQL.
"""

from datetime import timedelta

import pytest

from models.alert import NOTICE, Alert
from models.asset import Asset, ItemRef
from models.connection import ConnectedItem, Connection
from models.entity import Entity
from models.user import AuthType, User
from models.user_email import UserEmail
from services.connection_service import ConnectionService
from services.entity_service import EntityConfigService
from services.password_policy import PasswordPolicy
from services.substitute_service import SubstituteService
from services.user_service import UserService
from utils.clock import utcnow


class FakeAssetRepository:
    def __init__(self):
        self.rows: dict[ItemRef, Asset] = {}
        self._next_id = 1

    def add(self, asset: Asset) -> Asset:
        asset.id = self._next_id
        self._next_id += 1
        asset.date_creation = asset.date_mod = utcnow()
        self.rows[asset.ref] = asset
        return asset

    def get(self, ref: ItemRef) -> Asset | None:
        return self.rows.get(ref)

    def update(self, ref: ItemRef, changes: dict) -> bool:
        asset = self.rows.get(ref)
        if asset is None:
            return False
        for key, value in changes.items():
            setattr(asset, key, value)
        return True


class FakeConnectionRepository:
    def __init__(self, assets: FakeAssetRepository):
        self.assets = assets
        self.rows: dict[int, Connection] = {}
        self._next_id = 1

    def add(self, connection: Connection) -> Connection:
        connection.id = self._next_id
        self._next_id += 1
        self.rows[connection.id] = connection
        return connection

    def get_by_id(self, connection_id: int) -> Connection | None:
        return self.rows.get(connection_id)

    def exists(self, host: ItemRef, peripheral: ItemRef) -> bool:
        return any(
            c.host == host and c.peripheral == peripheral and not c.is_deleted
            for c in self.rows.values()
        )

    def list_for_peripheral(self, peripheral: ItemRef, include_deleted: bool = False) -> list[Connection]:
        return [c for c in self._sorted() if c.peripheral == peripheral and (include_deleted or not c.is_deleted)]

    def list_for_host(self, host: ItemRef, include_deleted: bool = False) -> list[Connection]:
        return [c for c in self._sorted() if c.host == host and (include_deleted or not c.is_deleted)]

    def list_peripheral_items(self, host: ItemRef, itemtype: str) -> list[ConnectedItem]:
        links = [(c, c.peripheral) for c in self.list_for_host(host) if c.itemtype_peripheral == itemtype]
        return self._listing(links)

    def list_host_items(self, peripheral: ItemRef, itemtype: str) -> list[ConnectedItem]:
        links = [(c, c.host) for c in self.list_for_peripheral(peripheral) if c.itemtype_asset == itemtype]
        return self._listing(links)

    def set_peripheral(self, connection_id: int, items_id_peripheral: int) -> bool:
        self.rows[connection_id].items_id_peripheral = items_id_peripheral
        return True

    def set_deleted(self, connection_id: int, is_deleted: bool) -> bool:
        if connection_id not in self.rows:
            return False
        self.rows[connection_id].is_deleted = is_deleted
        return True

    def delete(self, connection_id: int) -> bool:
        return self.rows.pop(connection_id, None) is not None

    def _sorted(self) -> list[Connection]:
        return [self.rows[k] for k in sorted(self.rows)]

    def _listing(self, links) -> list[ConnectedItem]:
        items = []
        for connection, ref in links:
            asset = self.assets.get(ref)
            if asset is None:
                continue
            items.append(ConnectedItem(
                linkid=connection.id, itemtype=asset.itemtype, id=asset.id, name=asset.name,
                entities_id=asset.entities_id, is_deleted=asset.is_deleted,
                link_is_dynamic=connection.is_dynamic, serial=asset.serial, otherserial=asset.otherserial,
            ))
        return sorted(items, key=lambda i: (i.name, i.id))


class FakeEntityRepository:
    def __init__(self):
        self.rows: dict[int, Entity] = {}

    def add(self, entity: Entity) -> Entity:
        if entity.id is None:
            entity.id = max(self.rows, default=-1) + 1
        self.rows[entity.id] = entity
        return entity

    def get(self, entity_id: int) -> Entity | None:
        return self.rows.get(entity_id)

    def update_settings(self, entity_id: int, settings: dict) -> bool:
        entity = self.rows.get(entity_id)
        if entity is None:
            return False
        for key, value in settings.items():
            setattr(entity, key, value)
        return True


class FakeAlertRepository:
    def __init__(self):
        self.rows: dict[tuple[str, int], Alert] = {}

    def replace(self, alert: Alert) -> Alert:
        alert.date = alert.date or utcnow()
        alert.id = len(self.rows) + 1
        self.rows[(alert.itemtype, alert.items_id)] = alert
        return alert

    def count(self, itemtype: str) -> int:
        return sum(1 for (t, _) in self.rows if t == itemtype)


class FakeUserRepository:
    def __init__(self, alerts: FakeAlertRepository | None = None):
        self.alerts = alerts or FakeAlertRepository()
        self.rows: dict[int, User] = {}
        self._next_id = 1

    def add(self, user: User) -> User:
        user.id = self._next_id
        self._next_id += 1
        user.date_creation = user.date_creation or utcnow()
        user.date_mod = utcnow()
        self.rows[user.id] = user
        return user

    def get_by_id(self, user_id: int) -> User | None:
        return self.rows.get(user_id)

    def get_by_telegram_id(self, telegram_id: int) -> User | None:
        return next(
            (u for u in self.rows.values() if u.telegram_id == telegram_id and not u.is_deleted), None
        )

    def get_by_name_and_auth(self, name: str, authtype: int, auths_id: int) -> User | None:
        return next(
            (u for u in self.rows.values()
             if u.name == name and u.authtype == authtype and u.auths_id == auths_id),
            None,
        )

    def find_by_field(self, field: str, value) -> list[User]:
        return [u for u in self.rows.values() if getattr(u, field) == value]

    def name_exists(self, name: str, exclude_id: int | None = None) -> bool:
        return any(u.name == name and not u.is_deleted and u.id != exclude_id for u in self.rows.values())

    def get_by_forgotten_token(self, token: str, issued_after) -> User | None:
        return next(
            (u for u in self.rows.values()
             if u.password_forget_token == token
             and u.password_forget_token_date is not None
             and u.password_forget_token_date >= issued_after),
            None,
        )

    def _notice_candidates(self, updated_before, notified_before) -> list[User]:
        found = []
        for user in sorted(self.rows.values(), key=lambda u: u.id):
            if user.is_deleted or not user.is_active or user.authtype != AuthType.DB_GLPI:
                continue
            if user.password_last_update is None or user.password_last_update >= updated_before:
                continue
            alert = self.alerts.rows.get(("User", user.id))
            if alert is not None and alert.type == NOTICE and alert.date >= notified_before:
                continue
            found.append(user)
        return found

    def count_password_notice_candidates(self, updated_before, notified_before) -> int:
        return len(self._notice_candidates(updated_before, notified_before))

    def get_password_notice_candidates(self, updated_before, notified_before, limit: int) -> list[User]:
        return self._notice_candidates(updated_before, notified_before)[:limit]

    def deactivate_expired_passwords(self, updated_before) -> int:
        count = 0
        for user in self.rows.values():
            if (not user.is_deleted and user.is_active and user.authtype == AuthType.DB_GLPI
                    and user.password_last_update is not None
                    and user.password_last_update < updated_before):
                user.is_active = False
                count += 1
        return count

    def update(self, user_id: int, changes: dict) -> bool:
        user = self.rows.get(user_id)
        if user is None:
            return False
        for key, value in changes.items():
            setattr(user, key, value)
        return True


class FakeUserEmailRepository:
    def __init__(self):
        self.rows: dict[int, UserEmail] = {}
        self._next_id = 1

    def add(self, email: UserEmail) -> UserEmail:
        email.id = self._next_id
        self._next_id += 1
        self.rows[email.id] = email
        return email

    def list_for_user(self, users_id: int) -> list[UserEmail]:
        return [e for _, e in sorted(self.rows.items()) if e.users_id == users_id]

    def find_user_ids(self, email: str) -> list[int]:
        return sorted({e.users_id for e in self.rows.values() if e.email.lower() == email.lower()})

    def update_email(self, email_id: int, email: str) -> bool:
        self.rows[email_id].email = email
        return True

    def set_default(self, users_id: int, email_id: int) -> bool:
        for e in self.list_for_user(users_id):
            e.is_default = e.id == email_id
        return True

    def delete(self, email_id: int) -> bool:
        return self.rows.pop(email_id, None) is not None


class FakeSubstituteRepository:
    def __init__(self):
        self.rows: list[tuple[int, int]] = []

    def get_substitutes(self, users_id: int) -> list[int]:
        return [s for (u, s) in self.rows if u == users_id]

    def get_delegators(self, users_id: int) -> list[int]:
        return [u for (u, s) in self.rows if s == users_id]

    def exists(self, users_id: int, users_id_substitute: int) -> bool:
        return (users_id, users_id_substitute) in self.rows

    def replace(self, users_id: int, substitutes: list[int]) -> None:
        self.rows = [r for r in self.rows if r[0] != users_id]
        self.rows.extend((users_id, s) for s in substitutes)


# ── Fixtures ──────────────────────────────────────────────

@pytest.fixture
def asset_repo():
    return FakeAssetRepository()


@pytest.fixture
def connection_repo(asset_repo):
    return FakeConnectionRepository(asset_repo)


@pytest.fixture
def entity_repo():
    repo = FakeEntityRepository()
    repo.add(Entity(
        name="Root entity", entities_id=None, id=0,
        is_location_autoupdate=1, is_user_autoupdate=1, is_group_autoupdate=1,
        is_contact_autoupdate=1, state_autoupdate_mode=0,
        is_location_autoclean=0, is_user_autoclean=0, is_group_autoclean=0,
        is_contact_autoclean=0, state_autoclean_mode=0,
    ))
    return repo


@pytest.fixture
def entity_config(entity_repo):
    return EntityConfigService(entity_repo)


@pytest.fixture
def connection_service(connection_repo, asset_repo, entity_config):
    return ConnectionService(
        connection_repo, asset_repo, entity_config,
        host_types=["Computer"],
        peripheral_types=["Monitor", "Peripheral", "Phone", "Printer"],
    )


@pytest.fixture
def alert_repo():
    return FakeAlertRepository()


@pytest.fixture
def user_repo(alert_repo):
    return FakeUserRepository(alert_repo)


@pytest.fixture
def policy():
    return PasswordPolicy()


@pytest.fixture
def user_email_repo():
    return FakeUserEmailRepository()


@pytest.fixture
def user_service(user_repo, policy, user_email_repo):
    return UserService(user_repo, policy, user_email_repo)


@pytest.fixture
def substitute_repo():
    return FakeSubstituteRepository()


@pytest.fixture
def substitute_service(substitute_repo, user_service):
    return SubstituteService(substitute_repo, user_service)


@pytest.fixture
def make_asset(asset_repo):
    def _make(itemtype: str, name: str = "", **fields) -> Asset:
        return asset_repo.add(Asset(itemtype=itemtype, name=name or f"{itemtype} item", **fields))
    return _make


@pytest.fixture
def make_user(user_repo):
    def _make(name: str, days_since_update: int | None = None, **fields) -> User:
        if days_since_update is not None:
            fields["password_last_update"] = utcnow() - timedelta(days=days_since_update)
        return user_repo.add(User(name=name, **fields))
    return _make


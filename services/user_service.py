"""
services/user_service.py
------------------------
Business logic for user accounts.

Responsibilities:
    - Validate logins and passwords on creation and update.
    - Keep the DN hash, password history and substitution window consistent.
    - Look users up by login, DN, sync field, email, token or any lookup column.
    - Keep several email addresses per user, one of them the default.
    - Personal/API tokens and the lost-password flow.
"""

import re
from datetime import datetime, timedelta, timezone

from dateutil import parser as date_parser

from models.user import AuthType, User
from models.user_email import UserEmail
from repositories.user_email_repo import UserEmailRepository
from repositories.user_repo import UserRepository
from security.credentials import (
    check_password,
    dn_hash,
    forget_password_token,
    hash_password,
    random_token,
)
from services.errors import ForgetPasswordException, PasswordTooWeakException
from services.password_policy import PasswordPolicy, validate_password
from utils.clock import utcnow
from utils.logger import get_logger

logger = get_logger(__name__)

MSG_INVALID_LOGIN_ADD = "The login is not valid. Unable to add the user."
MSG_USER_EXISTS_ADD = "Unable to add. The user already exists."
MSG_INVALID_LOGIN_UPDATE = "The login is not valid. Unable to update login."
MSG_USER_EXISTS_UPDATE = "Unable to update login. A user already exists."
MSG_PASSWORD_MISMATCH = "Error: the two passwords do not match"
MSG_SUBSTITUTION_RANGE = "The substitution end date must be after its start date."

TOKEN_FIELDS = ("personal_token", "api_token")
PASSWORD_HISTORY_SIZE = 10

_LOGIN_RE = re.compile(r"^[\w@.\- ]+$")


def is_valid_login(login: str | None) -> bool:
    """Letters, digits, '@', '.', '-', '_' and spaces only."""
    return bool(login) and _LOGIN_RE.match(login) is not None


def parse_datetime(value) -> datetime | None:
    """
    Accept a datetime, a date string or '' / None.

    Naive values are taken as UTC.
    """
    if value is None or value == "":
        return None
    if isinstance(value, str):
        value = date_parser.parse(value)
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value


class UserService:
    """Handles all business logic for user accounts."""

    def __init__(
        self,
        repo: UserRepository | None = None,
        policy: PasswordPolicy | None = None,
        email_repo: UserEmailRepository | None = None,
    ):
        self.repo = repo or UserRepository()
        self.policy = policy or PasswordPolicy.from_config()
        self.email_repo = email_repo or UserEmailRepository()

    # ── Create / update ───────────────────────────────────

    def add(self, name: str, password: str = "", password2: str | None = None,
            extauth: bool = False, emails=None, default_email=None, **fields) -> dict:
        """
        Create a user account.

        Args:
            name: Login.
            password: Clear-text password, empty for none.
            password2: Confirmation, must match `password` when one is given.
            extauth: Account authenticated elsewhere; no local password is stored.
            emails: Addresses to attach, see `_save_emails`.
            default_email: Key in `emails` of the default address.
            **fields: Any other User attribute.

        Returns:
            Dict with 'success', 'user' (or None) and 'messages'.
        """
        if not is_valid_login(name):
            return self._failure(MSG_INVALID_LOGIN_ADD)
        if self.repo.name_exists(name):
            return self._failure(MSG_USER_EXISTS_ADD)

        now = utcnow()
        if extauth:
            fields["password"] = ""
            fields["password_last_update"] = now
        elif password:
            if password != password2:
                return self._failure(MSG_PASSWORD_MISMATCH)
            errors = validate_password(password, self.policy)
            if errors:
                return self._failure(*errors)
            fields["password"] = hash_password(password)
            fields["password_last_update"] = now

        if fields.get("user_dn"):
            fields["user_dn_hash"] = dn_hash(fields["user_dn"])

        user = self.repo.add(User(name=name, **fields))
        if emails:
            self._save_emails(user.id, emails, default_email)
        return {"success": True, "user": user, "messages": []}

    def update(self, user_id: int, changes: dict) -> dict:
        """
        Update a user account.

        An invalid or already taken login is reported and left unchanged
        while the other changes still apply. A password mismatch or a policy
        violation rejects the whole update.

        Args:
            user_id: Account to update.
            changes: Column → new value. 'password2' confirms 'password';
                'emails' and 'default_email' go through `_save_emails`.

        Returns:
            Dict with 'success', 'changes' actually written and 'messages'.
        """
        user = self.repo.get_by_id(user_id)
        if user is None:
            return self._failure(f"User #{user_id} not found.")

        changes = dict(changes)
        messages: list[str] = []
        emails = changes.pop("emails", None)
        default_email = changes.pop("default_email", None)

        if "name" in changes:
            name = changes["name"]
            if name == user.name:
                del changes["name"]
            elif not is_valid_login(name):
                messages.append(MSG_INVALID_LOGIN_UPDATE)
                del changes["name"]
            elif self.repo.name_exists(name, exclude_id=user_id):
                messages.append(MSG_USER_EXISTS_UPDATE)
                del changes["name"]

        password = changes.pop("password", None)
        password2 = changes.pop("password2", None)
        if password:
            if password != password2:
                return self._failure(MSG_PASSWORD_MISMATCH)
            if not check_password(password, user.password):
                errors = validate_password(password, self.policy, user)
                if errors:
                    return self._failure(*errors)
                changes.update(self._password_changes(user, password))

        if "user_dn" in changes:
            changes["user_dn_hash"] = dn_hash(changes["user_dn"])

        if changes.get("timezone") == "0":
            changes["timezone"] = None

        for key in ("substitution_start_date", "substitution_end_date"):
            if key in changes:
                changes[key] = parse_datetime(changes[key])
        start = changes.get("substitution_start_date", user.substitution_start_date)
        end = changes.get("substitution_end_date", user.substitution_end_date)
        if start is not None and end is not None and end < start:
            return self._failure(MSG_SUBSTITUTION_RANGE)

        if changes:
            self.repo.update(user_id, changes)
        if emails or default_email is not None:
            self._save_emails(user_id, emails or {}, default_email)
        for message in messages:
            logger.warning(f"User #{user_id}: {message}")
        return {"success": True, "changes": changes, "messages": messages}

    def blank_password(self, user: User) -> bool:
        """Remove the local password of an account."""
        if user.id is None:
            return False
        user.password = ""
        return self.repo.update(user.id, {"password": ""})

    # ── Lookups ───────────────────────────────────────────

    def get_by_id(self, user_id: int) -> User | None:
        return self.repo.get_by_id(user_id)

    def get_by_dn(self, user_dn: str) -> User | None:
        """Find a user by LDAP DN, through its hash."""
        hashed = dn_hash(user_dn)
        if hashed is None:
            return None
        return self._single(self.repo.find_by_field("user_dn_hash", hashed))

    def get_by_sync_field(self, value: str) -> User | None:
        return self._single(self.repo.find_by_field("sync_field", value))

    def get_by_name(self, name: str) -> User | None:
        return self._single(self.repo.find_by_field("name", name))

    def get_by_name_and_auth(self, name: str, authtype: int, auths_id: int) -> User | None:
        return self.repo.get_by_name_and_auth(name, authtype, auths_id)

    def get_by_email(self, email: str) -> list[User]:
        """Users owning `email` among any of their addresses."""
        users = []
        for user_id in self.email_repo.find_user_ids(email):
            user = self.repo.get_by_id(user_id)
            if user is not None:
                users.append(user)
        return users

    def get_by_telegram_id(self, telegram_id: int) -> User | None:
        return self.repo.get_by_telegram_id(telegram_id)

    def get_id_by_name(self, name: str) -> int | None:
        user = self.get_by_name(name)
        return user.id if user else None

    def get_id_by_field(self, field: str, value) -> int | None:
        """Id of the only user whose `field` equals `value`; None if zero or several match."""
        users = self.repo.find_by_field(field, value)
        if len(users) != 1:
            return None
        return users[0].id

    @staticmethod
    def friendly_name(user: User | None) -> str:
        return user.friendly_name() if user else ""

    # ── Emails ────────────────────────────────────────────

    def get_default_email(self, user_id: int | None) -> str:
        """Default address of a user, '' when there is none."""
        if user_id is None:
            return ""
        for email in self.email_repo.list_for_user(user_id):
            if email.is_default:
                return email.email
        return ""

    def get_all_emails(self, user_id: int | None) -> list[str]:
        if user_id is None:
            return []
        return [e.email for e in self.email_repo.list_for_user(user_id)]

    def is_email(self, user_id: int | None, email: str) -> bool:
        """True if `email` is one of the user's addresses."""
        wanted = (email or "").lower()
        return any(e.lower() == wanted for e in self.get_all_emails(user_id))

    def _save_emails(self, user_id: int, emails, default_email=None) -> None:
        """
        Add or edit the addresses of a user.

        `emails` maps a key to an address; a list is keyed by position. A key
        equal to the id of one of this user's addresses edits that address,
        and an empty value deletes it. Any other key, including the id of
        another user's address, adds a new address.

        `default_email` is one of those keys, or the id of an address the user
        already owns. Without it, the oldest address becomes the default when
        the user has none.
        """
        if isinstance(emails, (list, tuple)):
            emails = dict(enumerate(emails))

        owned = {e.id: e for e in self.email_repo.list_for_user(user_id)}
        saved: dict = {}
        for key, address in emails.items():
            address = (address or "").strip()
            existing = owned.get(key)
            if existing is not None:
                if address:
                    self.email_repo.update_email(existing.id, address)
                    existing.email = address
                    saved[key] = existing.id
                else:
                    self.email_repo.delete(existing.id)
                    del owned[existing.id]
                continue
            if not address:
                continue
            duplicate = next((e for e in owned.values() if e.email.lower() == address.lower()), None)
            if duplicate is not None:
                saved[key] = duplicate.id
                continue
            added = self.email_repo.add(UserEmail(users_id=user_id, email=address))
            owned[added.id] = added
            saved[key] = added.id

        default_id = saved.get(default_email)
        if default_id is None and default_email in owned:
            default_id = default_email
        if default_id is None and owned and not any(e.is_default for e in owned.values()):
            default_id = min(owned)
        if default_id is not None:
            self.email_repo.set_default(user_id, default_id)
            logger.info(f"User #{user_id}: default email is now #{default_id}")

    # ── Tokens ────────────────────────────────────────────

    def get_auth_token(self, user: User, field: str = "personal_token", force_new: bool = False) -> str:
        """
        Personal or API token of a user, generated on first use.

        Raises:
            ValueError: If `field` is not a token column.
        """
        if field not in TOKEN_FIELDS:
            raise ValueError(f"Unknown token field: {field}")
        token = getattr(user, field)
        if token and not force_new:
            return token

        token = self._unique_token(field)
        now = utcnow()
        self.repo.update(user.id, {field: token, f"{field}_date": now})
        setattr(user, field, token)
        setattr(user, f"{field}_date", now)
        logger.info(f"Generated new {field} for user #{user.id}")
        return token

    def get_by_token(self, token, field: str = "personal_token") -> User | None:
        """
        Find a user by personal or API token.

        A disallowed column or a non-string token is logged and ignored.
        """
        if field not in TOKEN_FIELDS:
            logger.warning(
                "get_by_token() can only be called with field parameter with these values: "
                + ", ".join(f"'{f}'" for f in TOKEN_FIELDS)
            )
            return None
        if not isinstance(token, str):
            logger.warning(
                f'Unexpected token value received: "string" expected, received "{type(token).__name__}".'
            )
            return None
        return self._single(self.repo.find_by_field(field, token))

    def _unique_token(self, field: str) -> str:
        while True:
            token = random_token(40)
            if not self.repo.find_by_field(field, token):
                return token

    # ── Lost password ─────────────────────────────────────

    def forget_password(self, email: str) -> dict:
        """
        Start the lost-password flow for the single user owning `email`.

        Returns:
            Dict with 'success', 'user' and 'token' on success.

        Raises:
            ForgetPasswordException: If the account's password is not stored locally.
        """
        users = [u for u in self.get_by_email(email) if not u.is_deleted and u.is_active]
        if len(users) != 1:
            logger.warning(f"Failed to find a single user for '{email}', {len(users)} user(s) found.")
            return {"success": False, "user": None, "token": None,
                    "messages": ["No single account matches this email."]}

        user = users[0]
        if not user.is_local():
            raise ForgetPasswordException(
                "The authentication method configuration doesn't allow you to change your password."
            )

        token = forget_password_token()
        now = utcnow()
        self.repo.update(user.id, {"password_forget_token": token, "password_forget_token_date": now})
        user.password_forget_token, user.password_forget_token_date = token, now
        logger.info(f"Lost-password token issued for user #{user.id}")
        return {"success": True, "user": user, "token": token, "messages": []}

    def get_user_by_forgotten_password_token(self, token: str, now: datetime | None = None) -> User | None:
        """Owner of a lost-password token still within PASSWORD_INIT_TOKEN_DELAY."""
        if not token:
            return None
        issued_after = (now or utcnow()) - timedelta(seconds=self.policy.init_token_delay)
        return self.repo.get_by_forgotten_token(token, issued_after)

    def update_forgotten_password(self, token: str, password: str, password2: str) -> bool:
        """
        Set a new password from a lost-password token and consume the token.

        Raises:
            ForgetPasswordException: Unknown or expired token, external account, mismatch.
            PasswordTooWeakException: The password breaks the policy.
        """
        user = self.get_user_by_forgotten_password_token(token)
        if user is None:
            raise ForgetPasswordException("Your password reset request has expired or is invalid.")
        if not user.is_local():
            raise ForgetPasswordException(
                "The authentication method configuration doesn't allow you to change your password."
            )
        if password != password2:
            raise ForgetPasswordException(MSG_PASSWORD_MISMATCH)

        errors = validate_password(password, self.policy, user)
        if errors:
            raise PasswordTooWeakException(errors)

        changes = self._password_changes(user, password)
        changes.update({"password_forget_token": None, "password_forget_token_date": None})
        self.repo.update(user.id, changes)
        logger.info(f"Password reset for user #{user.id}")
        return True

    # ── Telegram link ─────────────────────────────────────

    def link_telegram(self, name: str, password: str, telegram_id: int) -> dict:
        """Attach a Telegram chat to a local account after checking its password."""
        user = self.get_by_name_and_auth(name, AuthType.DB_GLPI, 0)
        if user is None or user.is_deleted or not user.is_active or not check_password(password, user.password):
            return self._failure("Invalid login or password.")

        previous = self.repo.get_by_telegram_id(telegram_id)
        if previous is not None and previous.id != user.id:
            self.repo.update(previous.id, {"telegram_id": None})
        self.repo.update(user.id, {"telegram_id": telegram_id})
        user.telegram_id = telegram_id
        logger.info(f"Telegram chat {telegram_id} linked to user #{user.id}")
        return {"success": True, "user": user, "messages": [f"Linked to {user.friendly_name()}."]}

    # ── HELPERS ───────────────────────────────────────────

    @staticmethod
    def _password_changes(user: User, password: str) -> dict:
        history = [user.password, *user.password_history] if user.password else list(user.password_history)
        return {
            "password": hash_password(password),
            "password_last_update": utcnow(),
            "password_history": history[:PASSWORD_HISTORY_SIZE],
        }

    @staticmethod
    def _single(users: list[User]) -> User | None:
        return users[0] if len(users) == 1 else None

    @staticmethod
    def _failure(*messages: str) -> dict:
        for message in messages:
            logger.warning(message)
        return {"success": False, "user": None, "messages": list(messages)}

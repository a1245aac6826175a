"""User account rules: logins, passwords, tokens, DN hash and lost password."""

import hashlib
import logging
from datetime import timedelta

import pytest

from models.user import AuthType
from security.credentials import check_password
from services.errors import ForgetPasswordException, PasswordTooWeakException
from services.password_policy import PASSWORD_REUSED, PasswordPolicy
from services.user_service import (
    MSG_INVALID_LOGIN_ADD,
    MSG_INVALID_LOGIN_UPDATE,
    MSG_PASSWORD_MISMATCH,
    MSG_USER_EXISTS_ADD,
    MSG_USER_EXISTS_UPDATE,
    UserService,
    is_valid_login,
)
from utils.clock import utcnow


# ── Add ───────────────────────────────────────────────────

def test_add_applies_defaults(user_service):
    result = user_service.add("prepare_for_add")

    user = result["user"]
    assert result["success"] is True
    assert (user.authtype, user.auths_id, user.is_active, user.is_deleted, user.entities_id) == (
        AuthType.DB_GLPI, 0, True, False, 0,
    )
    assert user.password == ""


@pytest.mark.parametrize("login, valid", [
    ("john.doe", True), ("jane-doe_2@corp", True), ("with space", True),
    ("invalid+login", False), ("", False), ("semi;colon", False),
])
def test_login_validation(login, valid):
    assert is_valid_login(login) is valid


def test_add_rejects_invalid_login(user_service):
    result = user_service.add("invalid+login")
    assert result == {"success": False, "user": None, "messages": [MSG_INVALID_LOGIN_ADD]}


def test_add_rejects_duplicate_login(user_service):
    assert user_service.add("new_user")["success"]
    assert user_service.add("new_user")["messages"] == [MSG_USER_EXISTS_ADD]


def test_add_rejects_password_mismatch(user_service):
    assert user_service.add("user_pass", "password", "nomatch")["messages"] == [MSG_PASSWORD_MISMATCH]


def test_add_hashes_password(user_service):
    user = user_service.add("user_pass", "mypass", "mypass")["user"]

    assert user.password != "mypass"
    assert check_password("mypass", user.password)
    assert user.password_last_update is not None


def test_add_external_account_stores_no_password(user_service):
    user = user_service.add("ext_user", "mypass", "mypass", extauth=True)["user"]

    assert user.password == ""
    assert user.password_last_update is not None


def test_add_enforces_password_policy(user_repo):
    service = UserService(user_repo, PasswordPolicy(use_password_security=True))

    result = service.add("weak", "abc", "abc")

    assert result["success"] is False
    assert len(result["messages"]) == 4


def test_dn_is_hashed_on_add_and_update(user_service):
    dn = "user=dn_user,dc=R&D,dc=example,dc=org"
    user = user_service.add("dn_user", user_dn=dn)["user"]
    assert user.user_dn_hash == hashlib.md5(dn.encode()).hexdigest()

    user_service.update(user.id, {"user_dn": ""})
    assert user.user_dn_hash is None

    other = user_service.add("no_dn")["user"]
    assert other.user_dn_hash is None


def test_get_by_dn_uses_hash(user_service, user_repo):
    dn = "user=lookup,dc=example,dc=org"
    user = user_service.add("lookup", user_dn=dn)["user"]
    user_repo.update(user.id, {"user_dn": ""})

    assert user_service.get_by_dn(dn).id == user.id
    assert user_service.get_by_dn("user=nobody") is None


# ── Update ────────────────────────────────────────────────

def test_update_login(user_service):
    user = user_service.add("preupdate_user")["user"]

    assert user_service.update(user.id, {"name": "preupdate_user_edited"})["messages"] == []
    # Same name on the same user is fine
    assert user_service.update(user.id, {"name": "preupdate_user_edited"})["messages"] == []
    assert user.name == "preupdate_user_edited"


def test_update_to_existing_login_is_reported_and_skipped(user_service):
    user = user_service.add("first")["user"]
    user_service.add("do_exist")

    result = user_service.update(user.id, {"name": "do_exist", "realname": "Doe"})

    assert result["success"] is True
    assert result["messages"] == [MSG_USER_EXISTS_UPDATE]
    assert user.name == "first"
    assert user.realname == "Doe"


def test_update_to_invalid_login_is_reported(user_service):
    user = user_service.add("valid")["user"]

    result = user_service.update(user.id, {"name": "in+valid"})

    assert result["messages"] == [MSG_INVALID_LOGIN_UPDATE]
    assert user.name == "valid"


def test_update_same_password_changes_nothing(user_service):
    user = user_service.add("samepass", "initial_pass", "initial_pass")["user"]

    result = user_service.update(user.id, {"password": "initial_pass", "password2": "initial_pass"})

    assert result["changes"] == {}


def test_update_password_mismatch(user_service):
    user = user_service.add("mismatch", "initial_pass", "initial_pass")["user"]

    result = user_service.update(user.id, {"password": "new_pass", "password2": "new_pass_not_match"})

    assert result["success"] is False
    assert result["messages"] == [MSG_PASSWORD_MISMATCH]


def test_update_password_keeps_history(user_service):
    user = user_service.add("history", "initial_pass", "initial_pass")["user"]
    old_hash = user.password

    result = user_service.update(user.id, {"password": "new_pass", "password2": "new_pass"})

    assert set(result["changes"]) == {"password", "password_last_update", "password_history"}
    assert check_password("new_pass", user.password)
    assert user.password_history == [old_hash]


def test_update_rejects_reused_password(user_repo):
    service = UserService(user_repo, PasswordPolicy(non_reusable_count=2))
    user = service.add("reuse", "first_pass", "first_pass")["user"]
    service.update(user.id, {"password": "second_pass", "password2": "second_pass"})

    result = service.update(user.id, {"password": "first_pass", "password2": "first_pass"})

    assert result["messages"] == [PASSWORD_REUSED]


@pytest.mark.parametrize("timezone, expected", [("Europe/Paris", "Europe/Paris"), ("0", None)])
def test_update_timezone(user_service, timezone, expected):
    user = user_service.add("tz_user")["user"]

    user_service.update(user.id, {"timezone": timezone})

    assert user.timezone == expected


def test_update_substitution_dates_from_strings(user_service):
    user = user_service.add("delegator")["user"]

    user_service.update(user.id, {"substitution_end_date": "1999-01-01 12:00:00"})
    assert user.substitution_end_date.year == 1999
    assert user.substitution_end_date.tzinfo is not None

    user_service.update(user.id, {"substitution_end_date": ""})
    assert user.substitution_end_date is None


def test_update_rejects_end_before_start(user_service):
    user = user_service.add("window")["user"]

    result = user_service.update(user.id, {
        "substitution_start_date": "2026-02-01", "substitution_end_date": "2026-01-01",
    })

    assert result["success"] is False
    assert user.substitution_start_date is None


def test_blank_password(user_service):
    user = user_service.add("myname", "mypass", "mypass")["user"]

    assert user_service.blank_password(user) is True
    assert user_service.get_by_id(user.id).password == ""


# ── Lookups ───────────────────────────────────────────────

def test_lookups(user_service):
    user = user_service.add("user_with_name", sync_field="abc-def-ghi", auths_id=12)["user"]

    assert user_service.get_by_name("user_with_name").id == user.id
    assert user_service.get_by_sync_field("abc-def-ghi").id == user.id
    assert user_service.get_by_name_and_auth("user_with_name", AuthType.DB_GLPI, 12).id == user.id
    assert user_service.get_by_name_and_auth("user_with_name", AuthType.DB_GLPI, 0) is None
    assert user_service.get_id_by_name("user_with_name") == user.id
    assert user_service.get_id_by_name("nobody") is None


def test_get_id_by_field_requires_a_single_match(user_service):
    user = user_service.add("id_by_field", realname="Shared")["user"]
    assert user_service.get_id_by_field("realname", "Shared") == user.id

    user_service.add("id_by_field2", realname="Shared")
    assert user_service.get_id_by_field("realname", "Shared") is None
    assert user_service.get_id_by_field("realname", "Missing") is None


@pytest.mark.parametrize("fields, expected", [
    ({}, "myname"),
    ({"realname": "real name"}, "real name"),
    ({"firstname": "first name"}, "myname"),
    ({"realname": "real name", "firstname": "first name"}, "real name first name"),
])
def test_friendly_name(user_service, fields, expected):
    user = user_service.add("myname", **fields)["user"]
    assert user_service.friendly_name(user) == expected
    assert user_service.friendly_name(None) == ""


# ── Tokens ────────────────────────────────────────────────

def test_personal_token_is_generated_once(user_service):
    user = user_service.add("test_token")["user"]

    token = user_service.get_auth_token(user)

    assert len(token) == 40
    assert user.personal_token_date is not None
    assert user_service.get_auth_token(user) == token
    assert user_service.get_auth_token(user, force_new=True) != token
    assert user_service.get_by_token(user.personal_token).id == user.id


def test_api_token_lookup(user_service):
    user = user_service.add("api_user")["user"]
    token = user_service.get_auth_token(user, "api_token")

    assert user_service.get_by_token(token, "api_token").id == user.id
    assert user_service.get_by_token(token, "personal_token") is None


def test_get_by_token_rejects_other_fields(user_service, caplog):
    with caplog.at_level(logging.WARNING):
        assert user_service.get_by_token("1485dd60301311eda2610242ac12000249aef69a", "my_field") is None
    assert "'personal_token', 'api_token'" in caplog.text


def test_get_by_token_rejects_non_string(user_service, caplog):
    with caplog.at_level(logging.WARNING):
        assert user_service.get_by_token(["REGEX", ".*"], "api_token") is None
    assert 'Unexpected token value received: "string" expected, received "list".' in caplog.text


# ── Emails ────────────────────────────────────────────────

def test_default_email(user_service, make_user):
    assert user_service.get_default_email(None) == ""
    assert user_service.get_all_emails(None) == []
    assert user_service.is_email(None, "one@test.com") is False

    user = user_service.add("test_email", emails=["one@test.com"])["user"]
    assert user_service.get_default_email(user.id) == "one@test.com"

    result = user_service.update(user.id, {"emails": ["two@test.com"], "default_email": 0})

    assert result["success"] is True
    assert user_service.get_default_email(user.id) == "two@test.com"
    assert len(user_service.get_all_emails(user.id)) == 2
    assert user_service.is_email(user.id, "one@test.com") is True
    assert user_service.is_email(user.id, "ONE@test.com") is True
    other = make_user("someone_else")
    assert user_service.is_email(other.id, "one@test.com") is False


def test_update_email_cannot_take_another_users_address(user_service, user_email_repo):
    user1 = user_service.add("test_email 1", emails={
        -1: "email1@test.com", -2: "email2@test.com", -3: "email3@test.com",
    })["user"]
    user1_email1_id = next(e.id for e in user_email_repo.list_for_user(user1.id) if e.email == "email1@test.com")
    assert user_service.get_default_email(user1.id) == "email1@test.com"

    user2 = user_service.add("test_email 2", emails={
        -1: "anotheremail1@test.com",
        user1_email1_id: "anotheremail2@test.com",
        -3: "anotheremail3@test.com",
    })["user"]
    user2_email1_id = next(
        e.id for e in user_email_repo.list_for_user(user2.id) if e.email == "anotheremail1@test.com"
    )
    assert user_service.get_default_email(user2.id) == "anotheremail1@test.com"
    assert sorted(user_service.get_all_emails(user2.id)) == [
        "anotheremail1@test.com", "anotheremail2@test.com", "anotheremail3@test.com",
    ]

    user_service.update(user2.id, {
        "emails": {
            user1_email1_id: "email1-updated@test.com",
            user2_email1_id: "anotheremail1-update@test.com",
        },
        "default_email": user1_email1_id,
    })

    assert sorted(user_service.get_all_emails(user2.id)) == [
        "anotheremail1-update@test.com", "anotheremail2@test.com",
        "anotheremail3@test.com", "email1-updated@test.com",
    ]
    assert user_service.get_default_email(user2.id) == "email1-updated@test.com"
    assert sorted(user_service.get_all_emails(user1.id)) == [
        "email1@test.com", "email2@test.com", "email3@test.com",
    ]


def test_empty_address_deletes_it_and_default_moves(user_service, user_email_repo):
    user = user_service.add("cleanup", emails=["first@test.com", "second@test.com"])["user"]
    first_id = user_email_repo.list_for_user(user.id)[0].id

    user_service.update(user.id, {"emails": {first_id: ""}})

    assert user_service.get_all_emails(user.id) == ["second@test.com"]
    assert user_service.get_default_email(user.id) == "second@test.com"


def test_same_address_is_not_added_twice(user_service):
    user = user_service.add("twice", emails=["me@test.com"])["user"]

    user_service.update(user.id, {"emails": ["Me@test.com"]})

    assert user_service.get_all_emails(user.id) == ["me@test.com"]


def test_get_by_email_matches_any_address(user_service):
    user = user_service.add("multi", emails=["main@test.com", "alias@test.com"])["user"]

    assert [u.id for u in user_service.get_by_email("alias@test.com")] == [user.id]
    assert user_service.get_by_email("nobody@test.com") == []


# ── Lost password ─────────────────────────────────────────

def test_forget_password_unknown_email(user_service, caplog):
    with caplog.at_level(logging.WARNING):
        result = user_service.forget_password("this-email-does-not-exists@example.com")

    assert result["success"] is False
    assert "Failed to find a single user for 'this-email-does-not-exists@example.com', 0 user(s) found." in caplog.text


def test_lost_password_flow(user_service):
    user = user_service.add("lost", "OldPassword", "OldPassword", emails=["lost@example.com"])["user"]

    result = user_service.forget_password("lost@example.com")
    token = result["token"]
    assert result["success"] is True
    assert user.password_forget_token == token

    with pytest.raises(ForgetPasswordException):
        user_service.update_forgotten_password(token + "bad", "NewPassword", "NewPassword")

    assert user_service.update_forgotten_password(token, "NewPassword", "NewPassword") is True
    assert check_password("NewPassword", user.password)
    assert user.password_forget_token is None


def test_forget_password_by_default_email(user_service):
    user = user_service.add("defaulted", "OldPassword", "OldPassword",
                            emails=["a@test.com", "b@test.com"], default_email=1)["user"]

    result = user_service.forget_password(user_service.get_default_email(user.id))

    assert user_service.get_default_email(user.id) == "b@test.com"
    assert result["success"] is True
    assert result["user"].id == user.id


def test_forget_password_with_shared_address(user_service):
    user_service.add("shared1", emails=["team@test.com"])
    user_service.add("shared2", emails=["team@test.com"])

    result = user_service.forget_password("team@test.com")

    assert result["success"] is False
    assert result["token"] is None


def test_forget_password_for_external_account(user_service):
    user_service.add("ldap_user", emails=["ldap@example.com"], authtype=AuthType.LDAP)

    with pytest.raises(ForgetPasswordException):
        user_service.forget_password("ldap@example.com")


def test_forgotten_password_rejects_weak_password(user_repo, user_email_repo):
    service = UserService(user_repo, PasswordPolicy(use_password_security=True), user_email_repo)
    service.add("weakreset", emails=["weak@example.com"])
    token = service.forget_password("weak@example.com")["token"]

    with pytest.raises(PasswordTooWeakException) as exc:
        service.update_forgotten_password(token, "short", "short")
    assert len(exc.value.errors) == 4


def test_forgotten_password_token_lifetime(user_repo, make_user):
    user = make_user("tu_user", password_forget_token="abc123",
                     password_forget_token_date=utcnow() - timedelta(days=5))

    one_day = UserService(user_repo, PasswordPolicy(init_token_delay=86400))
    ten_days = UserService(user_repo, PasswordPolicy(init_token_delay=86400 * 10))

    assert one_day.get_user_by_forgotten_password_token("abc123") is None
    assert ten_days.get_user_by_forgotten_password_token("abc123").id == user.id


# ── Telegram link ─────────────────────────────────────────

def test_link_telegram(user_service):
    user = user_service.add("linked", "secret", "secret")["user"]

    assert user_service.link_telegram("linked", "wrong", 555)["success"] is False
    assert user_service.link_telegram("linked", "secret", 555)["success"] is True
    assert user_service.get_by_telegram_id(555).id == user.id


def test_link_telegram_moves_chat_between_accounts(user_service):
    first = user_service.add("first", "secret", "secret")["user"]
    second = user_service.add("second", "secret", "secret")["user"]

    user_service.link_telegram("first", "secret", 555)
    user_service.link_telegram("second", "secret", 555)

    assert first.telegram_id is None
    assert second.telegram_id == 555

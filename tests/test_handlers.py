"""Telegram command handlers driven with mocked updates."""

import asyncio
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import pytest
from telegram import Update

import handlers.connection_handler as connection_handler
import handlers.substitute_handler as substitute_handler
import handlers.user_handler as user_handler
import main
import security.auth as auth
from handlers.replies import MSG_GENERIC_ERROR, error_handler
from models.user import AuthType
from security.rate_limiter import limiter

CHAT_ID = 555


@pytest.fixture(autouse=True)
def open_access(monkeypatch, user_repo):
    monkeypatch.setattr(auth, "ALLOWED_USER_IDS", [])
    monkeypatch.setattr(auth, "user_repo", user_repo)
    limiter.reset()
    yield
    limiter.reset()


@pytest.fixture
def account(make_user):
    return make_user("operator", telegram_id=CHAT_ID)


def _update():
    update = MagicMock(spec=Update)
    update.effective_user = SimpleNamespace(id=CHAT_ID, username="operator", first_name="Op")
    update.message = SimpleNamespace(reply_text=AsyncMock())
    update.effective_message = update.message
    update.effective_chat = SimpleNamespace(send_message=AsyncMock())
    return update


def _context(*args):
    return SimpleNamespace(args=list(args), bot=SimpleNamespace(send_message=AsyncMock()), error=None)


def _replies(update) -> list[str]:
    return [c.args[0] for c in update.message.reply_text.call_args_list]


# ── Error handler ─────────────────────────────────────────

def test_error_handler_sends_generic_reply():
    update, context = _update(), _context()
    context.error = RuntimeError("connection refused")

    asyncio.run(error_handler(update, context))

    assert _replies(update) == [MSG_GENERIC_ERROR]


def test_error_handler_ignores_updates_without_message():
    context = _context()
    context.error = RuntimeError("job failed")

    asyncio.run(error_handler(None, context))


def test_database_failure_in_substitutes_gets_generic_reply(monkeypatch, account, substitute_service):
    monkeypatch.setattr(substitute_handler, "substitute_service", substitute_service)
    monkeypatch.setattr(
        substitute_service.repo, "replace",
        MagicMock(side_effect=RuntimeError("violates foreign key constraint")),
    )
    update, context = _update(), _context("9999")

    # The application hands whatever a callback raises to its error handler
    with pytest.raises(RuntimeError) as exc:
        asyncio.run(substitute_handler.substitutes_command(update, context))
    context.error = exc.value
    asyncio.run(error_handler(update, context))

    assert _replies(update) == [MSG_GENERIC_ERROR]
    assert "foreign key" not in _replies(update)[0]


def test_application_registers_error_handler():
    app = main.build_application("123456:TEST-TOKEN")

    assert error_handler in app.error_handlers
    commands = {c for h in app.handlers[0] for c in h.commands}
    assert commands == set(main.COMMANDS)


# ── /connections ──────────────────────────────────────────

def test_connections_escapes_markdown(monkeypatch, account, connection_service, make_asset):
    monkeypatch.setattr(connection_handler, "connection_service", connection_service)
    host = make_asset("Computer", "PC_ACCOUNTING", serial="SN_1*")
    monitor = make_asset("Monitor", "screen")
    connection_service.connect(host.ref, monitor.ref)
    update = _update()

    asyncio.run(connection_handler.connections_command(update, _context("Monitor", str(monitor.id))))

    text = _replies(update)[0]
    kwargs = update.message.reply_text.call_args.kwargs
    assert kwargs["parse_mode"] == "Markdown"
    assert r"Computer PC\_ACCOUNTING" in text
    assert r"SN SN\_1\*" in text


# ── /forgot ───────────────────────────────────────────────

def test_forgot_reply_is_the_same_for_every_account(monkeypatch, user_service):
    monkeypatch.setattr(user_handler, "user_service", user_service)
    user_service.add("ldap_user", emails=["ldap@example.com"], authtype=AuthType.LDAP)

    external, unknown = _update(), _update()
    context = _context("ldap@example.com")
    asyncio.run(user_handler.forgot_command(external, context))
    asyncio.run(user_handler.forgot_command(unknown, _context("nobody@example.com")))

    assert _replies(external) == _replies(unknown)
    assert "authentication" not in _replies(external)[0]
    context.bot.send_message.assert_not_called()


def test_forgot_sends_token_to_linked_chat(monkeypatch, user_service):
    monkeypatch.setattr(user_handler, "user_service", user_service)
    user = user_service.add("lost", emails=["lost@example.com"], telegram_id=777)["user"]
    update, context = _update(), _context("lost@example.com")

    asyncio.run(user_handler.forgot_command(update, context))

    sent = context.bot.send_message.call_args.kwargs
    assert sent["chat_id"] == 777
    assert user.password_forget_token in sent["text"]

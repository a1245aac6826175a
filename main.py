"""
main.py
-------
Entry point for the AssetDesk Telegram bot.

Responsibilities:
    - Initialize the database connection pool and schema.
    - Configure and start the Telegram bot with all handlers.
    - Schedule the daily password expiration task.
"""

from datetime import time as dt_time

from telegram import BotCommand
from telegram.ext import Application, CommandHandler

from config import PASSWORD_EXPIRATION_CRON_HOUR, PASSWORD_EXPIRATION_CRON_LIMIT, TELEGRAM_BOT_TOKEN
from db.connection import close_pool, init_pool
from db.init_db import create_tables
from handlers.connection_handler import (
    connect_command,
    connect_many_command,
    connections_command,
    disconnect_all_command,
    disconnect_command,
    unglobalize_command,
)
from handlers.export_handler import export_csv_command, export_excel_command
from handlers.replies import error_handler
from handlers.start_handler import help_command, myid_command, start_command
from handlers.substitute_handler import delegators_command, substitutes_command, substitution_command
from handlers.user_handler import (
    forgot_command,
    link_command,
    passwd_command,
    password_status_command,
    reset_command,
    token_command,
)
from models.user import User
from services.password_expiration_service import PasswordExpirationService
from services.password_policy import PasswordPolicy, get_password_expiration_time
from utils.logger import get_logger

logger = get_logger(__name__)

COMMANDS = {
    "start": (start_command, "🚀 Start the bot"),
    "help": (help_command, "📖 Show help"),
    "myid": (myid_command, "🆔 Your Telegram ID"),
    "link": (link_command, "🔗 Link this chat to an account"),
    "connect": (connect_command, "🔌 Connect a peripheral to a host"),
    "disconnect": (disconnect_command, "✂️ Remove a connection"),
    "connections": (connections_command, "🔗 List an item's connections"),
    "unglobalize": (unglobalize_command, "🧩 Manage a global peripheral per unit"),
    "connect_many": (connect_many_command, "➕ Connect several peripherals"),
    "disconnect_all": (disconnect_all_command, "➖ Disconnect several items"),
    "token": (token_command, "🔑 Personal or API token"),
    "passwd": (passwd_command, "🔒 Change your password"),
    "password_status": (password_status_command, "📅 Password expiration"),
    "forgot": (forgot_command, "📨 Lost password"),
    "reset": (reset_command, "♻️ Reset a lost password"),
    "substitutes": (substitutes_command, "👥 Your substitutes"),
    "delegators": (delegators_command, "🤝 Who delegated to you"),
    "substitution": (substitution_command, "📆 Substitution window"),
    "export_csv": (export_csv_command, "📄 Export connections as CSV"),
    "export_excel": (export_excel_command, "📊 Export connections as Excel"),
}


async def password_expiration_job(context) -> None:
    """
    Scheduled job: warn users whose password expires soon and disable
    the expired ones. Runs daily at PASSWORD_EXPIRATION_CRON_HOUR.
    """
    policy = PasswordPolicy.from_config()
    outbox: list[tuple[int, str]] = []

    def queue_notice(user: User) -> bool:
        if not user.telegram_id:
            return False
        expiration = get_password_expiration_time(user, policy)
        outbox.append((
            user.telegram_id,
            f"⏰ *Password expiration*\n\nYour password expires on {expiration:%Y-%m-%d}.\n"
            f"Change it with /passwd <new> <confirm>.",
        ))
        return True

    try:
        result = PasswordExpirationService(policy=policy).run(PASSWORD_EXPIRATION_CRON_LIMIT, queue_notice)
        logger.info(f"Password expiration task finished: {result.name}")
    except Exception as e:
        logger.error(f"Password expiration task failed: {e}")
        return

    for chat_id, text in outbox:
        try:
            await context.bot.send_message(chat_id=chat_id, text=text, parse_mode="Markdown")
        except Exception as e:
            logger.error(f"Failed to send password notice to chat {chat_id}: {e}")


async def set_bot_commands(application: Application) -> None:
    """Register bot commands menu in Telegram on startup."""
    await application.bot.set_my_commands(
        [BotCommand(name, description) for name, (_, description) in COMMANDS.items()]
    )
    logger.info("Bot commands menu registered successfully.")


def build_application(token: str | None = TELEGRAM_BOT_TOKEN) -> Application:
    """Build the Telegram application with its commands, error handler and jobs."""
    app = Application.builder().token(token).post_init(set_bot_commands).build()

    # ── Register command handlers ─────────────────────────
    for name, (callback, _) in COMMANDS.items():
        app.add_handler(CommandHandler(name, callback))
    app.add_error_handler(error_handler)

    # ── Schedule jobs ─────────────────────────────────────
    job_queue = app.job_queue
    if job_queue:
        job_queue.run_daily(
            password_expiration_job,
            time=dt_time(hour=PASSWORD_EXPIRATION_CRON_HOUR, minute=0),
            name="password_expiration",
        )
        logger.info(f"Scheduled password expiration task ({PASSWORD_EXPIRATION_CRON_HOUR:02d}:00)")
    return app


def main() -> None:
    """Initialize and run the bot."""

    # ── 1. Database setup ─────────────────────────────────
    logger.info("Initializing database...")
    init_pool()
    create_tables()

    # ── 2. Build the Telegram application ─────────────────
    logger.info("Starting Telegram bot...")
    app = build_application()

    # ── 3. Start polling ──────────────────────────────────
    logger.info("🚀 AssetDesk is running! Press Ctrl+C to stop.")
    app.run_polling(drop_pending_updates=True, allowed_updates=["message"])

    # ── 4. Cleanup on shutdown ────────────────────────────
    close_pool()
    logger.info("AssetDesk stopped.")


if __name__ == "__main__":
    main()

"""
handlers/start_handler.py
--------------------------
Handles /start, /help and /myid commands.
"""

from telegram import Update
from telegram.ext import ContextTypes

from repositories.user_repo import UserRepository
from security.auth import authorized_only
from security.rate_limiter import rate_limited
from utils.logger import get_logger

logger = get_logger(__name__)
user_repo = UserRepository()

HELP_TEXT = """
🤖 *AssetDesk*
Asset connections and account management.

*🔐 Session:*
/link <login> <password> - link this chat to your account
/myid - show your Telegram ID

*🔌 Connections:*
/connect <host\\_type> <host\\_id> <periph\\_type> <periph\\_id>
/disconnect <connection\\_id>
/connections <itemtype> <id>
/unglobalize <itemtype> <id>
/connect\\_many <host\\_type> <host\\_id> <type:id>...
/disconnect\\_all <type:id>...

*🔑 Credentials:*
/token \\[personal|api] \\[new]
/passwd <new> <confirm>
/password\\_status
/forgot <email>
/reset <token> <new> <confirm>

*👥 Substitution:*
/substitutes \\[user\\_id ...|none]
/delegators
/substitution <start|-> <end|->

*📄 Export:*
/export\\_csv <itemtype> <id>
/export\\_excel <itemtype> <id>
"""


@authorized_only
@rate_limited
async def start_command(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Handle /start command - greet the user, by account name when the chat is linked."""
    tg_user = update.effective_user
    account = user_repo.get_by_telegram_id(tg_user.id)
    logger.info(f"Telegram user {tg_user.id} started the bot (linked: {account is not None}).")

    greeting = account.friendly_name() if account else tg_user.first_name
    hint = "" if account else "\nLink your account with /link <login> <password>."
    await update.message.reply_text(
        f"Hello {greeting}! 👋\n"
        f"I manage asset connections and your account.{hint}\n\n"
        f"Type /help to list every command.",
    )


@authorized_only
@rate_limited
async def help_command(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Handle /help command - show all available commands."""
    await update.message.reply_text(HELP_TEXT, parse_mode="Markdown")


@authorized_only
async def myid_command(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Handle /myid command - show the Telegram ID for whitelisting."""
    user = update.effective_user
    await update.message.reply_text(
        f"🆔 Your Telegram ID: `{user.id}`\n"
        f"Add it to `ALLOWED_USER_IDS` in `.env` to restrict the bot.",
        parse_mode="Markdown",
    )

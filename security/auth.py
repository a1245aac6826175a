"""
security/auth.py
-----------------
Authentication middleware for the Telegram bot.
Blocks chats not in the allowed whitelist and resolves linked accounts.
"""

from functools import wraps
from typing import Callable

from telegram import Update
from telegram.ext import ContextTypes

from config import ALLOWED_USER_IDS
from repositories.user_repo import UserRepository
from utils.logger import get_logger

logger = get_logger(__name__)
user_repo = UserRepository()


def authorized_only(func: Callable):
    """
    Decorator that restricts a handler to whitelisted Telegram users only.

    Usage:
        @authorized_only
        async def my_handler(update, context):
            ...

    Behavior:
        - If ALLOWED_USER_IDS is empty, ALL users are allowed (dev mode).
        - If the list is set, only those users can use the bot.
        - Unauthorized attempts are logged.
    """
    @wraps(func)
    async def wrapper(update: Update, context: ContextTypes.DEFAULT_TYPE, *args, **kwargs):
        user = update.effective_user
        if not user:
            return

        # If no whitelist configured, allow all (dev mode)
        if not ALLOWED_USER_IDS:
            return await func(update, context, *args, **kwargs)

        if user.id not in ALLOWED_USER_IDS:
            logger.warning(
                f"🚫 Unauthorized access attempt: user_id={user.id}, "
                f"username={user.username}, name={user.first_name}"
            )
            await update.message.reply_text("⛔ Sorry, this bot is private.")
            return

        return await func(update, context, *args, **kwargs)

    return wrapper


def linked_user_required(func: Callable):
    """
    Decorator that resolves the chat to its linked account.

    The handler receives the active `User` as third argument:

        @linked_user_required
        async def my_handler(update, context, account):
            ...

    Chats without an active linked account are asked to run /link first.
    """
    @wraps(func)
    async def wrapper(update: Update, context: ContextTypes.DEFAULT_TYPE, *args, **kwargs):
        tg_user = update.effective_user
        if not tg_user:
            return

        account = user_repo.get_by_telegram_id(tg_user.id)
        if account is None or not account.is_active:
            logger.warning(f"🚫 Chat {tg_user.id} has no active linked account")
            await update.message.reply_text(
                "🔗 This chat is not linked to an active account. Use /link <login> <password> first."
            )
            return

        return await func(update, context, account, *args, **kwargs)

    return wrapper

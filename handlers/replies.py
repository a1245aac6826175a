"""
handlers/replies.py
-------------------
Formatting shared by the handlers, and the bot-wide error reply.
"""

from telegram import Update
from telegram.ext import ContextTypes

from models.asset import ItemRef
from utils.logger import get_logger

logger = get_logger(__name__)

MSG_GENERIC_ERROR = "❌ Something went wrong. Please try again later."


def format_result(result: dict, ok_text: str = "✅ Done.") -> str:
    """Turn a service result dict into a chat message."""
    messages = result.get("messages") or []
    if result.get("success"):
        return "\n".join([ok_text, *(f"ℹ️ {m}" for m in messages)])
    return "\n".join(f"❌ {m}" for m in messages) or "❌ Operation failed."


def parse_ref(itemtype: str, raw_id: str) -> ItemRef:
    """ItemRef from two command arguments; raises ValueError on a bad id."""
    return ItemRef(itemtype, int(raw_id))


async def reply_usage(update: Update, usage: str) -> None:
    await update.message.reply_text(f"⚠️ Usage: {usage}")


async def error_handler(update: object, context: ContextTypes.DEFAULT_TYPE) -> None:
    """
    Application-wide error handler.

    Logs the exception a handler raised and answers the chat with a
    generic message, without exposing the error itself.
    """
    logger.error(f"Unhandled error while processing an update: {context.error}", exc_info=context.error)
    if not isinstance(update, Update) or update.effective_message is None:
        return
    try:
        await update.effective_message.reply_text(MSG_GENERIC_ERROR)
    except Exception as e:
        logger.error(f"Failed to send the error reply: {e}")

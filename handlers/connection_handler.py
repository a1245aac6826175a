"""
handlers/connection_handler.py
------------------------------
Handles connection commands between host and peripheral assets.
Delegates all logic to ConnectionService.
"""

from telegram import Update
from telegram.ext import ContextTypes
from telegram.helpers import escape_markdown

from handlers.replies import format_result, parse_ref, reply_usage
from models.asset import ItemRef
from security.auth import authorized_only, linked_user_required
from security.rate_limiter import rate_limited
from services.connection_service import ConnectionService
from utils.logger import get_logger

logger = get_logger(__name__)
connection_service = ConnectionService()


@authorized_only
@rate_limited
@linked_user_required
async def connect_command(update: Update, context: ContextTypes.DEFAULT_TYPE, account) -> None:
    """
    Handle /connect <host_type> <host_id> <periph_type> <periph_id>.
    Usage: /connect Computer 3 Monitor 8
    """
    if len(context.args) != 4:
        await reply_usage(update, "/connect <host_type> <host_id> <periph_type> <periph_id>")
        return

    try:
        host = parse_ref(context.args[0], context.args[1])
        peripheral = parse_ref(context.args[2], context.args[3])
    except ValueError:
        await update.message.reply_text("⚠️ Item ids must be integers.")
        return

    result = connection_service.connect(host, peripheral)
    logger.info(f"User #{account.id} connect {host} ↔ {peripheral}: {result['success']}")
    text = f"🔌 {peripheral} connected to {host}." if result["success"] else ""
    await update.message.reply_text(format_result(result, text))


@authorized_only
@rate_limited
@linked_user_required
async def disconnect_command(update: Update, context: ContextTypes.DEFAULT_TYPE, account) -> None:
    """
    Handle /disconnect <connection_id>.
    Usage: /disconnect 12
    """
    if not context.args:
        await reply_usage(update, "/disconnect <connection_id>")
        return

    try:
        connection_id = int(context.args[0])
    except ValueError:
        await update.message.reply_text("⚠️ The connection id must be an integer.")
        return

    result = connection_service.disconnect(connection_id)
    await update.message.reply_text(format_result(result, f"🔌 Connection #{connection_id} removed."))


@authorized_only
@rate_limited
@linked_user_required
async def connections_command(update: Update, context: ContextTypes.DEFAULT_TYPE, account) -> None:
    """
    Handle /connections <itemtype> <id> - list what an item is connected to.
    Usage: /connections Computer 3
    """
    if len(context.args) != 2:
        await reply_usage(update, "/connections <itemtype> <id>")
        return

    try:
        item = parse_ref(context.args[0], context.args[1])
    except ValueError:
        await update.message.reply_text("⚠️ The item id must be an integer.")
        return

    items = connection_service.list_connections(item)
    if not items:
        await update.message.reply_text(f"📭 No connection for {item}.")
        return

    lines = [f"🔗 *Connections of {escape_markdown(str(item))}* ({len(items)})", ""]
    for i in items:
        flags = " 🤖" if i.link_is_dynamic else ""
        flags += " 🗑️" if i.is_deleted else ""
        serial = f" · SN {escape_markdown(i.serial)}" if i.serial else ""
        label = escape_markdown(f"{i.itemtype} {i.name}")
        lines.append(f"#{i.linkid} {label} ({i.id}){serial}{flags}")
    await update.message.reply_text("\n".join(lines), parse_mode="Markdown")


@authorized_only
@rate_limited
@linked_user_required
async def unglobalize_command(update: Update, context: ContextTypes.DEFAULT_TYPE, account) -> None:
    """
    Handle /unglobalize <itemtype> <id> - switch a global peripheral to unit management.
    """
    if len(context.args) != 2:
        await reply_usage(update, "/unglobalize <itemtype> <id>")
        return

    try:
        item = parse_ref(context.args[0], context.args[1])
    except ValueError:
        await update.message.reply_text("⚠️ The item id must be an integer.")
        return

    result = connection_service.unglobalize(item)
    await update.message.reply_text(format_result(result, "🧩 Done."))


@authorized_only
@rate_limited
@linked_user_required
async def connect_many_command(update: Update, context: ContextTypes.DEFAULT_TYPE, account) -> None:
    """
    Handle /connect_many <host_type> <host_id> <type:id>...
    Usage: /connect_many Computer 3 Monitor:8 Printer:2
    """
    if len(context.args) < 3:
        await reply_usage(update, "/connect_many <host_type> <host_id> <type:id>...")
        return

    try:
        host = parse_ref(context.args[0], context.args[1])
        peripherals = [ItemRef.parse(a) for a in context.args[2:]]
    except ValueError:
        await update.message.reply_text("⚠️ Items must look like Monitor:8.")
        return

    result = connection_service.massive_connect(peripherals, host)
    await update.message.reply_text(_massive_summary(result))


@authorized_only
@rate_limited
@linked_user_required
async def disconnect_all_command(update: Update, context: ContextTypes.DEFAULT_TYPE, account) -> None:
    """
    Handle /disconnect_all <type:id>... - remove every connection of each item.
    """
    if not context.args:
        await reply_usage(update, "/disconnect_all <type:id>...")
        return

    try:
        items = [ItemRef.parse(a) for a in context.args]
    except ValueError:
        await update.message.reply_text("⚠️ Items must look like Monitor:8.")
        return

    result = connection_service.massive_disconnect(items)
    await update.message.reply_text(_massive_summary(result))


def _massive_summary(result: dict) -> str:
    lines = [f"✅ {result['ok']} succeeded · ❌ {result['ko']} failed"]
    lines.extend(f"ℹ️ {m}" for m in result["messages"])
    return "\n".join(lines)

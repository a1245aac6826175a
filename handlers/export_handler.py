"""
handlers/export_handler.py
---------------------------
Handles data export commands (CSV, Excel).
Delegates to ExportService.
"""

from telegram import Update
from telegram.ext import ContextTypes

from handlers.replies import parse_ref, reply_usage
from security.auth import authorized_only, linked_user_required
from security.rate_limiter import rate_limited
from services.export_service import ExportService
from utils.logger import get_logger

logger = get_logger(__name__)
export_service = ExportService()


async def _export(update: Update, context: ContextTypes.DEFAULT_TYPE, fmt: str) -> None:
    command = f"/export_{fmt}"
    if len(context.args) != 2:
        await reply_usage(update, f"{command} <itemtype> <id>\nExample: {command} Computer 3")
        return

    try:
        item = parse_ref(context.args[0], context.args[1])
    except ValueError:
        await update.message.reply_text("⚠️ The item id must be an integer.")
        return

    try:
        if fmt == "csv":
            buffer = export_service.export_connections_csv(item)
            filename = f"connections_{item.itemtype}_{item.id}.csv"
        else:
            buffer = export_service.export_connections_excel(item)
            filename = f"connections_{item.itemtype}_{item.id}.xlsx"
        await update.message.reply_document(
            document=buffer,
            filename=filename,
            caption=f"📊 Connections of {item} - {fmt.upper()}",
        )
    except Exception as e:
        logger.error(f"{fmt.upper()} export of {item} failed: {e}")
        await update.message.reply_text("❌ Export failed. Please try again.")


@authorized_only
@rate_limited
@linked_user_required
async def export_csv_command(update: Update, context: ContextTypes.DEFAULT_TYPE, account) -> None:
    """Handle /export_csv <itemtype> <id> - send an item's connections as CSV."""
    await _export(update, context, "csv")


@authorized_only
@rate_limited
@linked_user_required
async def export_excel_command(update: Update, context: ContextTypes.DEFAULT_TYPE, account) -> None:
    """Handle /export_excel <itemtype> <id> - send an item's connections as Excel."""
    await _export(update, context, "excel")

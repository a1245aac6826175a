"""
handlers/substitute_handler.py
------------------------------
Handles delegation commands (substitutes, delegators, substitution window).
Delegates all logic to SubstituteService.
"""

from telegram import Update
from telegram.ext import ContextTypes

from handlers.replies import format_result, reply_usage
from security.auth import authorized_only, linked_user_required
from security.rate_limiter import rate_limited
from services.substitute_service import SubstituteService, is_substitution_active
from utils.logger import get_logger

logger = get_logger(__name__)
substitute_service = SubstituteService()


def _describe(user_ids: list[int]) -> str:
    names = []
    for user_id in user_ids:
        user = substitute_service.user_service.get_by_id(user_id)
        names.append(f"• #{user_id} {user.friendly_name()}" if user else f"• #{user_id}")
    return "\n".join(names)


@authorized_only
@rate_limited
@linked_user_required
async def substitutes_command(update: Update, context: ContextTypes.DEFAULT_TYPE, account) -> None:
    """
    Handle /substitutes [user_id ...|none].
    Without arguments, list the current substitutes; otherwise replace them.
    """
    if not context.args:
        ids = substitute_service.get_substitutes(account.id)
        text = f"👥 Your substitutes:\n{_describe(ids)}" if ids else "👥 You have no substitute."
        await update.message.reply_text(text)
        return

    if [a.lower() for a in context.args] == ["none"]:
        ids: list[int] = []
    else:
        try:
            ids = [int(a) for a in context.args]
        except ValueError:
            await reply_usage(update, "/substitutes [user_id ...|none]")
            return

    result = substitute_service.update_substitutes(account.id, ids)
    await update.message.reply_text(format_result(result, "👥 Substitutes updated."))


@authorized_only
@rate_limited
@linked_user_required
async def delegators_command(update: Update, context: ContextTypes.DEFAULT_TYPE, account) -> None:
    """Handle /delegators - users this account may act for."""
    ids = substitute_service.get_delegators(account.id)
    text = f"🤝 You can act for:\n{_describe(ids)}" if ids else "🤝 Nobody delegated to you."
    await update.message.reply_text(text)


@authorized_only
@rate_limited
@linked_user_required
async def substitution_command(update: Update, context: ContextTypes.DEFAULT_TYPE, account) -> None:
    """
    Handle /substitution <start|-> <end|-> - set the window in which substitutes may act.
    Usage: /substitution 2026-01-01 2026-01-31
    """
    if not context.args:
        active = is_substitution_active(account.substitution_start_date, account.substitution_end_date)
        start = account.substitution_start_date or "-"
        end = account.substitution_end_date or "-"
        await update.message.reply_text(
            f"📅 Substitution window: {start} → {end}\n"
            f"{'✅ active' if active else '⏸️ inactive'}"
        )
        return

    if len(context.args) != 2:
        await reply_usage(update, "/substitution <start|-> <end|->")
        return

    start, end = ("" if a == "-" else a for a in context.args)
    try:
        result = substitute_service.set_substitution_period(account.id, start, end)
    except (ValueError, OverflowError):
        await update.message.reply_text("⚠️ Dates must look like 2026-01-31 or 2026-01-31 18:00.")
        return
    await update.message.reply_text(format_result(result, "📅 Substitution window updated."))

"""
handlers/user_handler.py
------------------------
Handles account commands: linking, tokens, passwords and the lost-password flow.
Delegates all logic to UserService.
"""

from telegram import Update
from telegram.ext import ContextTypes

from handlers.replies import format_result, reply_usage
from security.auth import authorized_only, linked_user_required
from security.rate_limiter import rate_limited
from services.errors import ForgetPasswordException, PasswordTooWeakException
from services.password_policy import get_password_expiration_time, has_password_expired, should_change_password
from services.user_service import TOKEN_FIELDS, UserService
from utils.logger import get_logger

logger = get_logger(__name__)
user_service = UserService()


async def _delete_secret(update: Update) -> None:
    """Remove a message that carried a password from the chat history."""
    try:
        await update.message.delete()
    except Exception as e:
        logger.warning(f"Could not delete a message holding a password: {e}")


@authorized_only
@rate_limited
async def link_command(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """
    Handle /link <login> <password> - attach this chat to an account.
    """
    if len(context.args) != 2:
        await reply_usage(update, "/link <login> <password>")
        return

    await _delete_secret(update)
    result = user_service.link_telegram(context.args[0], context.args[1], update.effective_user.id)
    await update.effective_chat.send_message(format_result(result, "🔗 Chat linked."))


@authorized_only
@rate_limited
@linked_user_required
async def token_command(update: Update, context: ContextTypes.DEFAULT_TYPE, account) -> None:
    """
    Handle /token [personal|api] [new] - show (or regenerate) an authentication token.
    """
    args = [a.lower() for a in context.args]
    field = "api_token" if "api" in args else "personal_token"
    if any(a not in ("personal", "api", "new") for a in args):
        await reply_usage(update, "/token [personal|api] [new]")
        return

    token = user_service.get_auth_token(account, field, force_new="new" in args)
    label = "API" if field == TOKEN_FIELDS[1] else "Personal"
    await update.message.reply_text(f"🔑 {label} token:\n`{token}`", parse_mode="Markdown")


@authorized_only
@rate_limited
@linked_user_required
async def passwd_command(update: Update, context: ContextTypes.DEFAULT_TYPE, account) -> None:
    """
    Handle /passwd <new> <confirm> - change the account password.
    """
    if len(context.args) != 2:
        await reply_usage(update, "/passwd <new> <confirm>")
        return

    await _delete_secret(update)
    if not account.is_local():
        await update.effective_chat.send_message("❌ This account's password is managed elsewhere.")
        return

    result = user_service.update(account.id, {"password": context.args[0], "password2": context.args[1]})
    await update.effective_chat.send_message(format_result(result, "🔒 Password updated."))


@authorized_only
@rate_limited
@linked_user_required
async def password_status_command(update: Update, context: ContextTypes.DEFAULT_TYPE, account) -> None:
    """Handle /password_status - show when the password expires."""
    policy = user_service.policy
    expiration = get_password_expiration_time(account, policy)
    if expiration is None:
        await update.message.reply_text("♾️ Your password does not expire.")
        return

    if has_password_expired(account, policy):
        status = "⛔ expired"
    elif should_change_password(account, policy):
        status = "⚠️ expires soon, please change it"
    else:
        status = "✅ valid"
    await update.message.reply_text(
        f"🔒 Password {status}\n📅 Expiration: {expiration:%Y-%m-%d %H:%M} UTC"
    )


@authorized_only
@rate_limited
async def forgot_command(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """
    Handle /forgot <email> - send a reset token to the chat linked to that account.
    """
    if len(context.args) != 1:
        await reply_usage(update, "/forgot <email>")
        return

    neutral = "📨 If this email belongs to a linked account, a reset token was sent to its chat."
    try:
        result = user_service.forget_password(context.args[0])
    except ForgetPasswordException as e:
        logger.warning(f"Lost-password request refused: {e}")
        await update.message.reply_text(neutral)
        return

    user = result["user"]
    if result["success"] and user.telegram_id:
        try:
            await context.bot.send_message(
                chat_id=user.telegram_id,
                text=f"🔑 Password reset token:\n`{result['token']}`\nUse /reset <token> <new> <confirm>.",
                parse_mode="Markdown",
            )
        except Exception as e:
            logger.error(f"Failed to deliver reset token to user #{user.id}: {e}")
    await update.message.reply_text(neutral)


@authorized_only
@rate_limited
async def reset_command(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """
    Handle /reset <token> <new> <confirm> - finish the lost-password flow.
    """
    if len(context.args) != 3:
        await reply_usage(update, "/reset <token> <new> <confirm>")
        return

    await _delete_secret(update)
    token, password, password2 = context.args
    try:
        user_service.update_forgotten_password(token, password, password2)
    except PasswordTooWeakException as e:
        await update.effective_chat.send_message("\n".join(f"❌ {m}" for m in e.errors))
        return
    except ForgetPasswordException as e:
        await update.effective_chat.send_message(f"❌ {e}")
        return

    await update.effective_chat.send_message("🔒 Password reset. You can now /link this chat.")

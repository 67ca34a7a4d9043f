"""
Telegram bot for SmartNote.

Mobile capture via Telegram: text messages and voice messages become
structured notes.
"""

import logging
import os
from typing import Any

from telegram import Update
from telegram.ext import (
    Application,
    CommandHandler,
    ContextTypes,
    MessageHandler,
    filters,
)

from smartnote.config import ensure_dirs, load_config
from smartnote.errors import SmartNoteError
from smartnote.models import DiscoverItem, Note
from smartnote.pipeline import CapturePipeline, create_pipeline

# Configure logging
logging.basicConfig(
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    level=logging.INFO,
)
logger = logging.getLogger(__name__)

HELP_TEXT = (
    "SmartNote Commands:\n\n"
    "/list - Recent notes\n"
    "/find <query> - Search notes\n"
    "/discover - Resurfaced notes and threads\n"
    "/delete <id> - Delete a note\n"
    "/id - Show your user ID\n"
    "/help - Show this message\n\n"
    "Send text or a voice message to capture it."
)


def get_bot_config() -> dict[str, Any]:
    """Get bot configuration."""
    config = load_config()
    bot_config = config.get("telegram", {})

    # Token from config or environment
    token = bot_config.get("token") or os.environ.get("SMARTNOTE_TELEGRAM_TOKEN")
    if not token:
        raise ValueError(
            "Telegram bot token not found. "
            "Set SMARTNOTE_TELEGRAM_TOKEN env var or add to config.toml"
        )

    # Authorized user IDs (comma-separated in env, list in config)
    authorized = bot_config.get("authorized_users", [])
    if not authorized:
        env_users = os.environ.get("SMARTNOTE_TELEGRAM_USERS", "")
        if env_users:
            authorized = [int(uid.strip()) for uid in env_users.split(",") if uid.strip()]

    return {
        "token": token,
        "authorized_users": set(authorized),
    }


def is_authorized(user_id: int, authorized_users: set[int]) -> bool:
    """Check if user is authorized."""
    # If no users configured, deny all (secure default)
    if not authorized_users:
        return False
    return user_id in authorized_users


def format_notes_telegram(notes: list[Note], title: str, limit: int = 10) -> str:
    """Format notes for Telegram (plain text, compact)."""
    if not notes:
        return f"{title}\n\nNo notes found."

    lines = [f"{title}", ""]

    for note in notes[:limit]:
        extra = f" [{note.event_date}]" if note.event_date else ""
        lines.append(f"[{note.category}] {note.title[:40]}{extra}\n  {note.id}")

    if len(notes) > limit:
        lines.append(f"\n... and {len(notes) - limit} more")

    return "\n".join(lines)


def format_discover_telegram(items: list[DiscoverItem]) -> str:
    """Format discover items for Telegram."""
    if not items:
        return "Nothing to discover yet."
    return "\n\n".join(f"{item.title}\n{item.description}" for item in items)


def format_capture_reply(note: Note, pipeline: CapturePipeline) -> str:
    """Confirmation message for a captured note."""
    lines = [f"Saved: {note.title}", f"[{note.category}] {' '.join('#' + t for t in note.tags)}"]
    result = pipeline.last_calendar_result
    if result and result.success:
        lines.append("Added to Google Calendar")
    return "\n".join(lines)


async def _authorized(update: Update, context: ContextTypes.DEFAULT_TYPE) -> bool:
    """Reply and return False for unauthorized users."""
    if not update.effective_user or not update.message:
        return False

    user_id = update.effective_user.id
    if is_authorized(user_id, context.bot_data.get("authorized_users", set())):
        return True

    logger.warning("Unauthorized message attempt from user %s", user_id)
    await update.message.reply_text(f"Unauthorized. Your ID: {user_id}")
    return False


async def start_command(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Handle /start command."""
    if not await _authorized(update, context):
        return
    await update.message.reply_text("SmartNote bot ready.\n\n" + HELP_TEXT)


async def id_command(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Handle /id command - show user's Telegram ID."""
    if not update.effective_user or not update.message:
        return
    await update.message.reply_text(f"Your Telegram user ID: {update.effective_user.id}")


async def help_command(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Handle /help command."""
    if not update.effective_user or not update.message:
        return
    await update.message.reply_text(HELP_TEXT)


async def handle_message(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Handle text messages - structure and save them."""
    if not await _authorized(update, context):
        return

    text = update.message.text
    if not text:
        return

    pipeline: CapturePipeline = context.bot_data["pipeline"]
    try:
        note = await pipeline.capture_text(text)
    except SmartNoteError as e:
        await update.message.reply_text(f"Couldn't save that: {e.message}\nSend it again to retry.")
        return

    logger.info("Captured text note %s from user %s", note.id, update.effective_user.id)
    await update.message.reply_text(format_capture_reply(note, pipeline))


async def handle_voice(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Handle voice messages - transcribe, structure and save them."""
    if not await _authorized(update, context):
        return

    voice = update.message.voice
    if not voice:
        return

    pipeline: CapturePipeline = context.bot_data["pipeline"]
    try:
        tg_file = await voice.get_file()
        audio = await tg_file.download_as_bytearray()
        note = await pipeline.capture_voice(bytes(audio), "voice.ogg")
    except SmartNoteError as e:
        await update.message.reply_text(f"Couldn't save that: {e.message}\nPlease record it again.")
        return

    logger.info("Captured voice note %s from user %s", note.id, update.effective_user.id)
    await update.message.reply_text(format_capture_reply(note, pipeline))


async def list_command(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Handle /list command - list recent notes."""
    if not await _authorized(update, context):
        return

    pipeline: CapturePipeline = context.bot_data["pipeline"]
    await update.message.reply_text(format_notes_telegram(pipeline.notes, "NOTES"))


async def find_command(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Handle /find command - search notes."""
    if not await _authorized(update, context):
        return

    if not context.args:
        await update.message.reply_text("Usage: /find <query>")
        return

    query = " ".join(context.args)
    pipeline: CapturePipeline = context.bot_data["pipeline"]
    await update.message.reply_text(format_notes_telegram(pipeline.search(query), f"SEARCH: {query}"))


async def discover_command(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Handle /discover command."""
    if not await _authorized(update, context):
        return

    pipeline: CapturePipeline = context.bot_data["pipeline"]
    await update.message.reply_text(format_discover_telegram(pipeline.discover_items))


async def delete_command(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Handle /delete command - delete a note."""
    if not await _authorized(update, context):
        return

    if not context.args:
        await update.message.reply_text("Usage: /delete <id>")
        return

    note_id = context.args[0]
    pipeline: CapturePipeline = context.bot_data["pipeline"]
    try:
        deleted = pipeline.delete_note(note_id)
    except SmartNoteError as e:
        await update.message.reply_text(f"Error: {e.message}")
        return

    await update.message.reply_text(f"Deleted: {note_id}" if deleted else f"Note not found: {note_id}")


def run_bot() -> None:
    """Run the Telegram bot."""
    config = get_bot_config()
    ensure_dirs()

    app = Application.builder().token(config["token"]).build()

    app.bot_data["authorized_users"] = config["authorized_users"]
    app.bot_data["pipeline"] = create_pipeline()

    app.add_handler(CommandHandler("start", start_command))
    app.add_handler(CommandHandler("help", help_command))
    app.add_handler(CommandHandler("id", id_command))
    app.add_handler(CommandHandler("list", list_command))
    app.add_handler(CommandHandler("find", find_command))
    app.add_handler(CommandHandler("discover", discover_command))
    app.add_handler(CommandHandler("delete", delete_command))
    app.add_handler(MessageHandler(filters.VOICE, handle_voice))
    app.add_handler(MessageHandler(filters.TEXT & ~filters.COMMAND, handle_message))

    if config["authorized_users"]:
        logger.info("Bot starting. Authorized users: %s", config["authorized_users"])
    else:
        logger.warning("No authorized users configured! Bot will deny all messages.")

    app.run_polling(allowed_updates=Update.ALL_TYPES)


def main() -> int:
    """Entry point for CLI."""
    try:
        run_bot()
        return 0
    except (ValueError, SmartNoteError) as e:
        print(f"Error: {e}")
        return 1
    except KeyboardInterrupt:
        print("\nBot stopped.")
        return 0


if __name__ == "__main__":
    import sys
    sys.exit(main())

"""
Health check module for SmartNote.

Reports system status across all components.
"""

import os

from smartnote.config import get_db_path, load_config
from smartnote.errors import SmartNoteError


def check_database() -> tuple[str, str]:
    """Check database status."""
    db_path = get_db_path()
    if not db_path.exists():
        return "✗", "Not found"

    try:
        from smartnote.db import Database
        from smartnote.store import NoteStore
        store = NoteStore(Database())
        return "✓", f"OK ({len(store)} notes)"
    except SmartNoteError as e:
        return "✗", f"Error: {e.message}"


def check_structuring() -> tuple[str, str]:
    """Check structuring service (API key) status."""
    from smartnote.structuring import StructuringClient

    try:
        client = StructuringClient(load_config())
    except SmartNoteError as e:
        return "✗", e.message

    if not client.has_credentials:
        return "✗", "No API key"
    return "✓", f"OK ({client.provider}, {client.model})"


def check_calendar() -> tuple[str, str]:
    """Check Google Calendar connection."""
    config = load_config()
    if not config.get("calendar", {}).get("enabled", True):
        return "-", "Disabled"
    if not get_db_path().exists():
        return "-", "Not connected"

    from smartnote.calendar_sync import CalendarSync
    from smartnote.db import Database

    calendar = CalendarSync(db=Database(), config=config)
    if not calendar.is_connected():
        return "-", "Not connected"
    return "✓", "Connected"


def check_telegram() -> tuple[str, str]:
    """Check Telegram bot status."""
    config = load_config()
    tg_config = config.get("telegram", {})

    token = tg_config.get("token") or os.environ.get("SMARTNOTE_TELEGRAM_TOKEN")
    if not token:
        return "-", "Not configured"

    users = tg_config.get("authorized_users", [])
    if not users:
        env_users = os.environ.get("SMARTNOTE_TELEGRAM_USERS", "")
        if env_users:
            users = [u.strip() for u in env_users.split(",") if u.strip()]

    if not users:
        return "!", "No authorized users"

    return "✓", f"OK ({len(users)} users)"


def run_health_check() -> dict[str, tuple[str, str]]:
    """Run all health checks."""
    return {
        "Database": check_database(),
        "Structuring": check_structuring(),
        "Calendar": check_calendar(),
        "Telegram": check_telegram(),
    }


def format_health_report(checks: dict[str, tuple[str, str]]) -> str:
    """Format health check results."""
    lines = ["SmartNote Health Check", "-" * 40]

    for name, (status, message) in checks.items():
        lines.append(f"{status} {name}: {message}")

    return "\n".join(lines)

"""
Ingress helpers for SmartNote.

Identity and timestamps for freshly captured notes, and loading of raw audio
before it is sent for transcription.
"""

import secrets
import string
import time
from datetime import datetime, timezone
from pathlib import Path

_BASE36 = string.digits + string.ascii_lowercase


def to_base36(value: int) -> str:
    """Encode a non-negative integer in base 36."""
    if value == 0:
        return "0"
    digits = []
    while value:
        value, rem = divmod(value, 36)
        digits.append(_BASE36[rem])
    return "".join(reversed(digits))


def generate_id() -> str:
    """
    Generate a unique note ID.

    Millisecond timestamp in base 36, a hyphen, then 11 random base-36
    characters, e.g. ``mgx3k2a1-4f9q0z7b2lc``.
    """
    timestamp = to_base36(int(time.time() * 1000))
    random_part = "".join(secrets.choice(_BASE36) for _ in range(11))
    return f"{timestamp}-{random_part}"


def now_iso() -> str:
    """Current UTC time as an ISO 8601 string."""
    return datetime.now(timezone.utc).isoformat()


def read_audio(path: Path) -> tuple[bytes, str]:
    """
    Read a recording from disk.

    Returns:
        The audio bytes and the file name to upload them under.

    Raises:
        FileNotFoundError: if the recording does not exist.
    """
    path = Path(path)
    if not path.is_file():
        raise FileNotFoundError(f"Recording not found: {path}")
    return path.read_bytes(), path.name

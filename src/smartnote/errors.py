"""
Error taxonomy for SmartNote.

Capture-path errors (configuration, structuring, transcription, persistence)
propagate to the caller. Calendar and relatedness errors are side channels:
they are raised inside their own component and degraded there.
"""


class SmartNoteError(Exception):
    """Base class for all SmartNote errors."""

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ConfigurationError(SmartNoteError):
    """A required credential or setting is missing."""


class StructuringError(SmartNoteError):
    """The structuring service failed or returned unusable data."""


class TranscriptionError(SmartNoteError):
    """The transcription service failed or returned unusable data."""


class PersistenceError(SmartNoteError):
    """Reading or writing local storage failed."""


class CalendarError(SmartNoteError):
    """The calendar service rejected a request."""

    def __init__(self, message: str, session_expired: bool = False):
        super().__init__(message)
        self.session_expired = session_expired


class RelatednessError(SmartNoteError):
    """The relatedness lookup failed."""

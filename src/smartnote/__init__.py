"""
SmartNote: AI-structured personal notes.

Speak or type a thought and get back a note that is:
- Titled, tagged and categorized by a language model
- Stored locally and searchable
- Resurfaced and threaded by shared tags
- Mirrored to Google Calendar when it is a meeting or event
"""

__version__ = "0.1.0"

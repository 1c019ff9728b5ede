"""Conversation memory backends."""

from baton.session.base import Session
from baton.session.file import FileSession
from baton.session.memory import MemorySession
from baton.session.sqlite import SQLiteSession

__all__ = ["FileSession", "MemorySession", "SQLiteSession", "Session"]

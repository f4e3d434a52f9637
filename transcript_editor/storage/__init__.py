"""Durable local storage for the saved-session catalog.

WHY: Sessions are saved best-effort to local disk. The catalog format
and the flush policy are separate concerns: catalog.py only moves bytes
under a key, persistence.py decides when and what to save.

RULES:
- One storage key holds the whole catalog and the language preference
- Write failures surface as StorageError and never crash a flush
"""

from transcript_editor.storage.catalog import JsonFileStorage, MemoryStorage
from transcript_editor.storage.persistence import SaveStatus, SessionPersistence

__all__ = ["JsonFileStorage", "MemoryStorage", "SaveStatus", "SessionPersistence"]

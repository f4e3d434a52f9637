"""Configuration constants, collaborator defaults, and .env loading.

WHY: Limits, retry tuning, model names, and storage locations are the
knobs operators actually turn. Keeping them as plain module-level data
makes them easy to find and override without touching logic.

HOW: python-dotenv loads the .env file on import. Every default can be
overridden through an environment variable of the same name. The
load_api_key() function raises a typed credential error when the key
is missing so callers can surface it without a network round trip.

RULES:
- MAX_UPLOAD_BYTES is a pinned ceiling, checked before any upload
- RETRY_BASE_DELAY_S doubles per attempt; RETRY_MAX_ATTEMPTS caps attempts
- The API key is read from the environment, never hardcoded
"""

from __future__ import annotations

import os
from pathlib import Path

from dotenv import load_dotenv

from transcript_editor.errors import MissingCredentialError

load_dotenv()

# ---------------------------------------------------------------------------
# Collaborator endpoint and models
# ---------------------------------------------------------------------------

GEMINI_BASE_URL = os.getenv(
    "GEMINI_BASE_URL", "https://generativelanguage.googleapis.com/v1beta"
)
TRANSCRIBE_MODEL = os.getenv("TRANSCRIBE_MODEL", "gemini-3-flash-preview")
REFINE_MODEL = os.getenv("REFINE_MODEL", "gemini-3-flash-preview")
CORRECT_MODEL = os.getenv("CORRECT_MODEL", "gemini-3-flash-preview")
QUERY_MODEL = os.getenv("QUERY_MODEL", "gemini-3-flash-preview")

# ---------------------------------------------------------------------------
# Limits and retry tuning
# ---------------------------------------------------------------------------

MAX_UPLOAD_BYTES = int(os.getenv("MAX_UPLOAD_BYTES", str(50 * 1024 * 1024)))
"""Largest media payload accepted for transcription (50 MB)."""

RETRY_BASE_DELAY_S = float(os.getenv("RETRY_BASE_DELAY_S", "5.0"))
RETRY_MAX_ATTEMPTS = int(os.getenv("RETRY_MAX_ATTEMPTS", "3"))

# ---------------------------------------------------------------------------
# Persistence
# ---------------------------------------------------------------------------

AUTOSAVE_INTERVAL_S = float(os.getenv("AUTOSAVE_INTERVAL_S", "30"))
STORAGE_PATH = Path(
    os.getenv("STORAGE_PATH", str(Path.home() / ".transcript_editor" / "storage.json"))
)
STORAGE_KEY = os.getenv("STORAGE_KEY", "transcript-editor-storage")

DEFAULT_LANGUAGE = os.getenv("DEFAULT_LANGUAGE", "es")

# ---------------------------------------------------------------------------
# Accepted media
# ---------------------------------------------------------------------------

SUPPORTED_MEDIA_TYPES: dict[str, str] = {
    ".mp3": "audio/mpeg",
    ".wav": "audio/wav",
    ".m4a": "audio/mp4",
    ".ogg": "audio/ogg",
    ".flac": "audio/flac",
    ".aac": "audio/aac",
    ".webm": "audio/webm",
    ".mp4": "video/mp4",
    ".mov": "video/quicktime",
    ".m4v": "video/x-m4v",
}
"""Audio/video file extensions (lowercase, with dot) and their MIME types."""


def load_api_key() -> str:
    """Load the collaborator API key from the environment.

    RULES:
    - GEMINI_API_KEY wins over the legacy API_KEY variable
    - Raises MissingCredentialError if neither is set
    """
    key = (os.getenv("GEMINI_API_KEY") or os.getenv("API_KEY") or "").strip()
    if not key:
        raise MissingCredentialError(
            "API key not configured. Add GEMINI_API_KEY to the .env file."
        )
    return key

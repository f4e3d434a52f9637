"""Collaborator access: HTTP client, response parsing, retry, and service.

WHY: Every call to the external inference collaborator needs the same
treatment: typed request bodies, status-code classification, bounded
retry, and post-processing into segments. This package keeps all of it
behind TranscriptService.

HOW: client.py speaks HTTP via httpx.AsyncClient, models.py validates
and unwraps responses, retry.py holds the injectable RetryPolicy and
ResilientInvoker, service.py composes them into the four tasks.

RULES:
- All HTTP calls go through GeminiClient (no direct httpx usage elsewhere)
- All GeminiClient task calls go through ResilientInvoker.invoke()
"""

from transcript_editor.api.client import GeminiClient
from transcript_editor.api.retry import ResilientInvoker, RetryPolicy
from transcript_editor.api.service import TranscriptService

__all__ = ["GeminiClient", "ResilientInvoker", "RetryPolicy", "TranscriptService"]

"""Transcript service: collaborator tasks issued through the resilient invoker.

WHY: Callers want "transcribe this file", "refine this transcript",
not HTTP. They also need the same guarantees on every call: local input
validation first, transparent retry on transient capacity errors, and
fresh, stable segment ids on whatever comes back.

HOW: TranscriptService owns a client factory and a ResilientInvoker.
Each task opens a client, wraps the client call in invoker.invoke(),
and post-processes the result: ids are generated for new transcripts
and re-attached positionally after a refine.

RULES:
- Oversized media is rejected before a client (or credential) is touched
- refine(RAW) is a local no-op that never calls out
- Refine results are re-attached to original ids by position; extra
  items get fresh ids; the output length is whatever the collaborator
  returned
- correct_segment never raises for collaborator failures; it falls
  back to the original text
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from typing import List, Optional, Sequence

import httpx

from transcript_editor.api.client import GeminiClient
from transcript_editor.api.models import RawSegment
from transcript_editor.api.retry import ResilientInvoker
from transcript_editor.config import MAX_UPLOAD_BYTES
from transcript_editor.core.models import (
    EditMode,
    Language,
    TranscriptSegment,
    new_segment_id,
)
from transcript_editor.errors import FileTooLargeError, TranscriptEditorError

logger = logging.getLogger(__name__)


def attach_ids(
    raw_segments: Sequence[RawSegment],
    originals: Sequence[TranscriptSegment] = (),
    id_factory: Callable[[], str] = new_segment_id,
) -> List[TranscriptSegment]:
    """Turn collaborator output into segments with ids.

    Item i keeps ``originals[i].id`` when such an original exists; all
    other items get a freshly generated id.
    """
    result = []
    for i, raw in enumerate(raw_segments):
        segment_id = originals[i].id if i < len(originals) else id_factory()
        result.append(
            TranscriptSegment(
                id=segment_id,
                speaker=raw.speaker,
                start_time=raw.start_time,
                text=raw.text,
            )
        )
    return result


class TranscriptService:
    """High-level collaborator operations used by the editor.

    Args:
        invoker: Retry wrapper applied to every collaborator call.
        client_factory: Returns an (unentered) GeminiClient-like async
            context manager. Defaults to GeminiClient, which reads the
            API key from the environment.
        max_upload_bytes: Media size ceiling checked before any call.
    """

    def __init__(
        self,
        invoker: Optional[ResilientInvoker] = None,
        client_factory: Callable[[], GeminiClient] = GeminiClient,
        max_upload_bytes: int = MAX_UPLOAD_BYTES,
        id_factory: Callable[[], str] = new_segment_id,
    ) -> None:
        self.invoker = invoker or ResilientInvoker()
        self._client_factory = client_factory
        self.max_upload_bytes = max_upload_bytes
        self._id_factory = id_factory

    def validate_media_size(self, size_bytes: int) -> None:
        if size_bytes > self.max_upload_bytes:
            raise FileTooLargeError(size_bytes, self.max_upload_bytes)

    async def transcribe(
        self, media: bytes, mime_type: str, language: Language
    ) -> List[TranscriptSegment]:
        """Transcribe media and assign fresh ids to every segment."""
        self.validate_media_size(len(media))
        async with self._client_factory() as client:
            raw = await self.invoker.invoke(
                lambda: client.transcribe(media, mime_type, language)
            )
        logger.info("Transcription returned %d segments", len(raw))
        return attach_ids(raw, id_factory=self._id_factory)

    async def refine(
        self,
        segments: Sequence[TranscriptSegment],
        mode: EditMode,
        language: Language,
    ) -> List[TranscriptSegment]:
        """Rewrite the transcript at ``mode``, keeping ids positionally."""
        if mode == EditMode.RAW:
            return list(segments)

        async with self._client_factory() as client:
            raw = await self.invoker.invoke(
                lambda: client.refine(segments, mode, language)
            )
        if len(raw) != len(segments):
            logger.warning(
                "Refine returned %d segments for %d inputs", len(raw), len(segments)
            )
        return attach_ids(raw, segments, id_factory=self._id_factory)

    async def correct_segment(self, text: str, language: Language) -> str:
        """Return corrected text, or ``text`` unchanged on any collaborator failure."""
        try:
            async with self._client_factory() as client:
                corrected = await self.invoker.invoke(lambda: client.correct(text, language))
        except (TranscriptEditorError, httpx.HTTPError) as exc:
            logger.warning("Segment correction failed, keeping original text: %s", exc)
            return text
        return corrected or text

    async def query(
        self,
        segments: Sequence[TranscriptSegment],
        question: str,
        language: Language,
    ) -> str:
        async with self._client_factory() as client:
            return await self.invoker.invoke(
                lambda: client.query(segments, question, language)
            )

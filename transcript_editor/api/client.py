"""Async HTTP client for the generative inference collaborator.

WHY: Transcription, refinement, per-segment correction and transcript
questions are all served by one generateContent-style REST API. This
module keeps every HTTP detail (auth header, request envelope, status
code mapping) behind a single client class so the service layer only
deals in segments and strings.

HOW: Uses httpx.AsyncClient for non-blocking HTTP. GeminiClient is an
async context manager. Enter it to get an authenticated client, exit
to close the connection pool. generate() is the one primitive; the
four task methods build prompts and request bodies on top of it.

RULES:
- Always use the async context manager (async with GeminiClient(...) as client:)
- Non-2xx responses are mapped onto the error taxonomy here, and only here:
  429 → RateLimitedError, 503 → OverloadedError,
  401/403 or an "API key not valid" 400 → InvalidCredentialError,
  anything else → CollaboratorAPIError
- Structured calls request JSON matching TRANSCRIPT_SCHEMA
- No retry happens in this module; that is the invoker's job
"""

from __future__ import annotations

import base64
import json
import logging
from typing import Any, Dict, List, Optional, Sequence

import httpx

from transcript_editor.api.models import (
    TRANSCRIPT_SCHEMA,
    GenerateResponse,
    RawSegment,
    parse_raw_segments,
)
from transcript_editor.config import (
    CORRECT_MODEL,
    GEMINI_BASE_URL,
    QUERY_MODEL,
    REFINE_MODEL,
    TRANSCRIBE_MODEL,
    load_api_key,
)
from transcript_editor.core.models import EditMode, Language, TranscriptSegment
from transcript_editor.errors import (
    CollaboratorAPIError,
    InvalidCredentialError,
    MalformedResponseError,
    OverloadedError,
    RateLimitedError,
)

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Prompts
# ---------------------------------------------------------------------------

_TRANSCRIBE_SYSTEM = "You are an elite journalistic transcriber. Your accuracy is absolute."
_TRANSCRIBE_PROMPT = (
    "Produce the complete {language} transcription of this file (audio or video). "
    "Identify the different speakers and mark each start time as MM:SS. "
    "The content may be long (up to 2h); process it in detail. "
    "Return a JSON array of objects with speaker, startTime and text."
)
_REFINE_PROMPTS = {
    EditMode.CLEANED: "Remove filler words from the {language} transcript in this JSON. "
    "Keep the same number of items, speakers and start times.",
    EditMode.JOURNALISTIC: "Rewrite the {language} transcript in this JSON in a "
    "journalistic style. Keep the same number of items, speakers and start times.",
}
_CORRECT_PROMPT = (
    "Correct spelling and grammar in this {language} text. "
    "Reply with the corrected text only: {text}"
)
_QUERY_SYSTEM = "You are an expert assistant answering questions about a {language} transcript."


def transcript_as_text(segments: Sequence[TranscriptSegment]) -> str:
    """Render segments as "[MM:SS] speaker: text" lines for prompting."""
    return "\n".join(
        "[{}] {}: {}".format(s.start_time, s.speaker, s.text) for s in segments
    )


def _error_message(resp: httpx.Response) -> str:
    try:
        body = resp.json()
    except ValueError:
        return resp.text
    if isinstance(body, dict) and isinstance(body.get("error"), dict):
        return str(body["error"].get("message") or body["error"])
    return resp.text


def raise_for_collaborator_status(resp: httpx.Response) -> None:
    """Map a non-2xx response onto the error taxonomy."""
    if 200 <= resp.status_code < 300:
        return
    message = _error_message(resp)
    if resp.status_code == 429:
        raise RateLimitedError(message)
    if resp.status_code == 503:
        raise OverloadedError(message)
    if resp.status_code in (401, 403):
        raise InvalidCredentialError(message)
    if resp.status_code == 400 and (
        "API key not valid" in message or "API_KEY_INVALID" in message
    ):
        raise InvalidCredentialError(message)
    raise CollaboratorAPIError(resp.status_code, message)


class GeminiClient:
    """Async client for the generateContent REST API.

    RULES:
    - Use as: async with GeminiClient() as client: ...
    - api_key defaults to load_api_key(), which raises MissingCredentialError
    - transport can be injected (httpx.MockTransport in tests)
    """

    def __init__(
        self,
        api_key: Optional[str] = None,
        base_url: Optional[str] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        timeout: float = 600.0,
    ) -> None:
        self._api_key = api_key or load_api_key()
        self._base_url = (base_url or GEMINI_BASE_URL).rstrip("/")
        self._transport = transport
        self._timeout = timeout
        self._client: Optional[httpx.AsyncClient] = None

    async def __aenter__(self) -> GeminiClient:
        self._client = httpx.AsyncClient(
            base_url=self._base_url,
            headers={"x-goog-api-key": self._api_key},
            timeout=httpx.Timeout(self._timeout, connect=30.0),
            transport=self._transport,
        )
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:  # noqa: ANN001
        if self._client:
            await self._client.aclose()
            self._client = None

    def _ensure_client(self) -> httpx.AsyncClient:
        if self._client is None:
            raise RuntimeError(
                "GeminiClient must be used as an async context manager: "
                "async with GeminiClient() as client: ..."
            )
        return self._client

    # ------------------------------------------------------------------
    # Primitive
    # ------------------------------------------------------------------

    async def generate(
        self,
        model: str,
        parts: List[Dict[str, Any]],
        system_instruction: Optional[str] = None,
        response_schema: Optional[Dict[str, Any]] = None,
    ) -> GenerateResponse:
        """POST one generateContent request and unwrap the response.

        Args:
            model: Model name, e.g. "gemini-3-flash-preview".
            parts: Content parts ({"text": ...} or {"inlineData": ...}).
            system_instruction: Optional system prompt.
            response_schema: When given, JSON output matching this schema is requested.

        Returns:
            The unwrapped GenerateResponse.
        """
        client = self._ensure_client()
        body: Dict[str, Any] = {"contents": [{"role": "user", "parts": parts}]}
        if system_instruction:
            body["systemInstruction"] = {"parts": [{"text": system_instruction}]}
        if response_schema is not None:
            body["generationConfig"] = {
                "responseMimeType": "application/json",
                "responseSchema": response_schema,
            }

        logger.debug("generateContent model=%s parts=%d", model, len(parts))
        resp = await client.post("/models/{}:generateContent".format(model), json=body)
        raise_for_collaborator_status(resp)
        try:
            data = resp.json()
        except ValueError as exc:
            raise MalformedResponseError(
                "Collaborator returned a non-JSON body (HTTP {})".format(resp.status_code)
            ) from exc
        return GenerateResponse.from_dict(data)

    # ------------------------------------------------------------------
    # Tasks
    # ------------------------------------------------------------------

    async def transcribe(
        self, media: bytes, mime_type: str, language: Language
    ) -> List[RawSegment]:
        """Transcribe inline media into speaker-attributed segments."""
        parts = [
            {
                "inlineData": {
                    "mimeType": mime_type,
                    "data": base64.b64encode(media).decode("ascii"),
                }
            },
            {"text": _TRANSCRIBE_PROMPT.format(language=language.display_name)},
        ]
        response = await self.generate(
            TRANSCRIBE_MODEL,
            parts,
            system_instruction=_TRANSCRIBE_SYSTEM,
            response_schema=TRANSCRIPT_SCHEMA,
        )
        return parse_raw_segments(response.text)

    async def refine(
        self,
        segments: Sequence[TranscriptSegment],
        mode: EditMode,
        language: Language,
    ) -> List[RawSegment]:
        """Rewrite the whole transcript at the requested edit mode.

        Ids are stripped from the payload; the caller re-attaches them.
        """
        payload = [
            {"speaker": s.speaker, "startTime": s.start_time, "text": s.text}
            for s in segments
        ]
        parts = [
            {"text": _REFINE_PROMPTS[mode].format(language=language.display_name)},
            {"text": json.dumps(payload, ensure_ascii=False)},
        ]
        response = await self.generate(REFINE_MODEL, parts, response_schema=TRANSCRIPT_SCHEMA)
        return parse_raw_segments(response.text)

    async def correct(self, text: str, language: Language) -> str:
        """Return a corrected version of one segment's text ("" if none)."""
        prompt = _CORRECT_PROMPT.format(language=language.display_name, text=text)
        response = await self.generate(CORRECT_MODEL, [{"text": prompt}])
        return response.text.strip()

    async def query(
        self,
        segments: Sequence[TranscriptSegment],
        question: str,
        language: Language,
    ) -> str:
        """Answer a free-text question about the transcript."""
        parts = [
            {"text": "CONTEXT:\n{}".format(transcript_as_text(segments))},
            {"text": "QUESTION: {}".format(question)},
        ]
        response = await self.generate(
            QUERY_MODEL,
            parts,
            system_instruction=_QUERY_SYSTEM.format(language=language.display_name),
        )
        return response.text

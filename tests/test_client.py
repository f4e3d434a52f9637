"""Tests for the collaborator HTTP client and response parsing.

WHY: The client is where HTTP status codes become the error taxonomy
the retry layer depends on, and where structured JSON answers are
validated before they can reach the segment store.

HOW: GeminiClient is given an httpx.MockTransport whose handler records
each request and replies with a canned generateContent envelope.

RULES:
- No test reaches the network
- The API key is always passed explicitly
"""

from __future__ import annotations

import asyncio
import base64
import json

import httpx
import pytest

from tests.conftest import SAMPLE_SEGMENTS
from transcript_editor.api.client import GeminiClient, transcript_as_text
from transcript_editor.api.models import GenerateResponse, parse_raw_segments
from transcript_editor.core.models import EditMode, Language
from transcript_editor.errors import (
    CollaboratorAPIError,
    InvalidCredentialError,
    MalformedResponseError,
    OverloadedError,
    RateLimitedError,
)


def _envelope(text):
    return {
        "candidates": [
            {"content": {"parts": [{"text": text}]}, "finishReason": "STOP"}
        ]
    }


def _make_client(handler):
    return GeminiClient(
        api_key="test-key",
        base_url="https://collab.test/v1beta",
        transport=httpx.MockTransport(handler),
    )


def _run(handler, call):
    async def go():
        async with _make_client(handler) as client:
            return await call(client)

    return asyncio.run(go())


# ---------------------------------------------------------------------------
# Response parsing
# ---------------------------------------------------------------------------


class TestParseRawSegments:
    def test_valid_array(self):
        raw = parse_raw_segments(
            json.dumps([{"speaker": "S1", "startTime": "00:03", "text": "Hi"}])
        )
        assert raw[0].speaker == "S1"
        assert raw[0].start_time == "00:03"

    def test_bad_timecode_is_normalised(self):
        raw = parse_raw_segments(json.dumps([{"speaker": "S1", "startTime": "soon", "text": "x"}]))
        assert raw[0].start_time == "00:00"

    @pytest.mark.parametrize(
        "text",
        [
            "",
            "   ",
            "not json",
            json.dumps({"speaker": "S1"}),
            json.dumps([{"speaker": "S1", "text": "missing time"}]),
        ],
    )
    def test_malformed(self, text):
        with pytest.raises(MalformedResponseError):
            parse_raw_segments(text)


class TestGenerateResponse:
    def test_joins_text_parts(self):
        data = {"candidates": [{"content": {"parts": [{"text": "a"}, {"text": "b"}]}}]}
        assert GenerateResponse.from_dict(data).text == "ab"

    def test_blocked_prompt_has_empty_text(self):
        resp = GenerateResponse.from_dict({"promptFeedback": {"blockReason": "SAFETY"}})
        assert resp.text == ""
        assert resp.block_reason == "SAFETY"


def test_transcript_as_text():
    assert transcript_as_text(SAMPLE_SEGMENTS[:1]) == "[00:00] Ana: Good morning and welcome."


# ---------------------------------------------------------------------------
# GeminiClient
# ---------------------------------------------------------------------------


class TestGeminiClientRequests:
    def test_transcribe_sends_inline_media(self):
        seen = {}

        def handler(request):
            seen["url"] = str(request.url)
            seen["key"] = request.headers.get("x-goog-api-key")
            seen["body"] = json.loads(request.content)
            return httpx.Response(
                200,
                json=_envelope(json.dumps([{"speaker": "S1", "startTime": "00:00", "text": "Hola"}])),
            )

        raw = _run(handler, lambda c: c.transcribe(b"audio", "audio/mpeg", Language.ES))

        assert raw[0].text == "Hola"
        assert seen["key"] == "test-key"
        assert seen["url"].endswith(":generateContent")
        inline = seen["body"]["contents"][0]["parts"][0]["inlineData"]
        assert inline["mimeType"] == "audio/mpeg"
        assert base64.b64decode(inline["data"]) == b"audio"
        assert seen["body"]["generationConfig"]["responseMimeType"] == "application/json"

    def test_refine_strips_ids(self):
        seen = {}

        def handler(request):
            seen["body"] = json.loads(request.content)
            return httpx.Response(200, json=_envelope("[]"))

        _run(handler, lambda c: c.refine(SAMPLE_SEGMENTS, EditMode.CLEANED, Language.EU))

        payload = json.loads(seen["body"]["contents"][0]["parts"][1]["text"])
        assert len(payload) == len(SAMPLE_SEGMENTS)
        assert "id" not in payload[0]
        assert payload[0]["startTime"] == "00:00"

    def test_correct_strips_whitespace(self):
        def handler(request):
            return httpx.Response(200, json=_envelope("  Fixed text.\n"))

        assert _run(handler, lambda c: c.correct("fixd text", Language.ES)) == "Fixed text."

    def test_query_includes_transcript_and_question(self):
        seen = {}

        def handler(request):
            seen["body"] = json.loads(request.content)
            return httpx.Response(200, json=_envelope("Ana."))

        answer = _run(handler, lambda c: c.query(SAMPLE_SEGMENTS, "Who opens?", Language.ES))

        parts = seen["body"]["contents"][0]["parts"]
        assert answer == "Ana."
        assert "[00:07] Jon: Thanks for having me." in parts[0]["text"]
        assert parts[1]["text"] == "QUESTION: Who opens?"

    def test_requires_context_manager(self):
        client = GeminiClient(api_key="k")
        with pytest.raises(RuntimeError):
            asyncio.run(client.correct("x", Language.ES))


class TestGeminiClientErrors:
    @pytest.mark.parametrize(
        "status, body, expected",
        [
            (429, {"error": {"message": "RESOURCE_EXHAUSTED"}}, RateLimitedError),
            (503, {"error": {"message": "The model is overloaded."}}, OverloadedError),
            (403, {"error": {"message": "Permission denied"}}, InvalidCredentialError),
            (400, {"error": {"message": "API key not valid. Please pass a valid API key."}}, InvalidCredentialError),
            (400, {"error": {"message": "Bad request"}}, CollaboratorAPIError),
            (500, {"error": {"message": "Internal"}}, CollaboratorAPIError),
        ],
    )
    def test_status_mapping(self, status, body, expected):
        def handler(request):
            return httpx.Response(status, json=body)

        with pytest.raises(expected):
            _run(handler, lambda c: c.correct("x", Language.ES))

    def test_non_json_error_body(self):
        def handler(request):
            return httpx.Response(502, text="Bad gateway")

        with pytest.raises(CollaboratorAPIError) as excinfo:
            _run(handler, lambda c: c.correct("x", Language.ES))
        assert excinfo.value.status_code == 502

    def test_non_json_success_body_is_malformed(self):
        def handler(request):
            return httpx.Response(200, text="<html>gateway</html>")

        with pytest.raises(MalformedResponseError):
            _run(handler, lambda c: c.correct("x", Language.ES))

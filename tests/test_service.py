"""Tests for TranscriptService: size checks, id attachment, fallbacks.

WHY: The service decides which segment keeps which id after a refine,
and whether a failed correction is allowed to surface. Both decisions
are visible to users (stable selection, no surprise errors).

HOW: A fake client factory returns an async context manager whose task
methods are AsyncMocks. The invoker's sleep is a no-op coroutine.
"""

from __future__ import annotations

import asyncio
from unittest.mock import AsyncMock, MagicMock

import httpx
import pytest

from tests.conftest import SAMPLE_SEGMENTS, counter_ids
from transcript_editor.api.client import GeminiClient
from transcript_editor.api.models import RawSegment
from transcript_editor.api.retry import ResilientInvoker, RetryPolicy
from transcript_editor.api.service import TranscriptService, attach_ids
from transcript_editor.core.models import EditMode, Language
from transcript_editor.errors import FileTooLargeError, MalformedResponseError, RateLimitedError


class _FakeClient:
    def __init__(self):
        self.transcribe = AsyncMock(return_value=[])
        self.refine = AsyncMock(return_value=[])
        self.correct = AsyncMock(return_value="")
        self.query = AsyncMock(return_value="")

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc):
        return None


async def _no_sleep(_):
    return None


def _make_service(client=None, max_upload_bytes=1024):
    client = client or _FakeClient()
    factory = MagicMock(return_value=client)
    service = TranscriptService(
        invoker=ResilientInvoker(policy=RetryPolicy(base_delay=0.01), sleep=_no_sleep),
        client_factory=factory,
        max_upload_bytes=max_upload_bytes,
        id_factory=counter_ids(),
    )
    return service, client, factory


def _raw(text, speaker="S1", start="00:00"):
    return RawSegment(speaker=speaker, start_time=start, text=text)


class TestAttachIds:
    def test_positional_ids_and_fresh_extras(self):
        result = attach_ids(
            [_raw("one"), _raw("two"), _raw("three")],
            SAMPLE_SEGMENTS[:2],
            id_factory=counter_ids(),
        )
        assert [s.id for s in result] == ["a", "b", "new-1"]

    def test_no_originals_means_all_fresh(self):
        result = attach_ids([_raw("x"), _raw("y")], id_factory=counter_ids())
        assert [s.id for s in result] == ["new-1", "new-2"]


class TestTranscribe:
    def test_oversized_media_rejected_before_client_created(self):
        service, _, factory = _make_service(max_upload_bytes=4)

        with pytest.raises(FileTooLargeError):
            asyncio.run(service.transcribe(b"12345", "audio/mpeg", Language.ES))
        factory.assert_not_called()

    def test_assigns_fresh_ids(self):
        service, client, _ = _make_service()
        client.transcribe.return_value = [_raw("Hola", "S1"), _raw("Kaixo", "S2", "00:04")]

        result = asyncio.run(service.transcribe(b"abc", "audio/mpeg", Language.ES))

        assert [(s.id, s.speaker, s.text) for s in result] == [
            ("new-1", "S1", "Hola"),
            ("new-2", "S2", "Kaixo"),
        ]

    def test_rate_limit_retried_transparently(self):
        service, client, _ = _make_service()
        client.transcribe.side_effect = [RateLimitedError(), [_raw("ok")]]

        result = asyncio.run(service.transcribe(b"abc", "audio/mpeg", Language.ES))

        assert [s.text for s in result] == ["ok"]
        assert client.transcribe.await_count == 2

    def test_malformed_response_propagates(self):
        service, client, _ = _make_service()
        client.transcribe.side_effect = MalformedResponseError("empty")

        with pytest.raises(MalformedResponseError):
            asyncio.run(service.transcribe(b"abc", "audio/mpeg", Language.ES))
        assert client.transcribe.await_count == 1


class TestRefine:
    def test_raw_mode_never_calls_out(self):
        service, _, factory = _make_service()
        result = asyncio.run(service.refine(SAMPLE_SEGMENTS, EditMode.RAW, Language.ES))
        assert result == list(SAMPLE_SEGMENTS)
        factory.assert_not_called()

    def test_shorter_result_keeps_first_ids(self):
        """Two inputs, one result: output has one item with the first id."""
        service, client, _ = _make_service()
        client.refine.return_value = [_raw("Cleaned.")]

        result = asyncio.run(service.refine(SAMPLE_SEGMENTS[:2], EditMode.CLEANED, Language.ES))

        assert len(result) == 1
        assert result[0].id == "a"
        assert result[0].text == "Cleaned."

    def test_longer_result_gets_fresh_ids(self):
        service, client, _ = _make_service()
        client.refine.return_value = [_raw("1"), _raw("2"), _raw("3")]

        result = asyncio.run(service.refine(SAMPLE_SEGMENTS[:2], EditMode.JOURNALISTIC, Language.ES))

        assert [s.id for s in result] == ["a", "b", "new-1"]


class TestCorrectSegment:
    def test_returns_corrected_text(self):
        service, client, _ = _make_service()
        client.correct.return_value = "Fixed."
        assert asyncio.run(service.correct_segment("fixd", Language.ES)) == "Fixed."

    def test_falls_back_on_collaborator_error(self):
        service, client, _ = _make_service()
        client.correct.side_effect = RateLimitedError()
        assert asyncio.run(service.correct_segment("original", Language.ES)) == "original"

    def test_falls_back_on_transport_error(self):
        service, client, _ = _make_service()
        client.correct.side_effect = httpx.ConnectError("down")
        assert asyncio.run(service.correct_segment("original", Language.ES)) == "original"

    def test_falls_back_on_non_json_success_body(self):
        transport = httpx.MockTransport(
            lambda request: httpx.Response(200, text="<html>gateway</html>")
        )
        service = TranscriptService(
            invoker=ResilientInvoker(policy=RetryPolicy(base_delay=0.01), sleep=_no_sleep),
            client_factory=lambda: GeminiClient(
                api_key="test-key",
                base_url="https://collab.test/v1beta",
                transport=transport,
            ),
        )
        assert asyncio.run(service.correct_segment("hola", Language.ES)) == "hola"

    def test_empty_result_keeps_original(self):
        service, client, _ = _make_service()
        client.correct.return_value = ""
        assert asyncio.run(service.correct_segment("original", Language.ES)) == "original"


class TestQuery:
    def test_query_passes_through(self):
        service, client, _ = _make_service()
        client.query.return_value = "Ana speaks first."
        answer = asyncio.run(service.query(SAMPLE_SEGMENTS, "Who?", Language.EU))
        assert answer == "Ana speaks first."
        client.query.assert_awaited_once_with(SAMPLE_SEGMENTS, "Who?", Language.EU)

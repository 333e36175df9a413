"""Unit tests for MatchClient against a local aiohttp server."""

import asyncio

import numpy as np
import pytest
from aiohttp import web
from aiohttp import test_utils

from beatlens.audio.transcoder import encode_wav
from beatlens.exceptions import MatchServiceError
from beatlens.services.match_client import MatchClient

MATCH_BODY = {
    "results": [
        {
            "songId": 7,
            "title": "Blue in Green",
            "artist": "Miles Davis",
            "confidence": 0.82,
            "alignedMatches": 41,
            "totalMatches": 50,
            "timeOffsetSeconds": 63.5,
        }
    ],
    "queryFingerprints": 312,
    "queryDurationSeconds": 8.0,
}


def run_against(handler, payload=None):
    """Serve ``handler`` at /api/match and send one query to it."""
    if payload is None:
        payload = encode_wav(np.zeros(441), 44100)

    async def run():
        app = web.Application()
        app.router.add_post("/api/match", handler)
        async with test_utils.TestServer(app) as server:
            client = MatchClient(str(server.make_url("/api/match")), timeout_seconds=5)
            return await client.match(payload)

    return asyncio.run(run())


@pytest.mark.unit
class TestMatchClient:
    """Test cases for MatchClient class."""

    def test_multipart_upload(self):
        received = {}
        payload = encode_wav(np.zeros(441), 44100)

        async def handler(request):
            form = await request.post()
            upload = form["file"]
            received["filename"] = upload.filename
            received["content_type"] = upload.content_type
            received["data"] = upload.file.read()
            received["format"] = form["format"]
            return web.json_response(MATCH_BODY)

        run_against(handler, payload)

        assert received["filename"] == "query.wav"
        assert received["content_type"] == "audio/wav"
        assert received["data"] == payload.data
        assert received["format"] == "wav"

    def test_parses_results(self):
        async def handler(request):
            return web.json_response(MATCH_BODY)

        response = run_against(handler)

        assert response.query_fingerprints == 312
        assert response.query_duration_seconds == 8.0
        assert len(response.results) == 1
        result = response.results[0]
        assert result.song_id == 7
        assert result.title == "Blue in Green"
        assert result.artist == "Miles Davis"
        assert result.aligned_matches == 41
        assert result.time_offset_seconds == 63.5

    def test_empty_results(self):
        async def handler(request):
            return web.json_response({"results": [], "queryFingerprints": 0, "queryDurationSeconds": 0.4})

        response = run_against(handler)

        assert response.results == []

    def test_error_uses_service_message(self):
        async def handler(request):
            return web.json_response({"message": "Query too short"}, status=400)

        with pytest.raises(MatchServiceError) as exc_info:
            run_against(handler)

        assert exc_info.value.detail == "Query too short"
        assert exc_info.value.status == 400

    def test_error_without_body(self):
        async def handler(request):
            return web.Response(status=503, text="upstream down")

        with pytest.raises(MatchServiceError) as exc_info:
            run_against(handler)

        assert exc_info.value.detail == "Request failed: 503"

    def test_malformed_success_body(self):
        async def handler(request):
            return web.json_response(["not", "a", "mapping"])

        with pytest.raises(MatchServiceError):
            run_against(handler)

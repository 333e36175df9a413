"""Client for the remote song-matching service."""

import logging
from typing import Any, Dict

import aiohttp

from ..exceptions import MatchServiceError
from ..models.audio import WavPayload
from ..models.match import MatchResponse

logger = logging.getLogger(__name__)


class MatchClient:
    """Uploads a recorded query and returns the ranked candidates."""

    def __init__(self, url: str, timeout_seconds: float = 30):
        """Initialize match client.

        Args:
            url: Full URL of the match endpoint (e.g. http://host/api/match)
            timeout_seconds: Total request timeout
        """
        self.url = url
        self.timeout = aiohttp.ClientTimeout(total=timeout_seconds)

        logger.info(f"MatchClient initialized with url: {url}")

    async def match(self, payload: WavPayload) -> MatchResponse:
        """Send a WAV query to the match service.

        Args:
            payload: Recorded WAV query

        Returns:
            Parsed match response

        Raises:
            MatchServiceError: If the service answers with an error status
        """
        form = aiohttp.FormData()
        form.add_field("file", bytes(payload), filename="query.wav", content_type="audio/wav")
        form.add_field("format", "wav")

        async with aiohttp.ClientSession(timeout=self.timeout) as session:
            async with session.post(self.url, data=form) as response:
                if response.status >= 400:
                    body = await self._error_body(response)
                    message = body.get("message") or f"Request failed: {response.status}"
                    logger.error(f"Match request failed: {response.status} - {message}")
                    raise MatchServiceError(message, response.status)

                result = await response.json(content_type=None)
                if not isinstance(result, dict):
                    raise MatchServiceError("Malformed match response", response.status)

        match_response = MatchResponse.from_json(result)
        logger.info(f"Match returned {len(match_response.results)} candidates "
                    f"for {match_response.query_fingerprints} query fingerprints")
        return match_response

    @staticmethod
    async def _error_body(response: aiohttp.ClientResponse) -> Dict[str, Any]:
        try:
            body = await response.json(content_type=None)
        except ValueError:
            return {}
        return body if isinstance(body, dict) else {}

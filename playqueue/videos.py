"""Module 5 — Video Stream Service (HTTP API)"""
import logging
from typing import Optional

import httpx

from .config import API_HOST, API_TIMEOUT, API_TOKEN
from .errors import StreamResolutionError
from .models import VideoStream

logger = logging.getLogger(__name__)


def _attributes(payload: dict) -> dict:
    """Pull the attribute block out of a {"data": {"attributes": ...}} envelope."""
    data = payload.get("data", payload)
    if isinstance(data, dict):
        return data.get("attributes", data)
    return {}


class VideosService:
    def __init__(
        self,
        host: str = API_HOST,
        token: str = API_TOKEN,
        timeout: float = API_TIMEOUT,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.host = host.rstrip("/")
        self.token = token
        self.timeout = timeout
        self._transport = transport

    def _client(self) -> httpx.AsyncClient:
        headers = {"Accept": "application/json"}
        if self.token:
            headers["Authorization"] = f"Token {self.token}"
        return httpx.AsyncClient(
            base_url=self.host, headers=headers, timeout=self.timeout, transport=self._transport,
        )

    async def get_video_stream(self, video_identifier: int) -> VideoStream:
        """GET /videos/{id}/stream — returns the stream kind + URL."""
        try:
            async with self._client() as client:
                r = await client.get(f"/videos/{video_identifier}/stream")
                if r.status_code != 200:
                    raise StreamResolutionError(f"HTTP {r.status_code}: {r.text[:200]}")
                attrs = _attributes(r.json())
        except httpx.TimeoutException as e:
            raise StreamResolutionError(f"Timed out after {self.timeout}s") from e
        except httpx.HTTPError as e:
            raise StreamResolutionError(f"HTTP error: {e}") from e
        except ValueError as e:
            raise StreamResolutionError(f"Unreadable response: {e}") from e

        url = attrs.get("url")
        if not url:
            raise StreamResolutionError(f"No URL for video {video_identifier}")
        return VideoStream(kind=str(attrs.get("kind", "")), url=url)

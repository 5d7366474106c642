"""Module 6 — Contents / Progress Tracking Service (HTTP API)"""
import logging
from typing import Optional

import httpx

from .config import API_HOST, API_TIMEOUT, API_TOKEN
from .errors import OtherProgressError, SimultaneousStreamsConflict
from .models import Progression
from .videos import _attributes

logger = logging.getLogger(__name__)

_CONFLICT_MARKERS = ("simultaneous", "used elsewhere")


class ContentsService:
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
        self.playback_token: Optional[str] = None

    def _client(self) -> httpx.AsyncClient:
        headers = {"Accept": "application/json"}
        if self.token:
            headers["Authorization"] = f"Token {self.token}"
        return httpx.AsyncClient(
            base_url=self.host, headers=headers, timeout=self.timeout, transport=self._transport,
        )

    async def playback_started(self, content_id: int) -> Optional[str]:
        """POST /contents/{id}/start_playback — obtain a playback token for this session."""
        try:
            async with self._client() as client:
                r = await client.post(f"/contents/{content_id}/start_playback")
                if r.status_code not in (200, 201):
                    raise OtherProgressError(f"start_playback HTTP {r.status_code}: {r.text[:200]}")
                attrs = _attributes(r.json())
        except httpx.HTTPError as e:
            raise OtherProgressError(f"start_playback HTTP error: {e}") from e
        except ValueError as e:
            raise OtherProgressError(f"start_playback unreadable response: {e}") from e

        self.playback_token = attrs.get("video_playback_token") or self.playback_token
        return self.playback_token

    async def update_progress(self, content_id: int, elapsed: int) -> Progression:
        """POST /contents/{id}/playback — report the elapsed position, get the authoritative one back."""
        payload = {"progress": int(elapsed)}
        if self.playback_token:
            payload["video_playback_token"] = self.playback_token
        try:
            async with self._client() as client:
                r = await client.post(f"/contents/{content_id}/playback", json=payload)
                if r.status_code == 400 and _is_conflict(r.text):
                    raise SimultaneousStreamsConflict(f"content {content_id}")
                if r.status_code not in (200, 201):
                    raise OtherProgressError(f"HTTP {r.status_code}: {r.text[:200]}")
                attrs = _attributes(r.json())
        except httpx.HTTPError as e:
            raise OtherProgressError(f"HTTP error: {e}") from e
        except ValueError as e:
            raise OtherProgressError(f"Unreadable response: {e}") from e

        try:
            percent = float(attrs.get("percent_complete", 0.0))
            return Progression(
                content_id=int(attrs.get("content_id", content_id)),
                elapsed=int(attrs.get("progress", elapsed)),
                finished=bool(attrs.get("finished", False)),
                proportion=min(1.0, max(0.0, percent / 100.0)),
            )
        except (TypeError, ValueError) as e:
            raise OtherProgressError(f"Malformed progression {attrs!r}: {e}") from e


def _is_conflict(body: str) -> bool:
    text = body.lower()
    return any(marker in text for marker in _CONFLICT_MARKERS)

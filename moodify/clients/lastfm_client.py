from __future__ import annotations

"""Thin async client for the two Last.fm methods the app uses."""

import logging
from typing import Any, Dict, Optional

import httpx

from ..errors import ConfigurationError, TrackSourceError

logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = "https://ws.audioscrobbler.com/2.0/"


class LastFmClient:
    def __init__(
        self,
        api_key: str,
        base_url: str = DEFAULT_BASE_URL,
        timeout: float = 10,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.api_key = api_key
        self.base_url = base_url
        self.timeout = timeout
        self._transport = transport

    @property
    def configured(self) -> bool:
        return bool(self.api_key)

    async def _get(self, params: Dict[str, Any]) -> Dict[str, Any]:
        if not self.configured:
            raise ConfigurationError("LASTFM_API_KEY is not configured")
        query = {**params, "api_key": self.api_key, "format": "json"}
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                resp = await client.get(self.base_url, params=query)
        except httpx.HTTPError as exc:
            raise TrackSourceError(f"Last.fm request failed: {exc}") from exc

        try:
            data = resp.json()
        except ValueError:
            data = None

        # Last.fm reports some failures as {"error": n, "message": ...} even on HTTP 200
        if isinstance(data, dict) and "error" in data:
            logger.warning(
                "Last.fm returned an error envelope",
                extra={"method": params.get("method"), "code": data.get("error"), "status": resp.status_code},
            )
            raise TrackSourceError(str(data.get("message") or f"Last.fm error {data['error']}"), status=resp.status_code)
        if resp.status_code != 200:
            raise TrackSourceError(f"Last.fm HTTP {resp.status_code}", status=resp.status_code)
        if not isinstance(data, dict):
            raise TrackSourceError("Last.fm returned a non-JSON body", status=resp.status_code)
        return data

    async def top_tracks_by_tag(self, tag: str, limit: int = 10) -> Dict[str, Any]:
        return await self._get({"method": "tag.gettoptracks", "tag": tag, "limit": limit})

    async def search_tracks(self, query: str, limit: int = 10) -> Dict[str, Any]:
        return await self._get({"method": "track.search", "track": query, "limit": limit})

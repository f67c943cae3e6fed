from __future__ import annotations

"""Emotion and free-text dispatch against the track source, with shape checks."""

import logging
from typing import Any, Dict, List, Optional, Protocol, Sequence

from .errors import ConfigurationError, ShapeMismatchError
from .recorder import RecentPlayRecorder
from .schemas import EmotionOption, Session, Track

logger = logging.getLogger(__name__)

TRACK_LIMIT = 10

# Buttons on the main page: label shown to the user -> Last.fm tag
EMOTIONS: Dict[str, str] = {
    "슬픔": "sad",
    "행복": "happy",
    "분노": "angry",
    "편안함": "chill",
}


class TrackSource(Protocol):
    configured: bool

    async def top_tracks_by_tag(self, tag: str, limit: int = 10) -> Dict[str, Any]: ...

    async def search_tracks(self, query: str, limit: int = 10) -> Dict[str, Any]: ...


def emotion_options() -> List[EmotionOption]:
    return [EmotionOption(label=label, tag=tag) for label, tag in EMOTIONS.items()]


def emotion_tag(emotion: str) -> str:
    label = (emotion or "").strip()
    return EMOTIONS.get(label) or label.lower()


def _dig(payload: Any, path: Sequence[str]) -> Any:
    node = payload
    for key in path:
        if not isinstance(node, dict) or key not in node:
            raise ShapeMismatchError(f"Unexpected track source response: missing {'.'.join(path)}")
        node = node[key]
    return node


def _track_list(payload: Any, path: Sequence[str]) -> List[Dict[str, Any]]:
    entries = _dig(payload, path)
    # A single match comes back as a bare object rather than a one-item list
    if isinstance(entries, dict):
        entries = [entries]
    if not isinstance(entries, list):
        raise ShapeMismatchError(f"Unexpected track source response: {'.'.join(path)} is not a list")
    return entries


def normalize_track(entry: Any) -> Track:
    if not isinstance(entry, dict) or not entry.get("name"):
        raise ShapeMismatchError("Unexpected track entry in track source response")
    artist = entry.get("artist")
    if isinstance(artist, dict):
        artist = artist.get("name") or ""
    return Track(name=str(entry["name"]), artist=str(artist or ""), url=str(entry.get("url") or ""))


def parse_top_tracks(payload: Any) -> List[Track]:
    return [normalize_track(e) for e in _track_list(payload, ("tracks", "track"))]


def parse_search_results(payload: Any) -> List[Track]:
    return [normalize_track(e) for e in _track_list(payload, ("results", "trackmatches", "track"))]


class TrackDispatcher:
    def __init__(self, track_source: TrackSource, recorder: Optional[RecentPlayRecorder] = None):
        self.track_source = track_source
        self.recorder = recorder

    def _require_configured(self) -> None:
        if not getattr(self.track_source, "configured", True):
            raise ConfigurationError("LASTFM_API_KEY is not configured")

    async def fetch_by_emotion(self, emotion: str, session: Optional[Session] = None) -> List[Track]:
        self._require_configured()
        tag = emotion_tag(emotion)
        payload = await self.track_source.top_tracks_by_tag(tag, limit=TRACK_LIMIT)
        tracks = parse_top_tracks(payload)
        logger.info("Emotion dispatch resolved", extra={"emotion": emotion, "tag": tag, "track_count": len(tracks)})

        if session is not None and self.recorder is not None:
            await self.recorder.record_tracks(session, tracks, emotion)
        return tracks

    async def search_by_query(self, query: str) -> Optional[List[Track]]:
        """Return matching tracks, or None without any request when the query is blank."""
        text = (query or "").strip()
        if not text:
            return None
        self._require_configured()
        payload = await self.track_source.search_tracks(text, limit=TRACK_LIMIT)
        tracks = parse_search_results(payload)
        logger.info("Search dispatch resolved", extra={"query": text, "track_count": len(tracks)})
        return tracks

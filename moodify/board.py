from __future__ import annotations

"""Presentation state of the main page: displayed tracks, loading flag, alert."""

import logging
from typing import List, Optional

from .dispatch import TrackDispatcher
from .errors import ConfigurationError, MoodifyError
from .schemas import BoardSnapshot, Session, Track

logger = logging.getLogger(__name__)

ALERT_EMOTION_FAILED = "곡을 가져오는 중 오류가 발생했습니다."
ALERT_SEARCH_FAILED = "검색 중 오류가 발생했습니다."
ALERT_NOT_CONFIGURED = "음악 API 키가 설정되지 않았습니다."


class MoodBoard:
    """Owned by one viewer; only the two handlers below mutate it.

    On failure the previously displayed tracks stay on screen and ``alert`` is set.
    Overlapping calls are not cancelled, whichever resolves last wins.
    """

    def __init__(self, dispatcher: TrackDispatcher):
        self.dispatcher = dispatcher
        self.tracks: List[Track] = []
        self.loading = False
        self.alert: Optional[str] = None
        self.emotion: Optional[str] = None

    def snapshot(self) -> BoardSnapshot:
        return BoardSnapshot(tracks=list(self.tracks), loading=self.loading, alert=self.alert, emotion=self.emotion)

    def _fail(self, exc: MoodifyError, alert: str, **context) -> None:
        logger.error("Track dispatch failed", exc_info=True, extra={**context, "error": exc.message[:200]})
        self.alert = ALERT_NOT_CONFIGURED if isinstance(exc, ConfigurationError) else alert

    async def choose_emotion(self, emotion: str, session: Optional[Session] = None) -> BoardSnapshot:
        self.loading = True
        self.alert = None
        try:
            self.tracks = await self.dispatcher.fetch_by_emotion(emotion, session)
            self.emotion = emotion
        except MoodifyError as exc:
            self._fail(exc, ALERT_EMOTION_FAILED, emotion=emotion)
        finally:
            self.loading = False
        return self.snapshot()

    async def search(self, query: str) -> BoardSnapshot:
        if not (query or "").strip():
            return self.snapshot()
        self.loading = True
        self.alert = None
        try:
            self.tracks = await self.dispatcher.search_by_query(query) or []
            self.emotion = None
        except MoodifyError as exc:
            self._fail(exc, ALERT_SEARCH_FAILED, query=query)
        finally:
            self.loading = False
        return self.snapshot()

from __future__ import annotations

"""Best-effort logging of fetched tracks into the caller's recent-play table."""

import logging
from typing import Iterable

from .errors import DuplicateRowError, GatewayError
from .gateway import SessionGateway
from .schemas import Session, Track

logger = logging.getLogger(__name__)


class RecentPlayRecorder:
    """Check-then-insert per track, keyed on (user_id, track_name, artist_name, emotion).

    Never raises: a failed lookup or insert is logged and the track skipped.
    """

    def __init__(self, gateway: SessionGateway, table: str = "recent_tracks"):
        self.gateway = gateway
        self.table = table

    async def record_if_absent(self, session: Session, track: Track, emotion: str) -> bool:
        key = {
            "user_id": session.user_id,
            "track_name": track.name,
            "artist_name": track.artist,
            "emotion": emotion,
        }
        gateway = self.gateway.bind(session.access_token)
        try:
            existing = await gateway.select(self.table, key, limit=1)
        except GatewayError as exc:
            logger.warning("Recent track lookup failed", extra={**key, "error": exc.message[:200]})
            return False
        if existing:
            return False

        try:
            await gateway.insert(self.table, {**key, "url": track.url})
        except DuplicateRowError:
            # Lost a race with a concurrent insert of the same play
            logger.debug("Recent track already stored", extra=key)
            return False
        except GatewayError as exc:
            logger.warning("Recent track insert failed", extra={**key, "error": exc.message[:200]})
            return False
        logger.debug("Recorded recent track", extra=key)
        return True

    async def record_tracks(self, session: Session, tracks: Iterable[Track], emotion: str) -> int:
        inserted = 0
        for track in tracks:
            if await self.record_if_absent(session, track, emotion):
                inserted += 1
        logger.info("Recent tracks recorded", extra={"user_id": session.user_id, "emotion": emotion, "inserted": inserted})
        return inserted

from __future__ import annotations

"""Recently played tracks for the signed-in user (the "my page" view)."""

import logging
from dataclasses import dataclass, field
from typing import List, Optional

from pydantic import ValidationError

from .errors import GatewayError
from .gateway import AuthUser, SessionGateway
from .schemas import RecordedPlay

logger = logging.getLogger(__name__)

HISTORY_LIMIT = 30
LOGIN_ROUTE = "/login"

MSG_LOGIN_REQUIRED = "로그인이 필요합니다."
MSG_USER_UNAVAILABLE = "사용자 정보를 불러올 수 없습니다."
MSG_HISTORY_FAILED = "최근 재생 목록을 불러오는 중 문제가 발생했습니다."


@dataclass
class HistoryPage:
    tracks: List[RecordedPlay] = field(default_factory=list)
    display_name: Optional[str] = None
    message: Optional[str] = None
    redirect_to: Optional[str] = None


class HistoryViewer:
    def __init__(self, gateway: SessionGateway, table: str = "recent_tracks", limit: int = HISTORY_LIMIT):
        self.gateway = gateway
        self.table = table
        self.limit = limit

    async def _current_user(self, access_token: Optional[str]) -> tuple[Optional[AuthUser], Optional[HistoryPage]]:
        if not access_token:
            return None, HistoryPage(message=MSG_LOGIN_REQUIRED, redirect_to=LOGIN_ROUTE)
        try:
            user = await self.gateway.get_user(access_token)
        except GatewayError as exc:
            logger.error("Error fetching user", extra={"error": exc.message[:200]})
            return None, HistoryPage(message=MSG_USER_UNAVAILABLE, redirect_to=LOGIN_ROUTE)
        if user is None:
            return None, HistoryPage(message=MSG_LOGIN_REQUIRED, redirect_to=LOGIN_ROUTE)
        return user, None

    def _parse_rows(self, rows: List[dict], user_id: str) -> List[RecordedPlay]:
        tracks = []
        for row in rows:
            try:
                tracks.append(RecordedPlay.model_validate(row))
            except ValidationError as exc:
                logger.warning(
                    "Skipping malformed recent track",
                    extra={"user_id": user_id, "row_id": row.get("id") if isinstance(row, dict) else None, "error": str(exc)[:200]},
                )
        return tracks

    async def load_history(self, access_token: Optional[str]) -> HistoryPage:
        user, redirect = await self._current_user(access_token)
        if redirect is not None:
            return redirect

        page = HistoryPage(display_name=user.display_name)
        try:
            rows = await self.gateway.bind(access_token).select(
                self.table,
                {"user_id": user.id},
                order="id",
                descending=True,
                limit=self.limit,
            )
        except GatewayError as exc:
            logger.error("Error fetching tracks", extra={"user_id": user.id, "error": str(exc)[:200]})
            page.tracks = []
            page.message = MSG_HISTORY_FAILED
            return page
        page.tracks = self._parse_rows(rows, user.id)
        return page

    async def clear_history(self, access_token: Optional[str]) -> Optional[int]:
        """Delete every recorded play of the signed-in user; None when signed out."""
        user, redirect = await self._current_user(access_token)
        if redirect is not None:
            return None
        deleted = await self.gateway.bind(access_token).delete(self.table, {"user_id": user.id})
        logger.info("Cleared recent tracks", extra={"user_id": user.id, "deleted": deleted})
        return deleted

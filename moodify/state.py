"""Shared application state (injected into routes)."""
import logging
from collections import OrderedDict
from typing import Optional

from moodify import config
from moodify.board import MoodBoard
from moodify.clients.lastfm_client import LastFmClient
from moodify.clients.supabase_client import SupabaseGateway
from moodify.dispatch import TrackDispatcher, TrackSource
from moodify.gateway import SessionGateway
from moodify.history import HistoryViewer
from moodify.local_store import SqlSessionGateway
from moodify.recorder import RecentPlayRecorder

logger = logging.getLogger(__name__)

MAX_BOARDS = 1000


def build_gateway() -> SessionGateway:
    if config.use_managed_backend():
        logger.info("Using managed session backend at %s", config.SUPABASE_URL)
        return SupabaseGateway(config.SUPABASE_URL, config.SUPABASE_ANON_KEY)
    logger.info("Using local session store at %s", config.MOODIFY_DATABASE_URL)
    return SqlSessionGateway(config.MOODIFY_DATABASE_URL)


class AppState:
    def __init__(
        self,
        gateway: Optional[SessionGateway] = None,
        track_source: Optional[TrackSource] = None,
        max_boards: int = MAX_BOARDS,
    ) -> None:
        self.gateway = gateway if gateway is not None else build_gateway()
        self.track_source = track_source or LastFmClient(config.LASTFM_API_KEY, config.LASTFM_API_URL)
        if not getattr(self.track_source, "configured", True):
            logger.warning("LASTFM_API_KEY is not set; emotion and search requests will report a configuration error")
        self.recorder = RecentPlayRecorder(self.gateway)
        self.dispatcher = TrackDispatcher(self.track_source, self.recorder)
        self.history = HistoryViewer(self.gateway)
        self.max_boards = max_boards
        self._boards: "OrderedDict[str, MoodBoard]" = OrderedDict()

    def board_for(self, access_token: Optional[str]) -> MoodBoard:
        """One board per signed-in session; anonymous callers get a throwaway board.

        Callers pass a token only after the gateway has accepted it. The least
        recently used board is evicted once `max_boards` sessions are held.
        """
        if not access_token:
            return MoodBoard(self.dispatcher)
        board = self._boards.get(access_token)
        if board is None:
            board = self._boards[access_token] = MoodBoard(self.dispatcher)
            while len(self._boards) > self.max_boards:
                self._boards.popitem(last=False)
        else:
            self._boards.move_to_end(access_token)
        return board

    def drop_board(self, access_token: Optional[str]) -> None:
        if access_token:
            self._boards.pop(access_token, None)


_state: Optional[AppState] = None


def get_state() -> AppState:
    global _state
    if _state is None:
        _state = AppState()
    return _state

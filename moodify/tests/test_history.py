from conftest import run, signed_in_session
from moodify.errors import GatewayError
from moodify.history import MSG_HISTORY_FAILED, MSG_LOGIN_REQUIRED, MSG_USER_UNAVAILABLE, HistoryViewer


def _seed(gateway, user_id, count):
    for i in range(count):
        run(
            gateway.insert(
                "recent_tracks",
                {
                    "user_id": user_id,
                    "track_name": f"Track {i}",
                    "artist_name": "Artist",
                    "url": f"https://www.last.fm/t/{i}",
                    "emotion": "happy",
                },
            )
        )


class BrokenTableGateway:
    def __init__(self, inner):
        self.inner = inner

    def bind(self, access_token):
        return self

    async def get_user(self, access_token):
        return await self.inner.get_user(access_token)

    async def select(self, *args, **kwargs):
        raise GatewayError("relation \"recent_tracks\" does not exist", status=404)


def test_history_returns_thirty_most_recent_newest_first(gateway):
    session = signed_in_session(gateway)
    _seed(gateway, session.user_id, 35)

    page = run(HistoryViewer(gateway).load_history(session.access_token))

    assert page.redirect_to is None
    assert page.message is None
    assert len(page.tracks) == 30
    assert [t.track_name for t in page.tracks[:3]] == ["Track 34", "Track 33", "Track 32"]
    assert page.tracks[-1].track_name == "Track 5"
    ids = [t.id for t in page.tracks]
    assert ids == sorted(ids, reverse=True)


def test_history_only_shows_own_rows(gateway):
    session = signed_in_session(gateway)
    _seed(gateway, "someone-else", 5)
    _seed(gateway, session.user_id, 2)

    page = run(HistoryViewer(gateway).load_history(session.access_token))

    assert {t.user_id for t in page.tracks} == {session.user_id}
    assert len(page.tracks) == 2


def test_history_display_name_comes_from_profile(gateway):
    session = signed_in_session(gateway, username="moodfan")

    page = run(HistoryViewer(gateway).load_history(session.access_token))

    assert page.display_name == "moodfan"
    assert page.tracks == []


def test_history_without_session_redirects_to_login(gateway):
    page = run(HistoryViewer(gateway).load_history(None))

    assert page.redirect_to == "/login"
    assert page.message == MSG_LOGIN_REQUIRED
    assert page.tracks == []


def test_history_with_unknown_token_redirects(gateway):
    page = run(HistoryViewer(gateway).load_history("not-a-token"))

    assert page.redirect_to == "/login"
    assert page.message == MSG_USER_UNAVAILABLE


def test_history_store_error_shows_message_and_no_rows(gateway):
    session = signed_in_session(gateway)
    _seed(gateway, session.user_id, 3)

    page = run(HistoryViewer(BrokenTableGateway(gateway)).load_history(session.access_token))

    assert page.redirect_to is None
    assert page.message == MSG_HISTORY_FAILED
    assert page.tracks == []


def test_clear_history_deletes_only_callers_rows(gateway):
    session = signed_in_session(gateway)
    _seed(gateway, session.user_id, 4)
    _seed(gateway, "someone-else", 2)
    viewer = HistoryViewer(gateway)

    assert run(viewer.clear_history(session.access_token)) == 4
    assert run(viewer.load_history(session.access_token)).tracks == []
    assert len(run(gateway.select("recent_tracks", {"user_id": "someone-else"}))) == 2
    assert run(viewer.clear_history(None)) is None


class RowsGateway:
    def __init__(self, inner, rows):
        self.inner = inner
        self.rows = rows

    def bind(self, access_token):
        return self

    async def get_user(self, access_token):
        return await self.inner.get_user(access_token)

    async def select(self, *args, **kwargs):
        return self.rows


def test_history_null_url_still_renders(gateway):
    session = signed_in_session(gateway)
    rows = [
        {"id": 2, "user_id": session.user_id, "track_name": "A", "artist_name": "X", "url": None, "emotion": "happy"},
        {"id": 1, "user_id": session.user_id, "track_name": "B", "artist_name": "Y", "url": "https://l.fm/b", "emotion": "sad"},
    ]

    page = run(HistoryViewer(RowsGateway(gateway, rows)).load_history(session.access_token))

    assert page.message is None
    assert [(t.track_name, t.url) for t in page.tracks] == [("A", ""), ("B", "https://l.fm/b")]


def test_history_skips_malformed_rows_only(gateway):
    session = signed_in_session(gateway)
    rows = [
        {"id": 3, "user_id": session.user_id, "track_name": "A", "artist_name": "X", "url": "", "emotion": "happy"},
        {"id": 2, "user_id": session.user_id, "artist_name": "missing name", "emotion": "happy"},
        {"id": 1, "user_id": session.user_id, "track_name": "C", "artist_name": "Z", "url": "", "emotion": "chill"},
    ]

    page = run(HistoryViewer(RowsGateway(gateway, rows)).load_history(session.access_token))

    assert page.message is None
    assert [t.track_name for t in page.tracks] == ["A", "C"]

import asyncio

import pytest
from fastapi.testclient import TestClient

from moodify.local_store import SqlSessionGateway
from moodify.main import app
from moodify.state import AppState, get_state


def top_tracks_payload(count=10, prefix="Song"):
    return {
        "tracks": {
            "track": [
                {
                    "name": f"{prefix} {i}",
                    "artist": {"name": f"Artist {i}", "url": f"https://www.last.fm/music/Artist+{i}"},
                    "url": f"https://www.last.fm/music/Artist+{i}/_/{prefix}+{i}",
                }
                for i in range(count)
            ],
            "@attr": {"tag": "happy", "page": "1", "perPage": str(count)},
        }
    }


def search_payload(count=3):
    return {
        "results": {
            "trackmatches": {
                "track": [
                    {"name": f"Match {i}", "artist": f"Searcher {i}", "url": f"https://www.last.fm/x/{i}"}
                    for i in range(count)
                ]
            }
        }
    }


class FakeTrackSource:
    def __init__(self, top=None, search=None, configured=True, error=None):
        self.top = top if top is not None else top_tracks_payload()
        self.search = search if search is not None else search_payload()
        self.configured = configured
        self.error = error
        self.calls = []

    async def top_tracks_by_tag(self, tag, limit=10):
        self.calls.append(("top", tag, limit))
        if self.error:
            raise self.error
        return self.top

    async def search_tracks(self, query, limit=10):
        self.calls.append(("search", query, limit))
        if self.error:
            raise self.error
        return self.search


def run(coro):
    return asyncio.run(coro)


def signed_in_session(gateway, email="listener@example.com", password="secret!", username="listener"):
    run(gateway.sign_up(email, password, {"username": username}, "http://localhost/login"))
    auth = run(gateway.sign_in(email, password))
    return auth.user.to_session(auth.access_token)


@pytest.fixture
def gateway():
    return SqlSessionGateway("sqlite://")


@pytest.fixture
def track_source():
    return FakeTrackSource()


@pytest.fixture
def state(gateway, track_source):
    return AppState(gateway=gateway, track_source=track_source)


@pytest.fixture
def client(state):
    app.dependency_overrides[get_state] = lambda: state
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()

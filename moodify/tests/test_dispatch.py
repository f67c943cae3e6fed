import pytest

from conftest import FakeTrackSource, run, search_payload, signed_in_session, top_tracks_payload
from moodify.dispatch import TrackDispatcher, emotion_tag, parse_search_results, parse_top_tracks
from moodify.errors import ConfigurationError, ShapeMismatchError
from moodify.recorder import RecentPlayRecorder


def _dispatcher(gateway, source):
    return TrackDispatcher(source, RecentPlayRecorder(gateway))


def _stored(gateway, session):
    return run(gateway.select("recent_tracks", {"user_id": session.user_id}))


def test_fetch_by_emotion_normalizes_and_records_once(gateway):
    source = FakeTrackSource(top=top_tracks_payload(10))
    session = signed_in_session(gateway)
    dispatcher = _dispatcher(gateway, source)

    tracks = run(dispatcher.fetch_by_emotion("Happy", session))

    assert source.calls == [("top", "happy", 10)]
    assert len(tracks) == 10
    assert tracks[0].name == "Song 0"
    assert tracks[0].artist == "Artist 0"
    assert tracks[0].url.endswith("/_/Song+0")
    rows = _stored(gateway, session)
    assert len(rows) == 10
    assert {r["emotion"] for r in rows} == {"Happy"}

    again = run(dispatcher.fetch_by_emotion("Happy", session))

    assert len(again) == 10
    assert len(_stored(gateway, session)) == 10


def test_same_track_under_another_emotion_is_a_new_row(gateway):
    source = FakeTrackSource(top=top_tracks_payload(3))
    session = signed_in_session(gateway)
    dispatcher = _dispatcher(gateway, source)

    run(dispatcher.fetch_by_emotion("Happy", session))
    run(dispatcher.fetch_by_emotion("chill", session))

    assert len(_stored(gateway, session)) == 6


def test_emotion_buttons_map_to_lastfm_tags():
    assert emotion_tag("슬픔") == "sad"
    assert emotion_tag("행복") == "happy"
    assert emotion_tag("분노") == "angry"
    assert emotion_tag("편안함") == "chill"
    assert emotion_tag("  Melancholy ") == "melancholy"


def test_fetch_without_session_does_not_record(gateway):
    source = FakeTrackSource()
    session = signed_in_session(gateway)

    tracks = run(_dispatcher(gateway, source).fetch_by_emotion("happy"))

    assert len(tracks) == 10
    assert _stored(gateway, session) == []


def test_missing_api_key_is_a_configuration_error(gateway):
    source = FakeTrackSource(configured=False)

    with pytest.raises(ConfigurationError):
        run(_dispatcher(gateway, source).fetch_by_emotion("happy"))
    with pytest.raises(ConfigurationError):
        run(_dispatcher(gateway, source).search_by_query("yesterday"))
    assert source.calls == []


@pytest.mark.parametrize(
    "payload",
    [{}, {"tracks": {}}, {"tracks": {"track": "nope"}}, {"tracks": None}, {"tracks": {"track": [42]}}],
)
def test_top_tracks_shape_mismatch(payload):
    with pytest.raises(ShapeMismatchError):
        parse_top_tracks(payload)


def test_shape_mismatch_records_nothing(gateway):
    source = FakeTrackSource(top={"tracks": {}})
    session = signed_in_session(gateway)

    with pytest.raises(ShapeMismatchError):
        run(_dispatcher(gateway, source).fetch_by_emotion("happy", session))
    assert _stored(gateway, session) == []


def test_single_track_object_is_accepted():
    payload = {"tracks": {"track": {"name": "Only One", "artist": {"name": "Solo"}, "url": "u"}}}
    tracks = parse_top_tracks(payload)

    assert [(t.name, t.artist, t.url) for t in tracks] == [("Only One", "Solo", "u")]


def test_search_uses_plain_artist_strings(gateway):
    source = FakeTrackSource(search=search_payload(3))
    tracks = run(_dispatcher(gateway, source).search_by_query("  match  "))

    assert source.calls == [("search", "match", 10)]
    assert [t.artist for t in tracks] == ["Searcher 0", "Searcher 1", "Searcher 2"]


@pytest.mark.parametrize("query", ["", "   ", "\t\n"])
def test_blank_search_makes_no_request(gateway, query):
    source = FakeTrackSource()

    assert run(_dispatcher(gateway, source).search_by_query(query)) is None
    assert source.calls == []


def test_search_never_records(gateway):
    source = FakeTrackSource()
    session = signed_in_session(gateway)

    run(_dispatcher(gateway, source).search_by_query("match"))

    assert _stored(gateway, session) == []


def test_search_results_shape_mismatch():
    with pytest.raises(ShapeMismatchError):
        parse_search_results({"results": {"trackmatches": {}}})
    with pytest.raises(ShapeMismatchError):
        parse_search_results({"error": 6})

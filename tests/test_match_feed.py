import pytest
import requests
from pydantic import ValidationError as PydanticValidationError
from sqlmodel import select

from prono.exceptions import MatchFeedError, MatchPayloadError
from prono.models import Match, Prediction
from prono.services.match_feed import (
    MatchFeedClient,
    MatchPayload,
    MatchStatusCache,
    apply_match_payloads,
    parse_match_payloads,
    poll_matches,
    refresh_match_from_feed,
)


class FakeResponse:
    def __init__(self, body, status_code=200):
        self.body = body
        self.status_code = status_code

    def raise_for_status(self):
        if self.status_code >= 400:
            raise requests.exceptions.HTTPError(f"{self.status_code} Error")

    def json(self):
        return self.body


class FakeSession:
    """Stands in for requests.Session, replaying canned responses."""

    def __init__(self, *responses):
        self.responses = list(responses)
        self.headers = {}
        self.calls = []

    def get(self, url, timeout=None):
        self.calls.append((url, timeout))
        response = self.responses.pop(0)
        if isinstance(response, Exception):
            raise response
        return response


class StaticFeed:
    def __init__(self, payloads=None, error=None):
        self.payloads = payloads or []
        self.error = error

    def fetch_matches(self):
        if self.error:
            raise self.error
        return self.payloads


def row(**fields):
    base = {"id": "lck-1", "team_a": "T1", "team_b": "Gen.G", "status": "upcoming"}
    base.update(fields)
    return base


def test_payload_accepts_string_scores_and_aliases():
    payload = MatchPayload.model_validate(row(id=17, status="Completed", score_a="3", score_b=" 1 "))

    assert payload.id == "17"
    assert payload.status == "finished"
    assert (payload.score_a, payload.score_b) == (3, 1)


def test_payload_scheduled_at_alias():
    payload = MatchPayload.model_validate(row(scheduled_at="2026-10-19T12:00:00Z", extra_field="ignored"))

    assert payload.match_date.year == 2026
    assert payload.score_a is None


@pytest.mark.parametrize("fields", [
    {"score_a": "three", "score_b": 1, "status": "live"},
    {"score_a": -1, "score_b": 1, "status": "live"},
    {"score_a": True, "score_b": 1, "status": "live"},
    {"status": "postponed"},
    {"status": "finished"},                    # no result
    {"status": "finished", "score_a": 2},      # half a result
    {"team_a": ""},
    {"id": ""},
])
def test_payload_rejects_invalid_rows(fields):
    with pytest.raises(PydanticValidationError):
        MatchPayload.model_validate(row(**fields))


def test_parse_match_payloads_raises_on_first_invalid_row():
    with pytest.raises(MatchPayloadError) as exc_info:
        parse_match_payloads([row(), row(id="lck-2", score_a="x", status="live")])

    assert "index 1" in exc_info.value.message
    assert exc_info.value.context["errors"]


def test_parse_match_payloads_skip_invalid():
    payloads = parse_match_payloads([row(), {"id": "broken"}, row(id="lck-2")], skip_invalid=True)

    assert [p.id for p in payloads] == ["lck-1", "lck-2"]


def test_parse_match_payloads_requires_a_list():
    with pytest.raises(MatchPayloadError):
        parse_match_payloads({"id": "lck-1"})


def test_client_fetch_matches_unwraps_body():
    session = FakeSession(FakeResponse({"matches": [row(), {"team_a": "no id"}]}))
    client = MatchFeedClient("http://feed.test/api/", timeout=2, session=session)

    payloads = client.fetch_matches()

    assert [p.id for p in payloads] == ["lck-1"]
    assert session.calls == [("http://feed.test/api/matches", 2)]
    assert "User-Agent" in session.headers


def test_client_fetch_match():
    session = FakeSession(FakeResponse({"match": row(status="live", score_a=1, score_b=0)}))
    client = MatchFeedClient("http://feed.test", session=session)

    payload = client.fetch_match("lck-1")

    assert payload.status == "live"
    assert session.calls[0][0] == "http://feed.test/matches/lck-1"


@pytest.mark.parametrize("response", [
    requests.exceptions.ConnectionError("refused"),
    requests.exceptions.Timeout("slow"),
    FakeResponse({}, status_code=503),
])
def test_client_wraps_request_failures(response):
    client = MatchFeedClient("http://feed.test", session=FakeSession(response))

    with pytest.raises(MatchFeedError):
        client.fetch_matches()


def test_apply_payloads_creates_and_updates(session):
    created = apply_match_payloads(session, parse_match_payloads([row(), row(id="lck-2", team_a="G2")]))
    assert created == {"created": 2, "updated": 0, "skipped": 0}

    summary = apply_match_payloads(session, parse_match_payloads([
        row(status="live", score_a=1, score_b=0),
        row(id="lck-2", team_a="G2"),  # unchanged
    ]))

    assert summary == {"created": 0, "updated": 1, "skipped": 0}
    match = session.exec(select(Match).where(Match.external_id == "lck-1")).one()
    assert match.status == "live"
    assert (match.live_score_a, match.live_score_b) == (1, 0)
    assert match.score_a is None


def test_apply_payloads_finishes_match(session):
    apply_match_payloads(session, parse_match_payloads([row(status="live")]))

    apply_match_payloads(session, parse_match_payloads([row(status="finished", score_a=1, score_b=3)]))

    match = session.exec(select(Match).where(Match.external_id == "lck-1")).one()
    assert match.status == "finished"
    assert (match.score_a, match.score_b, match.winner) == (1, 3, "team_b")


def test_apply_payloads_skips_backward_moves(session):
    apply_match_payloads(session, parse_match_payloads([row(status="finished", score_a=3, score_b=1)]))

    summary = apply_match_payloads(session, parse_match_payloads([row(status="live", score_a=0, score_b=0)]))

    assert summary == {"created": 0, "updated": 0, "skipped": 1}
    match = session.exec(select(Match).where(Match.external_id == "lck-1")).one()
    assert match.status == "finished"
    assert (match.score_a, match.score_b) == (3, 1)


def test_status_cache():
    cache = MatchStatusCache()
    upcoming = Match(id=1, team_a="T1", team_b="Gen.G", status="upcoming")
    finished = Match(id=2, team_a="G2", team_b="Fnatic", status="finished", score_a=3, score_b=0)

    assert cache.observe([upcoming, finished]) == [2]
    assert cache.observe([upcoming, finished]) == [2]

    cache.mark_scored(2)
    assert cache.is_scored(2)
    assert cache.observe([upcoming, finished]) == []

    cache.clear()
    assert not cache.is_scored(2)


def test_poll_scores_finished_matches_once(session, locks, make_user, make_group, make_match, make_prediction):
    alice = make_user("Alice")
    group = make_group(alice)
    match = make_match(status="finished", score_a=3, score_b=1, winner="team_a")
    make_match("G2", "Fnatic")
    prediction = make_prediction(alice, match, group, "team_a", 3, 1)
    cache = MatchStatusCache()

    first = poll_matches(session, cache, locks=locks)
    second = poll_matches(session, cache, locks=locks)

    assert first == {"synced": None, "scored": [match.id], "deferred": []}
    assert second["scored"] == []
    session.refresh(prediction)
    assert prediction.points_earned == 5


def test_poll_defers_locked_match(session, locks, make_match):
    match = make_match(status="finished", score_a=3, score_b=1, winner="team_a")
    cache = MatchStatusCache()

    with locks.hold(match.id):
        summary = poll_matches(session, cache, locks=locks)

    assert summary["deferred"] == [match.id]
    assert not cache.is_scored(match.id)

    assert poll_matches(session, cache, locks=locks)["scored"] == [match.id]


def test_poll_syncs_feed_then_scores(session, locks, make_user, make_group):
    alice = make_user("Alice")
    group = make_group(alice)
    cache = MatchStatusCache()
    feed = StaticFeed(parse_match_payloads([row(status="live")]))
    poll_matches(session, cache, locks=locks, feed=feed)
    match = session.exec(select(Match).where(Match.external_id == "lck-1")).one()
    session.add(Prediction(user_id=alice.id, match_id=match.id, group_id=group.id, predicted_winner="team_b"))
    session.commit()

    feed.payloads = parse_match_payloads([row(status="finished", score_a=0, score_b=3)])
    summary = poll_matches(session, cache, locks=locks, feed=feed)

    assert summary["synced"] == {"created": 0, "updated": 1, "skipped": 0}
    assert summary["scored"] == [match.id]
    prediction = session.exec(select(Prediction)).one()
    assert prediction.points_earned == 3


def test_poll_keeps_going_when_feed_is_down(session, locks, make_match):
    match = make_match(status="finished", score_a=1, score_b=0, winner="team_a")
    feed = StaticFeed(error=MatchFeedError("Failed to fetch matches from the match feed"))

    summary = poll_matches(session, MatchStatusCache(), locks=locks, feed=feed)

    assert summary["synced"] is None
    assert summary["scored"] == [match.id]


def test_poll_keeps_going_when_feed_returns_garbage(session, locks, make_match):
    match = make_match(status="finished", score_a=3, score_b=1, winner="team_a")
    feed = MatchFeedClient("http://feed.test", session=FakeSession(FakeResponse({"error": "maintenance"})))

    summary = poll_matches(session, MatchStatusCache(), locks=locks, feed=feed)

    assert summary["synced"] is None
    assert summary["scored"] == [match.id]


def test_refresh_match_from_feed_applies_result(session, make_match):
    match = make_match(status="live", external_id="lck-1")
    http = FakeSession(FakeResponse({"match": row(status="finished", score_a=3, score_b=1)}))

    refreshed = refresh_match_from_feed(session, match, MatchFeedClient("http://feed.test", session=http))

    assert refreshed is True
    assert http.calls[0][0] == "http://feed.test/matches/lck-1"
    assert match.status == "finished"
    assert (match.score_a, match.score_b, match.winner) == (3, 1, "team_a")


def test_refresh_match_from_feed_skips_local_matches(session, make_match):
    match = make_match(status="live")
    http = FakeSession()

    assert refresh_match_from_feed(session, match, MatchFeedClient("http://feed.test", session=http)) is False
    assert refresh_match_from_feed(session, match, None) is False
    assert http.calls == []


@pytest.mark.parametrize("response", [
    requests.exceptions.ConnectionError("refused"),
    FakeResponse({"match": row(status="finished")}),    # result missing
    FakeResponse({"match": row(id="lck-2", status="live")}),
])
def test_refresh_match_from_feed_falls_back_to_local_data(session, make_match, response):
    match = make_match(status="live", external_id="lck-1", live_score_a=1)
    feed = MatchFeedClient("http://feed.test", session=FakeSession(response))

    assert refresh_match_from_feed(session, match, feed) is False

    session.refresh(match)
    assert match.status == "live"
    assert match.live_score_a == 1

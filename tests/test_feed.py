# tests/test_feed.py
from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy.exc import OperationalError
from sqlmodel import select

from civic_feed import feed as feed_module
from civic_feed.feed import generate_personalized_feed, record_diversity
from civic_feed.models import (
    ArtistMembership,
    CivicEvent,
    FeedDiversityTracking,
    FeedInteraction,
    JobListing,
    Profile,
    PulsePost,
    UserFeedPreferences,
    utcnow,
)
from civic_feed.ranker import FeedItem, type_cap

NOW = utcnow()


def seed(session, pulse=0, jobs=0, artists=0, **post_kw):
    for i in range(pulse):
        session.add(PulsePost(user_id="author", content=f"post {i}", created_at=NOW - timedelta(minutes=i), **post_kw))
    for i in range(jobs):
        session.add(JobListing(title=f"job {i}", region="Centre", created_at=NOW - timedelta(minutes=i)))
    for i in range(artists):
        session.add(ArtistMembership(stage_name=f"artist {i}", created_at=NOW - timedelta(minutes=i)))
    session.commit()


def set_prefs(session, user_id="user-1", **kw):
    session.add(UserFeedPreferences(user_id=user_id, **kw))
    session.commit()


def _types(result):
    return [it["item_type"] for it in result["feed"]]


def test_new_user_gets_default_preferences(session):
    seed(session, pulse=3)
    out = generate_personalized_feed(session, "new-user", now=NOW)

    prefs = out["user_preferences"]
    assert (prefs["civic_content_weight"], prefs["entertainment_weight"],
            prefs["job_content_weight"], prefs["artist_content_weight"]) == (0.4, 0.3, 0.2, 0.1)
    assert prefs["local_content_preference"] == 0.7
    assert prefs["political_engagement_level"] == "moderate"
    stored = session.exec(select(UserFeedPreferences).where(UserFeedPreferences.user_id == "new-user")).first()
    assert stored is not None


def test_weighted_example_ranks_pulse_over_jobs(session):
    set_prefs(session, civic_content_weight=0.5, job_content_weight=0.5, artist_content_weight=0.0)
    seed(session, pulse=10, jobs=10, artists=5)

    out = generate_personalized_feed(session, "user-1", limit=20, now=NOW)
    types = _types(out)

    assert out["civic_events_active"] is False
    assert "artist_content" not in types
    assert out["total_count"] == 16
    assert types == ["pulse_post"] * 8 + ["job"] * 8
    assert out["feed"][0]["score"] == pytest.approx(0.2325)
    assert out["feed"][-1]["score"] == pytest.approx(0.2025)


def test_no_type_exceeds_forty_percent(session):
    seed(session, pulse=20, jobs=10, artists=10)
    out = generate_personalized_feed(session, "user-1", limit=20, now=NOW)

    # defaults fetch ceil(20*.4)=8 pulse, 4 jobs, 2 artists
    cap = type_cap(14)
    for t in ("pulse_post", "job", "artist_content"):
        assert _types(out).count(t) <= cap
    assert all(0.0 <= it["score"] <= 1.0 for it in out["feed"])


def test_zero_weight_skips_fetch(session, mocker):
    set_prefs(session, job_content_weight=0.0, artist_content_weight=0.0)
    seed(session, pulse=5, jobs=5, artists=5)
    spy = mocker.spy(feed_module, "fetch_jobs")

    out = generate_personalized_feed(session, "user-1", now=NOW)

    assert spy.call_count == 0
    assert set(_types(out)) == {"pulse_post"}


def test_civic_event_within_window_boosts(session):
    seed(session, pulse=1)
    base = generate_personalized_feed(session, "user-1", now=NOW)

    session.add(CivicEvent(event_name="Regional vote", event_type="election", event_date=NOW + timedelta(days=10)))
    session.commit()
    boosted = generate_personalized_feed(session, "user-1", now=NOW)

    assert base["civic_events_active"] is False
    assert boosted["civic_events_active"] is True
    diff = boosted["feed"][0]["score"] - base["feed"][0]["score"]
    assert diff == pytest.approx(0.20 * 0.3 * 0.2 * 0.4)


@pytest.mark.parametrize("days,active", [(40, True), (-2, True), (10, False)])
def test_civic_events_outside_window_or_inactive_ignored(session, days, active):
    session.add(CivicEvent(event_name="e", event_date=NOW + timedelta(days=days), is_active=active))
    session.commit()
    out = generate_personalized_feed(session, "user-1", now=NOW)
    assert out["civic_events_active"] is False


def test_engagement_history_changes_affinity(session):
    seed(session, jobs=1)
    session.add(FeedInteraction(user_id="fan", item_id="job_1", item_type="job",
                                interaction_type="share", engagement_quality=1.0, created_at=NOW - timedelta(days=1)))
    # outside the 30 day window
    session.add(FeedInteraction(user_id="fan", item_id="job_1", item_type="job",
                                interaction_type="hide", engagement_quality=0.0, created_at=NOW - timedelta(days=45)))
    session.commit()

    fan = generate_personalized_feed(session, "fan", now=NOW)
    other = generate_personalized_feed(session, "other", now=NOW)

    assert fan["feed"][0]["score"] - other["feed"][0]["score"] == pytest.approx(0.10 * 0.5 * 0.2)


def test_known_region_raises_geo_term(session):
    seed(session, pulse=1)
    session.add(Profile(user_id="local", region="Northwest"))
    session.commit()

    local = generate_personalized_feed(session, "local", now=NOW)
    anon = generate_personalized_feed(session, "anon", now=NOW)

    assert local["feed"][0]["score"] - anon["feed"][0]["score"] == pytest.approx(0.25 * 0.4 * 0.4)


def test_political_updates_rank_first(session):
    seed(session, pulse=3)
    session.add(PulsePost(content="Assembly update", post_type="political_update", created_at=NOW - timedelta(hours=5)))
    session.commit()

    out = generate_personalized_feed(session, "user-1", limit=10, now=NOW)
    assert out["feed"][0]["content"]["post_type"] == "political_update"


def test_blocked_topics_filter_pulse_posts(session):
    set_prefs(session, blocked_topics=["elections"])
    seed(session, pulse=2, hashtags=["#Elections"])
    seed(session, pulse=2, hashtags=["#music"])

    out = generate_personalized_feed(session, "user-1", now=NOW)
    assert out["feed"]
    assert all("#Elections" not in it["content"]["hashtags"] for it in out["feed"])


def test_closed_and_inactive_jobs_are_not_candidates(session):
    session.add(JobListing(title="closed", status="closed"))
    session.add(JobListing(title="hidden", is_active=False))
    session.add(ArtistMembership(stage_name="retired", is_active=False))
    session.commit()

    out = generate_personalized_feed(session, "user-1", now=NOW)
    assert out["feed"] == []
    assert out["total_count"] == 0


def test_pagination_slices_are_disjoint(session):
    set_prefs(session, civic_content_weight=0.5, job_content_weight=0.5, artist_content_weight=0.5)
    seed(session, pulse=10, jobs=10, artists=10)

    full = generate_personalized_feed(session, "user-1", limit=10, offset=0, now=NOW)
    first = generate_personalized_feed(session, "user-1", limit=10, offset=0, now=NOW)
    second = generate_personalized_feed(session, "user-1", limit=10, offset=5, now=NOW)

    first_ids = [it["id"] for it in first["feed"][:5]]
    second_ids = [it["id"] for it in second["feed"][:5]]
    assert [it["id"] for it in full["feed"]] == [it["id"] for it in first["feed"]]
    assert not set(first_ids) & set(second_ids)
    assert first_ids + second_ids == [it["id"] for it in full["feed"][:10]]


def test_fetch_failure_degrades_to_other_categories(session, mocker):
    seed(session, pulse=5, jobs=5)
    mocker.patch("civic_feed.feed.fetch_jobs", side_effect=RuntimeError("jobs table unavailable"))

    out = generate_personalized_feed(session, "user-1", now=NOW)
    assert out["feed"]
    assert "job" not in _types(out)


def test_preference_bootstrap_failure_uses_defaults(session, mocker):
    seed(session, pulse=2)
    mocker.patch.object(session, "commit", side_effect=RuntimeError("db read-only"))

    out = generate_personalized_feed(session, "ghost", now=NOW)

    assert out["user_preferences"]["civic_content_weight"] == 0.4
    assert out["feed"]
    assert session.exec(select(UserFeedPreferences).where(UserFeedPreferences.user_id == "ghost")).first() is None


def test_preference_lookup_failure_uses_defaults(session, mocker):
    seed(session, pulse=2)
    set_prefs(session, user_id="user-x", civic_content_weight=0.9)
    real_exec = session.exec
    calls = []

    def flaky_exec(statement, *args, **kwargs):
        calls.append(statement)
        if len(calls) == 1:
            raise OperationalError("SELECT user_feed_preferences", {}, Exception("prefs table unavailable"))
        return real_exec(statement, *args, **kwargs)

    mocker.patch.object(session, "exec", side_effect=flaky_exec)

    out = generate_personalized_feed(session, "user-x", now=NOW)

    prefs = out["user_preferences"]
    assert (prefs["civic_content_weight"], prefs["job_content_weight"]) == (0.4, 0.2)
    assert out["feed"]


def test_diversity_tracking_upserts_per_session(session):
    seed(session, pulse=10, jobs=10, artists=10)
    generate_personalized_feed(session, "user-1", limit=5, session_id="sess-1", now=NOW)
    out = generate_personalized_feed(session, "user-1", limit=5, offset=2, session_id="sess-1", now=NOW)

    rows = session.exec(select(FeedDiversityTracking).where(FeedDiversityTracking.session_id == "sess-1")).all()
    assert len(rows) == 1
    row = rows[0]
    types = _types(out)
    assert row.civic_content_shown == types.count("pulse_post")
    assert row.job_content_shown == types.count("job")
    assert row.artist_content_shown == types.count("artist_content")
    assert row.regions_represented == sorted({it["region"] for it in out["feed"] if it["region"]})


def test_diversity_tracking_failure_is_swallowed(session, mocker):
    seed(session, pulse=3)
    mocker.patch("civic_feed.feed.record_diversity", side_effect=RuntimeError("upsert failed"))

    out = generate_personalized_feed(session, "user-1", session_id="sess-x", now=NOW)
    # one type only: capped at ceil(3 * 0.4)
    assert out["total_count"] == 2
    assert len(out["feed"]) == 2


def test_diversity_tracking_concurrent_insert_keeps_last_write(session, mocker):
    # another request created the row between our lookup and our insert
    session.add(FeedDiversityTracking(user_id="user-1", session_id="sess-r", civic_content_shown=9))
    session.commit()
    real_exec = session.exec
    calls = []

    def stale_exec(statement, *args, **kwargs):
        calls.append(statement)
        result = real_exec(statement, *args, **kwargs)
        if len(calls) == 1:
            return mocker.Mock(first=lambda: None)
        return result

    mocker.patch.object(session, "exec", side_effect=stale_exec)
    page = [
        FeedItem(id="job_1", item_type="job", content={}, created_at=NOW, region="Centre"),
        FeedItem(id="pulse_1", item_type="pulse_post", content={}, created_at=NOW, region="Littoral"),
    ]

    record_diversity(session, "user-1", "sess-r", page)

    mocker.stopall()
    rows = session.exec(select(FeedDiversityTracking).where(FeedDiversityTracking.session_id == "sess-r")).all()
    assert len(rows) == 1
    assert (rows[0].civic_content_shown, rows[0].job_content_shown) == (1, 1)
    assert rows[0].regions_represented == ["Centre", "Littoral"]


def test_identical_inputs_give_identical_order(session):
    seed(session, pulse=8, jobs=8, artists=8)
    a = generate_personalized_feed(session, "user-1", now=NOW)
    b = generate_personalized_feed(session, "user-1", now=NOW)
    assert [it["id"] for it in a["feed"]] == [it["id"] for it in b["feed"]]


def test_civic_boost_window_follows_clock(session):
    from freezegun import freeze_time

    session.add(PulsePost(content="Polling stations announced", created_at=datetime(2025, 2, 28, tzinfo=timezone.utc)))
    session.add(CivicEvent(event_name="Municipal election", event_type="election", event_date=datetime(2025, 3, 20, tzinfo=timezone.utc)))
    session.commit()

    with freeze_time("2025-03-01"):
        assert generate_personalized_feed(session, "user-1")["civic_events_active"] is True
    with freeze_time("2025-01-01"):
        assert generate_personalized_feed(session, "user-1")["civic_events_active"] is False

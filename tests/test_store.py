# tests/test_store.py
from sqlmodel import select
from civic_feed.models import FeedDiversityTracking, UserFeedPreferences


def test_db_roundtrip(session):
    p = UserFeedPreferences(user_id="u-1", preferred_regions=["Centre"], blocked_topics=["#spam"])
    session.add(p); session.commit(); session.refresh(p)
    got = session.exec(select(UserFeedPreferences).where(UserFeedPreferences.user_id == "u-1")).first()
    assert got and got.civic_content_weight == 0.4
    assert got.preferred_regions == ["Centre"]
    assert got.political_engagement_level == "moderate"


def test_tables_created(app):
    from sqlalchemy import inspect
    names = set(inspect(app.state.engine).get_table_names())
    assert {
        "user_feed_preferences", "profiles", "pulse_posts", "jobs", "artist_memberships",
        "civic_events_calendar", "feed_interactions", "feed_diversity_tracking",
    } <= names


def test_diversity_tracking_unique_per_session(session):
    import pytest
    from sqlalchemy.exc import IntegrityError

    session.add(FeedDiversityTracking(user_id="u", session_id="s"))
    session.commit()
    session.add(FeedDiversityTracking(user_id="u", session_id="s"))
    with pytest.raises(IntegrityError):
        session.commit()


def test_timestamps_are_timezone_aware(session):
    from civic_feed.models import FeedInteraction, utcnow

    assert utcnow().tzinfo is not None
    row = FeedInteraction(user_id="u", item_id="job_1", item_type="job", interaction_type="view", engagement_quality=0.5)
    assert row.created_at.tzinfo is not None
    session.add(row); session.commit(); session.refresh(row)
    assert row.id is not None

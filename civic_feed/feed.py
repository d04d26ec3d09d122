# civic_feed/feed.py
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional, Tuple
from collections import Counter
import time

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError
from sqlmodel import Session, select

from .models import (
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
from .ranker import (
    FeedItem,
    diversify,
    fetch_limit,
    is_blocked,
    paginate,
    score_item,
)
from .logging_setup import get_logger

logger = get_logger("civic_feed.feed")

DEFAULT_LIMIT = 20
CIVIC_EVENT_WINDOW = timedelta(days=30)
ENGAGEMENT_WINDOW = timedelta(days=30)

# item_type -> FeedDiversityTracking column
SHOWN_COLUMNS = {
    "pulse_post": "civic_content_shown",
    "job": "job_content_shown",
    "artist_content": "artist_content_shown",
}


def default_preferences(user_id: str) -> UserFeedPreferences:
    return UserFeedPreferences(user_id=user_id)


def resolve_preferences(s: Session, user_id: str) -> Tuple[UserFeedPreferences, bool]:
    """
    Load the user's stored preferences, creating the default row on first use.
    Returns (prefs, persisted). If the lookup or the insert fails the defaults
    are used in memory only and persisted is False.
    """
    try:
        prefs = s.exec(select(UserFeedPreferences).where(UserFeedPreferences.user_id == user_id)).first()
    except Exception as e:
        s.rollback()
        logger.exception("PREFS_LOOKUP_FAILED", extra={"user_id": user_id, "handled": True, "error": type(e).__name__})
        return default_preferences(user_id), False
    if prefs:
        return prefs, True

    prefs = default_preferences(user_id)
    try:
        s.add(prefs)
        s.commit()
        s.refresh(prefs)
        logger.info("PREFS_CREATED_DEFAULT", extra={"user_id": user_id})
        return prefs, True
    except Exception as e:
        s.rollback()
        logger.exception("PREFS_BOOTSTRAP_FAILED", extra={"user_id": user_id, "handled": True, "error": type(e).__name__})
        return default_preferences(user_id), False


def get_user_region(s: Session, user_id: str) -> Optional[str]:
    profile = s.exec(select(Profile).where(Profile.user_id == user_id)).first()
    return (profile.region or None) if profile else None


def fetch_pulse_posts(s: Session, n: int, blocked_topics: Optional[List[str]] = None) -> List[FeedItem]:
    rows = s.exec(select(PulsePost).order_by(PulsePost.created_at.desc()).limit(n)).all()
    items = []
    for p in rows:
        if blocked_topics and is_blocked(p.hashtags, blocked_topics):
            continue
        items.append(FeedItem(
            id=f"pulse_{p.id}",
            item_type="pulse_post",
            content=p.model_dump(),
            created_at=p.created_at,
            region=p.region,
            content_type="political_update" if p.post_type == "political_update" else "pulse",
        ))
    return items


def fetch_jobs(s: Session, n: int) -> List[FeedItem]:
    stmt = (
        select(JobListing)
        .where(JobListing.is_active == True)  # noqa: E712
        .where(JobListing.status == "open")
        .order_by(JobListing.created_at.desc())
        .limit(n)
    )
    return [
        FeedItem(
            id=f"job_{j.id}",
            item_type="job",
            content=j.model_dump(),
            created_at=j.created_at,
            region=j.region,
            content_type="job",
        )
        for j in s.exec(stmt).all()
    ]


def fetch_artist_content(s: Session, n: int) -> List[FeedItem]:
    stmt = (
        select(ArtistMembership)
        .where(ArtistMembership.is_active == True)  # noqa: E712
        .order_by(ArtistMembership.created_at.desc())
        .limit(n)
    )
    return [
        FeedItem(
            id=f"artist_{a.id}",
            item_type="artist_content",
            content=a.model_dump(),
            created_at=a.created_at,
            region=a.region,
            content_type="artist_content",
        )
        for a in s.exec(stmt).all()
    ]


def civic_events_active(s: Session, now: datetime) -> bool:
    """True if any active civic event falls between now and now + 30 days."""
    stmt = (
        select(CivicEvent.id)
        .where(CivicEvent.is_active == True)  # noqa: E712
        .where(CivicEvent.event_date >= now)
        .where(CivicEvent.event_date <= now + CIVIC_EVENT_WINDOW)
        .limit(1)
    )
    return s.exec(stmt).first() is not None


def engagement_affinity(s: Session, user_id: str, item_type: str, now: datetime) -> Optional[float]:
    """Mean engagement_quality of the user's last-30-day interactions with item_type, or None."""
    stmt = (
        select(func.avg(FeedInteraction.engagement_quality))
        .where(FeedInteraction.user_id == user_id)
        .where(FeedInteraction.item_type == item_type)
        .where(FeedInteraction.created_at >= now - ENGAGEMENT_WINDOW)
    )
    avg = s.exec(stmt).one()
    return float(avg) if avg is not None else None


def record_diversity(s: Session, user_id: str, session_id: str, page: List[FeedItem]) -> FeedDiversityTracking:
    """Upsert the shown-counts and regions of this page for (user, session)."""
    counts = Counter(it.item_type for it in page)
    regions = sorted({it.region for it in page if it.region})

    def write():
        row = s.exec(
            select(FeedDiversityTracking)
            .where(FeedDiversityTracking.user_id == user_id)
            .where(FeedDiversityTracking.session_id == session_id)
        ).first() or FeedDiversityTracking(user_id=user_id, session_id=session_id)

        for item_type, column in SHOWN_COLUMNS.items():
            setattr(row, column, counts.get(item_type, 0))
        row.regions_represented = regions
        row.updated_at = utcnow()
        s.add(row)
        s.commit()
        return row

    try:
        return write()
    except IntegrityError:
        # a concurrent request inserted the row first; overwrite it (last writer wins)
        s.rollback()
        logger.info("DIVERSITY_ROW_RACE", extra={"user_id": user_id, "session_id": session_id, "handled": True})
        return write()


def generate_personalized_feed(
    s: Session,
    user_id: str,
    limit: int = DEFAULT_LIMIT,
    offset: int = 0,
    session_id: Optional[str] = None,
    now: Optional[datetime] = None,
) -> Dict[str, Any]:
    """
    Builds one page of the user's feed:
    - load/create preferences
    - fetch pulse, job and artist pools (each sized by its weight)
    - score, sort, cap each type at 40% of the candidates
    - slice the page
    - record session diversity (optional)

    Only unexpected errors propagate; every step that can degrade does.
    """
    now = now or utcnow()
    t0 = time.perf_counter()

    def X(**fields):
        return {"user_id": user_id, "session_id": session_id, **fields}

    logger.info("FEED_START", extra=X(step="start", limit=limit, offset=offset))

    # --- Prefs ---
    prefs, persisted = resolve_preferences(s, user_id)
    blocked = list(prefs.blocked_topics or [])

    try:
        user_region = get_user_region(s, user_id)
    except Exception as e:
        s.rollback()
        logger.exception("REGION_LOOKUP_FAILED", extra=X(step="prefs", handled=True, error=type(e).__name__))
        user_region = None

    # --- Fetch ---
    fetchers = [
        ("pulse_post", prefs.civic_content_weight, True, lambda n: fetch_pulse_posts(s, n, blocked)),
        ("job", prefs.job_content_weight, prefs.job_content_weight > 0, lambda n: fetch_jobs(s, n)),
        ("artist_content", prefs.artist_content_weight, prefs.artist_content_weight > 0, lambda n: fetch_artist_content(s, n)),
    ]
    candidates: List[FeedItem] = []
    for item_type, weight, enabled, fetch in fetchers:
        if not enabled:
            logger.debug("FETCH_SKIPPED", extra=X(step="fetch", item_type=item_type))
            continue
        n = fetch_limit(limit, weight)
        try:
            got = fetch(n)
            candidates.extend(got)
            logger.info("FETCH_OK", extra=X(step="fetch", item_type=item_type, requested=n, count=len(got)))
        except Exception as e:
            s.rollback()
            logger.exception("FETCH_FAILED", extra=X(step="fetch", item_type=item_type, handled=True, error=type(e).__name__))

    # --- Civic events ---
    try:
        boost = civic_events_active(s, now)
    except Exception as e:
        s.rollback()
        logger.exception("CIVIC_EVENTS_FAILED", extra=X(step="events", handled=True, error=type(e).__name__))
        boost = False

    # --- Score ---
    affinity: Dict[str, Optional[float]] = {}
    for item_type in {it.item_type for it in candidates}:
        try:
            affinity[item_type] = engagement_affinity(s, user_id, item_type, now)
        except Exception as e:
            s.rollback()
            logger.exception("AFFINITY_FAILED", extra=X(step="score", item_type=item_type, handled=True, error=type(e).__name__))
            affinity[item_type] = None

    for it in candidates:
        score_item(
            it,
            prefs,
            user_region=user_region,
            civic_boost=boost,
            engagement_affinity=affinity.get(it.item_type),
        )

    # --- Diversify & page ---
    ranked = diversify(candidates)
    page = paginate(ranked, offset, limit)

    # --- Diversity tracking ---
    if session_id:
        try:
            record_diversity(s, user_id, session_id, page)
        except Exception as e:
            s.rollback()
            logger.exception("DIVERSITY_TRACKING_FAILED", extra=X(step="track", handled=True, error=type(e).__name__))

    logger.info(
        "FEED_READY",
        extra=X(
            step="done",
            candidates=len(candidates),
            total_count=len(ranked),
            returned=len(page),
            civic_events_active=boost,
            prefs_persisted=persisted,
            elapsed_ms=round((time.perf_counter() - t0) * 1000),
        ),
    )

    return {
        "feed": [it.to_dict() for it in page],
        "total_count": len(ranked),
        "user_preferences": prefs_to_dict(prefs),
        "civic_events_active": boost,
    }


def prefs_to_dict(prefs: UserFeedPreferences) -> Dict[str, Any]:
    return {
        "user_id": prefs.user_id,
        "civic_content_weight": prefs.civic_content_weight,
        "entertainment_weight": prefs.entertainment_weight,
        "job_content_weight": prefs.job_content_weight,
        "artist_content_weight": prefs.artist_content_weight,
        "local_content_preference": prefs.local_content_preference,
        "political_engagement_level": prefs.political_engagement_level,
        "preferred_regions": list(prefs.preferred_regions or []),
        "blocked_topics": list(prefs.blocked_topics or []),
    }

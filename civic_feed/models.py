from typing import Optional, List
from sqlmodel import SQLModel, Field, Column, JSON
from sqlalchemy import UniqueConstraint
from datetime import datetime, timezone


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class UserFeedPreferences(SQLModel, table=True):
    __tablename__ = "user_feed_preferences"

    id: Optional[int] = Field(default=None, primary_key=True)
    user_id: str = Field(index=True, unique=True)
    civic_content_weight: float = 0.4
    entertainment_weight: float = 0.3
    job_content_weight: float = 0.2
    artist_content_weight: float = 0.1
    local_content_preference: float = 0.7
    political_engagement_level: str = "moderate"  # low | moderate | high
    preferred_regions: List[str] = Field(default_factory=list, sa_column=Column(JSON))
    blocked_topics: List[str] = Field(default_factory=list, sa_column=Column(JSON))
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)


class Profile(SQLModel, table=True):
    __tablename__ = "profiles"

    id: Optional[int] = Field(default=None, primary_key=True)
    user_id: str = Field(index=True, unique=True)
    display_name: Optional[str] = None
    region: Optional[str] = None


class PulsePost(SQLModel, table=True):
    __tablename__ = "pulse_posts"

    id: Optional[int] = Field(default=None, primary_key=True)
    user_id: str = ""
    content: str = ""
    post_type: str = "pulse"  # pulse | political_update
    hashtags: List[str] = Field(default_factory=list, sa_column=Column(JSON))
    region: Optional[str] = None
    created_at: datetime = Field(default_factory=utcnow, index=True)


class JobListing(SQLModel, table=True):
    __tablename__ = "jobs"

    id: Optional[int] = Field(default=None, primary_key=True)
    title: str
    company_name: str = ""
    description: str = ""
    region: Optional[str] = None
    status: str = "open"  # open | pending | closed
    is_active: bool = True
    created_at: datetime = Field(default_factory=utcnow, index=True)


class ArtistMembership(SQLModel, table=True):
    __tablename__ = "artist_memberships"

    id: Optional[int] = Field(default=None, primary_key=True)
    user_id: str = ""
    stage_name: str
    bio: str = ""
    region: Optional[str] = None
    is_active: bool = True
    created_at: datetime = Field(default_factory=utcnow, index=True)


class CivicEvent(SQLModel, table=True):
    __tablename__ = "civic_events_calendar"

    id: Optional[int] = Field(default=None, primary_key=True)
    event_name: str
    event_type: str = ""  # election, referendum, budget_hearing, ...
    event_date: datetime
    region: Optional[str] = None
    is_active: bool = True


class FeedInteraction(SQLModel, table=True):
    __tablename__ = "feed_interactions"

    id: Optional[int] = Field(default=None, primary_key=True)
    user_id: str = Field(index=True)
    item_id: str
    item_type: str  # pulse_post | job | artist_content
    interaction_type: str  # view | like | share | comment | hide
    engagement_quality: float = 0.5
    created_at: datetime = Field(default_factory=utcnow)


class FeedDiversityTracking(SQLModel, table=True):
    __tablename__ = "feed_diversity_tracking"
    __table_args__ = (UniqueConstraint("user_id", "session_id"),)

    id: Optional[int] = Field(default=None, primary_key=True)
    user_id: str
    session_id: str
    civic_content_shown: int = 0
    job_content_shown: int = 0
    artist_content_shown: int = 0
    entertainment_content_shown: int = 0
    regions_represented: List[str] = Field(default_factory=list, sa_column=Column(JSON))
    updated_at: datetime = Field(default_factory=utcnow)

from datetime import datetime
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, Field

ItemType = Literal["pulse_post", "job", "artist_content"]
EngagementLevel = Literal["low", "moderate", "high"]
InteractionType = Literal["view", "like", "share", "comment", "hide"]


class FeedRequest(BaseModel):
    limit: Optional[int] = Field(default=None, ge=1)
    offset: int = Field(default=0, ge=0)
    session_id: Optional[str] = None


class FeedItemOut(BaseModel):
    id: str
    item_type: ItemType
    content: Dict[str, Any]
    score: float
    region: Optional[str] = None
    created_at: datetime


class PrefsOut(BaseModel):
    user_id: str
    civic_content_weight: float
    entertainment_weight: float
    job_content_weight: float
    artist_content_weight: float
    local_content_preference: float
    political_engagement_level: str
    preferred_regions: List[str] = []
    blocked_topics: List[str] = []


class FeedResponse(BaseModel):
    feed: List[FeedItemOut]
    total_count: int
    user_preferences: PrefsOut
    civic_events_active: bool


class PrefsIn(BaseModel):
    civic_content_weight: Optional[float] = None
    entertainment_weight: Optional[float] = None
    job_content_weight: Optional[float] = None
    artist_content_weight: Optional[float] = None
    local_content_preference: Optional[float] = None
    political_engagement_level: Optional[EngagementLevel] = None
    preferred_regions: Optional[List[str]] = None
    blocked_topics: Optional[List[str]] = None


class InteractionIn(BaseModel):
    item_id: str
    item_type: ItemType
    interaction_type: InteractionType
    engagement_quality: Optional[float] = Field(default=None, ge=0.0, le=1.0)

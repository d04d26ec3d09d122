from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional
import math

# Per-content-type civic relevance
CIVIC_RELEVANCE: Dict[str, float] = {
    "political_update": 0.9,
    "pulse": 0.6,
    "job": 0.4,
    "artist_content": 0.2,
}
DEFAULT_CIVIC_RELEVANCE = 0.3

FACTOR_WEIGHTS: Dict[str, float] = {
    "civic_relevance": 0.30,
    "geo_relevance": 0.25,
    "time_sensitivity": 0.20,
    "authenticity": 0.15,
    "engagement_affinity": 0.10,
}

GEO_KNOWN_REGION = 0.8
GEO_UNKNOWN_REGION = 0.4
BASE_TIME_SENSITIVITY = 0.3
CIVIC_EVENT_BOOST = 1.2
AUTHENTICITY = 0.5
DEFAULT_ENGAGEMENT_AFFINITY = 0.5

MAX_TYPE_SHARE = 0.4

# item_type -> preference attribute
PREFERENCE_FIELDS: Dict[str, str] = {
    "pulse_post": "civic_content_weight",
    "job": "job_content_weight",
    "artist_content": "artist_content_weight",
}
CONTENT_WEIGHT_FIELDS = (
    "civic_content_weight",
    "entertainment_weight",
    "job_content_weight",
    "artist_content_weight",
)
MIN_REBALANCED_WEIGHT = 0.05

# engagement_quality assumed when an interaction is recorded without one
INTERACTION_QUALITY: Dict[str, float] = {
    "share": 1.0,
    "comment": 0.9,
    "like": 0.8,
    "view": 0.5,
    "hide": 0.0,
}


@dataclass
class FeedItem:
    id: str
    item_type: str  # pulse_post | job | artist_content
    content: Dict[str, Any]
    created_at: datetime
    region: Optional[str] = None
    content_type: str = ""  # key into CIVIC_RELEVANCE
    score: float = 0.0
    factors: Dict[str, float] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "item_type": self.item_type,
            "content": self.content,
            "score": self.score,
            "region": self.region,
            "created_at": self.created_at,
        }


def _ceil(x: float) -> int:
    # 20 * 0.3 == 6.000000000000001 must still give 6
    return math.ceil(round(x, 9))


def fetch_limit(limit: int, weight: float) -> int:
    """How many items of a category to pull for a page of `limit`."""
    return max(0, _ceil(limit * weight))


def civic_relevance(content_type: str) -> float:
    return CIVIC_RELEVANCE.get(content_type, DEFAULT_CIVIC_RELEVANCE)


def geo_relevance(user_region: Optional[str]) -> float:
    # Presence of a user region only; the item's own region is not compared.
    return GEO_KNOWN_REGION if user_region else GEO_UNKNOWN_REGION


def time_sensitivity(civic_boost: bool) -> float:
    return BASE_TIME_SENSITIVITY * (CIVIC_EVENT_BOOST if civic_boost else 1.0)


def preference_weight(prefs, item_type: str) -> float:
    attr = PREFERENCE_FIELDS.get(item_type)
    if attr is None:
        return 0.0
    return float(getattr(prefs, attr, 0.0) or 0.0)


def score_item(
    item: FeedItem,
    prefs,
    *,
    user_region: Optional[str] = None,
    civic_boost: bool = False,
    engagement_affinity: Optional[float] = None,
) -> float:
    """
    Weighted linear blend of the five relevance factors, scaled by the user's
    preference weight for the item's type and clamped to [0, 1].
    The factor values are stored on item.factors for debugging.
    """
    if engagement_affinity is None:
        engagement_affinity = DEFAULT_ENGAGEMENT_AFFINITY

    factors = {
        "civic_relevance": civic_relevance(item.content_type or item.item_type),
        "geo_relevance": geo_relevance(user_region),
        "time_sensitivity": time_sensitivity(civic_boost),
        "authenticity": AUTHENTICITY,
        "engagement_affinity": engagement_affinity,
    }
    base = sum(FACTOR_WEIGHTS[k] * v for k, v in factors.items())
    score = base * preference_weight(prefs, item.item_type)

    item.factors = factors
    item.score = min(1.0, max(0.0, score))
    return item.score


def type_cap(total: int, share: float = MAX_TYPE_SHARE) -> int:
    return _ceil(total * share)


def sort_by_score(items: Iterable[FeedItem]) -> List[FeedItem]:
    # sorted() is stable: equal scores keep their fetch order
    return sorted(items, key=lambda it: it.score, reverse=True)


def diversify(items: List[FeedItem], share: float = MAX_TYPE_SHARE) -> List[FeedItem]:
    """
    Walk the score-sorted candidates and keep an item only while its type is
    under ceil(len(items) * share). Items over the cap are dropped.
    """
    cap = type_cap(len(items), share)
    counts: Dict[str, int] = {}
    kept: List[FeedItem] = []
    for it in sort_by_score(items):
        n = counts.get(it.item_type, 0)
        if n >= cap:
            continue
        counts[it.item_type] = n + 1
        kept.append(it)
    return kept


def paginate(items: List[FeedItem], offset: int, limit: int) -> List[FeedItem]:
    offset = max(0, offset)
    return items[offset:offset + max(0, limit)]


def is_blocked(hashtags: Iterable[str], blocked_topics: Iterable[str]) -> bool:
    blocked = {t.lstrip("#").strip().lower() for t in blocked_topics if t and t.strip()}
    if not blocked:
        return False
    return any(h.lstrip("#").strip().lower() in blocked for h in hashtags or [])


def rebalance_weights(prefs, changed: Iterable[str]):
    """
    Clamp content weights to [0, 1]; if they sum above 1.0, take the excess
    evenly out of the weights the user did not just change, never going below
    MIN_REBALANCED_WEIGHT.
    """
    changed = set(changed)
    for attr in CONTENT_WEIGHT_FIELDS:
        setattr(prefs, attr, min(1.0, max(0.0, float(getattr(prefs, attr)))))

    total = sum(getattr(prefs, attr) for attr in CONTENT_WEIGHT_FIELDS)
    if round(total, 9) <= 1.0:
        return prefs

    others = [attr for attr in CONTENT_WEIGHT_FIELDS if attr not in changed]
    if not others:
        return prefs
    share = (total - 1.0) / len(others)
    for attr in others:
        current = getattr(prefs, attr)
        if current > share:
            setattr(prefs, attr, max(MIN_REBALANCED_WEIGHT, current - share))
    return prefs


def default_quality(interaction_type: str) -> float:
    return INTERACTION_QUALITY.get(interaction_type, DEFAULT_ENGAGEMENT_AFFINITY)

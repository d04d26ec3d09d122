from fastapi import APIRouter, Depends
from sqlmodel import Session

from ..auth import AuthenticatedUser, require_user
from ..feed import prefs_to_dict, resolve_preferences
from ..logging_setup import get_logger
from ..models import utcnow
from ..ranker import CONTENT_WEIGHT_FIELDS, rebalance_weights
from ..schema import PrefsIn, PrefsOut
from ..store import get_db

logger = get_logger("civic_feed.routes.prefs")

router = APIRouter(prefix="/prefs", tags=["Preferences"])


def _dedupe(values):
    seen = []
    for v in values:
        v = v.strip()
        if v and v not in seen:
            seen.append(v)
    return seen


@router.get("", response_model=PrefsOut)
def get_prefs(user: AuthenticatedUser = Depends(require_user), s: Session = Depends(get_db)):
    prefs, _ = resolve_preferences(s, user.id)
    return prefs_to_dict(prefs)


@router.post("", response_model=PrefsOut)
def update_prefs(
    body: PrefsIn,
    user: AuthenticatedUser = Depends(require_user),
    s: Session = Depends(get_db),
):
    logger.info(f"Updating preferences for user={user.id}")
    prefs, persisted = resolve_preferences(s, user.id)
    if not persisted:
        s.add(prefs)

    changes = body.model_dump(exclude_unset=True, exclude_none=True)
    changed_weights = [k for k in changes if k in CONTENT_WEIGHT_FIELDS]
    for key in changed_weights:
        setattr(prefs, key, changes[key])
    if "local_content_preference" in changes:
        prefs.local_content_preference = min(1.0, max(0.0, changes["local_content_preference"]))
    if "political_engagement_level" in changes:
        prefs.political_engagement_level = changes["political_engagement_level"]
    if "preferred_regions" in changes:
        prefs.preferred_regions = _dedupe(changes["preferred_regions"])
    if "blocked_topics" in changes:
        prefs.blocked_topics = _dedupe(changes["blocked_topics"])

    rebalance_weights(prefs, changed_weights)
    prefs.updated_at = utcnow()
    s.add(prefs)
    s.commit()
    s.refresh(prefs)
    return prefs_to_dict(prefs)

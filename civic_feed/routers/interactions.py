from fastapi import APIRouter, Depends
from sqlmodel import Session

from ..auth import AuthenticatedUser, require_user
from ..logging_setup import get_logger
from ..models import FeedInteraction
from ..ranker import default_quality
from ..schema import InteractionIn
from ..store import get_db

logger = get_logger("civic_feed.routes.interactions")

router = APIRouter(prefix="/interactions", tags=["Interactions"])

@router.post("", status_code=201)
def post_interaction(
    body: InteractionIn,
    user: AuthenticatedUser = Depends(require_user),
    s: Session = Depends(get_db),
):
    quality = body.engagement_quality
    if quality is None:
        quality = default_quality(body.interaction_type)
    logger.info(f"Interaction received: user={user.id} item={body.item_id} type={body.interaction_type} quality={quality}")
    row = FeedInteraction(
        user_id=user.id,
        item_id=body.item_id,
        item_type=body.item_type,
        interaction_type=body.interaction_type,
        engagement_quality=quality,
    )
    s.add(row)
    s.commit()
    s.refresh(row)
    return {"ok": True, "id": row.id, "engagement_quality": row.engagement_quality}

from typing import Optional

from fastapi import APIRouter, Depends, Response
from sqlmodel import Session

from ..auth import AuthenticatedUser, get_settings, require_user
from ..config import Settings
from ..feed import generate_personalized_feed
from ..logging_setup import get_logger
from ..schema import FeedRequest, FeedResponse
from ..store import get_db

logger = get_logger("civic_feed.routes.feed")

router = APIRouter(prefix="/generate-personalized-feed", tags=["Feed"])


@router.options("", include_in_schema=False)
def feed_preflight():
    return Response(status_code=200)


@router.post("", response_model=FeedResponse)
def post_feed(
    body: Optional[FeedRequest] = None,
    user: AuthenticatedUser = Depends(require_user),
    settings: Settings = Depends(get_settings),
    s: Session = Depends(get_db),
):
    """
    One page of the caller's personalized feed. `limit` defaults to the
    configured page size and is capped at the configured maximum.
    """
    body = body or FeedRequest()
    limit = min(body.limit or settings.default_limit, settings.max_limit)
    logger.info(f"Feed requested: user={user.id} limit={limit} offset={body.offset} session={body.session_id}")
    return generate_personalized_feed(
        s,
        user.id,
        limit=limit,
        offset=body.offset,
        session_id=body.session_id,
    )

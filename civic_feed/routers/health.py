from fastapi import APIRouter
from ..logging_setup import get_logger

logger = get_logger("civic_feed.routes.health")

router = APIRouter()

@router.get("/health")
def health():
    logger.debug("Health check invoked")
    return {"status": "ok"}

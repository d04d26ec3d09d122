# civic_feed/lifespan.py
from contextlib import asynccontextmanager
from fastapi import FastAPI

from .logging_setup import get_logger
from .store import init_db

logger = get_logger("civic_feed.lifespan")

@asynccontextmanager
async def lifespan(app: FastAPI):
    # ---- Startup ----
    logger.info("APP STARTUP")
    init_db(app.state.engine)
    logger.info("Database ready")

    yield

    # ---- Shutdown ----
    logger.info("APP SHUTDOWN")
    app.state.engine.dispose()

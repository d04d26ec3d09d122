# civic_feed/main.py
from typing import Optional

from fastapi import FastAPI

from .config import Settings, load_settings
from .logging_setup import setup_logging, get_logger
from .middleware import PreflightCORSMiddleware, RequestContextMiddleware
from .store import create_db_engine
from .exception_handling import register_exception_handlers
from .lifespan import lifespan

from .routers import health, feed, prefs, interactions

setup_logging()  # <-- set up logging ASAP
logger = get_logger("civic_feed.main")


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    """
    Build the application with its own settings and database engine.
    Both live on app.state; request code reaches them through dependencies.
    """
    settings = settings or load_settings()

    app = FastAPI(title="Civic Feed", version="0.1.0", lifespan=lifespan)
    app.state.settings = settings
    app.state.engine = create_db_engine(settings.db_url)

    app.add_middleware(RequestContextMiddleware)
    app.add_middleware(
        PreflightCORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_methods=["*"],
        # authorization, x-client-info, apikey, content-type, x-request-id, ...
        allow_headers=["*"],
    )

    register_exception_handlers(app)

    app.include_router(health.router)
    app.include_router(feed.router)
    app.include_router(prefs.router)
    app.include_router(interactions.router)

    logger.info("App created", extra={"db_url": settings.db_url.split("@")[-1]})
    return app


app = create_app()

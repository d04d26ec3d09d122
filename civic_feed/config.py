import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import List

from dotenv import load_dotenv

# Go up one level from civic_feed/ to root/
env_path = Path(__file__).resolve().parent.parent / ".env"


@dataclass(frozen=True)
class Settings:
    db_url: str = "sqlite:///civic_feed.db"
    jwt_secret: str = ""
    jwt_audience: str = "authenticated"
    default_limit: int = 20
    max_limit: int = 100
    cors_origins: List[str] = field(default_factory=lambda: ["*"])


def _split(value: str) -> List[str]:
    return [v.strip() for v in value.split(",") if v.strip()]


def load_settings() -> Settings:
    """
    Build a Settings object from the environment (and .env, if present).
    Called once per process by create_app(); request code gets it via app.state.
    """
    load_dotenv(dotenv_path=env_path)
    return Settings(
        db_url=os.getenv("DB_URL", "sqlite:///civic_feed.db"),
        jwt_secret=os.getenv("SUPABASE_JWT_SECRET", ""),
        jwt_audience=os.getenv("JWT_AUDIENCE", "authenticated"),
        default_limit=int(os.getenv("FEED_DEFAULT_LIMIT", "20")),
        max_limit=int(os.getenv("FEED_MAX_LIMIT", "100")),
        cors_origins=_split(os.getenv("CORS_ORIGINS", "*")) or ["*"],
    )

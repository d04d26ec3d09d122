# tests/conftest.py
import os
import tempfile
import time

import jwt
import pytest

os.environ.setdefault("LOG_DIR", tempfile.mkdtemp(prefix="civic_feed_logs_"))

JWT_SECRET = "test-secret"


@pytest.fixture()
def settings():
    from civic_feed.config import Settings
    return Settings(db_url="sqlite://", jwt_secret=JWT_SECRET)


@pytest.fixture()
def app(settings):
    from civic_feed.main import create_app
    from civic_feed.store import init_db
    app = create_app(settings)
    init_db(app.state.engine)
    return app


@pytest.fixture()
def client(app):
    from fastapi.testclient import TestClient
    return TestClient(app, raise_server_exceptions=False)


@pytest.fixture()
def session(app):
    from civic_feed.store import get_session
    with get_session(app.state.engine) as s:
        yield s


def make_token(user_id="user-1", secret=JWT_SECRET, expires_in=3600, **claims):
    now = int(time.time())
    payload = {
        "sub": user_id,
        "aud": "authenticated",
        "role": "authenticated",
        "iat": now,
        "exp": now + expires_in,
        **claims,
    }
    return jwt.encode(payload, secret, algorithm="HS256")


@pytest.fixture()
def auth_headers():
    return {"Authorization": f"Bearer {make_token()}"}

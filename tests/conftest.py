import hashlib
import hmac
import json
import time

import pytest
from fastapi.testclient import TestClient

from globizora_api.config import Settings
from globizora_api.main import create_app

WEBHOOK_SECRET = "whsec_test_secret"
JWT_SECRET = "test-jwt-secret"


@pytest.fixture
def settings(tmp_path):
    return Settings(
        database_url=f"sqlite:///{(tmp_path / 'test.db').as_posix()}",
        jwt_secret=JWT_SECRET,
        stripe_secret_key="sk_test_dummy",
        stripe_webhook_secret=WEBHOOK_SECRET,
        environment="test",
    )


@pytest.fixture
def app(settings):
    app = create_app(settings)
    yield app
    app.state.db.dispose()


@pytest.fixture
def client(app):
    with TestClient(app) as c:
        yield c


@pytest.fixture
def db(app):
    session = app.state.db.SessionLocal()
    try:
        yield session
    finally:
        session.close()


def register(client, username="a", email="a@x.com", password="secret1"):
    return client.post("/auth/register", json={"username": username, "email": email, "password": password})


def login(client, email="a@x.com", password="secret1"):
    return client.post("/auth/login", json={"email": email, "password": password})


@pytest.fixture
def auth_headers(client):
    register(client)
    token = login(client).json()["token"]
    return {"Authorization": f"Bearer {token}"}


def sign_payload(payload: dict, secret: str = WEBHOOK_SECRET, timestamp: int | None = None):
    """Build a body + Stripe-Signature header the way Stripe signs webhooks."""
    body = json.dumps(payload)
    ts = int(timestamp if timestamp is not None else time.time())
    sig = hmac.new(secret.encode(), f"{ts}.{body}".encode(), hashlib.sha256).hexdigest()
    return body, f"t={ts},v1={sig}"

"""
Shared fixtures: an in-memory Mongo (mongomock) behind a fresh EntityStore.
"""

import os

# cheap hashes for tests; must be set before config is imported
os.environ["BCRYPT_ROUNDS"] = "4"
os.environ["SIMULATED_LATENCY_MS"] = "0"
os.environ["SEED_DEMO_DATA"] = "true"

import mongomock
import pytest
from fastapi.testclient import TestClient

from entity_store import EntityStore
from main import create_app
from ratings import RatingAggregator
from sessions import SessionManager


@pytest.fixture
def store():
    """Empty store on a fresh in-memory database."""
    db = mongomock.MongoClient()["ratings_test"]
    s = EntityStore(db)
    s.ensure_indexes()
    return s


@pytest.fixture
def seeded_store(store):
    store.seed_demo_data()
    return store


@pytest.fixture
def sessions(seeded_store):
    return SessionManager(seeded_store)


@pytest.fixture
def aggregator(store):
    return RatingAggregator(store)


@pytest.fixture
def client():
    app = create_app(mongomock.MongoClient())
    with TestClient(app) as c:
        yield c


def login_headers(client, email, password):
    resp = client.post("/login", json={"email": email, "password": password})
    assert resp.status_code == 200, resp.text
    return {"Authorization": f"Bearer {resp.json()['access_token']}"}


@pytest.fixture
def admin_headers(client):
    return login_headers(client, "admin@example.com", "AdminPassword1!")


@pytest.fixture
def user_headers(client):
    return login_headers(client, "user@example.com", "UserPassword1!")


@pytest.fixture
def owner_headers(client):
    return login_headers(client, "owner@example.com", "OwnerPassword1!")


@pytest.fixture
def login_as(client):
    def _login(email, password):
        return login_headers(client, email, password)
    return _login

from datetime import datetime, timedelta, timezone

import pytest
from fastapi.testclient import TestClient

from golden_glimpses.config import Settings
from golden_glimpses.main import create_app
from golden_glimpses.store import InMemoryCapsuleStore, InMemoryUserStore
from golden_glimpses.utils.storage import LocalBlobStore


def make_settings(tmp_path, **overrides) -> Settings:
    values = dict(
        env="test",
        storage_backend="memory",
        uploads_dir=str(tmp_path / "uploads"),
        bcrypt_rounds=4,
        jwt_secret="test-secret",
        log_level="WARNING",
    )
    values.update(overrides)
    return Settings(**values)


def build_client(settings: Settings) -> TestClient:
    app = create_app(
        settings,
        capsule_store=InMemoryCapsuleStore(),
        user_store=InMemoryUserStore(),
        blob_store=LocalBlobStore(settings.uploads_dir),
    )
    return TestClient(app)


def iso_in(**delta) -> str:
    return (datetime.now(timezone.utc) + timedelta(**delta)).isoformat()


@pytest.fixture
def settings(tmp_path):
    return make_settings(tmp_path)


@pytest.fixture
def client(settings):
    return build_client(settings)


@pytest.fixture
def register(client):
    """Register a user and return (user_json, auth_headers)."""
    counter = {"n": 0}

    def _register(name: str = "Ada Lovelace", password: str = "secret123"):
        counter["n"] += 1
        email = f"user{counter['n']}@example.com"
        resp = client.post("/api/auth/register", json={"name": name, "email": email, "password": password})
        assert resp.status_code == 201, resp.text
        data = resp.json()
        return data["user"], {"Authorization": f"Bearer {data['accessToken']}"}

    return _register

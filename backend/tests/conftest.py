"""Pytest configuration and fixtures."""

import os
import secrets
import sys

import pytest

# Generate a unique test secret for this test run to prevent token forgery
_TEST_JWT_SECRET = f"test-only-{secrets.token_urlsafe(32)}"

# Limits would trip across tests sharing one client IP
os.environ.setdefault("RATE_LIMIT_ENABLED", "false")

# For unit tests, set mock values ONLY if not running integration tests
if not os.environ.get("RUN_INTEGRATION"):
    os.environ.setdefault("STORAGE_BACKEND", "memory")
    os.environ.setdefault("SUPABASE_URL", "https://test.supabase.co")
    os.environ.setdefault("SUPABASE_SECRET_KEY", "test-secret-key")
    os.environ.setdefault("JWT_SECRET_KEY", _TEST_JWT_SECRET)
else:
    # For integration tests, load from .env
    from pathlib import Path

    from dotenv import load_dotenv

    env_path = Path(__file__).parent.parent / ".env"

    # Safety check: require explicit confirmation for integration tests
    if not os.environ.get("CONFIRM_INTEGRATION_CREDENTIALS"):
        print(
            "\nIntegration tests write to the Supabase project configured in .env.\n"
            "Set CONFIRM_INTEGRATION_CREDENTIALS=yes to proceed.\n",
            file=sys.stderr,
        )
        pytest.exit(
            "Integration tests require CONFIRM_INTEGRATION_CREDENTIALS=yes",
            returncode=1,
        )

    load_dotenv(env_path, override=True)

from app.auth import create_access_token  # noqa: E402
from app.config import get_settings  # noqa: E402
from app.database import get_marketplace  # noqa: E402
from app.main import app  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402

from freelancehub import Marketplace, Role  # noqa: E402


@pytest.fixture
def market():
    """A fresh in-memory marketplace per test."""
    if os.environ.get("RUN_INTEGRATION"):
        return get_marketplace(get_settings())
    return Marketplace.in_memory(get_settings().marketplace_config())


@pytest.fixture
def client(market):
    """Create a test client wired to ``market``."""
    app.dependency_overrides[get_marketplace] = lambda: market
    yield TestClient(app)
    app.dependency_overrides.clear()


def _headers(user_id: str, role: Role) -> dict:
    token = create_access_token(user_id, get_settings(), role=role)
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def employer_headers():
    # Use clearly invalid test IDs that cannot collide with production IDs
    return _headers("usr_TEST_EMPLOYER", Role.EMPLOYER)


@pytest.fixture
def other_employer_headers():
    return _headers("usr_TEST_EMPLOYER_2", Role.EMPLOYER)


@pytest.fixture
def freelancer_headers():
    return _headers("usr_TEST_FREELANCER", Role.FREELANCER)


@pytest.fixture
def freelancer2_headers():
    return _headers("usr_TEST_FREELANCER_2", Role.FREELANCER)


@pytest.fixture
def admin_headers():
    return _headers("usr_TEST_ADMIN", Role.ADMIN)


@pytest.fixture
def open_job(client, employer_headers):
    """An open job posted by the test employer."""
    response = client.post(
        "/api/jobs",
        json={"title": "Logo design", "description": "Design a logo for a bakery", "budget": 100},
        headers=employer_headers,
    )
    assert response.status_code == 201
    return response.json()


@pytest.fixture
def assigned_job(client, open_job, employer_headers, freelancer_headers):
    """``open_job`` with the test freelancer selected."""
    client.post(f"/api/jobs/{open_job['id']}/apply", headers=freelancer_headers)
    response = client.put(
        f"/api/jobs/{open_job['id']}/select/usr_TEST_FREELANCER", headers=employer_headers
    )
    assert response.status_code == 200
    return response.json()

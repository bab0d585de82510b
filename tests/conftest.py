import os
import tempfile

import pytest
from typing import Dict, Any
import uuid

# Environment must be in place before carshop.core.config is imported
_TEST_DIR = tempfile.mkdtemp(prefix="carshop-tests-")
os.environ["JWT_ACCESS_SECRET"] = "test-access-secret-for-testing-only"
os.environ["JWT_REFRESH_SECRET"] = "test-refresh-secret-for-testing-only"
os.environ["DATABASE_URL"] = f"sqlite+aiosqlite:///{os.path.join(_TEST_DIR, 'carshop.db')}"
os.environ["DB_CREATE_TABLES"] = "true"
os.environ["BCRYPT_ROUNDS"] = "4"
os.environ["RATE_LIMIT_ENABLED"] = "false"
os.environ["REFRESH_REGISTRY_BACKEND"] = "memory"
os.environ["LOG_DIR"] = _TEST_DIR
os.environ["LOG_LEVEL"] = "warning"
os.environ["ENVIRONMENT"] = "development"

from fastapi.testclient import TestClient  # noqa: E402

BASE_URL = "/api"
PASSWORD = "Passw0rd"


@pytest.fixture(scope="session")
def base_url() -> str:
    """Base URL for API"""
    return BASE_URL


@pytest.fixture
def client():
    """Test client running the app lifespan (tables, fresh registry)"""
    from carshop.main import app

    # https so the Secure refresh cookie round-trips through the cookie jar
    with TestClient(app, base_url="https://testserver") as test_client:
        yield test_client
    app.dependency_overrides.clear()


@pytest.fixture
def codec():
    from carshop.core.security import get_token_codec
    return get_token_codec()


def _unique_user_data(prefix: str, role: str) -> Dict[str, str]:
    username = f"{prefix}_{uuid.uuid4().hex[:8]}"
    return {
        "username": username,
        "email": f"{username}@mail.com",
        "password": PASSWORD,
        "role": role,
    }


def _register(client: TestClient, user_data: Dict[str, str]) -> Dict[str, Any]:
    response = client.post(f"{BASE_URL}/auth/register", json=user_data)
    assert response.status_code == 201, f"Registration failed: {response.text}"
    body = response.json()
    return {
        "user": body["user"],
        "token": body["accessToken"],
        "refresh_token": response.cookies.get("refreshToken"),
        "headers": {"Authorization": f"Bearer {body['accessToken']}"},
        "user_data": user_data,
    }


def _refresh_with(client: TestClient, refresh_token=None):
    client.cookies.clear()
    headers = {"Cookie": f"refreshToken={refresh_token}"} if refresh_token else {}
    return client.post(f"{BASE_URL}/auth/refresh", headers=headers)


@pytest.fixture
def registered_user(client) -> Dict[str, Any]:
    """Register a customer and return its tokens and headers"""
    return _register(client, _unique_user_data("testuser", "customer"))


@pytest.fixture
def admin_user(client) -> Dict[str, Any]:
    """Register an admin and return its tokens and headers"""
    return _register(client, _unique_user_data("admin", "admin"))


@pytest.fixture
def another_user(client) -> Dict[str, Any]:
    """A second customer for ownership checks"""
    return _register(client, _unique_user_data("otheruser", "customer"))


@pytest.fixture
def user_data():
    """Factory for unique registration payloads"""
    def make(prefix: str = "user", role: str = "customer") -> Dict[str, str]:
        return _unique_user_data(prefix, role)
    return make


@pytest.fixture
def register_user(client):
    """Factory registering a fresh user through the API"""
    def make(prefix: str = "user", role: str = "customer") -> Dict[str, Any]:
        return _register(client, _unique_user_data(prefix, role))
    return make


@pytest.fixture
def refresh(client):
    """POST /auth/refresh sending exactly the given cookie (or none)"""
    def call(refresh_token=None):
        return _refresh_with(client, refresh_token)
    return call

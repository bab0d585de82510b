import pytest
import uuid
from datetime import timedelta

from fastapi import FastAPI
from fastapi.testclient import TestClient
from slowapi import Limiter
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware
from slowapi.util import get_remote_address
from sqlalchemy.exc import TimeoutError as PoolTimeoutError

from carshop.api import deps
from carshop.core.config import settings
from carshop.core.database import get_db
from carshop.core.rate_limit import rate_limit_exceeded_handler
from carshop.core.security import TokenCodec
from carshop.schemas.user import Identity


def test_health_check(client):
    """Test health endpoint"""
    response = client.get("/health")
    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "healthy"
    assert "timestamp" in data


def test_root_endpoint(client):
    """Test root endpoint"""
    response = client.get("/")
    assert response.status_code == 200
    data = response.json()
    assert "message" in data
    assert "version" in data


def test_api_health_check(client, base_url):
    response = client.get(f"{base_url}/health")
    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "OK"
    assert data["message"] == "API is running"
    assert "timestamp" in data


def test_unknown_route(client, base_url):
    response = client.get(f"{base_url}/does-not-exist")
    assert response.status_code == 404
    assert response.json() == {"message": "Endpoint not found"}


class TestRegister:
    """Test registration endpoint"""

    def test_register_new_user(self, client, base_url, user_data):
        """Registration opens a session right away"""
        data = user_data("newuser")

        response = client.post(f"{base_url}/auth/register", json=data)

        assert response.status_code == 201
        body = response.json()
        assert body["message"] == "User registered successfully"
        assert isinstance(body["accessToken"], str)
        assert body["user"]["username"] == data["username"]
        assert body["user"]["email"] == data["email"]
        assert body["user"]["role"] == "customer"
        assert isinstance(body["user"]["id"], int)
        assert "password" not in body["user"]
        assert "refreshToken" not in body
        assert response.cookies.get("refreshToken")

    def test_refresh_cookie_attributes(self, client, base_url, user_data):
        response = client.post(f"{base_url}/auth/register", json=user_data("cookie"))

        assert response.status_code == 201
        set_cookie = response.headers["set-cookie"].lower()
        assert set_cookie.startswith("refreshtoken=")
        assert "httponly" in set_cookie
        assert "secure" in set_cookie
        assert "samesite=strict" in set_cookie
        assert "path=/" in set_cookie
        assert f"max-age={7 * 24 * 60 * 60}" in set_cookie

    def test_email_kept_as_submitted(self, client, base_url):
        """Login with the exact address used at registration"""
        username = f"mixed_{uuid.uuid4().hex[:8]}"
        email = f"Mixed.{username}@Example.COM"

        register = client.post(
            f"{base_url}/auth/register",
            json={"username": username, "email": email, "password": "Passw0rd"},
        )
        assert register.status_code == 201
        assert register.json()["user"]["email"] == email

        login = client.post(f"{base_url}/auth/login", json={"username": email, "password": "Passw0rd"})
        assert login.status_code == 200
        assert login.json()["user"]["username"] == username

    def test_email_match_is_case_sensitive(self, client, base_url):
        local = f"Case.{uuid.uuid4().hex[:8]}"
        first = client.post(
            f"{base_url}/auth/register",
            json={"username": f"case_{uuid.uuid4().hex[:8]}", "email": f"{local}@Example.COM", "password": "Passw0rd"},
        )
        second = client.post(
            f"{base_url}/auth/register",
            json={"username": f"case_{uuid.uuid4().hex[:8]}", "email": f"{local}@example.com", "password": "Passw0rd"},
        )
        assert first.status_code == 201
        assert second.status_code == 201

    def test_register_admin(self, admin_user):
        assert admin_user["user"]["role"] == "admin"

    def test_register_duplicate_username(self, client, base_url, registered_user, user_data):
        """Test registering same username twice"""
        data = user_data("dup")
        data["username"] = registered_user["user_data"]["username"]

        response = client.post(f"{base_url}/auth/register", json=data)

        assert response.status_code == 409
        assert response.json()["message"] == "Username or email already taken"

    def test_register_duplicate_email(self, client, base_url, registered_user, user_data):
        data = user_data("dup")
        data["email"] = registered_user["user_data"]["email"]

        response = client.post(f"{base_url}/auth/register", json=data)

        assert response.status_code == 409

    @pytest.mark.parametrize("field, value", [
        ("username", "ab"),
        ("username", "bad name!"),
        ("email", "not-an-email"),
        ("password", "short"),
        ("password", "alllowercase1"),
        ("password", "NoDigitsHere"),
    ])
    def test_register_invalid_payload(self, client, base_url, user_data, field, value):
        data = user_data("invalid")
        data[field] = value

        response = client.post(f"{base_url}/auth/register", json=data)

        assert response.status_code == 400
        body = response.json()
        assert body["message"] == "Validation failed"
        assert field in [error["field"] for error in body["errors"]]

    def test_register_missing_fields(self, client, base_url):
        response = client.post(f"{base_url}/auth/register", json={})
        assert response.status_code == 400
        fields = {error["field"] for error in response.json()["errors"]}
        assert {"username", "email", "password"} <= fields


class TestLogin:
    """Test login endpoint"""

    def test_login_success(self, client, base_url, registered_user):
        """Test successful login"""
        credentials = registered_user["user_data"]

        response = client.post(
            f"{base_url}/auth/login",
            json={"username": credentials["username"], "password": credentials["password"]},
        )

        assert response.status_code == 200
        body = response.json()
        assert body["message"] == "Login successful"
        assert body["user"] == registered_user["user"]
        assert len(body["accessToken"]) > 20
        assert response.cookies.get("refreshToken")

    def test_login_with_email(self, client, base_url, registered_user):
        credentials = registered_user["user_data"]

        response = client.post(
            f"{base_url}/auth/login",
            json={"username": credentials["email"], "password": credentials["password"]},
        )

        assert response.status_code == 200
        assert response.json()["user"]["username"] == credentials["username"]

    def test_login_wrong_password(self, client, base_url, registered_user):
        """Test login with wrong password"""
        response = client.post(
            f"{base_url}/auth/login",
            json={"username": registered_user["user_data"]["username"], "password": "Wr0ngpass"},
        )

        assert response.status_code == 401
        assert response.json() == {"message": "Invalid login credentials"}
        assert "refreshToken" not in response.cookies

    def test_login_nonexistent_user(self, client, base_url):
        """Unknown users get the same answer as a wrong password"""
        response = client.post(
            f"{base_url}/auth/login",
            json={"username": "nobody_by_this_name", "password": "Passw0rd"},
        )

        assert response.status_code == 401
        assert response.json() == {"message": "Invalid login credentials"}

    def test_login_missing_password(self, client, base_url):
        response = client.post(f"{base_url}/auth/login", json={"username": "someone"})
        assert response.status_code == 400

    def test_every_login_opens_a_separate_session(self, client, base_url, registered_user, refresh):
        credentials = registered_user["user_data"]
        login = client.post(
            f"{base_url}/auth/login",
            json={"username": credentials["username"], "password": credentials["password"]},
        )
        assert login.status_code == 200
        second_refresh_token = login.cookies.get("refreshToken")
        assert second_refresh_token != registered_user["refresh_token"]

        # Both devices can refresh independently
        assert refresh(registered_user["refresh_token"]).status_code == 200
        assert refresh(second_refresh_token).status_code == 200


class TestProtectedEndpoints:
    """Test the access token gate"""

    def test_get_me_without_token(self, client, base_url):
        """Test accessing protected endpoint without token"""
        response = client.get(f"{base_url}/auth/me")
        assert response.status_code == 401
        assert response.json() == {"message": "Access token is required"}

    def test_get_me_with_token(self, client, base_url, registered_user):
        """Test accessing protected endpoint with valid token"""
        response = client.get(f"{base_url}/auth/me", headers=registered_user["headers"])

        assert response.status_code == 200
        assert response.json() == registered_user["user"]

    def test_get_me_with_invalid_token(self, client, base_url):
        headers = {"Authorization": "Bearer invalid.token.here"}
        response = client.get(f"{base_url}/auth/me", headers=headers)

        assert response.status_code == 403
        assert response.json() == {"message": "Invalid access token"}

    def test_get_me_with_non_bearer_scheme(self, client, base_url, registered_user):
        headers = {"Authorization": f"Basic {registered_user['token']}"}
        response = client.get(f"{base_url}/auth/me", headers=headers)
        assert response.status_code == 401

    def test_refresh_token_is_not_an_access_token(self, client, base_url, registered_user):
        headers = {"Authorization": f"Bearer {registered_user['refresh_token']}"}
        response = client.get(f"{base_url}/auth/me", headers=headers)
        assert response.status_code == 403

    def test_expired_access_token(self, client, base_url, registered_user):
        expired = TokenCodec(
            settings.JWT_ACCESS_SECRET,
            settings.JWT_REFRESH_SECRET,
            access_ttl=timedelta(seconds=-5),
        ).issue(Identity(**registered_user["user"])).access_token

        response = client.get(f"{base_url}/auth/me", headers={"Authorization": f"Bearer {expired}"})

        assert response.status_code == 401
        body = response.json()
        assert body["expired"] is True
        assert body["message"] == "Access token has expired"

    def test_expired_access_token_then_refresh(self, client, base_url, registered_user, refresh):
        """Client reacts to expired: true by refreshing and retrying"""
        expired = TokenCodec(
            settings.JWT_ACCESS_SECRET,
            settings.JWT_REFRESH_SECRET,
            access_ttl=timedelta(seconds=-5),
        ).issue(Identity(**registered_user["user"])).access_token

        first = client.get(f"{base_url}/auth/me", headers={"Authorization": f"Bearer {expired}"})
        assert first.status_code == 401
        assert first.json()["expired"] is True

        refreshed = refresh(registered_user["refresh_token"])
        assert refreshed.status_code == 200

        retry = client.get(
            f"{base_url}/auth/me",
            headers={"Authorization": f"Bearer {refreshed.json()['accessToken']}"},
        )
        assert retry.status_code == 200
        assert retry.json()["username"] == registered_user["user"]["username"]


class TestRefresh:
    """Test refresh token rotation"""

    def test_refresh_rotates_tokens(self, client, base_url, refresh):
        register = client.post(
            f"{base_url}/auth/register",
            json={"username": "alice", "email": "alice@x.com", "password": "Passw0rd"},
        )
        assert register.status_code == 201
        old_access = register.json()["accessToken"]
        old_refresh = register.cookies.get("refreshToken")

        response = refresh(old_refresh)

        assert response.status_code == 200
        body = response.json()
        assert body["accessToken"] != old_access
        assert body["user"]["username"] == "alice"
        new_refresh = response.cookies.get("refreshToken")
        assert new_refresh and new_refresh != old_refresh

        # The rotated-out token is dead, the new one works
        replay = refresh(old_refresh)
        assert replay.status_code == 403
        assert replay.json() == {"message": "Invalid refresh token"}
        assert refresh(new_refresh).status_code == 200

    def test_refresh_uses_cookie_jar(self, client, base_url, registered_user):
        """A browser-like client just posts and lets the cookie ride along"""
        response = client.post(f"{base_url}/auth/refresh")
        assert response.status_code == 200

        again = client.post(f"{base_url}/auth/refresh")
        assert again.status_code == 200
        assert again.json()["accessToken"] != response.json()["accessToken"]

    def test_refresh_without_cookie(self, refresh):
        response = refresh()
        assert response.status_code == 401
        assert response.json() == {"message": "Refresh token not found"}

    def test_refresh_with_garbage_cookie(self, refresh):
        response = refresh("garbage")
        assert response.status_code == 403

    def test_refresh_with_unregistered_token(self, registered_user, codec, refresh):
        """Validly signed but never recorded tokens are refused"""
        stray = codec.issue(Identity(**registered_user["user"])).refresh_token
        response = refresh(stray)
        assert response.status_code == 403
        assert response.json() == {"message": "Invalid refresh token"}

    def test_refresh_with_access_token(self, registered_user, refresh):
        response = refresh(registered_user["token"])
        assert response.status_code == 403

    def test_refreshed_access_token_keeps_identity(self, client, base_url, admin_user, refresh):
        response = refresh(admin_user["refresh_token"])
        assert response.status_code == 200

        me = client.get(
            f"{base_url}/auth/me",
            headers={"Authorization": f"Bearer {response.json()['accessToken']}"},
        )
        assert me.json() == admin_user["user"]


class TestLogout:
    """Test logout endpoint"""

    def test_logout_revokes_refresh_token(self, client, base_url, registered_user, refresh):
        response = client.post(f"{base_url}/auth/logout")

        assert response.status_code == 200
        assert response.json() == {"message": "Logged out successfully"}
        assert "refreshtoken=" in response.headers["set-cookie"].lower()

        assert refresh(registered_user["refresh_token"]).status_code == 403

    def test_logout_twice(self, client, base_url, registered_user):
        headers = {"Cookie": f"refreshToken={registered_user['refresh_token']}"}
        client.cookies.clear()

        first = client.post(f"{base_url}/auth/logout", headers=headers)
        second = client.post(f"{base_url}/auth/logout", headers=headers)

        assert first.status_code == 200
        assert second.status_code == 200

    def test_logout_without_cookie(self, client, base_url):
        client.cookies.clear()
        response = client.post(f"{base_url}/auth/logout")
        assert response.status_code == 200
        assert response.json() == {"message": "Logged out successfully"}

    def test_access_token_outlives_logout(self, client, base_url, registered_user):
        """Access tokens are not revocable; they simply run out"""
        client.post(f"{base_url}/auth/logout")
        response = client.get(f"{base_url}/auth/me", headers=registered_user["headers"])
        assert response.status_code == 200


class TestBackendUnavailable:

    def test_pool_timeout_maps_to_503(self, client, base_url):
        from carshop.main import app

        async def exhausted_pool():
            raise PoolTimeoutError("QueuePool limit of size 10 overflow 0 reached")
            yield  # pragma: no cover

        app.dependency_overrides[get_db] = exhausted_pool

        response = client.post(
            f"{base_url}/auth/login",
            json={"username": "anyone", "password": "Passw0rd"},
        )

        assert response.status_code == 503
        assert response.headers["retry-after"] == "1"
        assert "message" in response.json()


class TestSecurityHeaders:
    """Hardening headers on every response"""

    @pytest.mark.parametrize("path", ["/health", "/api/does-not-exist"])
    def test_headers_present(self, client, path):
        response = client.get(path)

        assert response.headers["x-content-type-options"] == "nosniff"
        assert response.headers["x-frame-options"] == "DENY"
        assert response.headers["strict-transport-security"] == (
            "max-age=31536000; includeSubDomains; preload"
        )
        assert response.headers["referrer-policy"] == "no-referrer"

    def test_headers_on_auth_errors(self, client, base_url):
        response = client.get(f"{base_url}/auth/me")
        assert response.status_code == 401
        assert response.headers["x-frame-options"] == "DENY"


class TestErrorResponses:

    def test_rate_limit_body(self):
        from carshop.main import app

        assert app.exception_handlers[RateLimitExceeded] is rate_limit_exceeded_handler

        limited = FastAPI()
        limited.state.limiter = Limiter(key_func=get_remote_address, default_limits=["1/minute"])
        limited.add_exception_handler(RateLimitExceeded, rate_limit_exceeded_handler)
        limited.add_middleware(SlowAPIMiddleware)

        @limited.get("/ping")
        async def ping():
            return {"ok": True}

        with TestClient(limited) as limited_client:
            assert limited_client.get("/ping").status_code == 200
            response = limited_client.get("/ping")

        assert response.status_code == 429
        assert response.json() == {"message": "Too many requests, please try again later."}

    def _me_with_broken_gate(self, base_url):
        from carshop.main import app

        def broken_gate():
            raise RuntimeError("connection string leaked: postgres://secret")

        app.dependency_overrides[deps.get_current_identity] = broken_gate
        try:
            with TestClient(app, base_url="https://testserver", raise_server_exceptions=False) as test_client:
                return test_client.get(f"{base_url}/auth/me")
        finally:
            app.dependency_overrides.clear()

    def test_unhandled_error_sanitized_in_production(self, monkeypatch, base_url):
        monkeypatch.setattr(settings, "ENVIRONMENT", "production")

        response = self._me_with_broken_gate(base_url)

        assert response.status_code == 500
        assert response.json() == {"message": "Something went wrong!", "error": "Internal server error"}

    def test_unhandled_error_detail_in_development(self, monkeypatch, base_url):
        monkeypatch.setattr(settings, "ENVIRONMENT", "development")

        response = self._me_with_broken_gate(base_url)

        assert response.status_code == 500
        assert response.json()["error"] == "connection string leaked: postgres://secret"

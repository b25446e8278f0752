"""
tests/test_api_routes.py -- Integration tests for the /api/auth routes.

These tests exercise the full stack: FastAPI routing -> dependency injection
-> SessionManager -> UserStore/RefreshTokenStore -> response serialization.
Status codes and camelCase field names are part of the client contract, so
they are asserted exactly.

Fixtures used (from conftest.py):
  - api_client: (client, issuer) -- TestClient over isolated in-memory stores
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

from fastapi.testclient import TestClient

from api.main import app
from auth.models import User
from auth.store import UserStore
from auth.token_store import RefreshTokenStore
from auth.tokens import TokenIssuer

ALICE = {"username": "alice", "email": "alice@x.com", "password": "pw123456"}


def _register(client: TestClient, **overrides) -> None:
    resp = client.post("/api/auth/register", json={**ALICE, **overrides})
    assert resp.status_code == 201, resp.text


def _login(client: TestClient, email: str = "alice@x.com", password: str = "pw123456") -> dict:
    resp = client.post("/api/auth/login", json={"email": email, "password": password})
    assert resp.status_code == 200, resp.text
    return resp.json()


class TestRegister:
    def test_register_created(self, api_client: tuple[TestClient, TokenIssuer]) -> None:
        client, _ = api_client
        resp = client.post("/api/auth/register", json=ALICE)
        assert resp.status_code == 201
        assert resp.json() == {"msg": "User registered successfully!"}

    def test_register_missing_field(self, api_client: tuple[TestClient, TokenIssuer]) -> None:
        client, _ = api_client
        resp = client.post("/api/auth/register", json={"username": "alice", "email": "alice@x.com"})
        assert resp.status_code == 400
        assert resp.json()["error"]["code"] == "validation_error"

    def test_register_duplicate_email(self, api_client: tuple[TestClient, TokenIssuer]) -> None:
        client, _ = api_client
        _register(client)
        resp = client.post("/api/auth/register", json={**ALICE, "username": "alice2"})
        assert resp.status_code == 400
        assert resp.json()["error"]["code"] == "duplicate_credential"

    def test_register_duplicate_username(self, api_client: tuple[TestClient, TokenIssuer]) -> None:
        client, _ = api_client
        _register(client)
        resp = client.post("/api/auth/register", json={**ALICE, "email": "other@x.com"})
        assert resp.status_code == 400

    def test_register_overlong_username(self, api_client: tuple[TestClient, TokenIssuer]) -> None:
        client, _ = api_client
        resp = client.post("/api/auth/register", json={**ALICE, "username": "a" * 300})
        assert resp.status_code == 400
        assert resp.json()["error"]["code"] == "validation_error"

    def test_register_overlong_password(self, api_client: tuple[TestClient, TokenIssuer]) -> None:
        client, _ = api_client
        resp = client.post("/api/auth/register", json={**ALICE, "password": "p" * 300})
        assert resp.status_code == 400
        assert resp.json()["error"]["code"] == "validation_error"


class TestLogin:
    def test_login_returns_token_pair(self, api_client: tuple[TestClient, TokenIssuer]) -> None:
        client, issuer = api_client
        _register(client)
        resp = client.post("/api/auth/login", json={"email": "alice@x.com", "password": "pw123456"})
        assert resp.status_code == 200
        assert resp.headers["cache-control"] == "no-store"
        data = resp.json()
        assert data["msg"] == "Login successful"
        assert data["refreshToken"]
        claims = issuer.decode_access_token(data["accessToken"])
        assert claims["username"] == "alice"
        assert claims["roles"] == ["USER"]

    def test_login_wrong_password(self, api_client: tuple[TestClient, TokenIssuer]) -> None:
        client, _ = api_client
        _register(client)
        resp = client.post("/api/auth/login", json={"email": "alice@x.com", "password": "nope"})
        assert resp.status_code == 400
        assert resp.json()["error"]["code"] == "invalid_credentials"

    def test_login_unknown_email_same_error(self, api_client: tuple[TestClient, TokenIssuer]) -> None:
        client, _ = api_client
        _register(client)
        unknown = client.post("/api/auth/login", json={"email": "ghost@x.com", "password": "pw123456"})
        wrong = client.post("/api/auth/login", json={"email": "alice@x.com", "password": "nope"})
        assert unknown.status_code == wrong.status_code == 400
        assert unknown.json() == wrong.json()

    def test_login_missing_fields(self, api_client: tuple[TestClient, TokenIssuer]) -> None:
        client, _ = api_client
        resp = client.post("/api/auth/login", json={"email": "alice@x.com"})
        assert resp.status_code == 400

    def test_login_overlong_fields(self, api_client: tuple[TestClient, TokenIssuer]) -> None:
        client, _ = api_client
        _register(client)
        resp = client.post("/api/auth/login", json={"email": "e" * 300, "password": "p" * 300})
        assert resp.status_code == 400
        assert resp.json()["error"]["code"] == "invalid_credentials"

    def test_second_login_reuses_refresh_token(self, api_client: tuple[TestClient, TokenIssuer]) -> None:
        client, _ = api_client
        _register(client)
        assert _login(client)["refreshToken"] == _login(client)["refreshToken"]


class TestRefreshAndLogout:
    def test_refresh_returns_new_access_token(self, api_client: tuple[TestClient, TokenIssuer]) -> None:
        client, issuer = api_client
        _register(client)
        tokens = _login(client)
        resp = client.post("/api/auth/refresh", json={"refreshToken": tokens["refreshToken"]})
        assert resp.status_code == 200
        data = resp.json()
        assert data["msg"] == "Token refreshed successfully"
        assert issuer.decode_access_token(data["accessToken"])["username"] == "alice"

    def test_refresh_missing_token(self, api_client: tuple[TestClient, TokenIssuer]) -> None:
        client, _ = api_client
        assert client.post("/api/auth/refresh", json={}).status_code == 401
        assert client.post("/api/auth/refresh").status_code == 401

    def test_refresh_unknown_token(self, api_client: tuple[TestClient, TokenIssuer]) -> None:
        client, _ = api_client
        resp = client.post("/api/auth/refresh", json={"refreshToken": "bogus"})
        assert resp.status_code == 403
        assert resp.json()["error"]["code"] == "invalid_token"

    def test_refresh_expired_token(
        self,
        api_client: tuple[TestClient, TokenIssuer],
        user_store: UserStore,
        token_store: RefreshTokenStore,
    ) -> None:
        client, _ = api_client
        _register(client)
        alice = user_store.get_by_email("alice@x.com")
        token_store.create("stale", alice.id, datetime.now(timezone.utc) - timedelta(seconds=1))

        resp = client.post("/api/auth/refresh", json={"refreshToken": "stale"})
        assert resp.status_code == 403
        assert resp.json()["error"]["code"] == "token_expired"
        assert token_store.find_by_value("stale") is None

    def test_logout_missing_token(self, api_client: tuple[TestClient, TokenIssuer]) -> None:
        client, _ = api_client
        resp = client.post("/api/auth/logout", json={})
        assert resp.status_code == 400
        assert resp.json()["error"]["code"] == "missing_token"

    def test_logout_unknown_token(self, api_client: tuple[TestClient, TokenIssuer]) -> None:
        client, _ = api_client
        resp = client.post("/api/auth/logout", json={"refreshToken": "bogus"})
        assert resp.status_code == 404

    def test_alice_scenario(self, api_client: tuple[TestClient, TokenIssuer]) -> None:
        client, _ = api_client
        _register(client)
        t1 = _login(client)["refreshToken"]
        assert _login(client)["refreshToken"] == t1

        resp = client.post("/api/auth/logout", json={"refreshToken": t1})
        assert resp.status_code == 200
        assert resp.json() == {"msg": "Logout successful"}

        resp = client.post("/api/auth/refresh", json={"refreshToken": t1})
        assert resp.status_code == 403
        assert resp.json()["error"]["code"] == "invalid_token"


class TestProfile:
    def test_profile_requires_auth(self, api_client: tuple[TestClient, TokenIssuer]) -> None:
        client, _ = api_client
        assert client.get("/api/auth/profile").status_code == 401
        resp = client.get("/api/auth/profile", headers={"Authorization": "Bearer garbage"})
        assert resp.status_code == 401

    def test_profile_hides_password(self, api_client: tuple[TestClient, TokenIssuer]) -> None:
        client, _ = api_client
        _register(client)
        tokens = _login(client)
        resp = client.get("/api/auth/profile", headers={"Authorization": f"Bearer {tokens['accessToken']}"})
        assert resp.status_code == 200
        user = resp.json()["user"]
        assert user["username"] == "alice"
        assert user["email"] == "alice@x.com"
        assert user["roles"] == ["USER"]
        assert user["loginCount"] == 1
        assert user["lastLogin"] is not None
        assert "password" not in user
        assert "hashedPassword" not in user

    def test_update_profile(self, api_client: tuple[TestClient, TokenIssuer]) -> None:
        client, _ = api_client
        _register(client)
        headers = {"Authorization": f"Bearer {_login(client)['accessToken']}"}
        resp = client.put("/api/auth/profile", json={"username": "alice_w"}, headers=headers)
        assert resp.status_code == 200
        data = resp.json()
        assert data["msg"] == "Profile updated successfully"
        assert data["user"]["username"] == "alice_w"
        assert data["user"]["email"] == "alice@x.com"

    def test_update_profile_duplicate_email(self, api_client: tuple[TestClient, TokenIssuer]) -> None:
        client, _ = api_client
        _register(client)
        _register(client, username="bob", email="bob@x.com")
        headers = {"Authorization": f"Bearer {_login(client)['accessToken']}"}
        resp = client.put("/api/auth/profile", json={"email": "bob@x.com"}, headers=headers)
        assert resp.status_code == 400
        assert resp.json()["error"]["code"] == "duplicate_credential"

    def test_profile_of_unknown_user(self, api_client: tuple[TestClient, TokenIssuer]) -> None:
        client, issuer = api_client
        ghost = User(id=9999, username="ghost", email="ghost@x.com", hashed_password="x")
        headers = {"Authorization": f"Bearer {issuer.issue_access_token(ghost)}"}
        assert client.get("/api/auth/profile", headers=headers).status_code == 404
        assert client.put("/api/auth/profile", json={"username": "g"}, headers=headers).status_code == 404


def test_health(api_client: tuple[TestClient, TokenIssuer]) -> None:
    client, _ = api_client
    resp = client.get("/api/health")
    assert resp.status_code == 200
    data = resp.json()
    assert data["status"] == "healthy"
    assert data["components"] == {"app": "ok", "database": "ok"}


def test_shared_app_keeps_its_own_lifespan() -> None:
    """Runs last in this module: earlier api_client tests must not leave the test lifespan installed."""
    assert "_patch_lifespan" not in getattr(app.router.lifespan_context, "__qualname__", "")

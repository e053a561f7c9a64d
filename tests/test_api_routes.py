"""
tests/test_api_routes.py -- Integration tests for the auth API routes.

These tests exercise the full stack: FastAPI routing -> dependency injection
-> AuthService -> UserStore -> response model serialization, and the
AuthError -> ErrorResponse envelope mapping in api/main.py.

Coverage:
  - signup / login happy paths and error envelopes (409, 401)
  - bearer-protected routes: 401 without a token, 200 with one
  - token-based and credential-based delete / update
  - 2FA enable -> verify -> login with code -> disable over HTTP
  - request validation returns the 422 envelope without echoing input

Fixtures used (from conftest.py):
  - api_client: (client, service) -- each test uses its own email so the
    module-scoped database can be shared.
"""

from __future__ import annotations

from fastapi.testclient import TestClient

from auth.service import AuthService

PASSWORD = "secret123"


def _signup(client: TestClient, email: str, password: str = PASSWORD) -> dict:
    resp = client.post("/api/v1/auth/signup", json={"email": email, "password": password})
    assert resp.status_code == 201, f"Expected 201, got {resp.status_code}: {resp.text}"
    return resp.json()


def _bearer(token: str) -> dict:
    return {"Authorization": f"Bearer {token}"}


class TestSignupAndLogin:
    def test_signup_returns_session(self, api_client: tuple[TestClient, AuthService]) -> None:
        client, _service = api_client
        data = _signup(client, "signup@x.com")
        assert data["access_token"]
        assert data["token_type"] == "bearer"
        assert data["expires_in"] == 7 * 24 * 60 * 60
        assert data["user"]["email"] == "signup@x.com"
        assert "password_hash" not in data["user"]
        assert "two_factor_secret" not in data["user"]

    def test_signup_duplicate_email(self, api_client: tuple[TestClient, AuthService]) -> None:
        client, _service = api_client
        _signup(client, "dupe@x.com")
        resp = client.post("/api/v1/auth/signup", json={"email": "dupe@x.com", "password": PASSWORD})
        assert resp.status_code == 409
        assert resp.json()["error"]["code"] == "email_in_use"

    def test_login_valid_credentials(self, api_client: tuple[TestClient, AuthService]) -> None:
        client, _service = api_client
        _signup(client, "login@x.com")
        resp = client.post("/api/v1/auth/login", json={"email": "login@x.com", "password": PASSWORD})
        assert resp.status_code == 200, f"Expected 200, got {resp.status_code}: {resp.text}"
        assert resp.json()["user"]["email"] == "login@x.com"
        assert resp.headers["Cache-Control"] == "no-store"

    def test_login_errors_do_not_enumerate_accounts(self, api_client: tuple[TestClient, AuthService]) -> None:
        """Wrong password and unknown email must produce identical 401 bodies."""
        client, _service = api_client
        _signup(client, "enum@x.com")
        wrong_pw = client.post("/api/v1/auth/login", json={"email": "enum@x.com", "password": "wrong-pass"})
        unknown = client.post("/api/v1/auth/login", json={"email": "ghost@x.com", "password": PASSWORD})
        assert wrong_pw.status_code == unknown.status_code == 401
        assert wrong_pw.json() == unknown.json()
        assert wrong_pw.json()["error"]["code"] == "invalid_credentials"

    def test_validation_error_envelope(self, api_client: tuple[TestClient, AuthService]) -> None:
        client, _service = api_client
        resp = client.post("/api/v1/auth/signup", json={"email": "not-an-email", "password": "hunter"})
        assert resp.status_code == 422
        body = resp.json()
        assert body["error"]["code"] == "validation_error"
        assert "hunter" not in resp.text


class TestProtectedRoutes:
    def test_me_requires_token(self, api_client: tuple[TestClient, AuthService]) -> None:
        client, _service = api_client
        resp = client.get("/api/v1/auth/me")
        assert resp.status_code == 401
        assert resp.json()["error"]["code"] == "unauthorized"

    def test_me_rejects_bad_token(self, api_client: tuple[TestClient, AuthService]) -> None:
        client, _service = api_client
        resp = client.get("/api/v1/auth/me", headers=_bearer("not.a.jwt"))
        assert resp.status_code == 401
        assert resp.json()["error"]["code"] == "invalid_token"

    def test_me_with_token(self, api_client: tuple[TestClient, AuthService]) -> None:
        client, _service = api_client
        session = _signup(client, "me@x.com")
        resp = client.get("/api/v1/auth/me", headers=_bearer(session["access_token"]))
        assert resp.status_code == 200
        assert resp.json()["id"] == session["user"]["id"]
        assert resp.json()["email"] == "me@x.com"

    def test_list_users(self, api_client: tuple[TestClient, AuthService]) -> None:
        client, _service = api_client
        session = _signup(client, "lister@x.com")
        resp = client.get("/api/v1/auth/users", headers=_bearer(session["access_token"]))
        assert resp.status_code == 200
        users = resp.json()
        assert "lister@x.com" in {u["email"] for u in users}
        for u in users:
            assert set(u) == {"id", "email", "two_factor_enabled", "created_at", "updated_at"}


class TestAccountManagement:
    def test_delete_own_account(self, api_client: tuple[TestClient, AuthService]) -> None:
        client, _service = api_client
        session = _signup(client, "delete-me@x.com")
        headers = _bearer(session["access_token"])

        resp = client.delete("/api/v1/auth/account", headers=headers)
        assert resp.status_code == 200

        # Token still verifies, but the account behind it is gone.
        resp = client.get("/api/v1/auth/me", headers=headers)
        assert resp.status_code == 404

    def test_delete_account_by_id(self, api_client: tuple[TestClient, AuthService]) -> None:
        client, _service = api_client
        caller = _signup(client, "deleter@x.com")
        target = _signup(client, "target@x.com")
        resp = client.delete(
            f"/api/v1/auth/account/{target['user']['id']}",
            headers=_bearer(caller["access_token"]),
        )
        assert resp.status_code == 200
        resp = client.post("/api/v1/auth/login", json={"email": "target@x.com", "password": PASSWORD})
        assert resp.status_code == 401

    def test_delete_by_credentials(self, api_client: tuple[TestClient, AuthService]) -> None:
        client, _service = api_client
        _signup(client, "cred-delete@x.com")
        resp = client.request(
            "DELETE",
            "/api/v1/auth/delete",
            json={"email": "cred-delete@x.com", "password": "wrong-pass"},
        )
        assert resp.status_code == 401

        resp = client.request(
            "DELETE",
            "/api/v1/auth/delete",
            json={"email": "cred-delete@x.com", "password": PASSWORD},
        )
        assert resp.status_code == 200
        assert resp.json()["email"] == "cred-delete@x.com"

    def test_update_own_account(self, api_client: tuple[TestClient, AuthService]) -> None:
        client, _service = api_client
        session = _signup(client, "update-me@x.com")
        resp = client.put(
            "/api/v1/auth/account",
            json={"email": "updated@x.com"},
            headers=_bearer(session["access_token"]),
        )
        assert resp.status_code == 200, resp.text
        assert resp.json()["user"]["email"] == "updated@x.com"

    def test_update_own_account_email_conflict(self, api_client: tuple[TestClient, AuthService]) -> None:
        client, _service = api_client
        _signup(client, "taken@x.com")
        session = _signup(client, "wants-taken@x.com")
        resp = client.put(
            "/api/v1/auth/account",
            json={"email": "taken@x.com"},
            headers=_bearer(session["access_token"]),
        )
        assert resp.status_code == 409
        assert resp.json()["error"]["code"] == "email_in_use"

    def test_update_by_credentials(self, api_client: tuple[TestClient, AuthService]) -> None:
        client, _service = api_client
        _signup(client, "cred-update@x.com")
        resp = client.put(
            "/api/v1/auth/update",
            json={
                "current_email": "cred-update@x.com",
                "current_password": PASSWORD,
                "new_password": "brand-new-pass",
            },
        )
        assert resp.status_code == 200, resp.text
        resp = client.post(
            "/api/v1/auth/login",
            json={"email": "cred-update@x.com", "password": "brand-new-pass"},
        )
        assert resp.status_code == 200


class TestTwoFactorFlow:
    def test_enable_verify_login_disable(self, api_client: tuple[TestClient, AuthService]) -> None:
        client, service = api_client
        email = "twofa@x.com"
        _signup(client, email)

        resp = client.post("/api/v1/auth/2fa/enable", json={"email": email, "password": PASSWORD})
        assert resp.status_code == 200, resp.text
        setup = resp.json()
        assert setup["qr_code"].startswith("data:image/png;base64,")
        assert setup["otpauth_url"].startswith("otpauth://totp/")
        assert resp.headers["Cache-Control"] == "no-store"
        secret = setup["secret"]

        resp = client.post("/api/v1/auth/2fa/verify", json={"email": email, "code": "000000x"})
        assert resp.status_code == 401
        assert resp.json()["error"]["code"] == "invalid_two_factor_code"

        resp = client.post(
            "/api/v1/auth/2fa/verify",
            json={"email": email, "code": service.totp.current_code(secret)},
        )
        assert resp.status_code == 200, resp.text

        resp = client.post("/api/v1/auth/login", json={"email": email, "password": PASSWORD})
        assert resp.status_code == 401
        assert resp.json()["error"]["code"] == "two_factor_required"

        resp = client.post(
            "/api/v1/auth/login",
            json={"email": email, "password": PASSWORD, "two_factor_code": service.totp.current_code(secret)},
        )
        assert resp.status_code == 200, resp.text

        resp = client.post(
            "/api/v1/auth/2fa/disable",
            json={"email": email, "password": PASSWORD, "code": service.totp.current_code(secret)},
        )
        assert resp.status_code == 200, resp.text

        resp = client.post("/api/v1/auth/login", json={"email": email, "password": PASSWORD})
        assert resp.status_code == 200

    def test_verify_without_setup(self, api_client: tuple[TestClient, AuthService]) -> None:
        client, _service = api_client
        _signup(client, "no-setup@x.com")
        resp = client.post("/api/v1/auth/2fa/verify", json={"email": "no-setup@x.com", "code": "123456"})
        assert resp.status_code == 400
        assert resp.json()["error"]["code"] == "two_factor_not_set_up"

    def test_disable_when_not_enabled(self, api_client: tuple[TestClient, AuthService]) -> None:
        client, _service = api_client
        _signup(client, "not-enabled@x.com")
        resp = client.post(
            "/api/v1/auth/2fa/disable",
            json={"email": "not-enabled@x.com", "password": PASSWORD, "code": "123456"},
        )
        assert resp.status_code == 400
        assert resp.json()["error"]["code"] == "two_factor_not_enabled"

"""Tests for authentication endpoints and flows."""

from datetime import datetime, timedelta
from unittest.mock import patch

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.orm import Session

from app.exceptions import EntropyUnavailable
from app.models.user import User
from app.services.auth import AuthService


class TestLogin:
    """Tests for user login."""

    def test_login_api_success(self, client: TestClient, test_user: dict):
        """Login via API with valid credentials."""
        response = client.post(
            "/api/v1/auth/login",
            json={"email": "test@example.com", "password": "password123"},
        )
        assert response.status_code == 200
        data = response.json()
        assert data["email"] == "test@example.com"
        assert data["user_id"] == test_user["user_id"]
        assert data["remember_token"] is None
        assert "token" in data
        assert "sa_session" in response.cookies

    def test_login_api_wrong_password(self, client: TestClient, test_user: dict):
        """Reject login with wrong password."""
        response = client.post(
            "/api/v1/auth/login",
            json={"email": "test@example.com", "password": "wrongpassword"},
        )
        assert response.status_code == 401
        assert response.json()["detail"] == "Invalid email/password combination"

    def test_login_api_nonexistent_email(self, client: TestClient):
        """Unknown email fails exactly like a wrong password."""
        response = client.post(
            "/api/v1/auth/login",
            json={"email": "nobody@example.com", "password": "password123"},
        )
        assert response.status_code == 401
        assert response.json()["detail"] == "Invalid email/password combination"

    def test_login_case_insensitive(self, client: TestClient, test_user: dict):
        """Login works regardless of email case."""
        response = client.post(
            "/api/v1/auth/login",
            json={"email": "TEST@EXAMPLE.COM", "password": "password123"},
        )
        assert response.status_code == 200

    def test_login_api_remember_me(self, client: TestClient, test_user: dict, db_session: Session):
        """Remember me returns a token that matches the stored digest."""
        response = client.post(
            "/api/v1/auth/login",
            json={"email": "test@example.com", "password": "password123", "remember_me": True},
        )
        assert response.status_code == 200
        remember_token = response.json()["remember_token"]
        assert remember_token
        assert response.cookies["sa_remember_token"] == remember_token

        user = db_session.get(User, test_user["user_id"])
        assert user.remember_digest is not None
        assert user.remember_digest != remember_token

    def test_login_web_success(self, client: TestClient, test_user: dict):
        """Web login redirects to the profile and sets the session cookie."""
        response = client.post(
            "/login",
            data={"email": "test@example.com", "password": "password123"},
            follow_redirects=False,
        )
        assert response.status_code == 302
        assert response.headers["location"] == f"/users/{test_user['user_id']}"
        assert "sa_session" in response.cookies
        assert "sa_remember_token" not in response.cookies

    def test_login_web_failure(self, client: TestClient, test_user: dict):
        """Web login with wrong password re-renders the form with a generic error."""
        response = client.post(
            "/login",
            data={"email": "test@example.com", "password": "wrong"},
        )
        assert response.status_code == 200
        assert "Invalid email/password combination" in response.text

    def test_login_web_remember_me(self, client: TestClient, test_user: dict):
        """Checking remember me sets the persistent cookies."""
        response = client.post(
            "/login",
            data={"email": "test@example.com", "password": "password123", "remember_me": "1"},
            follow_redirects=False,
        )
        assert response.status_code == 302
        assert "sa_remember_user" in response.cookies
        assert "sa_remember_token" in response.cookies

    def test_login_without_remember_forgets(self, client: TestClient, test_user: dict, db_session: Session):
        """Logging in without remember me drops an earlier persistent session."""
        client.post(
            "/login",
            data={"email": "test@example.com", "password": "password123", "remember_me": "1"},
            follow_redirects=False,
        )
        client.post(
            "/login",
            data={"email": "test@example.com", "password": "password123"},
            follow_redirects=False,
        )
        user = db_session.get(User, test_user["user_id"])
        db_session.refresh(user)
        assert user.remember_digest is None


class TestCurrentUser:
    """Tests for session and remember-me resolution."""

    def test_me_with_bearer_token(self, client: TestClient, test_user: dict):
        """Bearer session token identifies the user."""
        response = client.get(
            "/api/v1/auth/me",
            headers={"Authorization": f"Bearer {test_user['token']}"},
        )
        assert response.status_code == 200
        assert response.json()["email"] == "test@example.com"

    def test_me_requires_auth(self, client: TestClient):
        """Anonymous requests get 401."""
        response = client.get("/api/v1/auth/me")
        assert response.status_code == 401

    def test_me_rejects_garbage_token(self, client: TestClient):
        """Invalid tokens are rejected."""
        response = client.get("/api/v1/auth/me", headers={"Authorization": "Bearer invalid.token.here"})
        assert response.status_code == 401

    def test_remember_cookies_restore_session(self, client: TestClient, test_user: dict):
        """Without a session cookie the remember-me cookies still log the user in."""
        client.post(
            "/login",
            data={"email": "test@example.com", "password": "password123", "remember_me": "1"},
            follow_redirects=False,
        )
        client.cookies.delete("sa_session")

        response = client.get("/api/v1/auth/me")
        assert response.status_code == 200
        assert response.json()["id"] == test_user["user_id"]

    def test_remember_cookies_refresh_session(self, client: TestClient, test_user: dict):
        """A user restored from the remember-me cookies gets a new session cookie."""
        client.post(
            "/login",
            data={"email": "test@example.com", "password": "password123", "remember_me": "1"},
            follow_redirects=False,
        )
        client.cookies.delete("sa_session")

        response = client.get("/")
        assert response.status_code == 200
        assert "Welcome, Test User" in response.text
        assert "sa_session" in response.cookies

        with patch.object(AuthService, "validate_remember_token") as mock_validate:
            assert client.get("/api/v1/auth/me").json()["id"] == test_user["user_id"]
        mock_validate.assert_not_called()

    def test_logout_with_remember_cookies_only(self, client: TestClient, test_user: dict):
        """Logging out through the remember-me cookies does not hand out a fresh session."""
        client.post(
            "/login",
            data={"email": "test@example.com", "password": "password123", "remember_me": "1"},
            follow_redirects=False,
        )
        client.cookies.delete("sa_session")

        client.get("/logout", follow_redirects=False)
        assert client.get("/api/v1/auth/me").status_code == 401

    def test_stale_remember_token_rejected(self, client: TestClient, test_user: dict):
        """A remember token from an earlier login stops working after a new one is issued."""
        first = client.post(
            "/api/v1/auth/login",
            json={"email": "test@example.com", "password": "password123", "remember_me": True},
        )
        stale_user_cookie = first.cookies["sa_remember_user"]
        stale_token = first.cookies["sa_remember_token"]
        client.post(
            "/api/v1/auth/login",
            json={"email": "test@example.com", "password": "password123", "remember_me": True},
        )

        client.cookies.clear()
        client.cookies.set("sa_remember_user", stale_user_cookie)
        client.cookies.set("sa_remember_token", stale_token)
        response = client.get("/api/v1/auth/me")
        assert response.status_code == 401

    def test_remember_user_cookie_must_be_signed(self, client: TestClient, test_user: dict):
        """A forged user-id cookie is ignored."""
        login = client.post(
            "/login",
            data={"email": "test@example.com", "password": "password123", "remember_me": "1"},
            follow_redirects=False,
        )
        remember_token = login.cookies["sa_remember_token"]

        client.cookies.clear()
        client.cookies.set("sa_remember_user", str(test_user["user_id"]))
        client.cookies.set("sa_remember_token", remember_token)
        response = client.get("/api/v1/auth/me")
        assert response.status_code == 401


class TestLogout:
    """Tests for logging out."""

    def test_logout_web_clears_cookies(self, client: TestClient, test_user: dict, db_session: Session):
        """Logout forgets the user and redirects home."""
        client.post(
            "/login",
            data={"email": "test@example.com", "password": "password123", "remember_me": "1"},
            follow_redirects=False,
        )
        response = client.get("/logout", follow_redirects=False)
        assert response.status_code == 302
        assert response.headers["location"] == "/"

        user = db_session.get(User, test_user["user_id"])
        db_session.refresh(user)
        assert user.remember_digest is None
        assert client.get("/api/v1/auth/me").status_code == 401

    def test_logout_twice(self, client: TestClient, test_user: dict):
        """Logging out when already logged out is harmless."""
        assert client.post("/api/v1/auth/logout").status_code == 200
        assert client.post("/api/v1/auth/logout").status_code == 200


class TestProtectedRoutes:
    """Tests for authentication-protected routes."""

    def test_web_route_redirects_to_login(self, client: TestClient):
        """Protected form posts redirect anonymous users to login."""
        response = client.post("/microposts", data={"content": "hi"}, follow_redirects=False)
        assert response.status_code == 302
        assert response.headers["location"] == "/login"

    def test_login_page_redirects_authenticated(self, client: TestClient, test_user: dict):
        """Login page redirects already-authenticated users to their profile."""
        client.cookies.set("sa_session", test_user["token"])
        response = client.get("/login", follow_redirects=False)
        assert response.status_code == 302
        assert response.headers["location"] == f"/users/{test_user['user_id']}"


class TestActivation:
    """Tests for account activation links."""

    def test_activation_link_activates_and_logs_in(self, client: TestClient, test_user: dict, db_session: Session):
        """A valid link activates the account and starts a session."""
        response = client.get(
            f"/account_activations/{test_user['activation_token']}",
            params={"email": test_user["email"]},
            follow_redirects=False,
        )
        assert response.status_code == 302
        assert response.headers["location"] == f"/users/{test_user['user_id']}"
        assert "sa_session" in response.cookies

        user = db_session.get(User, test_user["user_id"])
        db_session.refresh(user)
        assert user.activated is True
        assert user.activated_at is not None

    def test_activation_link_keeps_remembered_sessions(self, client: TestClient, test_user: dict, db_session: Session):
        """Following an activation link does not log out other remembered browsers."""
        client.post(
            "/api/v1/auth/login",
            json={"email": "test@example.com", "password": "password123", "remember_me": True},
        )
        response = client.get(
            f"/account_activations/{test_user['activation_token']}",
            params={"email": test_user["email"]},
            follow_redirects=False,
        )
        assert "sa_session" in response.cookies

        user = db_session.get(User, test_user["user_id"])
        db_session.refresh(user)
        assert user.remember_digest is not None

    def test_activation_link_wrong_token(self, client: TestClient, test_user: dict):
        """A bad link shows an error and leaves the account inactive."""
        response = client.get("/account_activations/bogus", params={"email": test_user["email"]})
        assert response.status_code == 200
        assert "Invalid activation link" in response.text

    def test_activation_api(self, client: TestClient, test_user: dict):
        """API activation returns a session."""
        response = client.post(
            "/api/v1/auth/activate",
            json={"email": test_user["email"], "token": test_user["activation_token"]},
        )
        assert response.status_code == 200
        assert response.json()["activated"] is True

    def test_signup_sends_activation(self, client: TestClient, mailer):
        """Web signup mails an activation link and asks the user to check email."""
        response = client.post(
            "/signup",
            data={
                "name": "New User",
                "email": "New@Example.com",
                "password": "password123",
                "password_confirmation": "password123",
            },
        )
        assert response.status_code == 200
        assert "check your email" in response.text
        assert mailer.last_activation_token("new@example.com")


class TestForgotPassword:
    """Tests for requesting a password reset."""

    def test_forgot_password_existing_email(self, client: TestClient, test_user: dict, db_session: Session, mailer):
        """Request reset for existing email stores a digest and mails the token."""
        response = client.post("/api/v1/auth/forgot-password", json={"email": "test@example.com"})
        assert response.status_code == 200
        assert "reset instructions have been sent" in response.json()["message"]

        user = db_session.query(User).filter(User.email == "test@example.com").first()
        token = mailer.last_reset_token("test@example.com")
        assert user.reset_digest is not None
        assert user.reset_digest != token
        assert user.reset_sent_at is not None

    def test_forgot_password_nonexistent_email(self, client: TestClient, mailer):
        """Unknown email gets the same reply (no enumeration)."""
        response = client.post("/api/v1/auth/forgot-password", json={"email": "nobody@example.com"})
        assert response.status_code == 200
        assert "reset instructions have been sent" in response.json()["message"]
        assert mailer.resets == []

    def test_forgot_password_web_page_renders(self, client: TestClient):
        """Forgot password web page renders."""
        response = client.get("/password_resets/new")
        assert response.status_code == 200
        assert "Forgot password" in response.text

    def test_forgot_password_web_submit(self, client: TestClient, test_user: dict):
        """Web form submission shows the generic message."""
        response = client.post("/password_resets/new", data={"email": "test@example.com"})
        assert response.status_code == 200
        assert "reset instructions have been sent" in response.text

    def test_reset_link_is_logged(self, db_session: Session, test_user: dict):
        """The default mailer logs the reset link."""
        from app.services.mailer import LogMailer

        auth = AuthService(mailer=LogMailer(base_url="http://testserver"))
        with patch("app.services.mailer.logger") as mock_logger:
            auth.request_password_reset(db_session, "test@example.com")
            calls = [str(c) for c in mock_logger.info.call_args_list]
            assert any("PASSWORD RESET" in c and "/password_resets/" in c for c in calls)


class TestResetPassword:
    """Tests for password reset flow."""

    def _request_reset(self, client: TestClient, mailer, email: str = "test@example.com") -> str:
        client.post("/api/v1/auth/forgot-password", json={"email": email})
        return mailer.last_reset_token(email)

    def test_reset_with_valid_token(self, client: TestClient, test_user: dict, mailer):
        """Reset with valid token changes password and logs in."""
        token = self._request_reset(client, mailer)

        response = client.post(
            "/api/v1/auth/reset-password",
            json={"email": "test@example.com", "token": token, "new_password": "newpassword456"},
        )
        assert response.status_code == 200
        assert response.json()["email"] == "test@example.com"

        login_response = client.post(
            "/api/v1/auth/login",
            json={"email": "test@example.com", "password": "newpassword456"},
        )
        assert login_response.status_code == 200

    def test_reset_sets_session_only(self, client: TestClient, test_user: dict, db_session: Session, mailer):
        """A reset logs the user in without touching the remember-me digest."""
        client.post(
            "/api/v1/auth/login",
            json={"email": "test@example.com", "password": "password123", "remember_me": True},
        )
        token = self._request_reset(client, mailer)

        response = client.post(
            "/api/v1/auth/reset-password",
            json={"email": "test@example.com", "token": token, "new_password": "newpassword456"},
        )
        assert response.status_code == 200
        assert "sa_session" in response.cookies
        assert "sa_remember_token" not in response.headers.get("set-cookie", "")

        user = db_session.get(User, test_user["user_id"])
        db_session.refresh(user)
        assert user.remember_digest is not None

    def test_reset_with_expired_token(self, client: TestClient, test_user: dict, db_session: Session, mailer):
        """Reset with expired token returns error."""
        token = self._request_reset(client, mailer)

        user = db_session.query(User).filter(User.email == "test@example.com").first()
        user.reset_sent_at = datetime.utcnow() - timedelta(hours=3)
        db_session.commit()

        response = client.post(
            "/api/v1/auth/reset-password",
            json={"email": "test@example.com", "token": token, "new_password": "newpassword456"},
        )
        assert response.status_code == 400
        assert "expired" in response.json()["detail"].lower()

    def test_reset_with_invalid_token(self, client: TestClient, test_user: dict, mailer):
        """Reset with invalid token returns error."""
        self._request_reset(client, mailer)
        response = client.post(
            "/api/v1/auth/reset-password",
            json={"email": "test@example.com", "token": "totally-bogus-token", "new_password": "newpassword456"},
        )
        assert response.status_code == 400
        assert "Invalid" in response.json()["detail"]

    def test_reset_clears_token(self, client: TestClient, test_user: dict, mailer):
        """After reset, the same token cannot be reused."""
        token = self._request_reset(client, mailer)
        payload = {"email": "test@example.com", "token": token, "new_password": "newpassword456"}
        assert client.post("/api/v1/auth/reset-password", json=payload).status_code == 200

        payload["new_password"] = "anotherpassword"
        assert client.post("/api/v1/auth/reset-password", json=payload).status_code == 400

    def test_reset_password_web_page_renders(self, client: TestClient, test_user: dict, mailer):
        """Reset password web page renders with a valid link."""
        token = self._request_reset(client, mailer)
        response = client.get(f"/password_resets/{token}", params={"email": "test@example.com"})
        assert response.status_code == 200
        assert "Update password" in response.text

    def test_reset_password_web_page_bad_token(self, client: TestClient, test_user: dict, mailer):
        """An invalid link redirects home."""
        self._request_reset(client, mailer)
        response = client.get(
            "/password_resets/bogus", params={"email": "test@example.com"}, follow_redirects=False
        )
        assert response.status_code == 302
        assert response.headers["location"] == "/"

    def test_reset_password_web_page_expired(self, client: TestClient, test_user: dict, db_session: Session, mailer):
        """An expired link asks the user to request a new one."""
        token = self._request_reset(client, mailer)
        user = db_session.query(User).filter(User.email == "test@example.com").first()
        user.reset_sent_at = datetime.utcnow() - timedelta(hours=3)
        db_session.commit()

        response = client.get(f"/password_resets/{token}", params={"email": "test@example.com"})
        assert response.status_code == 200
        assert "expired" in response.text

    def test_reset_password_web_submit(self, client: TestClient, test_user: dict, mailer):
        """Web form reset logs in and redirects to the profile."""
        token = self._request_reset(client, mailer)
        response = client.post(
            f"/password_resets/{token}",
            data={
                "email": "test@example.com",
                "password": "newpassword456",
                "password_confirmation": "newpassword456",
            },
            follow_redirects=False,
        )
        assert response.status_code == 302
        assert response.headers["location"] == f"/users/{test_user['user_id']}"
        assert "sa_session" in response.cookies

    def test_reset_password_web_blank(self, client: TestClient, test_user: dict, mailer):
        """A blank password re-renders the form with an error."""
        token = self._request_reset(client, mailer)
        response = client.post(
            f"/password_resets/{token}",
            data={"email": "test@example.com", "password": "", "password_confirmation": ""},
        )
        assert response.status_code == 200
        assert "Password can&#39;t be blank" in response.text


class TestHealthCheck:
    """Tests for health check endpoint."""

    def test_health_check(self, client: TestClient):
        """Health check returns ok status."""
        response = client.get("/api/health")
        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "ok"
        assert data["app"] == "sample-app"


class TestStartup:
    """Tests for application startup."""

    def test_startup_fails_without_entropy(self):
        """The app refuses to start when no secure token can be generated."""
        from main import app

        with patch("app.services.tokens.secrets.token_urlsafe", side_effect=NotImplementedError):
            with pytest.raises(EntropyUnavailable):
                with TestClient(app):
                    pass

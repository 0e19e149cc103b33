"""
Tests for the OAuth flow and session handling.

These tests verify:
- authorize redirect carries client id, scope and a state cookie
- callback rejects a mismatched state
- callback stores a server-side session and sets the sid cookie
- token exchange error handling
- logout removes the session
"""
from contextlib import closing
from unittest.mock import MagicMock, patch
from urllib.parse import parse_qs, urlparse

import pytest
import requests

import db
from auth import OAuthError, authorize_url, build_user, exchange_code, public_user
from fake_github import FakeResponse


class TestAuthorize:

    def test_authorize_url(self, cfg):
        url = urlparse(authorize_url(cfg, "st4te"))
        qs = parse_qs(url.query)

        assert url.netloc == "github.com"
        assert url.path == "/login/oauth/authorize"
        assert qs["client_id"] == ["cid"]
        assert qs["scope"] == ["repo user workflow"]
        assert qs["state"] == ["st4te"]
        assert qs["redirect_uri"] == ["http://test/auth/github/callback"]

    def test_redirect_sets_state_cookie(self, http):
        r = http.get("/auth/github", follow_redirects=False)

        assert r.status_code == 302
        state = parse_qs(urlparse(r.headers["location"]).query)["state"][0]
        assert r.cookies.get("oauth_state") == state


class TestExchange:

    def test_returns_access_token(self, cfg):
        session = MagicMock()
        session.post.return_value = FakeResponse(200, {"access_token": "gho_new", "token_type": "bearer"})

        assert exchange_code(cfg, "code123", session=session) == "gho_new"
        _, kwargs = session.post.call_args
        assert kwargs["data"]["code"] == "code123"
        assert kwargs["data"]["client_secret"] == "csecret"
        assert kwargs["headers"]["Accept"] == "application/json"

    def test_rejected_code(self, cfg):
        session = MagicMock()
        session.post.return_value = FakeResponse(200, {"error": "bad_verification_code",
                                                       "error_description": "The code is incorrect"})
        with pytest.raises(OAuthError, match="incorrect"):
            exchange_code(cfg, "stale", session=session)

    def test_non_json_reply(self, cfg):
        reply = MagicMock(status_code=200, text="<html>maintenance</html>")
        reply.json.side_effect = ValueError("Expecting value")
        session = MagicMock()
        session.post.return_value = reply

        with pytest.raises(OAuthError, match="non-JSON"):
            exchange_code(cfg, "code", session=session)

    def test_non_json_reply_redirects_to_login(self, http):
        http.cookies.set("oauth_state", "s1")
        reply = MagicMock(status_code=200, text="<html>maintenance</html>")
        reply.json.side_effect = ValueError("Expecting value")
        with patch("auth.requests.post", return_value=reply):
            r = http.get("/auth/github/callback?code=abc&state=s1", follow_redirects=False)

        assert r.status_code == 302
        assert r.headers["location"].startswith("/login")

    def test_network_failure(self, cfg):
        session = MagicMock()
        session.post.side_effect = requests.ConnectionError("down")
        with pytest.raises(OAuthError):
            exchange_code(cfg, "code", session=session)

    def test_missing_code(self, cfg):
        with pytest.raises(OAuthError):
            exchange_code(cfg, "")


class TestUser:

    def test_build_user(self, client):
        user = build_user(client, "gho_test")

        assert user["username"] == "octocat"
        assert user["display_name"] == "The Octocat"
        assert user["emails"] == ["octocat@example.com"]
        assert user["access_token"] == "gho_test"
        assert "access_token" not in public_user(user)


class TestCallback:

    def test_state_mismatch_redirects_to_login(self, http):
        http.cookies.set("oauth_state", "expected")
        r = http.get("/auth/github/callback?code=abc&state=forged", follow_redirects=False)

        assert r.status_code == 302
        assert r.headers["location"].startswith("/login")

    def test_successful_login_creates_session(self, http, cfg, user):
        http.cookies.set("oauth_state", "s1")
        with patch("main.exchange_code", return_value="gho_test") as ex, \
                patch("main.build_user", return_value=user):
            r = http.get("/auth/github/callback?code=abc&state=s1", follow_redirects=False)

        ex.assert_called_once_with(cfg, "abc")
        assert r.status_code == 302
        assert r.headers["location"] == "/success?user=octocat"
        sid = r.cookies.get("sid")
        with closing(db.init_db(cfg["sessions"]["db_path"])) as con:
            assert db.load_session(con, sid)["access_token"] == "gho_test"

    def test_failed_exchange_redirects_to_login(self, http):
        http.cookies.set("oauth_state", "s1")
        with patch("main.exchange_code", side_effect=OAuthError("nope")):
            r = http.get("/auth/github/callback?code=abc&state=s1", follow_redirects=False)

        assert r.status_code == 302
        assert r.headers["location"].startswith("/login")

    def test_logout(self, http, cfg, user):
        with closing(db.init_db(cfg["sessions"]["db_path"])) as con:
            db.save_session(con, "sid-9", user, 60)
        http.cookies.set("sid", "sid-9")

        r = http.get("/auth/logout", follow_redirects=False)

        assert r.status_code == 302
        with closing(db.init_db(cfg["sessions"]["db_path"])) as con:
            assert db.load_session(con, "sid-9") is None

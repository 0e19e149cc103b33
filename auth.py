"""GitHub OAuth (authorization-code flow) and session lookup."""
import secrets
from contextlib import closing
from urllib.parse import urlencode

import requests
from fastapi import HTTPException, Request

import db
from github_api.client import GitHubClient
from github_api.contents import get_user, get_user_emails
from github_api.errors import GitHubError

SESSION_COOKIE = "sid"
STATE_COOKIE = "oauth_state"


class OAuthError(RuntimeError):
    pass


def new_state() -> str:
    return secrets.token_urlsafe(24)


def authorize_url(cfg: dict, state: str) -> str:
    gh = cfg["github"]
    params = {
        "client_id": gh["client_id"],
        "scope": " ".join(gh.get("scope", [])),
        "state": state,
    }
    if gh.get("callback_url"):
        params["redirect_uri"] = gh["callback_url"]
    return f"{gh['oauth_url'].rstrip('/')}/authorize?{urlencode(params)}"


def exchange_code(cfg: dict, code: str, session: requests.Session | None = None) -> str:
    """Trade the callback `code` for an access token."""
    gh = cfg["github"]
    if not code:
        raise OAuthError("Missing authorization code.")
    payload = {
        "client_id": gh["client_id"],
        "client_secret": gh["client_secret"],
        "code": code,
    }
    if gh.get("callback_url"):
        payload["redirect_uri"] = gh["callback_url"]
    try:
        r = (session or requests).post(
            f"{gh['oauth_url'].rstrip('/')}/access_token",
            data=payload, headers={"Accept": "application/json"}, timeout=gh.get("timeout", 20),
        )
    except requests.RequestException as e:
        raise OAuthError(f"Token exchange failed: {e}") from e
    if r.status_code >= 400:
        raise OAuthError(f"Token exchange failed ({r.status_code}): {r.text}")
    try:
        data = r.json()
    except ValueError as e:
        raise OAuthError(f"Token exchange returned non-JSON: {r.text}") from e
    if not isinstance(data, dict):
        raise OAuthError(f"Token exchange returned unexpected body: {r.text}")
    if "error" in data or not data.get("access_token"):
        raise OAuthError(f"Token exchange rejected: {data.get('error_description') or data.get('error')}")
    return data["access_token"]


def build_user(client: GitHubClient, access_token: str) -> dict:
    profile = get_user(client)
    try:
        emails = [e.get("email") for e in get_user_emails(client)]
    except GitHubError:
        # the user:email scope may not have been granted
        emails = [profile["email"]] if profile.get("email") else []
    return {
        "id": profile["id"],
        "username": profile["login"],
        "display_name": profile.get("name") or profile["login"],
        "access_token": access_token,
        "emails": emails,
    }


def public_user(user: dict) -> dict:
    return {k: v for k, v in user.items() if k != "access_token"}


def current_user(request: Request) -> dict:
    """FastAPI dependency: the session user, or 401."""
    sid = request.cookies.get(SESSION_COOKIE)
    user = None
    if sid:
        cfg = request.app.state.cfg
        with closing(db.init_db(cfg["sessions"]["db_path"])) as con:
            user = db.load_session(con, sid)
    if user is None:
        raise HTTPException(status_code=401, detail="Not authenticated")
    return user

"""
Shared fixtures.

- `gh`: an in-memory GitHub with one repository (octo/demo)
- `client`: a GitHubClient wired to it
- `cfg` / `app` / `http`: the FastAPI app on a temp session database
"""
import copy
import os
import tempfile
from contextlib import closing
from pathlib import Path

# main builds a module-level app on import; keep its session db out of the project
os.environ.setdefault("SESSION_DB", str(Path(tempfile.gettempdir()) / "github-relay-test-sessions.db"))

import pytest
from fastapi.testclient import TestClient

import db
from config import DEFAULTS
from fake_github import API, FakeGitHub
from github_api.client import GitHubClient


BASE_FILES = {
    "README.md": "# demo\n",
    "src/app.py": "print('hi')\n",
    "a.txt": "old a\n",
}


@pytest.fixture
def gh():
    return FakeGitHub(files=BASE_FILES)


@pytest.fixture
def client(gh):
    return GitHubClient("gho_test", api_url=API, session=gh.session())


@pytest.fixture
def cfg(tmp_path):
    cfg = copy.deepcopy(DEFAULTS)
    cfg["github"].update(client_id="cid", client_secret="csecret",
                         callback_url="http://test/auth/github/callback", api_url=API)
    cfg["sessions"]["db_path"] = str(tmp_path / "sessions.db")
    cfg["extension"].update(dir=str(tmp_path / "extension"), source_dir=str(tmp_path / "src"))
    return cfg


@pytest.fixture
def app(cfg):
    from main import create_app
    return create_app(cfg)


@pytest.fixture
def http(app):
    with TestClient(app) as c:
        yield c


@pytest.fixture
def user():
    return {"id": 1, "username": "octocat", "display_name": "The Octocat",
            "access_token": "gho_test", "emails": ["octocat@example.com"]}


@pytest.fixture
def logged_in(http, cfg, user, gh, app):
    """Authenticated TestClient whose upstream calls go to `gh`."""
    from routes import github_client

    with closing(db.init_db(cfg["sessions"]["db_path"])) as con:
        db.save_session(con, "sid-123", user, 3600)
    http.cookies.set("sid", "sid-123")
    app.dependency_overrides[github_client] = lambda: GitHubClient(
        user["access_token"], api_url=API, session=gh.session())
    yield http
    app.dependency_overrides.clear()

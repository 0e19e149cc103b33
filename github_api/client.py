import base64
from dataclasses import dataclass, field

import requests

from github_api.errors import (
    BlobCreateError, CommitCreateError, CommitReadError, GitHubError,
    RefConflictError, RefNotFoundError, TreeCreateError, UpstreamUnavailableError,
)

API = "https://api.github.com"
REGULAR_FILE = "100644"


@dataclass(frozen=True)
class RefInfo:
    branch: str
    sha: str


@dataclass(frozen=True)
class CommitInfo:
    sha: str
    tree_sha: str
    parent_shas: list[str] = field(default_factory=list)


@dataclass(frozen=True)
class TreeEntry:
    path: str
    sha: str
    mode: str = REGULAR_FILE
    type: str = "blob"

    def to_json(self) -> dict:
        return {"path": self.path, "mode": self.mode, "type": self.type, "sha": self.sha}


class GitHubClient:
    """Thin client for the GitHub REST API, bound to one user's access token."""

    def __init__(self, token: str, api_url: str = API, timeout: float = 20,
                 session: requests.Session | None = None):
        if not token:
            raise ValueError("GitHub access token is missing or empty.")
        self.api = api_url.rstrip("/")
        self.timeout = timeout
        self.session = session or requests.Session()
        self.headers = {
            "Authorization": f"Bearer {token}",
            "Accept": "application/vnd.github+json",
            "X-GitHub-Api-Version": "2022-11-28",
            "User-Agent": "github-relay/1.0",
        }

    def close(self):
        self.session.close()

    def _send(self, method: str, path: str, *, json=None, params=None,
              errors: dict[int, type[GitHubError]] | None = None,
              default: type[GitHubError] = GitHubError):
        url = f"{self.api}{path}"
        try:
            r = self.session.request(method, url, headers=self.headers, json=json,
                                     params=params, timeout=self.timeout)
        except requests.RequestException as e:
            raise UpstreamUnavailableError(f"{method} {path} failed: {e}") from e

        if r.status_code >= 500:
            raise UpstreamUnavailableError(
                f"{method} {path} -> {r.status_code}: {r.text}", status_code=r.status_code
            )
        if r.status_code >= 400:
            cls = (errors or {}).get(r.status_code, default)
            raise cls(f"{method} {path} -> {r.status_code}: {_message(r)}", status_code=r.status_code)
        if r.status_code == 204 or not r.content:
            return {}
        return r.json()

    def get(self, path: str, **kw):
        return self._send("GET", path, **kw)

    def post(self, path: str, payload: dict, **kw):
        return self._send("POST", path, json=payload, **kw)

    def put(self, path: str, payload: dict, **kw):
        return self._send("PUT", path, json=payload, **kw)

    # Git Data primitives

    def get_ref(self, owner: str, repo: str, branch: str) -> RefInfo:
        data = self.get(f"/repos/{owner}/{repo}/git/ref/heads/{branch}",
                        errors={404: RefNotFoundError})
        return RefInfo(branch=branch, sha=data["object"]["sha"])

    def get_commit(self, owner: str, repo: str, sha: str) -> CommitInfo:
        data = self.get(f"/repos/{owner}/{repo}/git/commits/{sha}", default=CommitReadError)
        return CommitInfo(
            sha=data["sha"],
            tree_sha=data["tree"]["sha"],
            parent_shas=[p["sha"] for p in data.get("parents", [])],
        )

    def create_blob(self, owner: str, repo: str, content: bytes) -> str:
        data = self.post(f"/repos/{owner}/{repo}/git/blobs", {
            "content": base64.b64encode(content).decode("ascii"),
            "encoding": "base64",
        }, default=BlobCreateError)
        return data["sha"]

    def create_tree(self, owner: str, repo: str, base_tree: str, entries: list[TreeEntry]) -> str:
        data = self.post(f"/repos/{owner}/{repo}/git/trees", {
            "base_tree": base_tree,
            "tree": [e.to_json() for e in entries],
        }, default=TreeCreateError)
        return data["sha"]

    def create_commit(self, owner: str, repo: str, message: str, tree: str, parents: list[str]) -> str:
        data = self.post(f"/repos/{owner}/{repo}/git/commits", {
            "message": message,
            "tree": tree,
            "parents": list(parents),
        }, default=CommitCreateError)
        return data["sha"]

    def update_ref(self, owner: str, repo: str, branch: str, sha: str) -> RefInfo:
        """Move a branch to `sha`; never forced, so a moved branch is rejected."""
        try:
            data = self._send("PATCH", f"/repos/{owner}/{repo}/git/refs/heads/{branch}",
                              json={"sha": sha, "force": False},
                              errors={404: RefNotFoundError, 409: RefConflictError, 422: RefConflictError})
        except RefConflictError as e:
            # GitHub also answers 422 "Reference does not exist" for a deleted branch
            if "does not exist" in str(e):
                raise RefNotFoundError(str(e), status_code=e.status_code) from e
            raise
        return RefInfo(branch=branch, sha=data.get("object", {}).get("sha", sha))

    def create_ref(self, owner: str, repo: str, branch: str, sha: str) -> dict:
        return self.post(f"/repos/{owner}/{repo}/git/refs", {
            "ref": f"refs/heads/{branch}",
            "sha": sha,
        })


def _message(r) -> str:
    try:
        body = r.json()
    except ValueError:
        return r.text
    if isinstance(body, dict) and body.get("message"):
        return body["message"]
    return r.text

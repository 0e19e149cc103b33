import base64

from github_api.client import GitHubClient


def get_user(client: GitHubClient) -> dict:
    return client.get("/user")


def get_user_emails(client: GitHubClient) -> list[dict]:
    return client.get("/user/emails")


def list_repos(client: GitHubClient, per_page: int = 100) -> list[dict]:
    return client.get("/user/repos", params={"per_page": per_page})


def create_repo(client: GitHubClient, name: str, description: str | None = None,
                private: bool = False, auto_init: bool = False) -> dict:
    if not name:
        raise ValueError("Repository name is required.")
    return client.post("/user/repos", {
        "name": name,
        "description": description,
        "private": private,
        "auto_init": auto_init,
    })


def get_contents(client: GitHubClient, owner: str, repo: str, path: str, branch: str = "main"):
    """File metadata+content, or a listing when `path` is a directory."""
    return client.get(f"/repos/{owner}/{repo}/contents/{path.lstrip('/')}", params={"ref": branch})


def put_file(client: GitHubClient, owner: str, repo: str, path: str, content: str | bytes,
             message: str, branch: str | None = None, sha: str | None = None) -> dict:
    """Create a file, or update it when `sha` (the blob being replaced) is given."""
    if isinstance(content, str):
        content = content.encode("utf-8")
    payload = {
        "message": message,
        "content": base64.b64encode(content).decode("ascii"),
    }
    if branch:
        payload["branch"] = branch
    if sha:
        payload["sha"] = sha
    return client.put(f"/repos/{owner}/{repo}/contents/{path.lstrip('/')}", payload)


def list_branches(client: GitHubClient, owner: str, repo: str) -> list[dict]:
    return client.get(f"/repos/{owner}/{repo}/branches")


def create_branch(client: GitHubClient, owner: str, repo: str, base_branch: str, new_branch: str) -> dict:
    base = client.get_ref(owner, repo, base_branch)
    return client.create_ref(owner, repo, new_branch, base.sha)

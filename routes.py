"""Repository routes relayed to the GitHub API on behalf of the session user."""
from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse

from auth import current_user, public_user
from github_api import contents
from github_api.batch_commit import commit_files
from github_api.client import GitHubClient
from github_api.errors import (
    CommitValidationError, GitHubError, RefConflictError, RefNotFoundError, UpstreamUnavailableError,
)
from schemas import (
    BatchCreateRequest, CreateBranchRequest, CreateFileRequest, CreateRepoRequest, UpdateFileRequest,
)

router = APIRouter(prefix="/api", tags=["github"])


def github_client(request: Request, user: dict = Depends(current_user)):
    """Per-request client; its HTTP session is closed once the response is built."""
    gh = request.app.state.cfg["github"]
    client = GitHubClient(user["access_token"], api_url=gh["api_url"], timeout=gh["timeout"])
    try:
        yield client
    finally:
        client.close()


def status_for(e: GitHubError) -> int:
    if isinstance(e, RefNotFoundError):
        return 404
    if isinstance(e, RefConflictError):
        return 409
    if isinstance(e, UpstreamUnavailableError):
        return 502
    if e.status_code and 400 <= e.status_code < 500:
        return e.status_code
    return 502


def error_response(e: GitHubError, message: str) -> JSONResponse:
    print(f">> {message}: {e}", flush=True)
    body = {"error": message, "detail": str(e)}
    if e.step is not None:
        body["step"] = e.step.value
        body["ref_unchanged"] = e.ref_unchanged
    return JSONResponse(status_code=status_for(e), content=body)


@router.get("/user")
def user_profile(user: dict = Depends(current_user)):
    return public_user(user)


@router.get("/repos")
def list_repos(client: GitHubClient = Depends(github_client)):
    try:
        return contents.list_repos(client)
    except GitHubError as e:
        return error_response(e, "Failed to fetch repositories")


@router.post("/repos")
def create_repo(body: CreateRepoRequest, client: GitHubClient = Depends(github_client)):
    try:
        return contents.create_repo(client, body.name, body.description, body.private, body.auto_init)
    except GitHubError as e:
        return error_response(e, "Failed to create repository")


@router.get("/repos/{owner}/{repo}/contents/{path:path}")
def get_contents(owner: str, repo: str, path: str, branch: str = "main",
                 client: GitHubClient = Depends(github_client)):
    try:
        return contents.get_contents(client, owner, repo, path, branch)
    except GitHubError as e:
        return error_response(e, "Failed to fetch file contents")


@router.post("/repos/{owner}/{repo}/contents/{path:path}")
def update_file(owner: str, repo: str, path: str, body: UpdateFileRequest,
                client: GitHubClient = Depends(github_client)):
    try:
        return contents.put_file(client, owner, repo, path, body.content, body.message,
                                 branch=body.branch, sha=body.sha)
    except GitHubError as e:
        return error_response(e, "Failed to update file")


@router.post("/repos/{owner}/{repo}/create/{path:path}")
def create_file(owner: str, repo: str, path: str, body: CreateFileRequest,
                client: GitHubClient = Depends(github_client)):
    try:
        return contents.put_file(client, owner, repo, path, body.content, body.message, branch=body.branch)
    except GitHubError as e:
        return error_response(e, "Failed to create file")


@router.post("/repos/{owner}/{repo}/batch-create")
def batch_create(owner: str, repo: str, body: BatchCreateRequest, request: Request,
                 client: GitHubClient = Depends(github_client)):
    workers = request.app.state.cfg["github"].get("blob_workers", 1)
    try:
        result = commit_files(client, owner, repo, body.branch,
                              [f.model_dump() for f in body.files], body.message, max_workers=workers)
    except CommitValidationError as e:
        return JSONResponse(status_code=400, content={"error": "Invalid batch request", "detail": str(e)})
    except GitHubError as e:
        return error_response(e, "Failed to create files")
    return {
        "message": "Files created successfully",
        "commit": result.commit_sha,
        "files": [{"path": f.path, "sha": f.sha} for f in result.files],
    }


@router.get("/repos/{owner}/{repo}/branches")
def list_branches(owner: str, repo: str, client: GitHubClient = Depends(github_client)):
    try:
        return contents.list_branches(client, owner, repo)
    except GitHubError as e:
        return error_response(e, "Failed to fetch branches")


@router.post("/repos/{owner}/{repo}/branches")
def create_branch(owner: str, repo: str, body: CreateBranchRequest,
                  client: GitHubClient = Depends(github_client)):
    try:
        return contents.create_branch(client, owner, repo, body.base_branch, body.new_branch)
    except GitHubError as e:
        return error_response(e, "Failed to create branch")

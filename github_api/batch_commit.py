"""Commit a set of files atomically using Git 'blobs/trees/commits/refs' endpoints.

The contents API writes one file per commit. Here every file becomes a blob, the
blobs are laid over the branch tip's tree, and a single commit on top of the tip
is published by a non-forced ref update. Any failure before the ref update
leaves the branch untouched; created blobs/trees are simply left unreferenced.
"""
import posixpath
from collections.abc import Mapping
from concurrent.futures import ThreadPoolExecutor, as_completed
from contextlib import contextmanager
from dataclasses import dataclass, field

from github_api.client import GitHubClient, TreeEntry
from github_api.errors import CommitValidationError, GitHubError, Step


@dataclass(frozen=True)
class FileInput:
    path: str
    content: str | bytes

    def data(self) -> bytes:
        if isinstance(self.content, bytes):
            return self.content
        return self.content.encode("utf-8")


@dataclass(frozen=True)
class FileBlob:
    path: str
    sha: str


@dataclass(frozen=True)
class CommitResult:
    commit_sha: str
    tree_sha: str
    parent_sha: str
    branch: str
    files: list[FileBlob] = field(default_factory=list)


def normalize_files(files) -> list[FileInput]:
    """Accept FileInputs, {"path","content"} dicts, (path, content) pairs or a
    {path: content} mapping; reject empty sets, empty and duplicate paths."""
    if isinstance(files, Mapping):
        files = list(files.items())
    if not files:
        raise CommitValidationError("At least one file is required.")

    out, seen = [], set()
    for i, f in enumerate(files):
        if isinstance(f, FileInput):
            path, content = f.path, f.content
        elif isinstance(f, Mapping):
            path, content = f.get("path"), f.get("content")
        elif isinstance(f, (str, bytes)):
            raise CommitValidationError(f"files[{i}] is not a (path, content) pair")
        else:
            try:
                path, content = f
            except (TypeError, ValueError):
                raise CommitValidationError(f"files[{i}] is not a (path, content) pair") from None

        if not isinstance(path, str) or not path.strip("/"):
            raise CommitValidationError(f"files[{i}] has an empty path")
        path = posixpath.normpath(path.lstrip("/"))
        if path == "." or path == ".." or path.startswith("../"):
            raise CommitValidationError(f"files[{i}] path escapes the repository: {path}")
        if not isinstance(content, (str, bytes)):
            raise CommitValidationError(f"files[{i}] ({path}) content must be text or bytes")
        if path in seen:
            raise CommitValidationError(f"Duplicate path in request: {path}")
        seen.add(path)
        out.append(FileInput(path, content))
    return out


def _created(futures) -> list[FileBlob]:
    return [f.result() for f in futures if f.done() and not f.cancelled() and f.exception() is None]


@contextmanager
def _step(step: Step, partial: dict):
    try:
        yield
    except GitHubError as e:
        e.step = step
        e.partial = {**partial, **e.partial}
        print(f">> batch commit failed at {step.value}: {e}", flush=True)
        raise


def commit_files(client: GitHubClient, owner: str, repo: str, branch: str, files,
                 message: str, *, max_workers: int = 1) -> CommitResult:
    """Create one commit on `branch` holding every file in `files`.

    Blobs are created in input order; with max_workers > 1 they are uploaded on a
    thread pool, result order is still the input order.
    """
    items = normalize_files(files)
    if not message or not message.strip():
        raise CommitValidationError("Commit message is required.")
    if not branch:
        raise CommitValidationError("Branch is required.")
    if not owner or not repo:
        raise CommitValidationError("Repository owner and name are required.")

    print(f">> batch commit {owner}/{repo}@{branch}: {len(items)} file(s)", flush=True)
    partial: dict = {}

    # 1) Current branch HEAD commit & base tree
    with _step(Step.RESOLVE_REF, partial):
        tip = client.get_ref(owner, repo, branch)
    partial["base_commit"] = tip.sha

    with _step(Step.READ_COMMIT, partial):
        base = client.get_commit(owner, repo, tip.sha)
    partial["base_tree"] = base.tree_sha

    # 2) One blob per file
    blobs: list[FileBlob] = []
    partial["blobs"] = blobs

    def upload(f: FileInput) -> FileBlob:
        try:
            return FileBlob(f.path, client.create_blob(owner, repo, f.data()))
        except GitHubError as e:
            e.partial.setdefault("path", f.path)
            raise

    with _step(Step.CREATE_BLOBS, partial):
        if max_workers > 1 and len(items) > 1:
            with ThreadPoolExecutor(max_workers=min(max_workers, len(items))) as pool:
                futures = [pool.submit(upload, f) for f in items]
                try:
                    for fut in as_completed(futures):
                        fut.result()
                except GitHubError:
                    # stop queued uploads; record every blob that did get created
                    pool.shutdown(wait=True, cancel_futures=True)
                    blobs.extend(_created(futures))
                    raise
                blobs.extend(fut.result() for fut in futures)
        else:
            for f in items:
                blobs.append(upload(f))

    # 3) New tree from base + entries
    with _step(Step.CREATE_TREE, partial):
        tree_sha = client.create_tree(owner, repo, base.tree_sha,
                                      [TreeEntry(path=b.path, sha=b.sha) for b in blobs])
    partial["tree"] = tree_sha

    # 4) Commit pointing to the new tree
    with _step(Step.CREATE_COMMIT, partial):
        commit_sha = client.create_commit(owner, repo, message, tree_sha, [tip.sha])
    partial["commit"] = commit_sha

    # 5) Move branch ref to new commit (no force)
    with _step(Step.UPDATE_REF, partial):
        client.update_ref(owner, repo, branch, commit_sha)

    print(f">> batch commit {owner}/{repo}@{branch}: {tip.sha[:7]} -> {commit_sha[:7]}", flush=True)
    return CommitResult(
        commit_sha=commit_sha,
        tree_sha=tree_sha,
        parent_sha=tip.sha,
        branch=branch,
        files=list(blobs),
    )

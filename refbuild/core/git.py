"""Git-backed commit matching for reference builds.

A candidate build is related to the current build when the revision it was
built from is the current build's revision or one of its ancestors. Missing
commits are fetched from the configured remote (unshallowing when needed), and
git failures surface as ``RepositoryError`` with credentials masked.
"""

from __future__ import annotations

import shlex
from pathlib import Path
from typing import Sequence
from urllib.parse import urlsplit, urlunsplit

from git import Repo
from git.exc import BadName, GitCommandError, InvalidGitRepositoryError, NoSuchPathError
from loguru import logger

from refbuild.core.graph import Build

log = logger.bind(module="core.git")

__all__ = [
    "GitCommitMatcher",
    "RepositoryError",
    "fetch_remote",
    "has_object",
    "is_ancestor",
    "is_shallow_repository",
    "require_commit",
    "sanitize_command",
    "sanitize_value",
    "wrap_git_error",
]


class RepositoryError(RuntimeError):
    """Raised when a git operation fails.

    The raw command and outputs are kept for debugging; the message itself is
    safe for logs.
    """

    def __init__(
        self,
        message: str,
        *,
        cmd: Sequence[str] | None = None,
        returncode: int | None = None,
        stderr: str | None = None,
    ) -> None:
        super().__init__(message)
        self.cmd = tuple(cmd) if cmd else None
        self.returncode = returncode
        self.stderr = stderr


def sanitize_value(value: str) -> str:
    """Mask credential-bearing URLs (best-effort)."""

    parsed = urlsplit(value)
    if parsed.username or parsed.password:
        host = parsed.hostname or ""
        if parsed.port:
            host = f"{host}:{parsed.port}"
        return urlunsplit((parsed.scheme, f"***@{host}", parsed.path, parsed.query, parsed.fragment))
    return value


def sanitize_command(cmd: Sequence[str]) -> str:
    return shlex.join(sanitize_value(str(part)) for part in cmd)


def wrap_git_error(exc: GitCommandError, context: str) -> RepositoryError:
    """Convert a GitPython command failure into a sanitized RepositoryError."""

    raw = getattr(exc, "command", None)
    if isinstance(raw, str):
        command: tuple[str, ...] | None = (raw,)
    elif raw:
        command = tuple(str(part) for part in raw)
    else:
        command = None
    status = getattr(exc, "status", None)
    suffix = f": {sanitize_command(command)}" if command else ""
    return RepositoryError(
        f"{context}{suffix} (exit {status})",
        cmd=command,
        returncode=status if isinstance(status, int) else None,
        stderr=getattr(exc, "stderr", None),
    )


def _resolve(repo: Repo, ref: str) -> str | None:
    try:
        commit = repo.commit(ref)
    except (BadName, GitCommandError, ValueError):
        return None
    return str(getattr(commit, "hexsha", "") or "").strip() or None


def has_object(repo: Repo, ref: str) -> bool:
    """Return True when ref can be resolved as a commit locally."""

    return _resolve(repo, ref) is not None


def is_shallow_repository(repo: Repo) -> bool:
    """Return True when the repository is shallow (best-effort)."""

    try:
        result = repo.git.rev_parse("--is-shallow-repository")
    except GitCommandError:
        return False
    return result.strip().lower() == "true"


def fetch_remote(repo: Repo, *, remote: str = "origin", fetch_depth: int | None = None) -> None:
    """Fetch branches and tags from ``remote``."""

    name = (remote or "").strip() or "origin"
    try:
        repo.remote(name)
    except ValueError as exc:
        worktree = getattr(repo, "working_tree_dir", None) or "<unknown>"
        raise RepositoryError(f"Git remote {name!r} is not configured for repo {worktree}.") from exc

    args: list[str] = ["--prune", "--tags"]
    if fetch_depth:
        args.append(f"--depth={int(fetch_depth)}")
    args.append(name)
    try:
        repo.git.fetch(*args)
    except GitCommandError as exc:
        raise wrap_git_error(exc, f"Failed to fetch from {name}") from exc


def require_commit(
    repo: Repo,
    ref: str,
    *,
    remote: str | None = "origin",
    fetch_depth: int | None = None,
) -> str:
    """Return the full hash for ref, fetching (and unshallowing) when needed.

    With ``remote=None`` nothing is fetched and a missing commit fails at once.
    """

    wanted = (ref or "").strip()
    if not wanted:
        raise RepositoryError("Commit reference must be provided.")

    resolved = _resolve(repo, wanted)
    if resolved:
        return resolved
    if remote is None:
        raise RepositoryError(f"Commit {wanted} is not available locally.")

    log.info("Commit {} missing locally; fetching from {}", wanted, remote)
    fetch_remote(repo, remote=remote, fetch_depth=fetch_depth)
    resolved = _resolve(repo, wanted)
    if resolved:
        return resolved

    if is_shallow_repository(repo):
        log.info("Repository is shallow; unshallowing to retrieve {}", wanted)
        try:
            repo.git.fetch("--unshallow", remote)
        except GitCommandError as exc:
            raise wrap_git_error(exc, "Failed to unshallow repository") from exc
        resolved = _resolve(repo, wanted)
        if resolved:
            return resolved

    raise RepositoryError(f"Commit {wanted} is not available locally after fetching from {remote}.")


def is_ancestor(repo: Repo, ancestor: str, descendant: str) -> bool:
    """Return True when ``ancestor`` is reachable from ``descendant`` (or equal)."""

    if ancestor == descendant:
        return True
    try:
        return bool(repo.is_ancestor(ancestor, descendant))
    except GitCommandError as exc:
        raise wrap_git_error(exc, "Failed to compare commit ancestry") from exc


class GitCommitMatcher:
    """Commit matcher answering relatedness from a local clone."""

    def __init__(
        self,
        repo: Repo,
        *,
        remote: str | None = "origin",
        fetch_depth: int | None = None,
    ) -> None:
        self.repo = repo
        self.remote = remote
        self.fetch_depth = fetch_depth

    @classmethod
    def open(
        cls,
        path: str | Path,
        *,
        remote: str | None = "origin",
        fetch_depth: int | None = None,
    ) -> "GitCommitMatcher":
        try:
            repo = Repo(Path(path))
        except (InvalidGitRepositoryError, NoSuchPathError) as exc:
            raise RepositoryError(f"Not a git repository: {path}") from exc
        return cls(repo, remote=remote, fetch_depth=fetch_depth)

    def is_related(self, candidate: Build, originating: Build) -> bool:
        if not candidate.revision or not originating.revision:
            log.debug(
                "Missing revision ({} -> {!r}, {} -> {!r}); treating builds as unrelated",
                candidate.id,
                candidate.revision,
                originating.id,
                originating.revision,
            )
            return False
        ancestor = require_commit(self.repo, candidate.revision, remote=self.remote, fetch_depth=self.fetch_depth)
        descendant = require_commit(
            self.repo,
            originating.revision,
            remote=self.remote,
            fetch_depth=self.fetch_depth,
        )
        related = is_ancestor(self.repo, ancestor, descendant)
        log.debug("{} related to {}: {}", candidate.id, originating.id, related)
        return related

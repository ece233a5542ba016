"""Read-only access to the git repository behind a build.

:func:`open_repository` locates, validates and positions a repository on the
configured ref.  :class:`GitRepository` shells out to ``git`` for the commit
identity, branch, tags, history and dirty state the tasks publish.
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Dict, List, Protocol, Sequence, runtime_checkable

import logging
import subprocess

LOGGER = logging.getLogger(__name__)

_FIELD_SEP = "\x1f"
_RECORD_SEP = "\x1e"
_LOG_FORMAT = _FIELD_SEP.join(["%H", "%an", "%ae", "%aI", "%cn", "%ce", "%cI", "%s"]) + _RECORD_SEP


class GitError(RuntimeError):
    """Raised when a git command fails or the repository cannot be used."""


class RepositoryUnavailableError(GitError):
    """Raised when no repository exists at or above the requested location."""


class RepositoryAccessError(GitError):
    """Raised when a repository exists but cannot be read or a ref cannot be resolved."""


@dataclass(frozen=True, slots=True)
class CommitInfo:
    """Identity and authorship of a single commit."""

    sha: str
    author_name: str
    author_email: str
    author_date: str
    committer_name: str
    committer_email: str
    committer_date: str
    subject: str

    def abbrev(self, length: int = 7) -> str:
        return self.sha[:length]


@dataclass(frozen=True, slots=True)
class TagDescription:
    """Result of describing a commit relative to its nearest tag."""

    name: str
    distance: int
    describe: str


@runtime_checkable
class RepositoryHandle(Protocol):
    """Contract for the repository reader used by metadata tasks."""

    def check(self) -> None: ...

    def set_head_ref(self, ref: str) -> str: ...

    def head_commit(self) -> CommitInfo: ...

    def abbreviate(self, sha: str) -> str: ...

    def branch(self) -> str: ...

    def is_dirty(self, *, ignore_untracked: bool = False) -> bool: ...

    def describe(self) -> TagDescription | None: ...

    def log(self, *, max_count: int | None = None) -> List[CommitInfo]: ...

    def tags_by_commit(self) -> Dict[str, List[str]]: ...

    def close(self) -> None: ...


def _parse_commit(record: str) -> CommitInfo | None:
    parts = record.strip("\n").split(_FIELD_SEP)
    if len(parts) < 8:
        return None
    return CommitInfo(*parts[:8])


class GitRepository:
    """Lightweight wrapper around ``git`` commands."""

    def __init__(self, work_tree: Path | str, git_dir: Path | str | None = None) -> None:
        self.work_tree = Path(work_tree).resolve()
        self.git_dir = Path(git_dir).resolve() if git_dir is not None else None
        self.head_ref = "HEAD"
        self.head_sha: str | None = None
        self._closed = False

    @classmethod
    def discover(cls, start: Path | str | None = None) -> "GitRepository":
        """Locate the nearest git repository starting from ``start``."""

        path = Path(start or Path.cwd()).resolve()
        if not path.is_dir():
            raise RepositoryUnavailableError(f"Working tree does not exist: {path}")
        for candidate in (path, *path.parents):
            if (candidate / ".git").exists():
                LOGGER.debug("Discovered git repository at %s", candidate)
                return cls(path)
        raise RepositoryUnavailableError(f"Unable to locate a git repository from {path}")

    @classmethod
    def open(cls, work_tree: Path | str, git_dir: Path | str | None = None) -> "GitRepository":
        """Open the repository for ``work_tree``, discovering ``GIT_DIR`` when unset."""

        if git_dir is None:
            return cls.discover(work_tree)
        resolved = Path(git_dir).resolve()
        if not resolved.exists():
            raise RepositoryUnavailableError(f"Not a git repository: {resolved}")
        if not Path(work_tree).is_dir():
            raise RepositoryUnavailableError(f"Working tree does not exist: {Path(work_tree).resolve()}")
        return cls(work_tree, resolved)

    # ------------------------------------------------------------------ git IO
    def _run_git(self, args: Sequence[str], *, check: bool = True) -> subprocess.CompletedProcess[str]:
        if self._closed:
            raise GitError("Repository handle is closed.")
        command = ["git"]
        if self.git_dir is not None:
            command.extend(["--git-dir", str(self.git_dir), "--work-tree", str(self.work_tree)])
        command.extend(args)
        try:
            process = subprocess.run(
                command,
                cwd=self.work_tree,
                capture_output=True,
                text=False,
                check=False,
            )
        except FileNotFoundError as error:
            raise RepositoryUnavailableError("The git executable could not be found.") from error
        stdout = process.stdout.decode("utf-8", errors="replace") if process.stdout else ""
        stderr = process.stderr.decode("utf-8", errors="replace") if process.stderr else ""
        result = subprocess.CompletedProcess(process.args, process.returncode, stdout, stderr)
        if check and result.returncode != 0:
            message = result.stderr.strip() or result.stdout.strip() or "unknown git error"
            raise RepositoryAccessError(f"git {' '.join(args)} failed: {message}")
        return result

    def git(self, *args: str, check: bool = True) -> subprocess.CompletedProcess[str]:
        """Execute ``git`` with ``args`` relative to the working tree."""

        return self._run_git(list(args), check=check)

    # --------------------------------------------------------------- lifecycle
    def check(self) -> None:
        """Raise :class:`GitError` unless the repository is readable."""

        result = self._run_git(["rev-parse", "--git-dir"], check=False)
        if result.returncode != 0:
            message = result.stderr.strip() or "unknown git error"
            if "not a git repository" in message.lower():
                raise RepositoryUnavailableError(f"Not a git repository: {self.work_tree}")
            raise RepositoryAccessError(f"Repository at {self.work_tree} is unusable: {message}")

    def set_head_ref(self, ref: str) -> str:
        """Resolve ``ref`` to a commit and use it as the starting point."""

        result = self._run_git(["rev-parse", "--verify", "--quiet", f"{ref}^{{commit}}"], check=False)
        sha = result.stdout.strip()
        if result.returncode != 0 or not sha:
            raise RepositoryAccessError(f"Unable to resolve ref {ref!r} to a commit.")
        self.head_ref = ref
        self.head_sha = sha
        return sha

    def close(self) -> None:
        """Release the handle; calling this more than once is a no-op."""

        if self._closed:
            return
        self._closed = True
        LOGGER.debug("Closed git repository handle for %s", self.work_tree)

    @property
    def closed(self) -> bool:
        return self._closed

    def _require_head(self) -> str:
        if self.head_sha is None:
            return self.set_head_ref(self.head_ref)
        return self.head_sha

    # ----------------------------------------------------------------- commits
    def head_commit(self) -> CommitInfo:
        """Return identity and authorship details for the resolved ref."""

        sha = self._require_head()
        result = self._run_git(["show", "-s", f"--format={_LOG_FORMAT}", sha])
        commit = _parse_commit(result.stdout.split(_RECORD_SEP, 1)[0])
        if commit is None:
            raise RepositoryAccessError(f"Unexpected output while reading commit {sha}.")
        return commit

    def abbreviate(self, sha: str) -> str:
        """Return the shortest unambiguous abbreviation for ``sha``."""

        result = self._run_git(["rev-parse", "--short", sha])
        return result.stdout.strip() or sha[:7]

    def log(self, *, max_count: int | None = None) -> List[CommitInfo]:
        """Return commits reachable from the resolved ref, newest first."""

        args: List[str] = ["log", f"--format={_LOG_FORMAT}"]
        if max_count is not None:
            args.extend(["--max-count", str(max_count)])
        args.append(self._require_head())
        result = self._run_git(args)

        commits: List[CommitInfo] = []
        for record in result.stdout.split(_RECORD_SEP):
            if not record.strip():
                continue
            commit = _parse_commit(record)
            if commit is not None:
                commits.append(commit)
        return commits

    # -------------------------------------------------------------- branches
    def current_branch(self) -> str | None:
        """Return the current branch name or ``None`` when detached."""

        result = self._run_git(["rev-parse", "--abbrev-ref", "HEAD"], check=False)
        if result.returncode != 0:
            return None
        branch = result.stdout.strip()
        if not branch or branch == "HEAD":
            return None
        return branch

    def branch(self) -> str:
        """Return the current branch, or the checked-out commit id when detached."""

        branch = self.current_branch()
        if branch is not None:
            return branch
        result = self._run_git(["rev-parse", "HEAD"])
        return result.stdout.strip()

    # ------------------------------------------------------------------- tags
    def describe(self) -> TagDescription | None:
        """Describe the resolved ref relative to its nearest reachable tag."""

        sha = self._require_head()
        result = self._run_git(["describe", "--tags", "--long", sha], check=False)
        if result.returncode != 0:
            return None
        long_form = result.stdout.strip()
        name, distance, _ = long_form.rsplit("-", 2)
        count = int(distance)
        if count == 0:
            return TagDescription(name=name, distance=0, describe=name)
        return TagDescription(name=name, distance=count, describe=long_form)

    def tags_by_commit(self) -> Dict[str, List[str]]:
        """Map commit ids to the tag names pointing at them."""

        result = self._run_git(
            ["for-each-ref", "--format=%(objectname) %(*objectname) %(refname:short)", "refs/tags"]
        )
        tags: Dict[str, List[str]] = {}
        for line in result.stdout.splitlines():
            parts = line.split(" ")
            if len(parts) != 3:
                continue
            target, peeled, name = parts
            tags.setdefault(peeled or target, []).append(name)
        for names in tags.values():
            names.sort()
        return tags

    # ------------------------------------------------------------- repo status
    def _status_entries(self) -> List[tuple[str, Path]]:
        result = self._run_git(["status", "--porcelain"], check=True)
        entries: List[tuple[str, Path]] = []
        for line in result.stdout.splitlines():
            if not line:
                continue
            status = line[:2]
            raw_path = line[3:]
            if status[0] in {"R", "C"} and " -> " in raw_path:
                raw_path = raw_path.split(" -> ", 1)[1]
            status_clean = status.strip() or status
            entries.append((status_clean, Path(raw_path.strip())))
        return entries

    def working_tree_changes(self, *, include_untracked: bool = True) -> List[Path]:
        """Return the set of paths with pending modifications."""

        paths = {
            path
            for status, path in self._status_entries()
            if include_untracked or status != "??"
        }
        return sorted(paths, key=lambda item: item.as_posix())

    def is_dirty(self, *, ignore_untracked: bool = False) -> bool:
        """Return ``True`` when the checked-out tree differs from the resolved ref.

        Only the checked-out commit can be dirty; any other ref is reported clean.
        """

        sha = self._require_head()
        current = self._run_git(["rev-parse", "--verify", "--quiet", "HEAD"], check=False)
        if current.stdout.strip() != sha:
            return False
        return bool(self.working_tree_changes(include_untracked=not ignore_untracked))


def open_repository(
    work_tree: Path | str,
    git_dir: Path | str | None = None,
    *,
    head: str = "HEAD",
) -> GitRepository:
    """Open, validate and position a repository; the handle is closed on failure."""

    repository = GitRepository.open(work_tree, git_dir)
    try:
        repository.check()
        repository.set_head_ref(head)
    except GitError:
        repository.close()
        raise
    LOGGER.debug("Opened repository at %s (%s -> %s)", repository.work_tree, head, repository.head_sha)
    return repository


__all__ = [
    "CommitInfo",
    "GitError",
    "GitRepository",
    "RepositoryAccessError",
    "RepositoryHandle",
    "RepositoryUnavailableError",
    "TagDescription",
    "open_repository",
]

from __future__ import annotations

import os
import subprocess
import sys
from dataclasses import dataclass
from pathlib import Path

import pytest

ROOT = Path(__file__).resolve().parents[1]
SRC = ROOT / "src"

if str(SRC) not in sys.path:
    sys.path.insert(0, str(SRC))

COMMIT_DATE = "2024-01-02T03:04:05+00:00"


@dataclass(slots=True)
class StampRepo:
    """Fixture payload representing the synthetic repository under test."""

    root: Path

    def git(self, *args: str, **env: str) -> str:
        environment = os.environ.copy()
        environment.update(
            {
                "GIT_AUTHOR_DATE": COMMIT_DATE,
                "GIT_COMMITTER_DATE": COMMIT_DATE,
                "GIT_CONFIG_NOSYSTEM": "1",
            }
        )
        environment.update(env)
        result = subprocess.run(
            ["git", *args],
            cwd=self.root,
            env=environment,
            check=True,
            capture_output=True,
            text=True,
        )
        return result.stdout.strip()

    def commit(self, message: str, files: dict[str, str], **env: str) -> str:
        """Write ``files``, commit them and return the new commit id."""

        for name, content in files.items():
            path = self.root / name
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_text(content, encoding="utf-8")
        self.git("add", *files)
        self.git("commit", "-m", message, **env)
        return self.git("rev-parse", "HEAD")

    def run_cli(self, *args: str) -> subprocess.CompletedProcess[str]:
        """Invoke ``python -m buildstamp.cli`` with the provided arguments."""

        env = os.environ.copy()
        pythonpath = str(SRC)
        if env.get("PYTHONPATH"):
            pythonpath = os.pathsep.join([pythonpath, env["PYTHONPATH"]])
        env["PYTHONPATH"] = pythonpath

        command = [sys.executable, "-m", "buildstamp.cli", *args]
        return subprocess.run(  # noqa: S603 - command constructed from known values
            command,
            cwd=self.root,
            env=env,
            capture_output=True,
            text=True,
            check=False,
        )


@pytest.fixture()
def stamp_repo(tmp_path: Path) -> StampRepo:
    """Create a git repository with two commits and a tag on the first."""

    repo_root = tmp_path / "stamp-repo"
    repo_root.mkdir()
    repo = StampRepo(root=repo_root)

    repo.git("init")
    repo.git("symbolic-ref", "HEAD", "refs/heads/main")
    repo.git("config", "user.email", "dev@example.com")
    repo.git("config", "user.name", "Dev One")
    repo.git("config", "commit.gpgsign", "false")
    repo.git("config", "tag.gpgsign", "false")

    repo.commit("Initial import", {"README.txt": "hello\n"})
    repo.git("tag", "-a", "v1.0", "-m", "Release 1.0")
    repo.commit(
        "Add feature",
        {"feature.txt": "feature\n"},
        GIT_AUTHOR_NAME="Dev Two",
        GIT_AUTHOR_EMAIL="two@example.com",
    )
    return repo

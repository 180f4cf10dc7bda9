"""Shared test fixtures for branchscope."""

import os
import shutil
import subprocess
from typing import Optional

import pytest

from branchscope.exceptions import HistoryQueryError
from branchscope.graph.builder import build_commit_graph
from branchscope.history.models import BranchSummary, LogEntry, RemoteInfo, StatusEntry, TagInfo
from branchscope.history.source import RepositorySource


def record(commit: str, parents: str = "", refs: str = "", ts="1700000000") -> str:
    """One history line in git's NUL-separated format."""
    return "\x00".join([commit, parents, refs, str(ts)])


def history(*lines: str) -> str:
    return "\n".join(lines) + "\n"


def heads(*names: str) -> str:
    return ", ".join(f"refs/heads/{n}" for n in names)


class FakeClock:
    """Manually advanced clock."""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeSource(RepositorySource):
    """In-memory RepositorySource that counts calls and can be made to fail.

    Branch tips default to the heads decorated in ``raw``. ``new_raw`` is
    what an excluding history query returns and ``ancestors`` holds the
    (ancestor, descendant) pairs ``is_ancestor`` reports as true.
    """

    def __init__(
        self,
        raw: str = "",
        branches: tuple = (),
        current: Optional[str] = None,
        head: Optional[str] = "head0",
    ):
        self.raw = raw
        self.branches = tuple(branches)
        self.current = current
        self.head = head
        self.tips: Optional[dict] = None
        self.new_raw = ""
        self.ancestors: set = set()
        self.history_excludes: list[tuple] = []
        self.fail_history = False
        self.fail_branches = False
        self.fail_ancestry = False
        self.calls: dict[str, int] = {}

    def _count(self, name: str) -> None:
        self.calls[name] = self.calls.get(name, 0) + 1

    @property
    def repo_id(self) -> str:
        return "fake-repo"

    def read_history(self, all_branches: bool = True, max_count: Optional[int] = None, exclude=()) -> str:
        self._count("read_history")
        self.history_excludes.append(tuple(exclude))
        if self.fail_history:
            raise HistoryQueryError("boom", command=["git", "log"], returncode=128)
        return self.new_raw if exclude else self.raw

    def branch_tips(self) -> dict:
        self._count("branch_tips")
        if self.tips is not None:
            return dict(self.tips)
        decorated = build_commit_graph(self.raw).heads
        return {name: decorated.get(name, f"{name}-tip") for name in self.branches}

    def is_ancestor(self, ancestor: str, descendant: str) -> bool:
        self._count("is_ancestor")
        if self.fail_ancestry:
            raise HistoryQueryError("bad object", command=["git", "merge-base"], returncode=128)
        return (ancestor, descendant) in self.ancestors

    def list_branches(self) -> BranchSummary:
        self._count("list_branches")
        if self.fail_branches:
            raise HistoryQueryError("no branches")
        return BranchSummary(all=self.branches, current=self.current)

    def head_hash(self) -> Optional[str]:
        self._count("head_hash")
        return self.head

    def status(self) -> list:
        self._count("status")
        return [StatusEntry(code=" M", path="README.md")]

    def remotes(self) -> list:
        self._count("remotes")
        return [RemoteInfo(name="origin", fetch_url="git@example.com:r.git")]

    def tags(self) -> list:
        self._count("tags")
        return [TagInfo(name="v1", commit="c1")]

    def log(self, max_count: int = 50) -> list:
        self._count("log")
        return [LogEntry(hash="c1", timestamp=1, author="a@example.com", subject="init")][:max_count]


@pytest.fixture
def clock():
    return FakeClock()


# Merge scenario: feature forked from C1, merged back into main at C3
MERGE_LOG = history(
    record("c3", "c1 c2", "HEAD -> refs/heads/main", 300),
    record("c2", "c1", "refs/heads/feature", 200),
    record("c1", "", "", 100),
)


@pytest.fixture
def merge_log():
    return MERGE_LOG


# ---------------------------------------------------------------------------
# Real git repositories
# ---------------------------------------------------------------------------

requires_git = pytest.mark.skipif(shutil.which("git") is None, reason="git not installed")


def git(repo, *args: str, env: Optional[dict] = None) -> str:
    result = subprocess.run(
        ["git", "-C", str(repo), *args],
        capture_output=True,
        text=True,
        env=env,
    )
    if result.returncode != 0:
        raise RuntimeError(f"git error: {result.stderr.strip()}")
    return result.stdout.strip()


def dated(ts: int) -> dict:
    """Environment pinning author and committer dates."""
    env = dict(os.environ)
    env["GIT_AUTHOR_DATE"] = env["GIT_COMMITTER_DATE"] = f"@{ts} +0000"
    return env


def commit_file(repo, name: str, message: str, ts: int = 1700000000) -> str:
    (repo / name).write_text(message + "\n")
    git(repo, "add", name)
    git(repo, "commit", "-q", "-m", message, env=dated(ts))
    return git(repo, "rev-parse", "HEAD")


@pytest.fixture
def git_repo(tmp_path):
    """Repository with main, a feature branch merged back with --no-ff, and a topic branch.

    main:    A --- B --- M
               \\       /
    feature:    F1 ----
    topic branches from B with one commit T1.

    Commit dates increase in creation order A, F1, B, T1, M so the
    history order is deterministic.
    """
    repo = tmp_path / "repo"
    repo.mkdir()
    git(repo, "init", "-q")
    git(repo, "symbolic-ref", "HEAD", "refs/heads/main")
    git(repo, "config", "user.email", "test@example.com")
    git(repo, "config", "user.name", "Test")
    git(repo, "config", "commit.gpgsign", "false")

    commit_file(repo, "a.txt", "A", 1700000000)
    git(repo, "checkout", "-q", "-b", "feature")
    commit_file(repo, "f1.txt", "F1", 1700000100)
    git(repo, "checkout", "-q", "main")
    commit_file(repo, "b.txt", "B", 1700000200)
    git(repo, "checkout", "-q", "-b", "topic")
    commit_file(repo, "t1.txt", "T1", 1700000300)
    git(repo, "checkout", "-q", "main")
    git(repo, "merge", "-q", "--no-ff", "-m", "Merge feature", "feature", env=dated(1700000400))
    return repo

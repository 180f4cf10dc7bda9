"""Repository queries via the git command line."""

from __future__ import annotations

import subprocess
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Optional, Sequence

from ..exceptions import GitNotFoundError, HistoryQueryError
from ..logging_config import get_logger
from .models import BranchSummary, LogEntry, RemoteInfo, StatusEntry, TagInfo
from .parser import LOG_FORMAT

logger = get_logger(__name__)


class RepositorySource(ABC):
    """Upstream collaborator answering the repository queries.

    ``read_history`` must return one record per commit in the format
    understood by :mod:`branchscope.history.parser`, topologically ordered
    with date as tiebreak. Every method raises HistoryQueryError on failure.
    """

    @property
    @abstractmethod
    def repo_id(self) -> str:
        """Stable identifier used to key persisted data."""

    @abstractmethod
    def read_history(
        self,
        all_branches: bool = True,
        max_count: Optional[int] = None,
        exclude: Sequence[str] = (),
    ) -> str:
        """History records, leaving out commits reachable from ``exclude``."""

    @abstractmethod
    def list_branches(self) -> BranchSummary:
        ...

    @abstractmethod
    def head_hash(self) -> Optional[str]:
        """Hash of HEAD, or None for an unborn branch."""

    @abstractmethod
    def branch_tips(self) -> dict[str, str]:
        """Local branch name -> commit hash."""

    @abstractmethod
    def is_ancestor(self, ancestor: str, descendant: str) -> bool:
        ...

    @abstractmethod
    def status(self) -> list[StatusEntry]:
        ...

    @abstractmethod
    def remotes(self) -> list[RemoteInfo]:
        ...

    @abstractmethod
    def tags(self) -> list[TagInfo]:
        ...

    @abstractmethod
    def log(self, max_count: int = 50) -> list[LogEntry]:
        ...


class GitRepository(RepositorySource):
    """RepositorySource backed by ``git`` subprocesses."""

    def __init__(self, repo_path: str, git_executable: str = "git", timeout: int = 30):
        self.repo_path = str(Path(repo_path).resolve())
        self.git_executable = git_executable
        self.timeout = timeout

    @property
    def repo_id(self) -> str:
        return self.repo_path

    def _run(self, *args: str) -> str:
        cmd = [self.git_executable, "-C", self.repo_path, *args]
        try:
            result = subprocess.run(
                cmd,
                capture_output=True,
                text=True,
                encoding="utf-8",
                errors="replace",
                timeout=self.timeout,
            )
        except FileNotFoundError:
            raise GitNotFoundError(self.git_executable)
        except subprocess.TimeoutExpired:
            raise HistoryQueryError(f"timed out after {self.timeout}s", command=cmd)

        if result.returncode != 0:
            raise HistoryQueryError(
                result.stderr.strip() or "git exited with an error",
                command=cmd,
                returncode=result.returncode,
            )
        return result.stdout

    def is_repository(self) -> bool:
        try:
            self._run("rev-parse", "--git-dir")
        except HistoryQueryError:
            return False
        return True

    def read_history(
        self,
        all_branches: bool = True,
        max_count: Optional[int] = None,
        exclude: Sequence[str] = (),
    ) -> str:
        args = ["log"]
        if all_branches:
            args.append("--all")
        else:
            args.append("HEAD")
        if exclude:
            args.extend(["--not", *exclude])
        if max_count:
            args.append(f"--max-count={max_count}")
        args.extend(["--topo-order", "--date-order", f"--format={LOG_FORMAT}", "--decorate=full"])
        try:
            return self._run(*args)
        except HistoryQueryError as e:
            # An empty repository has no history, which is not a failure
            if "does not have any commits" in e.reason:
                return ""
            raise

    def list_branches(self) -> BranchSummary:
        out = self._run("for-each-ref", "--format=%(refname:short)", "refs/heads/")
        names = tuple(line.strip() for line in out.splitlines() if line.strip())
        return BranchSummary(all=names, current=self.current_branch())

    def current_branch(self) -> Optional[str]:
        try:
            name = self._run("symbolic-ref", "--quiet", "--short", "HEAD").strip()
        except HistoryQueryError:
            # Detached HEAD
            return None
        return name or None

    def head_hash(self) -> Optional[str]:
        try:
            return self._run("rev-parse", "--verify", "--quiet", "HEAD").strip() or None
        except HistoryQueryError:
            return None

    def branch_tips(self) -> dict[str, str]:
        out = self._run("for-each-ref", "--format=%(refname:short)%00%(objectname)", "refs/heads/")
        tips = {}
        for line in out.splitlines():
            name, _, commit = line.partition("\x00")
            if name and commit:
                tips[name] = commit.strip()
        return tips

    def is_ancestor(self, ancestor: str, descendant: str) -> bool:
        try:
            self._run("merge-base", "--is-ancestor", ancestor, descendant)
        except HistoryQueryError as e:
            # Exit status 1 means "not an ancestor"; anything else is a failure
            if e.returncode == 1:
                return False
            raise
        return True

    def status(self) -> list[StatusEntry]:
        out = self._run("status", "--porcelain=v1", "--untracked-files=all")
        entries = []
        for line in out.splitlines():
            if len(line) < 4:
                continue
            entries.append(StatusEntry(code=line[:2], path=line[3:]))
        return entries

    def remotes(self) -> list[RemoteInfo]:
        out = self._run("remote", "-v")
        fetch: dict[str, Optional[str]] = {}
        push: dict[str, Optional[str]] = {}
        for line in out.splitlines():
            parts = line.split()
            if len(parts) < 3:
                continue
            name, url, kind = parts[0], parts[1], parts[2]
            fetch.setdefault(name, None)
            if kind == "(fetch)":
                fetch[name] = url
            elif kind == "(push)":
                push[name] = url
        return [RemoteInfo(name=n, fetch_url=fetch[n], push_url=push.get(n)) for n in fetch]

    def tags(self) -> list[TagInfo]:
        out = self._run(
            "for-each-ref",
            "refs/tags",
            "--sort=-creatordate",
            "--format=%(refname:short)%00%(objectname)%00%(*objectname)%00%(objecttype)"
            "%00%(contents:subject)%00%(creatordate:iso)",
        )
        tags = []
        for line in out.splitlines():
            parts = line.split("\x00")
            if len(parts) < 6:
                continue
            name, obj, peeled, obj_type, subject, date = (p.strip() for p in parts[:6])
            if not name or not obj:
                continue
            annotated = obj_type == "tag"
            tags.append(
                TagInfo(
                    name=name,
                    commit=peeled or obj,
                    message=subject if annotated and subject else None,
                    date=date or None,
                )
            )
        return tags

    def log(self, max_count: int = 50) -> list[LogEntry]:
        out = self._run("log", f"-n{max_count}", "--format=%H%x00%at%x00%ae%x00%s")
        entries = []
        for line in out.splitlines():
            parts = line.split("\x00", 3)
            if len(parts) < 4:
                continue
            try:
                ts = int(parts[1])
            except ValueError:
                logger.debug(f"Skipping log line with bad timestamp: {parts[0][:12]}")
                continue
            entries.append(LogEntry(hash=parts[0], timestamp=ts, author=parts[2], subject=parts[3]))
        return entries

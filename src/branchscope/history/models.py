"""Data models for repository queries other than the history log."""

from dataclasses import dataclass
from typing import Optional


@dataclass(frozen=True)
class BranchSummary:
    all: tuple[str, ...]  # local branch names
    current: Optional[str]  # None when HEAD is detached or unborn


@dataclass(frozen=True)
class StatusEntry:
    code: str  # two-letter porcelain code, e.g. " M", "??"
    path: str


@dataclass(frozen=True)
class RemoteInfo:
    name: str
    fetch_url: Optional[str] = None
    push_url: Optional[str] = None


@dataclass(frozen=True)
class TagInfo:
    name: str
    commit: str
    message: Optional[str] = None  # only for annotated tags
    date: Optional[str] = None


@dataclass(frozen=True)
class LogEntry:
    hash: str
    timestamp: int  # unix seconds
    author: str
    subject: str

"""Repository history access: the git adapter and the log record parser."""

from .models import BranchSummary, LogEntry, RemoteInfo, StatusEntry, TagInfo
from .parser import HistoryRecord, parse_record
from .source import GitRepository, RepositorySource

__all__ = [
    "BranchSummary",
    "GitRepository",
    "HistoryRecord",
    "LogEntry",
    "RemoteInfo",
    "RepositorySource",
    "StatusEntry",
    "TagInfo",
    "parse_record",
]

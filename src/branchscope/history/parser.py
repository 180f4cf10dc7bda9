"""Parser for the NUL-separated history records produced by ``git log``.

Each record is one line::

    <full hash>\\0<parent hashes, space separated>\\0<decorations, comma separated>\\0<epoch seconds>

Malformed records are not errors: truncated or shallow history is expected,
so the parser reports them as ``None`` and the caller skips them.
"""

from __future__ import annotations

import time
from dataclasses import dataclass
from typing import Callable, Iterator, Optional

FIELD_SEPARATOR = "\x00"
LOCAL_BRANCH_PREFIX = "refs/heads/"
HEAD_POINTER_PREFIX = "HEAD -> "
TAG_PREFIX = "tag: "

# %D with --decorate=full, so the refs/heads/ filter sees fully qualified names
LOG_FORMAT = "%H%x00%P%x00%D%x00%ct"


@dataclass(frozen=True)
class HistoryRecord:
    """One parsed line of history output."""

    hash: str
    parents: tuple[str, ...]
    branches: tuple[str, ...]
    timestamp: int
    head_branch: Optional[str] = None


@dataclass(frozen=True)
class Decorations:
    branches: tuple[str, ...]
    head_branch: Optional[str] = None


def parse_parents(text: str) -> tuple[str, ...]:
    """Split a parent list on whitespace. Empty input means a root commit."""
    return tuple(text.split())


def parse_decorations(text: str) -> Decorations:
    """Extract local branch names from a ``%D`` decoration list.

    ``HEAD -> refs/heads/main`` yields ``main`` and marks it as the HEAD
    branch. Tags, remote-tracking refs and a detached ``HEAD`` are dropped.
    Order is preserved and duplicates removed.
    """
    branches: dict[str, None] = {}
    head_branch = None

    for raw in text.split(","):
        ref = raw.strip()
        if not ref or ref.startswith(TAG_PREFIX):
            continue

        points_at_head = ref.startswith(HEAD_POINTER_PREFIX)
        if points_at_head:
            ref = ref[len(HEAD_POINTER_PREFIX):].strip()

        if not ref.startswith(LOCAL_BRANCH_PREFIX):
            continue
        name = ref[len(LOCAL_BRANCH_PREFIX):]
        if not name:
            continue

        branches[name] = None
        if points_at_head and head_branch is None:
            head_branch = name

    return Decorations(branches=tuple(branches), head_branch=head_branch)


def parse_timestamp(text: str, clock: Callable[[], float] = time.time) -> int:
    """Parse integer epoch seconds; fall back to the current instant."""
    try:
        return int(text.strip())
    except ValueError:
        return int(clock())


def parse_record(line: str, clock: Callable[[], float] = time.time) -> Optional[HistoryRecord]:
    """Parse a single history line.

    Returns None for records with fewer than four fields or an empty hash.
    Extra trailing fields are ignored.
    """
    parts = line.split(FIELD_SEPARATOR)
    if len(parts) < 4:
        return None

    commit_hash = parts[0].strip()
    if not commit_hash:
        return None

    decorations = parse_decorations(parts[2])
    return HistoryRecord(
        hash=commit_hash,
        parents=parse_parents(parts[1]),
        branches=decorations.branches,
        timestamp=parse_timestamp(parts[3], clock),
        head_branch=decorations.head_branch,
    )


def iter_lines(raw: str) -> Iterator[str]:
    """Yield the non-blank lines of raw history output."""
    for line in raw.split("\n"):
        line = line.strip("\r")
        if line.strip():
            yield line

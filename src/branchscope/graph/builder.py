"""Commit graph construction from history records.

The builder only assembles nodes and branch membership. It performs no merge
classification, so it can be exercised against a hand-written log without a
repository behind it.
"""

from __future__ import annotations

import time
from typing import Callable, Iterable, Optional

from ..history.parser import HistoryRecord, iter_lines, parse_record
from ..logging_config import get_logger
from .models import CommitGraph, CommitNode

logger = get_logger(__name__)


class _PendingNode:
    __slots__ = ("hash", "parents", "branches", "timestamp")

    def __init__(self, record: HistoryRecord):
        self.hash = record.hash
        self.parents = record.parents
        self.branches: dict[str, None] = {}
        self.timestamp = record.timestamp

    def add_branches(self, names: Iterable[str]) -> None:
        for name in names:
            self.branches[name] = None

    def freeze(self) -> CommitNode:
        return CommitNode(
            hash=self.hash,
            parents=self.parents,
            branches=tuple(self.branches),
            timestamp=self.timestamp,
        )


class GraphBuilder:
    """Single-use builder for one pass over history output.

    Records must arrive children-first (``--topo-order``). Branch membership
    is the commit's own decorations plus whatever it inherits from the first
    child that names it as mainline parent; merged-in parents inherit nothing
    from the merge commit. Membership only ever grows during the pass.

    Usage:
        builder = GraphBuilder(max_commits=800)
        builder.feed(raw_log_output)
        graph = builder.build()
    """

    def __init__(self, max_commits: Optional[int] = None, clock: Callable[[], float] = time.time):
        self.max_commits = max_commits
        self._clock = clock
        self._nodes: dict[str, _PendingNode] = {}
        self._heads: dict[str, str] = {}
        self._inherited: dict[str, list[str]] = {}  # mainline parent -> branches
        self._claimed: set[str] = set()
        self._head_branch: Optional[str] = None
        self._skipped = 0
        self._truncated = 0

    def feed(self, raw: str) -> "GraphBuilder":
        """Parse and add every line of raw history output."""
        for line in iter_lines(raw):
            self.add_line(line)
        return self

    def add_line(self, line: str) -> bool:
        """Parse and add one line. Returns False if the line was skipped."""
        record = parse_record(line, self._clock)
        if record is None:
            self._skipped += 1
            logger.debug(f"Skipping malformed history record: {line[:60]!r}")
            return False
        return self.add_record(record)

    def add_record(self, record: HistoryRecord) -> bool:
        node = self._nodes.get(record.hash)

        if node is None:
            if self.max_commits is not None and len(self._nodes) >= self.max_commits:
                self._truncated += 1
                return False
            node = _PendingNode(record)
            self._nodes[record.hash] = node
            node.add_branches(record.branches)
            node.add_branches(self._inherited.pop(record.hash, ()))
        else:
            node.add_branches(record.branches)

        for name in record.branches:
            # Topological walk from the tips: first sighting is the head
            self._heads.setdefault(name, record.hash)

        if record.head_branch and self._head_branch is None:
            self._head_branch = record.head_branch

        self._propagate(node)
        return True

    def _propagate(self, node: _PendingNode) -> None:
        if not node.parents or not node.branches:
            return

        mainline = node.parents[0]
        if mainline in self._claimed:
            return
        self._claimed.add(mainline)

        parent = self._nodes.get(mainline)
        if parent is not None:
            # Parent arrived before its child; input was not topological
            parent.add_branches(node.branches)
        else:
            self._inherited[mainline] = list(node.branches)

    def build(self) -> CommitGraph:
        """Freeze the accumulated state into an immutable CommitGraph."""
        graph = CommitGraph(
            nodes={h: n.freeze() for h, n in self._nodes.items()},
            heads=dict(self._heads),
            head_branch=self._head_branch,
            skipped_records=self._skipped,
            truncated_records=self._truncated,
        )
        logger.debug(
            f"Built commit graph: {len(graph)} commits, {len(graph.heads)} branches, "
            f"{self._skipped} skipped, {self._truncated} truncated"
        )
        return graph


def build_commit_graph(
    raw: str,
    max_commits: Optional[int] = None,
    clock: Callable[[], float] = time.time,
) -> CommitGraph:
    """Build a CommitGraph from raw ``git log`` output in one call."""
    return GraphBuilder(max_commits=max_commits, clock=clock).feed(raw).build()

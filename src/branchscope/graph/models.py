"""Commit graph data models.

A CommitGraph is the immutable result of one builder pass. Edges are never
stored; they are derived from each node's parent list on demand.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Iterator, Mapping, Optional


@dataclass(frozen=True)
class CommitNode:
    """A commit in the history DAG.

    Parent order is exactly as reported by git: index 0 is the mainline
    parent, index 1 the incoming side of a two-parent merge.
    """

    hash: str
    parents: tuple[str, ...]
    branches: tuple[str, ...]  # membership, ordered, no duplicates
    timestamp: int  # unix seconds

    @property
    def is_merge(self) -> bool:
        return len(self.parents) >= 2

    def on_branch(self, name: str) -> bool:
        return name in self.branches

    def to_dict(self) -> dict:
        return {
            "hash": self.hash,
            "parents": list(self.parents),
            "branches": list(self.branches),
            "timestamp": self.timestamp,
            "isMerge": self.is_merge,
        }


@dataclass(frozen=True)
class Edge:
    """Parent -> child link."""

    source: str
    target: str

    def to_dict(self) -> dict:
        return {"source": self.source, "target": self.target}


@dataclass(frozen=True)
class CommitGraph:
    """Result of a graph build: nodes keyed by hash plus branch heads.

    Iteration yields nodes in input (topological) order.
    """

    nodes: Mapping[str, CommitNode] = field(default_factory=dict)
    heads: Mapping[str, str] = field(default_factory=dict)  # branch -> tip hash
    head_branch: Optional[str] = None  # branch HEAD points at, if decorated
    skipped_records: int = 0
    truncated_records: int = 0

    def __post_init__(self) -> None:
        object.__setattr__(self, "nodes", MappingProxyType(dict(self.nodes)))
        object.__setattr__(self, "heads", MappingProxyType(dict(self.heads)))

    def __len__(self) -> int:
        return len(self.nodes)

    def __iter__(self) -> Iterator[CommitNode]:
        return iter(self.nodes.values())

    def __contains__(self, commit_hash: object) -> bool:
        return commit_hash in self.nodes

    def get(self, commit_hash: str) -> Optional[CommitNode]:
        return self.nodes.get(commit_hash)

    @property
    def branch_names(self) -> list[str]:
        """Branches seen in decorations, in first-seen order."""
        return list(self.heads)

    def known_branches(self) -> list[str]:
        """Decorated branches plus any branch in a membership set."""
        names = dict.fromkeys(self.heads)
        for node in self:
            names.update(dict.fromkeys(node.branches))
        return list(names)

    def edges(self) -> list[Edge]:
        """One edge per parent link, including parents outside the graph."""
        return [Edge(source=parent, target=node.hash) for node in self for parent in node.parents]

    def merge_commits(self) -> list[CommitNode]:
        return [node for node in self if node.is_merge]

    def missing_parents(self) -> set[str]:
        """Parent hashes referenced but not present (truncated history)."""
        return {p for node in self for p in node.parents if p not in self.nodes}

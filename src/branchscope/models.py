"""Branch graph result exposed to callers."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Optional

from .graph.models import CommitNode, Edge
from .merges.models import MergeRelationship


@dataclass(frozen=True)
class BranchGraph:
    """Branches, consolidated merges and the commit DAG of one build.

    ``available`` is False when the build failed and the structure was
    filled with defaults. Treat that as "unknown", never as "no merges".
    """

    branches: tuple[str, ...] = ()
    merges: tuple[MergeRelationship, ...] = ()
    current_branch: Optional[str] = None
    nodes: tuple[CommitNode, ...] = ()
    links: tuple[Edge, ...] = ()
    available: bool = True
    head: Optional[str] = None  # HEAD hash at build time
    tips: tuple[tuple[str, str], ...] = ()  # (branch, commit) at build time
    built_at: float = field(default=0.0, compare=False)

    @classmethod
    def unavailable(
        cls, branches: tuple[str, ...] = (), current_branch: Optional[str] = None
    ) -> "BranchGraph":
        return cls(branches=tuple(branches), current_branch=current_branch, available=False)

    def tip_map(self) -> dict[str, str]:
        return dict(self.tips)

    def merges_between(self, from_branch: str, to_branch: str) -> list[MergeRelationship]:
        return [m for m in self.merges if m.pair == (from_branch, to_branch)]

    def to_dict(self) -> dict[str, Any]:
        return {
            "branches": list(self.branches),
            "merges": [m.to_dict() for m in self.merges],
            "currentBranch": self.current_branch,
            "dag": {
                "nodes": [n.to_dict() for n in self.nodes],
                "links": [link.to_dict() for link in self.links],
            },
            "available": self.available,
        }

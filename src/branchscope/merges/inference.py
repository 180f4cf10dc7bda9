"""Merge relationship inference over a built commit graph.

For every two-parent commit, a classifier decides whether it joins two
known branches and which side is the target. The default classifier is a
best-effort set-algebra heuristic over branch membership, not a merge-base
computation; it sits behind MergeClassifier so another heuristic can replace
it without touching the builder.

Structural results are then reconciled with the merge ledger: a ledger entry
only fills in a (from, to) pair inference did not find.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Collection, Optional

from ..graph.models import CommitGraph, CommitNode, Edge
from ..logging_config import get_logger
from .ledger import MergeLedger
from .models import MergeKind, MergeRelationship, describe_merge

logger = get_logger(__name__)


class MergeClassifier(ABC):
    """Decides the (from, to) branches of a merge commit."""

    @abstractmethod
    def classify(
        self,
        commit: CommitNode,
        graph: CommitGraph,
        current_branch: Optional[str] = None,
    ) -> Optional[tuple[str, str]]:
        """Return ``(from_branch, to_branch)`` or None to skip the commit."""


class SetAlgebraClassifier(MergeClassifier):
    """Classify by comparing the branch sets of a merge and its two parents.

    With C the merge commit, P0 its mainline parent and P1 the incoming one:

    - ``to`` candidates: branches on C and P0 but not on P1
    - ``from`` candidates: branches on P1 but not P0, then branches on all
      three that were not already picked as ``to``

    Only the first two parents are examined; octopus merges are skipped.
    Missing parents (history truncated by the query window) are never
    guessed at.
    """

    def classify(
        self,
        commit: CommitNode,
        graph: CommitGraph,
        current_branch: Optional[str] = None,
    ) -> Optional[tuple[str, str]]:
        if len(commit.parents) != 2:
            return None

        mainline = graph.get(commit.parents[0])
        incoming = graph.get(commit.parents[1])
        if mainline is None or incoming is None:
            return None

        on_commit = set(commit.branches)
        on_mainline = set(mainline.branches)
        on_incoming = set(incoming.branches)

        to_candidates = [
            b for b in commit.branches if b in on_mainline and b not in on_incoming
        ]
        from_candidates = [
            b
            for b in incoming.branches
            if b not in on_mainline or (b in on_commit and b not in to_candidates)
        ]
        if not to_candidates or not from_candidates:
            return None

        to_branch = current_branch if current_branch in to_candidates else to_candidates[0]
        from_branch = from_candidates[0]
        if from_branch == to_branch:
            return None
        return from_branch, to_branch


@dataclass
class InferenceResult:
    """Consolidated merges plus the DAG projection of the graph."""

    merges: list[MergeRelationship] = field(default_factory=list)
    nodes: list[CommitNode] = field(default_factory=list)
    links: list[Edge] = field(default_factory=list)
    skipped_commits: int = 0


class MergeInferenceEngine:
    """Scan merge commits, classify them, and fold in ledger entries."""

    def __init__(
        self,
        ledger: Optional[MergeLedger] = None,
        classifier: Optional[MergeClassifier] = None,
    ):
        self.ledger = ledger
        self.classifier = classifier or SetAlgebraClassifier()

    def infer_structural(
        self, graph: CommitGraph, current_branch: Optional[str] = None
    ) -> tuple[list[MergeRelationship], int]:
        """Classify merge commits in input order; first (from, to) pair wins.

        Returns:
            (relationships, number of merge commits skipped)
        """
        merges: list[MergeRelationship] = []
        seen: set[tuple[str, str]] = set()
        skipped = 0

        for node in graph:
            if not node.is_merge:
                continue
            try:
                pair = self.classifier.classify(node, graph, current_branch)
            except Exception as e:
                logger.warning(f"Merge classifier failed on {node.hash[:12]}: {e}")
                pair = None
            if pair is None:
                skipped += 1
                logger.debug(f"No two-branch merge inferred for {node.hash[:12]}")
                continue
            if pair in seen:
                continue
            seen.add(pair)
            from_branch, to_branch = pair
            merges.append(
                MergeRelationship(
                    from_branch=from_branch,
                    to_branch=to_branch,
                    commit=node.hash,
                    kind=MergeKind.THREE_WAY,
                    description=describe_merge(from_branch, to_branch, MergeKind.THREE_WAY),
                    timestamp=node.timestamp,
                )
            )
        return merges, skipped

    def reconcile(
        self,
        merges: list[MergeRelationship],
        existing_branches: Collection[str],
    ) -> list[MergeRelationship]:
        """Append ledger merges for pairs not already present.

        Only three-way merges between currently existing branches are
        returned; structural results are never overwritten.
        """
        existing = set(existing_branches)
        result = [
            m
            for m in merges
            if m.kind is MergeKind.THREE_WAY
            and m.from_branch in existing
            and m.to_branch in existing
        ]
        if self.ledger is None:
            return result

        present = {m.pair for m in result}
        for entry in self.ledger.consolidatable(existing):
            if entry.pair in present:
                continue
            present.add(entry.pair)
            result.append(entry.to_relationship())
        return result

    def infer(
        self,
        graph: CommitGraph,
        existing_branches: Optional[Collection[str]] = None,
        current_branch: Optional[str] = None,
    ) -> InferenceResult:
        """Run structural inference, ledger reconciliation and projection.

        Args:
            graph: Built commit graph
            existing_branches: Branches that currently exist; defaults to
                every branch named anywhere in the graph
            current_branch: Checked-out branch, preferred as merge target
        """
        if existing_branches is None:
            existing_branches = graph.known_branches()
        structural, skipped = self.infer_structural(graph, current_branch)
        merges = self.reconcile(structural, existing_branches)
        nodes, links = project(graph)
        return InferenceResult(merges=merges, nodes=nodes, links=links, skipped_commits=skipped)


def project(graph: CommitGraph) -> tuple[list[CommitNode], list[Edge]]:
    """DAG projection: nodes in input order and one link per parent."""
    return list(graph), graph.edges()

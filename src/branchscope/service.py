"""Repository service: cached repository queries and the branch graph.

Every expensive query goes through one TTL cache, each under its own key
and TTL. Commands that change the repository live elsewhere; after running
they call ``record_merge`` or ``invalidate`` here so stale answers are
dropped.
"""

from __future__ import annotations

import time
from typing import Callable, Optional, TypeVar

from .cache import SingleFlight, TTLCache
from .config import BranchScopeConfig, default_config
from .exceptions import HistoryQueryError
from .graph.builder import GraphBuilder
from .graph.models import CommitGraph
from .history.models import BranchSummary, LogEntry, RemoteInfo, StatusEntry, TagInfo
from .history.parser import HistoryRecord
from .history.source import RepositorySource
from .logging_config import get_logger
from .merges.inference import MergeInferenceEngine
from .merges.ledger import MergeLedger
from .merges.models import LedgerEntry, MergeKind
from .models import BranchGraph
from .snapshot import SnapshotStore, ref_state

logger = get_logger(__name__)

T = TypeVar("T")

STATUS_KEY = "status"
BRANCHES_KEY = "branches"
REMOTES_KEY = "remotes"
TAGS_KEY = "tags"
LOG_KEY = "log"
BRANCH_GRAPH_KEY = "branch_graph"

# Stored graphs examined as incremental bases, newest first
INCREMENTAL_CANDIDATES = 10
# Bases this close to max_commits are rebuilt in full
INCREMENTAL_FILL_LIMIT = 0.9


class RepositoryService:
    """Front door for graph builds and cached repository queries.

    Args:
        source: Answers the raw repository queries
        config: TTLs, commit limit and related settings
        ledger: Merge ledger consulted during inference
        snapshots: Optional persisted snapshot store
        cache: TTL cache (created from config if omitted)
        engine: Inference engine (created around ``ledger`` if omitted)
        clock: Wall clock for build timestamps and record parsing
    """

    def __init__(
        self,
        source: RepositorySource,
        config: Optional[BranchScopeConfig] = None,
        ledger: Optional[MergeLedger] = None,
        snapshots: Optional[SnapshotStore] = None,
        cache: Optional[TTLCache] = None,
        engine: Optional[MergeInferenceEngine] = None,
        clock: Callable[[], float] = time.time,
    ):
        self.source = source
        self.config = config or default_config
        self.ledger = ledger if ledger is not None else MergeLedger(max_entries=self.config.ledger_max_entries)
        self.snapshots = snapshots
        self.cache = cache or TTLCache(max_entries=self.config.cache_max_entries)
        self.engine = engine or MergeInferenceEngine(ledger=self.ledger)
        self._clock = clock
        self._flight = SingleFlight() if self.config.coalesce_requests else None

    # -- cache plumbing --

    def _cached(self, key: str, ttl: float, compute: Callable[[], T], force_refresh: bool = False) -> T:
        if self._flight is None:
            return self.cache.get_or_compute(key, ttl, compute, force_refresh)
        return self._flight.do(
            (key, force_refresh),
            lambda: self.cache.get_or_compute(key, ttl, compute, force_refresh),
        )

    def invalidate(self, selector: Optional[str] = None) -> int:
        """Drop cached entries whose key contains ``selector`` (all if None)."""
        removed = self.cache.invalidate(selector)
        logger.debug(f"Invalidated {removed} cache entries (selector={selector!r})")
        return removed

    def invalidate_all(self) -> None:
        self.cache.invalidate()

    # -- cached repository queries --

    def get_status(self, force_refresh: bool = False) -> list[StatusEntry]:
        return self._cached(STATUS_KEY, self.config.ttl.status, self.source.status, force_refresh)

    def get_branches(self, force_refresh: bool = False) -> BranchSummary:
        return self._cached(BRANCHES_KEY, self.config.ttl.branches, self.source.list_branches, force_refresh)

    def get_remotes(self, force_refresh: bool = False) -> list[RemoteInfo]:
        return self._cached(REMOTES_KEY, self.config.ttl.remotes, self.source.remotes, force_refresh)

    def get_tags(self, force_refresh: bool = False) -> list[TagInfo]:
        return self._cached(TAGS_KEY, self.config.ttl.tags, self.source.tags, force_refresh)

    def get_log(self, max_count: int = 50, force_refresh: bool = False) -> list[LogEntry]:
        return self._cached(
            f"{LOG_KEY}:{max_count}:all",
            self.config.ttl.log,
            lambda: self.source.log(max_count),
            force_refresh,
        )

    # -- branch graph --

    def build_branch_graph(self, force_refresh: bool = False) -> BranchGraph:
        """Return the branch graph, building it if no fresh copy exists.

        Lookup order: in-memory cache, persisted snapshot for the current ref
        state, incremental extension of a recent snapshot, full build.
        ``force_refresh`` goes straight to the full build for this call and
        repopulates the caches.

        A failed history query yields ``BranchGraph.unavailable`` carrying
        whatever branch list is known. That result is not cached.
        """
        if not force_refresh:
            cached = self.cache.get(BRANCH_GRAPH_KEY)
            if cached is not None:
                return cached

        if self._flight is None:
            return self._load_or_build(force_refresh)
        return self._flight.do((BRANCH_GRAPH_KEY, force_refresh), lambda: self._load_or_build(force_refresh))

    def _current_refs(self) -> tuple[Optional[str], dict[str, str]]:
        try:
            head = self.source.head_hash()
            tips = self.source.branch_tips() if head else {}
        except HistoryQueryError as e:
            logger.debug(f"Could not read refs: {e}")
            return None, {}
        return head, tips

    def _load_or_build(self, force_refresh: bool) -> BranchGraph:
        head, tips = self._current_refs()
        state = ref_state(head, tips) if head else None
        persist = state is not None and self.snapshots is not None

        if persist and not force_refresh:
            persisted = self.snapshots.load(self.source.repo_id, state)
            if persisted is not None:
                self.cache.set(BRANCH_GRAPH_KEY, persisted, self.config.ttl.branch_graph)
                return persisted

        try:
            graph = None
            if persist and not force_refresh and self.config.incremental_builds:
                try:
                    graph = self._build_incremental(head, tips)
                except HistoryQueryError as e:
                    logger.debug(f"Incremental build failed, rebuilding in full: {e}")
            if graph is None:
                graph = self.compute_branch_graph(head, tips)
        except HistoryQueryError as e:
            logger.warning(f"Branch graph unavailable: {e}")
            return self._unavailable()

        self.cache.set(BRANCH_GRAPH_KEY, graph, self.config.ttl.branch_graph)
        if persist:
            self.snapshots.save(self.source.repo_id, state, graph)
        return graph

    def compute_branch_graph(
        self, head: Optional[str] = None, tips: Optional[dict[str, str]] = None
    ) -> BranchGraph:
        """Run the full pipeline, bypassing the graph cache and snapshots.

        Raises:
            HistoryQueryError: If the history or branch query fails
        """
        raw = self.source.read_history(all_branches=True, max_count=self.config.max_commits)
        summary = self.get_branches(force_refresh=True)

        builder = GraphBuilder(max_commits=self.config.max_commits, clock=self._clock)
        return self._assemble(builder.feed(raw).build(), summary, head, tips)

    def _build_incremental(self, head: str, tips: dict[str, str]) -> Optional[BranchGraph]:
        """Extend a recent snapshot whose branches have only moved forward.

        Returns None when no stored graph qualifies; the caller then does a
        full build.
        """
        for base in self.snapshots.recent(self.source.repo_id, INCREMENTAL_CANDIDATES):
            if self._can_extend(base, head, tips):
                logger.debug(f"Extending snapshot built at {(base.head or '')[:12]}")
                return self._extend(base, head, tips)
        return None

    def _can_extend(self, base: BranchGraph, head: str, tips: dict[str, str]) -> bool:
        if not base.available or not base.tips or not base.nodes:
            return False
        if len(base.nodes) >= self.config.max_commits * INCREMENTAL_FILL_LIMIT:
            return False
        # A detached HEAD off every branch would leave unreachable commits behind
        if base.current_branch is None and base.head != head:
            return False
        for name, old_tip in base.tips:
            new_tip = tips.get(name)
            if new_tip is None:
                return False
            if new_tip != old_tip and not self.source.is_ancestor(old_tip, new_tip):
                return False
        return True

    def _extend(self, base: BranchGraph, head: str, tips: dict[str, str]) -> BranchGraph:
        exclude = sorted(set(base.tip_map().values()))
        raw = self.source.read_history(
            all_branches=True, max_count=self.config.max_commits, exclude=exclude
        )
        summary = self.get_branches(force_refresh=True)
        current = summary.current

        at_commit: dict[str, list[str]] = {}
        for name in sorted(tips, key=lambda n: (n != current, n)):
            at_commit.setdefault(tips[name], []).append(name)

        builder = GraphBuilder(max_commits=self.config.max_commits, clock=self._clock)
        builder.feed(raw)
        # Stored membership is stale; decorations come from today's tips
        for node in base.nodes:
            builder.add_record(
                HistoryRecord(
                    hash=node.hash,
                    parents=node.parents,
                    branches=tuple(at_commit.get(node.hash, ())),
                    timestamp=node.timestamp,
                    head_branch=current if current and tips.get(current) == node.hash else None,
                )
            )
        return self._assemble(builder.build(), summary, head, tips)

    def _assemble(
        self,
        commits: CommitGraph,
        summary: BranchSummary,
        head: Optional[str],
        tips: Optional[dict[str, str]],
    ) -> BranchGraph:
        current = summary.current or commits.head_branch
        result = self.engine.infer(commits, existing_branches=summary.all, current_branch=current)

        logger.debug(
            f"Branch graph: {len(commits)} commits, {len(result.merges)} merges, "
            f"{result.skipped_commits} merge commits unclassified"
        )
        return BranchGraph(
            branches=summary.all,
            merges=tuple(result.merges),
            current_branch=current,
            nodes=tuple(result.nodes),
            links=tuple(result.links),
            head=head,
            tips=tuple(sorted((tips or {}).items())),
            built_at=self._clock(),
        )

    def _unavailable(self) -> BranchGraph:
        # Best effort at the branch list; it may fail for the same reason
        try:
            summary = self.get_branches()
        except HistoryQueryError:
            return BranchGraph.unavailable()
        return BranchGraph.unavailable(branches=summary.all, current_branch=summary.current)

    def branch_graph_snapshot(self) -> Optional[BranchGraph]:
        """Cached or persisted graph for the current refs; never builds."""
        cached = self.cache.get(BRANCH_GRAPH_KEY)
        if cached is not None:
            return cached
        if self.snapshots is None:
            return None
        head, tips = self._current_refs()
        if not head:
            return None
        return self.snapshots.load(self.source.repo_id, ref_state(head, tips))

    def clear_branch_graph_cache(self) -> None:
        """Drop the in-memory graph and every persisted snapshot of this repository."""
        self.cache.invalidate(BRANCH_GRAPH_KEY)
        if self.snapshots is not None:
            self.snapshots.clear(self.source.repo_id)

    # -- hooks for mutating commands --

    def record_merge(
        self,
        from_branch: str,
        to_branch: str,
        commit: str,
        kind: MergeKind = MergeKind.THREE_WAY,
        description: Optional[str] = None,
    ) -> LedgerEntry:
        """Note a merge performed by a command and drop affected cache entries.

        Ledger persistence is best-effort; this never raises because of it.
        """
        entry = self.ledger.record_merge(from_branch, to_branch, commit, kind, description)
        for selector in (BRANCHES_KEY, STATUS_KEY, LOG_KEY):
            self.cache.invalidate(selector)
        # Snapshots predate the new ledger entry
        self.clear_branch_graph_cache()
        return entry

"""
Persisted branch graph snapshots.

Uses diskcache for SQLite-based persistent storage. A snapshot is keyed by
repository and ref state: a digest of HEAD plus every local branch tip. Any
branch being created, deleted or moved therefore changes the key, and a
graph is only served again for exactly the refs it was built from. Each
repository keeps an index of its most recent states; the oldest snapshot is
dropped once the index is full.
"""

from __future__ import annotations

import hashlib
from typing import Iterator, Mapping, Optional

from diskcache import Cache

from .logging_config import get_logger
from .models import BranchGraph

logger = get_logger(__name__)


def ref_state(head: str, tips: Mapping[str, str]) -> str:
    """Digest identifying HEAD and the set of local branch tips."""
    parts = [head] + [f"{name}\x00{commit}" for name, commit in sorted(tips.items())]
    return hashlib.sha256("\n".join(parts).encode("utf-8")).hexdigest()[:32]


def _snapshot_key(repo_id: str, state: str) -> str:
    return f"branch_graph:{repo_id}:{state}"


def _index_key(repo_id: str) -> str:
    return f"branch_graph_index:{repo_id}"


class SnapshotStore:
    """
    Disk-backed store of built BranchGraph results.

    Failures are logged and reported as a miss; a broken snapshot store
    never stops a graph from being built.
    """

    def __init__(self, cache_dir: str = ".branchscope-cache", max_states: int = 20, enabled: bool = True):
        """
        Args:
            cache_dir: Directory for snapshot storage
            max_states: Snapshots retained per repository
            enabled: Whether persistence is enabled
        """
        self.enabled = enabled
        self.max_states = max_states

        if self.enabled:
            self.cache: Optional[Cache] = Cache(cache_dir)
            logger.debug(f"Snapshot store at {cache_dir}, keeping {max_states} states per repository")
        else:
            self.cache = None

    def load(self, repo_id: str, state: str) -> Optional[BranchGraph]:
        if self.cache is None or not state:
            return None
        try:
            graph = self.cache.get(_snapshot_key(repo_id, state))
        except Exception as e:
            logger.warning(f"Snapshot load failed: {e}")
            return None
        if graph is not None:
            logger.debug(f"Snapshot hit: {state[:12]}")
        return graph

    def save(self, repo_id: str, state: str, graph: BranchGraph) -> None:
        if self.cache is None or not state:
            return
        try:
            with self.cache.transact():
                self.cache.set(_snapshot_key(repo_id, state), graph)
                index: list[str] = self.cache.get(_index_key(repo_id), default=[])
                if state in index:
                    index = [s for s in index if s != state]
                index = index + [state]
                while len(index) > self.max_states:
                    oldest = index.pop(0)
                    self.cache.delete(_snapshot_key(repo_id, oldest))
                self.cache.set(_index_key(repo_id), index)
        except Exception as e:
            logger.warning(f"Snapshot save failed: {e}")

    def states(self, repo_id: str) -> list[str]:
        """States with a stored snapshot, oldest first."""
        if self.cache is None:
            return []
        return list(self.cache.get(_index_key(repo_id), default=[]))

    def recent(self, repo_id: str, limit: int = 10) -> Iterator[BranchGraph]:
        """Stored graphs, newest first, at most ``limit`` of them."""
        for state in reversed(self.states(repo_id)[-limit:]):
            graph = self.load(repo_id, state)
            if graph is not None:
                yield graph

    def clear(self, repo_id: Optional[str] = None) -> int:
        """Remove snapshots for one repository, or everything.

        Returns:
            Number of snapshots removed
        """
        if self.cache is None:
            return 0
        try:
            if repo_id is None:
                return self.cache.clear()
            removed = 0
            with self.cache.transact():
                for state in self.states(repo_id):
                    if self.cache.delete(_snapshot_key(repo_id, state)):
                        removed += 1
                self.cache.set(_index_key(repo_id), [])
            return removed
        except Exception as e:
            logger.warning(f"Snapshot clear failed: {e}")
            return 0

    def stats(self) -> dict:
        if self.cache is None:
            return {"enabled": False}
        try:
            return {
                "enabled": True,
                "size": len(self.cache),
                "directory": self.cache.directory,
                "volume": self.cache.volume(),
            }
        except Exception as e:
            logger.warning(f"Snapshot stats failed: {e}")
            return {"enabled": True, "error": str(e)}

    def close(self) -> None:
        if self.cache is not None:
            self.cache.close()

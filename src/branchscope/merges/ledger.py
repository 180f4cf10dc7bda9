"""Merge ledger: explicitly known merges, persisted across builds.

Entries are created when a surrounding operation performs a merge. The
ledger is an audit log: entries naming deleted branches stay in it and are
only filtered out when merges are consolidated for display.

Writes are best-effort. A store failure is logged and never propagates to
the operation that recorded the merge.
"""

from __future__ import annotations

import sqlite3
import threading
import time
import uuid
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Callable, Collection, Optional

from ..exceptions import LedgerWriteError
from ..logging_config import get_logger
from .models import LedgerEntry, MergeKind

logger = get_logger(__name__)

_SCHEMA_VERSION = 1


class LedgerStore(ABC):
    """Persistence medium for ledger entries."""

    @abstractmethod
    def load(self) -> list[LedgerEntry]:
        """All entries, oldest first."""

    @abstractmethod
    def append(self, entry: LedgerEntry) -> None:
        """Persist one entry. Raises LedgerWriteError on failure."""

    @abstractmethod
    def trim(self, keep: int) -> None:
        """Drop all but the newest ``keep`` entries."""

    def close(self) -> None:
        pass


class InMemoryLedgerStore(LedgerStore):
    def __init__(self, entries: Optional[list[LedgerEntry]] = None):
        self._entries = list(entries or [])

    def load(self) -> list[LedgerEntry]:
        return list(self._entries)

    def append(self, entry: LedgerEntry) -> None:
        self._entries.append(entry)

    def trim(self, keep: int) -> None:
        del self._entries[: max(0, len(self._entries) - keep)]


class SqliteLedgerStore(LedgerStore):
    """SQLite-backed ledger store.

    Usage:
        with SqliteLedgerStore(".branchscope/ledger.db") as store:
            ledger = MergeLedger(store)
            ledger.record_merge("feature", "main", "abc123", MergeKind.THREE_WAY)
    """

    def __init__(self, db_path: str | Path):
        self._db_path = Path(db_path)
        self._conn: sqlite3.Connection | None = None
        try:
            self._db_path.parent.mkdir(parents=True, exist_ok=True)
            self._init_db()
        except (sqlite3.Error, OSError) as e:
            logger.warning(f"Merge ledger at {self._db_path} unusable, continuing without it: {e}")
            self.close()

    @property
    def is_open(self) -> bool:
        return self._conn is not None

    def _init_db(self) -> None:
        self._conn = sqlite3.connect(str(self._db_path), check_same_thread=False)
        self._conn.row_factory = sqlite3.Row
        self._conn.executescript(
            """
            CREATE TABLE IF NOT EXISTS ledger_meta (
                key TEXT PRIMARY KEY,
                value TEXT
            );

            CREATE TABLE IF NOT EXISTS merge_ledger (
                seq INTEGER PRIMARY KEY AUTOINCREMENT,
                id TEXT NOT NULL UNIQUE,
                from_branch TEXT NOT NULL,
                to_branch TEXT NOT NULL,
                commit_hash TEXT NOT NULL,
                kind TEXT NOT NULL,
                description TEXT,
                timestamp INTEGER NOT NULL
            );
            """
        )
        row = self._conn.execute(
            "SELECT value FROM ledger_meta WHERE key = 'schema_version'"
        ).fetchone()
        if row is None:
            self._conn.execute(
                "INSERT INTO ledger_meta (key, value) VALUES ('schema_version', ?)",
                (str(_SCHEMA_VERSION),),
            )
        elif int(row["value"]) != _SCHEMA_VERSION:
            logger.warning(
                f"Ledger schema version {row['value']} is not {_SCHEMA_VERSION}; "
                "entries may not load"
            )
        self._conn.commit()

    def load(self) -> list[LedgerEntry]:
        if self._conn is None:
            return []
        rows = self._conn.execute(
            "SELECT id, from_branch, to_branch, commit_hash, kind, description, timestamp "
            "FROM merge_ledger ORDER BY seq"
        ).fetchall()
        entries = []
        for row in rows:
            try:
                kind = MergeKind(row["kind"])
            except ValueError:
                logger.warning(f"Ignoring ledger entry {row['id']} with unknown kind {row['kind']!r}")
                continue
            entries.append(
                LedgerEntry(
                    id=row["id"],
                    from_branch=row["from_branch"],
                    to_branch=row["to_branch"],
                    commit=row["commit_hash"],
                    kind=kind,
                    description=row["description"],
                    timestamp=row["timestamp"],
                )
            )
        return entries

    def append(self, entry: LedgerEntry) -> None:
        if self._conn is None:
            raise LedgerWriteError("store is closed", entry.id)
        try:
            self._conn.execute(
                "INSERT INTO merge_ledger "
                "(id, from_branch, to_branch, commit_hash, kind, description, timestamp) "
                "VALUES (?, ?, ?, ?, ?, ?, ?)",
                (
                    entry.id,
                    entry.from_branch,
                    entry.to_branch,
                    entry.commit,
                    entry.kind.value,
                    entry.description,
                    entry.timestamp,
                ),
            )
            self._conn.commit()
        except sqlite3.Error as e:
            raise LedgerWriteError(str(e), entry.id) from e

    def trim(self, keep: int) -> None:
        if self._conn is None:
            return
        try:
            self._conn.execute(
                "DELETE FROM merge_ledger WHERE seq NOT IN "
                "(SELECT seq FROM merge_ledger ORDER BY seq DESC LIMIT ?)",
                (keep,),
            )
            self._conn.commit()
        except sqlite3.Error as e:
            raise LedgerWriteError(f"trim failed: {e}") from e

    def close(self) -> None:
        if self._conn:
            self._conn.close()
            self._conn = None

    def __enter__(self) -> SqliteLedgerStore:
        return self

    def __exit__(self, *args) -> None:
        self.close()


class MergeLedger:
    """Append-mostly record of explicitly performed merges.

    Entries are held in memory in insertion order; the store mirrors them.
    Duplicate (from, to) pairs may coexist; consolidation happens at read
    time.
    """

    def __init__(
        self,
        store: Optional[LedgerStore] = None,
        max_entries: Optional[int] = None,
        clock: Callable[[], float] = time.time,
    ):
        self.store = store or InMemoryLedgerStore()
        self.max_entries = max_entries
        self._clock = clock
        self._lock = threading.Lock()
        try:
            self._entries = self.store.load()
        except (sqlite3.Error, OSError, LedgerWriteError) as e:
            logger.warning(f"Could not load merge ledger, starting empty: {e}")
            self._entries = []

    def record(self, entry: LedgerEntry) -> bool:
        """Append an entry.

        Returns:
            True if the entry was persisted, False if only kept in memory
            because the store failed
        """
        with self._lock:
            self._entries.append(entry)
            if self.max_entries is not None and len(self._entries) > self.max_entries:
                del self._entries[: len(self._entries) - self.max_entries]

            try:
                self.store.append(entry)
            except LedgerWriteError as e:
                logger.warning(f"Merge ledger write failed, entry kept in memory only: {e}")
                return False

            if self.max_entries is not None:
                try:
                    self.store.trim(self.max_entries)
                except LedgerWriteError as e:
                    # The entry itself is stored; only retention lags behind
                    logger.warning(f"Merge ledger trim failed: {e}")
        logger.debug(f"Recorded {entry.kind.value} merge {entry.from_branch} -> {entry.to_branch}")
        return True

    def record_merge(
        self,
        from_branch: str,
        to_branch: str,
        commit: str,
        kind: MergeKind = MergeKind.THREE_WAY,
        description: Optional[str] = None,
    ) -> LedgerEntry:
        """Stamp and record a merge; returns the entry whether or not it persisted."""
        now = self._clock()
        entry = LedgerEntry(
            id=f"{int(now * 1000)}-{uuid.uuid4().hex[:6]}",
            from_branch=from_branch,
            to_branch=to_branch,
            commit=commit,
            kind=MergeKind(kind),
            timestamp=int(now),
            description=description,
        )
        self.record(entry)
        return entry

    def get_all(self) -> list[LedgerEntry]:
        """All entries in insertion order."""
        with self._lock:
            return list(self._entries)

    def consolidatable(self, existing_branches: Collection[str]) -> list[LedgerEntry]:
        """Three-way entries whose branches both still exist, insertion order."""
        existing = set(existing_branches)
        return [
            e
            for e in self.get_all()
            if e.kind is MergeKind.THREE_WAY and e.from_branch in existing and e.to_branch in existing
        ]

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def close(self) -> None:
        self.store.close()

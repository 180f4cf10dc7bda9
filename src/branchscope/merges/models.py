"""Merge relationship and ledger entry models."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Optional


class MergeKind(str, Enum):
    THREE_WAY = "three-way"
    FAST_FORWARD = "fast-forward"


def describe_merge(from_branch: str, to_branch: str, kind: MergeKind) -> str:
    if kind is MergeKind.FAST_FORWARD:
        return f"Fast-forward merge: {from_branch} → {to_branch}"
    return f"Three-way merge: {from_branch} → {to_branch}"


@dataclass(frozen=True)
class MergeRelationship:
    """A merge of ``from_branch`` into ``to_branch`` at ``commit``.

    Only meaningful while both branch names exist.
    """

    from_branch: str
    to_branch: str
    commit: str
    kind: MergeKind = MergeKind.THREE_WAY
    description: Optional[str] = None
    timestamp: Optional[int] = None

    @property
    def pair(self) -> tuple[str, str]:
        return (self.from_branch, self.to_branch)

    def to_dict(self) -> dict[str, Any]:
        return {
            "from": self.from_branch,
            "to": self.to_branch,
            "commit": self.commit,
            "type": self.kind.value,
            "description": self.description,
            "timestamp": self.timestamp,
        }


@dataclass(frozen=True)
class LedgerEntry:
    """A merge recorded when it was performed, kept across builds.

    Structural inference cannot always recover branch identity (deleted
    branches, commits shared by several branches, fast-forwards), so the
    ledger remembers what was actually done.
    """

    id: str
    from_branch: str
    to_branch: str
    commit: str
    kind: MergeKind
    timestamp: int  # unix seconds, when the merge was recorded
    description: Optional[str] = None

    @property
    def pair(self) -> tuple[str, str]:
        return (self.from_branch, self.to_branch)

    def to_relationship(self) -> MergeRelationship:
        return MergeRelationship(
            from_branch=self.from_branch,
            to_branch=self.to_branch,
            commit=self.commit,
            kind=self.kind,
            description=self.description or describe_merge(self.from_branch, self.to_branch, self.kind),
            timestamp=self.timestamp,
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "from": self.from_branch,
            "to": self.to_branch,
            "commit": self.commit,
            "type": self.kind.value,
            "description": self.description,
            "timestamp": self.timestamp,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "LedgerEntry":
        return cls(
            id=str(data["id"]),
            from_branch=data["from"],
            to_branch=data["to"],
            commit=data["commit"],
            kind=MergeKind(data["type"]),
            timestamp=int(data["timestamp"]),
            description=data.get("description"),
        )

"""Merge ledger persistence errors."""

from typing import Optional

from .base import BranchScopeError


class LedgerWriteError(BranchScopeError):
    """Raised by a ledger store when an entry cannot be persisted.

    The ledger itself catches this; a failed write never aborts the
    operation that triggered it.
    """

    def __init__(self, reason: str, entry_id: Optional[str] = None):
        details = {"reason": reason}
        if entry_id:
            details["entry_id"] = entry_id
        super().__init__("Merge ledger write failed", details=details)
        self.reason = reason
        self.entry_id = entry_id

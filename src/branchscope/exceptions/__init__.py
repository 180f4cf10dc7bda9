"""Exception hierarchy for branchscope."""

from .base import BranchScopeError
from .config import ConfigurationError, InvalidConfigError
from .history import GitNotFoundError, HistoryQueryError
from .ledger import LedgerWriteError

__all__ = [
    "BranchScopeError",
    "ConfigurationError",
    "InvalidConfigError",
    "HistoryQueryError",
    "GitNotFoundError",
    "LedgerWriteError",
]

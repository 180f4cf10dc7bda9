"""Merge relationships: structural inference and the merge ledger."""

from .inference import InferenceResult, MergeClassifier, MergeInferenceEngine, SetAlgebraClassifier
from .ledger import InMemoryLedgerStore, LedgerStore, MergeLedger, SqliteLedgerStore
from .models import LedgerEntry, MergeKind, MergeRelationship

__all__ = [
    "InMemoryLedgerStore",
    "InferenceResult",
    "LedgerEntry",
    "LedgerStore",
    "MergeClassifier",
    "MergeInferenceEngine",
    "MergeKind",
    "MergeLedger",
    "MergeRelationship",
    "SetAlgebraClassifier",
    "SqliteLedgerStore",
]

"""
branchscope - branch graphs and merge relationships from git history

Parses commit history into a DAG, infers which branches were merged into
which, reconciles that with a ledger of merges recorded as they happened,
and keeps the result behind a short-lived cache for interactive callers.
"""

__version__ = "0.1.0"

from .cache import SingleFlight, TTLCache
from .config import BranchScopeConfig, CacheTTLConfig, load_config
from .graph import CommitGraph, CommitNode, Edge, GraphBuilder, build_commit_graph
from .merges import (
    LedgerEntry,
    MergeInferenceEngine,
    MergeKind,
    MergeLedger,
    MergeRelationship,
    SetAlgebraClassifier,
)
from .models import BranchGraph
from .service import RepositoryService

__all__ = [
    "BranchGraph",
    "BranchScopeConfig",
    "CacheTTLConfig",
    "CommitGraph",
    "CommitNode",
    "Edge",
    "GraphBuilder",
    "LedgerEntry",
    "MergeInferenceEngine",
    "MergeKind",
    "MergeLedger",
    "MergeRelationship",
    "RepositoryService",
    "SetAlgebraClassifier",
    "SingleFlight",
    "TTLCache",
    "build_commit_graph",
    "load_config",
]

"""Commit DAG models and construction."""

from .builder import GraphBuilder, build_commit_graph
from .models import CommitGraph, CommitNode, Edge

__all__ = ["CommitGraph", "CommitNode", "Edge", "GraphBuilder", "build_commit_graph"]

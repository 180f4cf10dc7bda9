"""Tests for the persisted snapshot store."""

import pytest

from branchscope.graph.models import CommitNode, Edge
from branchscope.merges import MergeKind, MergeRelationship
from branchscope.models import BranchGraph
from branchscope.snapshot import SnapshotStore, ref_state


def sample_graph(head: str = "h1") -> BranchGraph:
    return BranchGraph(
        branches=("main", "feature"),
        merges=(
            MergeRelationship(
                "feature", "main", "c3", MergeKind.THREE_WAY, "Three-way merge: feature → main", 300
            ),
        ),
        current_branch="main",
        nodes=(
            CommitNode("c3", ("c1", "c2"), ("main",), 300),
            CommitNode("c2", ("c1",), ("feature",), 200),
            CommitNode("c1", (), ("main",), 100),
        ),
        links=(Edge("c1", "c3"), Edge("c2", "c3"), Edge("c1", "c2")),
        head=head,
        built_at=12.5,
    )


@pytest.fixture
def store(tmp_path):
    s = SnapshotStore(str(tmp_path / "snapshots"), max_states=3)
    yield s
    s.close()


class TestSnapshotStore:
    def test_round_trip(self, store):
        graph = sample_graph()
        store.save("repo", "h1", graph)
        loaded = store.load("repo", "h1")
        assert loaded == graph
        assert loaded.merges[0].kind is MergeKind.THREE_WAY
        assert loaded.to_dict() == graph.to_dict()

    def test_miss(self, store):
        assert store.load("repo", "unknown") is None
        assert store.load("repo", "") is None

    def test_repositories_are_isolated(self, store):
        store.save("repo-a", "h1", sample_graph())
        assert store.load("repo-b", "h1") is None

    def test_oldest_state_dropped(self, store):
        for n in range(5):
            store.save("repo", f"h{n}", sample_graph(f"h{n}"))
        assert store.states("repo") == ["h2", "h3", "h4"]
        assert store.load("repo", "h0") is None
        assert store.load("repo", "h4").head == "h4"

    def test_resave_same_state_keeps_index(self, store):
        store.save("repo", "h1", sample_graph())
        store.save("repo", "h1", sample_graph())
        assert store.states("repo") == ["h1"]

    def test_resave_moves_state_to_newest(self, store):
        store.save("repo", "h1", sample_graph("h1"))
        store.save("repo", "h2", sample_graph("h2"))
        store.save("repo", "h1", sample_graph("h1"))
        assert store.states("repo") == ["h2", "h1"]

    def test_recent_newest_first(self, store):
        for n in range(3):
            store.save("repo", f"h{n}", sample_graph(f"h{n}"))
        assert [g.head for g in store.recent("repo")] == ["h2", "h1", "h0"]
        assert [g.head for g in store.recent("repo", limit=2)] == ["h2", "h1"]
        assert list(store.recent("other")) == []

    def test_clear_one_repository(self, store):
        store.save("repo-a", "h1", sample_graph())
        store.save("repo-a", "h2", sample_graph())
        store.save("repo-b", "h1", sample_graph())
        assert store.clear("repo-a") == 2
        assert store.states("repo-a") == []
        assert store.load("repo-b", "h1") is not None

    def test_clear_everything(self, store):
        store.save("repo", "h1", sample_graph())
        store.clear()
        assert store.load("repo", "h1") is None
        assert store.states("repo") == []

    def test_stats(self, store):
        store.save("repo", "h1", sample_graph())
        stats = store.stats()
        assert stats["enabled"] is True
        assert stats["size"] >= 1


class TestDisabledStore:
    def test_everything_is_a_no_op(self, tmp_path):
        store = SnapshotStore(str(tmp_path / "off"), enabled=False)
        store.save("repo", "h1", sample_graph())
        assert store.load("repo", "h1") is None
        assert store.states("repo") == []
        assert store.clear() == 0
        assert store.stats() == {"enabled": False}
        assert not (tmp_path / "off").exists()
        store.close()


class TestRefState:
    TIPS = {"main": "c3", "feature": "c2"}

    def test_stable_and_order_independent(self):
        assert ref_state("c3", self.TIPS) == ref_state("c3", {"feature": "c2", "main": "c3"})
        assert len(ref_state("c3", self.TIPS)) == 32

    def test_head_change(self):
        assert ref_state("c3", self.TIPS) != ref_state("c2", self.TIPS)

    def test_deleted_branch_changes_state(self):
        assert ref_state("c3", self.TIPS) != ref_state("c3", {"main": "c3"})

    def test_moved_branch_changes_state(self):
        assert ref_state("c3", self.TIPS) != ref_state("c3", {"main": "c3", "feature": "c9"})

    def test_renamed_branch_changes_state(self):
        assert ref_state("c3", self.TIPS) != ref_state("c3", {"main": "c3", "topic": "c2"})

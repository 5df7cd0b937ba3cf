"""Flow store: mutations, normalization, highlight, snapshots."""

import pytest
from pydantic import ValidationError

from flow.model import InvalidTreeError, TreeNode, count_nodes, normalize_ratios
from flow.store import FlowStore, GrowStatus


ROOT = {"id": "root", "label": "Job", "depth": 0, "ratio": 1, "children": []}


def test_starts_empty(store):
    assert store.is_empty
    snap = store.snapshot()
    assert snap.tree is None
    assert snap.layout.nodes == [] and snap.layout.edges == []


def test_end_to_end_grow_and_query(store):
    store.set_tree(ROOT)
    result = store.grow_node("root", [{"text": "Plan", "ratio": 0.4}, {"text": "Build", "ratio": 0.6}])
    assert result.status is GrowStatus.GROWN
    plan_id, build_id = result.children

    tree = store.tree
    assert [c.ratio for c in tree.children] == [pytest.approx(0.4), pytest.approx(0.6)]
    assert [c.depth for c in tree.children] == [1, 1]

    layout = store.layout
    assert len(layout.nodes) == 3
    assert len(layout.parent_edges()) == 2
    assert len(layout.sibling_edges()) == 1

    rel = store.related_to(build_id)
    assert rel.ancestors == ("root",)
    assert rel.siblings == (plan_id,)
    assert rel.descendants == ()


def test_normalization_law(store):
    store.set_tree(ROOT)
    weights = [2.0, 3.0, 5.0, 7.5]
    store.grow_node("root", [{"text": f"s{i}", "ratio": w} for i, w in enumerate(weights)])
    ratios = [c.ratio for c in store.tree.children]
    assert sum(ratios) == pytest.approx(1.0, abs=1e-9)
    for r, w in zip(ratios, weights):
        assert r == pytest.approx(w / sum(weights), abs=1e-9)


def test_normalize_ratios_edge_cases():
    assert normalize_ratios([]) == []
    assert normalize_ratios([0, 0]) == [0.5, 0.5]
    assert normalize_ratios([1]) == [1.0]


def test_grow_missing_node_is_noop(store):
    store.set_tree(ROOT)
    before = store.snapshot()
    result = store.grow_node("nope", [{"text": "X", "ratio": 1}])
    assert result.status is GrowStatus.NOT_FOUND
    assert not result.grown
    assert store.snapshot() == before


def test_grow_already_expanded_is_noop(store):
    store.set_tree(ROOT)
    store.grow_node("root", [{"text": "A", "ratio": 1}])
    result = store.grow_node("root", [{"text": "B", "ratio": 1}])
    assert result.status is GrowStatus.ALREADY_EXPANDED
    assert [c.label for c in store.tree.children] == ["A"]


def test_grow_with_no_parts_leaves_leaf(store):
    store.set_tree(ROOT)
    assert store.grow_node("root", []).status is GrowStatus.EMPTY
    assert store.tree.children == []


def test_grow_on_empty_store(store):
    assert store.grow_node("root", [{"text": "A", "ratio": 1}]).status is GrowStatus.NOT_FOUND
    assert store.is_empty


def test_grow_rejects_negative_weight(store):
    store.set_tree(ROOT)
    with pytest.raises(ValidationError):
        store.grow_node("root", [{"text": "A", "ratio": -1}])
    assert store.tree.children == []


def test_new_ids_are_fresh(store):
    store.set_tree(ROOT)
    a = store.grow_node("root", [{"text": "A", "ratio": 1}, {"text": "B", "ratio": 1}])
    b = store.grow_node(a.children[0], [{"text": "C", "ratio": 1}])
    ids = a.children + b.children
    assert len(set(ids)) == len(ids) == 3
    assert "root" not in ids
    assert store.get_node(b.children[0]).depth == 2


def test_set_tree_validates(store):
    with pytest.raises(InvalidTreeError):
        store.set_tree({**ROOT, "depth": 1})
    dup = {**ROOT, "children": [
        {"id": "x", "label": "X", "depth": 1, "ratio": 0.5, "children": []},
        {"id": "x", "label": "Y", "depth": 1, "ratio": 0.5, "children": []},
    ]}
    with pytest.raises(InvalidTreeError):
        store.set_tree(dup)
    with pytest.raises(ValidationError):
        store.set_tree({**ROOT, "children": [{"id": "x", "label": "X", "depth": 3, "ratio": 1, "children": []}]})
    assert store.is_empty


def test_set_tree_replaces_and_resets_highlight(store, sample_tree):
    store.set_tree(sample_tree)
    store.set_highlight({"root", "plan"})
    store.set_tree(ROOT)
    assert count_nodes(store.tree) == 1
    assert store.highlight == frozenset()


def test_reset_returns_to_empty(store, sample_tree):
    store.set_tree(sample_tree)
    epoch = store.epoch
    store.reset()
    assert store.is_empty
    assert store.epoch == epoch + 1
    assert store.layout.nodes == []
    assert store.related_to("root").ancestors == ()


def test_readers_get_copies(store, sample_tree):
    store.set_tree(sample_tree)
    # caller's tree is not aliased
    sample_tree.children.clear()
    copy = store.tree
    copy.children.clear()
    snap = store.snapshot()
    snap.tree.children.clear()
    assert count_nodes(store.tree) == 9


def test_layout_readers_get_copies(store):
    store.set_tree(ROOT)
    store.grow_node("root", [{"text": "Plan", "ratio": 0.4}, {"text": "Build", "ratio": 0.6}])
    snap = store.snapshot()
    snap.layout.nodes.clear()
    snap.layout.edges.clear()
    store.layout.nodes.clear()
    assert len(store.layout.nodes) == 3
    assert len(store.layout.edges) == 3
    assert len(store.snapshot().layout.nodes) == 3


def test_listener_cannot_mutate_layout(store):
    store.subscribe(lambda snap: snap.layout.edges.clear())
    store.set_tree(ROOT)
    store.grow_node("root", [{"text": "A", "ratio": 1}])
    assert len(store.layout.parent_edges()) == 1


def test_highlight_updates_flags_only(store, sample_tree):
    store.set_tree(sample_tree)
    positions = [(n.id, n.x, n.y) for n in store.layout.nodes]
    store.set_highlight({"root", "build", "gone"})
    assert store.highlight == {"root", "build"}
    assert [(n.id, n.x, n.y) for n in store.layout.nodes] == positions
    emphasized = [(e.source, e.target) for e in store.layout.edges if e.emphasized]
    assert emphasized == [("root", "build")]
    store.clear_highlight()
    assert not any(e.emphasized for e in store.layout.edges)


def test_highlight_survives_growth(store, sample_tree):
    store.set_tree(sample_tree)
    store.set_highlight({"root", "ship"})
    store.grow_node("ship", [{"text": "Deploy", "ratio": 1}])
    assert store.highlight == {"root", "ship"}
    assert any(e.emphasized for e in store.layout.edges)


def test_decomposition_guard(store, sample_tree):
    store.set_tree(sample_tree)
    assert store.begin_decomposition("ship")
    assert not store.begin_decomposition("ship")
    assert store.is_decomposing("ship")
    assert store.decomposing == ["ship"]
    store.end_decomposition("ship")
    assert store.begin_decomposition("ship")
    store.reset()
    assert not store.is_decomposing("ship")


def test_listeners_get_snapshots(store):
    seen = []
    unsubscribe = store.subscribe(seen.append)
    store.set_tree(ROOT)
    store.grow_node("root", [{"text": "A", "ratio": 1}])
    store.set_highlight({"root"})
    unsubscribe()
    store.reset()
    assert len(seen) == 3
    assert len(seen[1].layout.nodes) == 2
    assert seen[2].highlight == {"root"}


def test_failing_listener_does_not_block_mutation(store):
    def boom(_snap):
        raise RuntimeError("listener broke")

    store.subscribe(boom)
    store.set_tree(ROOT)
    assert not store.is_empty


def test_snapshot_payload_shape(store, sample_tree):
    store.set_tree(sample_tree)
    store.set_highlight({"root"})
    payload = store.snapshot().to_payload()
    assert payload["tree"]["id"] == "root"
    assert payload["highlight"] == ["root"]
    assert len(payload["nodes"]) == 9
    assert payload["nodes"][0]["sourceId"] == "root"
    assert payload["epoch"] == store.epoch


def test_tree_node_round_trips_through_dump(sample_tree):
    again = TreeNode.model_validate(sample_tree.model_dump())
    assert again == sample_tree

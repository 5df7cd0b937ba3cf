"""Relationship queries over the tree graph."""

from flow.model import iter_nodes
from shared.graph import (
    EMPTY_RELATIONS,
    build_tree_graph,
    edge_highlight,
    label_path,
    node_highlight,
    related_to,
    render_tree_outline,
)


def test_ancestors_are_root_first_and_match_depth(sample_tree):
    for node in iter_nodes(sample_tree):
        assert len(related_to(node.id, sample_tree).ancestors) == node.depth
    assert related_to("review", sample_tree).ancestors == ("root", "build")


def test_root_has_no_siblings_or_ancestors(sample_tree):
    rel = related_to("root", sample_tree)
    assert rel.siblings == ()
    assert rel.ancestors == ()
    assert set(rel.descendants) == {n.id for n in iter_nodes(sample_tree)} - {"root"}


def test_siblings_exclude_self_and_keep_order(sample_tree):
    assert related_to("review", sample_tree).siblings == ("code", "test")
    assert related_to("ship", sample_tree).siblings == ("plan", "build")


def test_descendants_pre_order(sample_tree):
    assert related_to("root", sample_tree).descendants == (
        "plan", "scope", "estimate", "build", "code", "review", "test", "ship",
    )
    assert related_to("code", sample_tree).descendants == ()


def test_unknown_id_gives_empty_relations(sample_tree):
    assert related_to("gone", sample_tree) == EMPTY_RELATIONS
    assert related_to("gone", None) == EMPTY_RELATIONS
    assert node_highlight("gone", sample_tree) == frozenset()


def test_graph_and_tree_answer_the_same(sample_tree):
    G = build_tree_graph(sample_tree)
    assert G.graph["root"] == "root"
    assert list(G.successors("build")) == ["code", "review", "test"]
    for node in iter_nodes(sample_tree):
        assert related_to(node.id, G) == related_to(node.id, sample_tree)


def test_node_highlight_covers_context(sample_tree):
    assert node_highlight("build", sample_tree) == {
        "build", "root", "plan", "ship", "code", "review", "test",
    }


def test_edge_highlight_unions_both_endpoints(sample_tree):
    ids = edge_highlight("plan", "build", sample_tree)
    assert ids == node_highlight("plan", sample_tree) | node_highlight("build", sample_tree)
    # stale endpoint contributes nothing
    assert edge_highlight("scope", "gone", sample_tree) == node_highlight("scope", sample_tree)


def test_render_tree_outline_marks_current(sample_tree):
    outline = render_tree_outline(sample_tree, "build")
    lines = outline.splitlines()
    assert lines[0] == "  Job"
    assert "  ▶ Build" in lines
    assert lines[-1] == "    Ship"
    assert render_tree_outline(None) == ""


def test_label_path(sample_tree):
    assert label_path(sample_tree, "review") == ["Job", "Build", "Review"]
    assert label_path(sample_tree, "root") == ["Job"]
    assert label_path(sample_tree, "gone") == []

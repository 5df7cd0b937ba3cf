"""Shared utilities for the flow store, layout and planner."""

from .graph import (
    EMPTY_RELATIONS,
    Relations,
    build_tree_graph,
    edge_highlight,
    label_path,
    node_highlight,
    related_to,
    render_tree_outline,
)

__all__ = [
    "EMPTY_RELATIONS",
    "Relations",
    "build_tree_graph",
    "edge_highlight",
    "label_path",
    "node_highlight",
    "related_to",
    "render_tree_outline",
]

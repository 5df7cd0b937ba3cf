"""Layout module - positions and connectors for the workflow tree."""

from .constants import NODE_SPACING, NODE_WIDTH, VERTICAL_STEP
from .tree_layout import (
    DepthExtents,
    FlowLayout,
    LayoutEdge,
    LayoutNode,
    apply_highlight,
    compute_flow_layout,
    group_width,
    layout_to_dict,
)

__all__ = [
    "NODE_SPACING",
    "NODE_WIDTH",
    "VERTICAL_STEP",
    "DepthExtents",
    "FlowLayout",
    "LayoutEdge",
    "LayoutNode",
    "apply_highlight",
    "compute_flow_layout",
    "group_width",
    "layout_to_dict",
]

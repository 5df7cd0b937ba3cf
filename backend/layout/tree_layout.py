"""
Workflow tree layout.
Each child group is centered under its parent's x; groups that land on the same depth
are kept apart by per-depth extent tracking (a group overlapping what is already claimed
at its depth is moved right of it).

Extents live for one layout call only. The whole tree is laid out again on every mutation,
so subtrees expanded late never drift relative to ones placed earlier.
"""

from typing import AbstractSet, Dict, List, Literal, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field

from flow.model import TreeNode

from .constants import NODE_SPACING, NODE_WIDTH, VERTICAL_STEP

EdgeKind = Literal["parent", "sibling"]


class LayoutNode(BaseModel):
    model_config = ConfigDict(populate_by_name=True, frozen=True)
    id: str
    x: float
    y: float
    source_id: str = Field(..., alias="sourceId")
    parent_id: Optional[str] = Field(None, alias="parentId")
    label: str = ""
    depth: int = 0
    ratio: float = 1.0
    highlighted: bool = False


class LayoutEdge(BaseModel):
    """Parent edge (parent -> child) or sibling edge (children[i-1] -> children[i])."""
    model_config = ConfigDict(populate_by_name=True, frozen=True)
    id: str
    source: str
    target: str
    kind: EdgeKind = "parent"
    animated: bool = True
    emphasized: bool = False


class FlowLayout(BaseModel):
    model_config = ConfigDict(populate_by_name=True, frozen=True)
    nodes: List[LayoutNode] = Field(default_factory=list)
    edges: List[LayoutEdge] = Field(default_factory=list)
    width: float = 0
    height: float = 0

    def parent_edges(self) -> List[LayoutEdge]:
        return [e for e in self.edges if e.kind == "parent"]

    def sibling_edges(self) -> List[LayoutEdge]:
        return [e for e in self.edges if e.kind == "sibling"]

    def node(self, node_id: str) -> Optional[LayoutNode]:
        return next((n for n in self.nodes if n.id == node_id), None)


class DepthExtents:
    """Horizontal span [start, end] claimed so far at each depth."""

    def __init__(self, spacing: float = NODE_SPACING):
        self.spacing = spacing
        self._spans: Dict[int, Tuple[float, float]] = {}

    def span(self, depth: int) -> Optional[Tuple[float, float]]:
        return self._spans.get(depth)

    def claim(self, depth: int, start_x: float, width: float) -> float:
        """Reserve width at depth starting at start_x, shifting right past the claimed span
        if the group would come closer than spacing to it. Returns the final start x."""
        span = self._spans.get(depth)
        if span is not None:
            start, end = span
            if start_x < end + self.spacing:
                start_x = end + self.spacing
            self._spans[depth] = (min(start, start_x), max(end, start_x + width))
        else:
            self._spans[depth] = (start_x, start_x + width)
        return start_x


def group_width(count: int, node_width: float = NODE_WIDTH, spacing: float = NODE_SPACING) -> float:
    """Width of count cards laid side by side: k*W + (k-1)*S."""
    if count <= 0:
        return 0
    return count * node_width + (count - 1) * spacing


def _parent_edge(parent_id: str, child_id: str, highlighted: AbstractSet[str]) -> LayoutEdge:
    return LayoutEdge(
        id=f"edge-{parent_id}-{child_id}",
        source=parent_id,
        target=child_id,
        kind="parent",
        animated=True,
        emphasized=parent_id in highlighted and child_id in highlighted,
    )


def _sibling_edge(prev_id: str, child_id: str, highlighted: AbstractSet[str]) -> LayoutEdge:
    return LayoutEdge(
        id=f"sibling-edge-{prev_id}-{child_id}",
        source=prev_id,
        target=child_id,
        kind="sibling",
        animated=False,
        emphasized=prev_id in highlighted and child_id in highlighted,
    )


def compute_flow_layout(
    tree: Optional[TreeNode],
    highlighted: Optional[AbstractSet[str]] = None,
    origin: Tuple[float, float] = (0, 0),
    node_width: float = NODE_WIDTH,
    spacing: float = NODE_SPACING,
    vertical_step: float = VERTICAL_STEP,
    avoid_overlap: bool = True,
) -> FlowLayout:
    """
    Lay out tree depth-first, left to right. Root sits at origin; a node with k children
    gets them at startX = parent.x - groupWidth/2, i-th at startX + i*(W+S), one step down.
    avoid_overlap=False skips extent tracking (plain centered placement).
    Returns FlowLayout with one LayoutNode per tree node, parent edges and sibling edges.
    """
    if tree is None:
        return FlowLayout()

    highlighted = highlighted or frozenset()
    extents = DepthExtents(spacing)
    step = node_width + spacing

    x0, y0 = origin
    if avoid_overlap:
        extents.claim(tree.depth, x0, node_width)

    nodes: List[LayoutNode] = []
    edges: List[LayoutEdge] = []

    # (node, x, y, parent_id); reversed pushes keep pre-order left to right
    stack: List[Tuple[TreeNode, float, float, Optional[str]]] = [(tree, x0, y0, None)]
    while stack:
        node, x, y, parent_id = stack.pop()
        nodes.append(LayoutNode(
            id=node.id,
            x=x,
            y=y,
            source_id=node.id,
            parent_id=parent_id,
            label=node.label,
            depth=node.depth,
            ratio=node.ratio,
            highlighted=node.id in highlighted,
        ))

        kids = node.children
        if not kids:
            continue

        total = group_width(len(kids), node_width, spacing)
        start_x = x - total / 2
        if avoid_overlap:
            start_x = extents.claim(node.depth + 1, start_x, total)
        child_y = y + vertical_step

        placed = []
        for i, child in enumerate(kids):
            edges.append(_parent_edge(node.id, child.id, highlighted))
            if i > 0:
                edges.append(_sibling_edge(kids[i - 1].id, child.id, highlighted))
            placed.append((child, start_x + i * step, child_y, node.id))
        stack.extend(reversed(placed))

    min_x = min(n.x for n in nodes)
    max_x = max(n.x for n in nodes) + node_width
    min_y = min(n.y for n in nodes)
    max_y = max(n.y for n in nodes)
    return FlowLayout(nodes=nodes, edges=edges, width=max_x - min_x, height=max_y - min_y)


def apply_highlight(layout: FlowLayout, highlighted: Optional[AbstractSet[str]]) -> FlowLayout:
    """Refresh highlighted/emphasized flags without moving anything."""
    highlighted = highlighted or frozenset()
    nodes = [
        n if n.highlighted == (n.id in highlighted) else n.model_copy(update={"highlighted": n.id in highlighted})
        for n in layout.nodes
    ]
    edges = []
    for e in layout.edges:
        emphasized = e.source in highlighted and e.target in highlighted
        edges.append(e if e.emphasized == emphasized else e.model_copy(update={"emphasized": emphasized}))
    return layout.model_copy(update={"nodes": nodes, "edges": edges})


def layout_to_dict(layout: FlowLayout) -> Dict:
    """Serialize for the rendering layer (camelCase keys)."""
    return layout.model_dump(by_alias=True)

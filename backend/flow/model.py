"""
Tree model for workflow decomposition.
A TreeNode owns its ordered children; child.depth == parent.depth + 1, root depth 0.
Ratios are a node's share of its parent's effort; siblings sum to 1 after normalization.
"""

import uuid
from typing import Callable, Iterator, List, Optional, Sequence

from pydantic import BaseModel, ConfigDict, Field, model_validator

RATIO_TOLERANCE = 0.01

IdFactory = Callable[[], str]


class InvalidTreeError(ValueError):
    """Raised when a tree handed to the store breaks the depth or id invariants."""


class DecomposePart(BaseModel):
    """One decomposition result: child label + raw effort weight (renormalized on install)."""
    model_config = ConfigDict(populate_by_name=True, frozen=True)
    text: str
    ratio: float = Field(default=0.0, ge=0)


class TreeNode(BaseModel):
    model_config = ConfigDict(populate_by_name=True)
    id: str
    label: str = ""
    depth: int = Field(default=0, ge=0)
    ratio: float = Field(default=1.0, ge=0, le=1)
    children: List["TreeNode"] = Field(default_factory=list)

    @model_validator(mode="after")
    def _check_child_depth(self) -> "TreeNode":
        for child in self.children:
            if child.depth != self.depth + 1:
                raise ValueError(
                    f"Node {child.id} has depth {child.depth}, expected {self.depth + 1} under {self.id}"
                )
        return self


def new_node_id() -> str:
    return f"node-{uuid.uuid4().hex}"


def iter_nodes(root: Optional[TreeNode]) -> Iterator[TreeNode]:
    """Pre-order walk, children in sequence order."""
    if root is None:
        return
    stack = [root]
    while stack:
        node = stack.pop()
        yield node
        stack.extend(reversed(node.children))


def count_nodes(root: Optional[TreeNode]) -> int:
    return sum(1 for _ in iter_nodes(root))


def find_node(root: Optional[TreeNode], node_id: str) -> Optional[TreeNode]:
    return next((n for n in iter_nodes(root) if n.id == node_id), None)


def validate_tree(root: TreeNode) -> TreeNode:
    """Check the invariants set_tree relies on. Returns root unchanged."""
    if root.depth != 0:
        raise InvalidTreeError(f"Root {root.id} must have depth 0, got {root.depth}")
    seen: set[str] = set()
    for node in iter_nodes(root):
        if node.id in seen:
            raise InvalidTreeError(f"Duplicate node id: {node.id}")
        seen.add(node.id)
        for child in node.children:
            if child.depth != node.depth + 1:
                raise InvalidTreeError(
                    f"Node {child.id} has depth {child.depth}, expected {node.depth + 1}"
                )
    return root


def normalize_ratios(weights: Sequence[float]) -> List[float]:
    """Rescale weights to w_i / sum(w). Zero total splits evenly."""
    if not weights:
        return []
    total = float(sum(weights))
    if total <= 0:
        return [1.0 / len(weights)] * len(weights)
    return [w / total for w in weights]


def ratio_drift(parts: Sequence[DecomposePart]) -> float:
    """Distance of the ratio sum from 1."""
    return abs(sum(p.ratio for p in parts) - 1.0)


def build_children(
    parent: TreeNode,
    parts: Sequence[DecomposePart],
    id_factory: IdFactory = new_node_id,
) -> List[TreeNode]:
    """Create fresh child nodes for parent from decomposition parts (ratios normalized)."""
    ratios = normalize_ratios([p.ratio for p in parts])
    return [
        TreeNode(id=id_factory(), label=p.text, depth=parent.depth + 1, ratio=min(r, 1.0), children=[])
        for p, r in zip(parts, ratios)
    ]


def make_root(label: str, id_factory: IdFactory = new_node_id) -> TreeNode:
    return TreeNode(id=id_factory(), label=label, depth=0, ratio=1.0, children=[])

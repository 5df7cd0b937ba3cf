"""
Flow store - the single live workflow tree plus its derived layout and highlight set.
All mutations go through reset / set_tree / grow_node; every mutation relays out the whole tree.
Readers only get copies (snapshot, tree), never the internal tree.
"""

from enum import Enum
from typing import Any, Callable, Dict, FrozenSet, Iterable, List, Optional, Sequence, Union

import networkx as nx
from loguru import logger
from pydantic import BaseModel, ConfigDict, Field

from layout import FlowLayout, apply_highlight, compute_flow_layout, layout_to_dict
from shared.graph import Relations, build_tree_graph, related_to

from .model import (
    DecomposePart,
    IdFactory,
    TreeNode,
    build_children,
    iter_nodes,
    new_node_id,
    validate_tree,
)


class GrowStatus(str, Enum):
    GROWN = "grown"
    NOT_FOUND = "not_found"
    ALREADY_EXPANDED = "already_expanded"
    EMPTY = "empty"
    # produced by FlowSession, never by the store itself
    STALE = "stale"
    IN_FLIGHT = "in_flight"


class GrowResult(BaseModel):
    model_config = ConfigDict(populate_by_name=True, frozen=True)
    status: GrowStatus
    node_id: str = Field(..., alias="nodeId")
    children: List[str] = Field(default_factory=list)

    @property
    def grown(self) -> bool:
        return self.status is GrowStatus.GROWN


class FlowSnapshot(BaseModel):
    """Read-only view of the store at one point in time."""
    model_config = ConfigDict(populate_by_name=True, frozen=True)
    tree: Optional[TreeNode] = None
    layout: FlowLayout = Field(default_factory=FlowLayout)
    highlight: FrozenSet[str] = frozenset()
    epoch: int = 0
    decomposing: List[str] = Field(default_factory=list)

    def to_payload(self) -> Dict[str, Any]:
        """Payload for the rendering layer / flow-update event."""
        out = layout_to_dict(self.layout)
        out["tree"] = self.tree.model_dump(by_alias=True) if self.tree is not None else None
        out["highlight"] = sorted(self.highlight)
        out["epoch"] = self.epoch
        out["decomposing"] = list(self.decomposing)
        return out


PartLike = Union[DecomposePart, Dict[str, Any]]
Listener = Callable[[FlowSnapshot], None]


class FlowStore:
    """Owns one tree model. Empty -> set_tree -> Populated -> grow_node* ; reset -> Empty."""

    def __init__(self, id_factory: IdFactory = new_node_id, **layout_options: Any):
        self._id_factory = id_factory
        self._layout_options = layout_options
        self._tree: Optional[TreeNode] = None
        self._index: Dict[str, TreeNode] = {}
        self._graph: nx.DiGraph = build_tree_graph(None)
        self._layout = FlowLayout()
        self._highlight: FrozenSet[str] = frozenset()
        self._decomposing: set[str] = set()
        self._listeners: List[Listener] = []
        self._epoch = 0

    # ---------- read side ----------

    @property
    def is_empty(self) -> bool:
        return self._tree is None

    @property
    def epoch(self) -> int:
        """Bumped whenever the tree is replaced or discarded."""
        return self._epoch

    @property
    def id_factory(self) -> IdFactory:
        return self._id_factory

    @property
    def root_id(self) -> Optional[str]:
        return self._tree.id if self._tree is not None else None

    @property
    def decomposing(self) -> List[str]:
        return sorted(self._decomposing)

    @property
    def tree(self) -> Optional[TreeNode]:
        return self._tree.model_copy(deep=True) if self._tree is not None else None

    @property
    def layout(self) -> FlowLayout:
        return self._layout.model_copy(deep=True)

    @property
    def highlight(self) -> FrozenSet[str]:
        return self._highlight

    @property
    def graph(self) -> nx.DiGraph:
        return self._graph.copy(as_view=True)

    def contains(self, node_id: str) -> bool:
        return node_id in self._index

    def get_node(self, node_id: str) -> Optional[TreeNode]:
        node = self._index.get(node_id)
        return node.model_copy(deep=True) if node is not None else None

    def related_to(self, node_id: str) -> Relations:
        return related_to(node_id, self._graph)

    def snapshot(self) -> FlowSnapshot:
        return FlowSnapshot(
            tree=self.tree,
            layout=self.layout,
            highlight=self._highlight,
            epoch=self._epoch,
            decomposing=sorted(self._decomposing),
        )

    # ---------- mutations ----------

    def reset(self) -> None:
        self._tree = None
        self._index = {}
        self._graph = build_tree_graph(None)
        self._layout = FlowLayout()
        self._highlight = frozenset()
        self._decomposing.clear()
        self._epoch += 1
        logger.debug("Flow reset (epoch {})", self._epoch)
        self._notify()

    def set_tree(self, root: Union[TreeNode, Dict[str, Any]]) -> None:
        """Replace the tree wholesale. Raises InvalidTreeError on depth/id violations."""
        if isinstance(root, TreeNode):
            root = TreeNode.model_validate(root.model_dump())
        else:
            root = TreeNode.model_validate(root)
        validate_tree(root)
        self._tree = root
        self._highlight = frozenset()
        self._decomposing.clear()
        self._epoch += 1
        self._reindex()
        self._relayout()
        logger.debug("Flow tree set: root={} nodes={}", root.id, len(self._index))
        self._notify()

    def grow_node(self, node_id: str, parts: Sequence[PartLike]) -> GrowResult:
        """Install children under a childless node. Ratios are normalized to sum to 1.
        Missing or already-expanded targets are ignored and reported in the result."""
        node = self._index.get(node_id)
        if node is None:
            logger.debug("grow_node ignored: {} not in tree", node_id)
            return GrowResult(status=GrowStatus.NOT_FOUND, node_id=node_id)
        if node.children:
            logger.debug("grow_node ignored: {} already has {} children", node_id, len(node.children))
            return GrowResult(status=GrowStatus.ALREADY_EXPANDED, node_id=node_id)

        validated = [p if isinstance(p, DecomposePart) else DecomposePart.model_validate(p) for p in parts]
        if not validated:
            return GrowResult(status=GrowStatus.EMPTY, node_id=node_id)

        children = build_children(node, validated, self._id_factory)
        node.children = children
        for child in children:
            self._index[child.id] = child
        self._graph = build_tree_graph(self._tree)
        self._highlight = frozenset(i for i in self._highlight if i in self._index)
        self._relayout()
        logger.debug("Grew {} with {} children", node_id, len(children))
        self._notify()
        return GrowResult(status=GrowStatus.GROWN, node_id=node_id, children=[c.id for c in children])

    def set_highlight(self, ids: Iterable[str]) -> None:
        """Replace the highlight set; ids not in the tree are dropped."""
        self._highlight = frozenset(i for i in ids if i in self._index)
        self._layout = apply_highlight(self._layout, self._highlight)
        self._notify()

    def clear_highlight(self) -> None:
        if not self._highlight:
            return
        self._highlight = frozenset()
        self._layout = apply_highlight(self._layout, self._highlight)
        self._notify()

    # ---------- in-flight guard ----------

    def begin_decomposition(self, node_id: str) -> bool:
        """Mark node_id as decomposing. False if it is already in flight."""
        if node_id in self._decomposing:
            return False
        self._decomposing.add(node_id)
        return True

    def end_decomposition(self, node_id: str) -> None:
        self._decomposing.discard(node_id)

    def is_decomposing(self, node_id: str) -> bool:
        return node_id in self._decomposing

    # ---------- listeners ----------

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Call listener with a snapshot after every change. Returns unsubscribe."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _notify(self) -> None:
        if not self._listeners:
            return
        snap = self.snapshot()
        for listener in list(self._listeners):
            try:
                listener(snap)
            except Exception:
                logger.exception("Flow listener failed")

    def _reindex(self) -> None:
        self._index = {n.id: n for n in iter_nodes(self._tree)}
        self._graph = build_tree_graph(self._tree)

    def _relayout(self) -> None:
        self._layout = compute_flow_layout(self._tree, self._highlight, **self._layout_options)

"""
Flow session - one store + one decomposition source, owned by the application.
Runs the async side of decomposition: the source is awaited outside the store, and the result
is installed only if the tree was not replaced or reset in the meantime.
"""

import asyncio
from typing import Any, Dict, FrozenSet, List, Optional, Union

from loguru import logger

from planner.source import MIN_LABEL_LENGTH, DecompositionError, DecompositionSource
from shared.graph import Relations, edge_highlight, node_highlight

from .model import TreeNode, make_root
from .store import FlowSnapshot, FlowStore, GrowResult, GrowStatus

MAX_DECOMPOSE_DEPTH = 5
MAX_CONCURRENT_CALLS = 10


class FlowSession:
    def __init__(
        self,
        store: FlowStore,
        source: DecompositionSource,
        min_label_length: int = MIN_LABEL_LENGTH,
        max_depth: int = MAX_DECOMPOSE_DEPTH,
        max_concurrency: int = MAX_CONCURRENT_CALLS,
    ):
        self.store = store
        self.source = source
        self.min_label_length = min_label_length
        self.max_depth = max_depth
        self.max_concurrency = max_concurrency

    def snapshot(self) -> FlowSnapshot:
        return self.store.snapshot()

    def reset(self) -> None:
        self.store.reset()

    def load_tree(self, root: Union[TreeNode, Dict[str, Any]]) -> FlowSnapshot:
        self.store.set_tree(root)
        return self.store.snapshot()

    async def generate(self, label: str, expand: bool = False) -> FlowSnapshot:
        """Start a new workflow from label; with expand=True decompose it down to leaves."""
        label = (label or "").strip()
        if not label:
            raise ValueError("Input is required to generate a workflow")
        self.store.reset()
        self.store.set_tree(make_root(label, self.store.id_factory))
        if expand:
            await self.expand_all()
        return self.store.snapshot()

    async def expand(self, node_id: str) -> GrowResult:
        """Decompose one childless node. Source failures raise DecompositionError and leave
        the tree unchanged; a result arriving after reset/set_tree is dropped (STALE)."""
        node = self.store.get_node(node_id)
        if node is None:
            return GrowResult(status=GrowStatus.NOT_FOUND, node_id=node_id)
        if node.children:
            return GrowResult(status=GrowStatus.ALREADY_EXPANDED, node_id=node_id)
        if len(node.label) < self.min_label_length:
            return GrowResult(status=GrowStatus.EMPTY, node_id=node_id)
        if not self.store.begin_decomposition(node_id):
            return GrowResult(status=GrowStatus.IN_FLIGHT, node_id=node_id)

        epoch = self.store.epoch
        try:
            parts = await self.source.decompose(node.label, self.store.tree, node_id)
        except DecompositionError:
            raise
        except Exception as e:
            logger.warning("Decomposition of {} failed: {}", node_id, e)
            raise DecompositionError(node_id=node_id) from e
        finally:
            if self.store.epoch == epoch:
                self.store.end_decomposition(node_id)

        if self.store.epoch != epoch:
            logger.info("Dropping stale decomposition for {}", node_id)
            return GrowResult(status=GrowStatus.STALE, node_id=node_id)
        return self.store.grow_node(node_id, parts)

    async def expand_all(self, node_id: Optional[str] = None) -> int:
        """Expand node_id (default root) and its descendants concurrently until leaves or
        max_depth. Stops early if the tree is replaced. Returns number of nodes grown."""
        if self.store.is_empty:
            return 0
        start = node_id or self.store.root_id
        epoch = self.store.epoch
        semaphore = asyncio.Semaphore(self.max_concurrency)
        grown = 0

        async def walk(nid: str) -> None:
            nonlocal grown
            if self.store.epoch != epoch:
                return
            node = self.store.get_node(nid)
            if node is None or node.depth >= self.max_depth:
                return
            if node.children:
                child_ids = [c.id for c in node.children]
            else:
                async with semaphore:
                    result = await self.expand(nid)
                if not result.grown:
                    return
                grown += 1
                child_ids = result.children
            outcomes = await asyncio.gather(*(walk(c) for c in child_ids), return_exceptions=True)
            errors = [o for o in outcomes if isinstance(o, BaseException)]
            if errors:
                raise errors[0]

        await walk(start)
        return grown

    def related_to(self, node_id: str) -> Relations:
        return self.store.related_to(node_id)

    def hover_node(self, node_id: str) -> FrozenSet[str]:
        self.store.set_highlight(node_highlight(node_id, self.store.graph))
        return self.store.highlight

    def hover_edge(self, source: str, target: str) -> FrozenSet[str]:
        self.store.set_highlight(edge_highlight(source, target, self.store.graph))
        return self.store.highlight

    def leave(self) -> None:
        self.store.clear_highlight()

    def decomposing(self) -> List[str]:
        return self.store.decomposing

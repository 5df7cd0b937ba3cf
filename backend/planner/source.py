"""
Decomposition source interface.
A source turns a node label (plus the current tree for context) into ordered child parts.
Zero parts means the node is a leaf.
"""

from typing import List, Optional, Protocol, runtime_checkable

from flow.model import DecomposePart, TreeNode

# Labels shorter than this are never sent to a source
MIN_LABEL_LENGTH = 2


class DecompositionError(Exception):
    """Source failed; the tree must be left unchanged."""

    def __init__(self, message: str = "Failed to decompose workflow", node_id: Optional[str] = None):
        super().__init__(message)
        self.node_id = node_id


@runtime_checkable
class DecompositionSource(Protocol):
    async def decompose(
        self,
        label: str,
        context_tree: Optional[TreeNode] = None,
        context_node_id: Optional[str] = None,
    ) -> List[DecomposePart]:
        ...

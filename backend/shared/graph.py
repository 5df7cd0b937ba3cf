"""
Graph utilities for the workflow tree.
Projects the tree onto a networkx DiGraph (parent -> child, children in order) and answers
relationship queries used for hover highlighting and for LLM prompt context.
"""

from typing import FrozenSet, List, NamedTuple, Optional, Tuple, Union

import networkx as nx

from flow.model import TreeNode, iter_nodes

TreeLike = Union[TreeNode, nx.DiGraph, None]


class Relations(NamedTuple):
    """ancestors root-first; siblings in sequence order; descendants pre-order."""
    ancestors: Tuple[str, ...] = ()
    siblings: Tuple[str, ...] = ()
    descendants: Tuple[str, ...] = ()

    def ids(self) -> FrozenSet[str]:
        return frozenset(self.ancestors) | frozenset(self.siblings) | frozenset(self.descendants)


EMPTY_RELATIONS = Relations()


def build_tree_graph(root: Optional[TreeNode]) -> nx.DiGraph:
    """Build DiGraph from tree. Edges are added in child order so successors() keeps sequence."""
    G = nx.DiGraph(root=root.id if root is not None else None)
    for node in iter_nodes(root):
        G.add_node(node.id, label=node.label, depth=node.depth, ratio=node.ratio)
        for child in node.children:
            G.add_edge(node.id, child.id)
    return G


def _as_graph(tree: TreeLike) -> nx.DiGraph:
    if isinstance(tree, nx.DiGraph):
        return tree
    return build_tree_graph(tree)


def get_parent_id(G: nx.DiGraph, node_id: str) -> Optional[str]:
    if node_id not in G:
        return None
    return next(iter(G.predecessors(node_id)), None)


def get_ancestor_chain(G: nx.DiGraph, node_id: str) -> List[str]:
    """Ancestor ids root-first, excluding node_id."""
    root = G.graph.get("root")
    if root is None or node_id not in G or node_id == root:
        return []
    try:
        return nx.shortest_path(G, root, node_id)[:-1]
    except nx.NetworkXNoPath:
        return []


def get_sibling_ids(G: nx.DiGraph, node_id: str) -> List[str]:
    parent = get_parent_id(G, node_id)
    if parent is None:
        return []
    return [c for c in G.successors(parent) if c != node_id]


def get_descendant_ids(G: nx.DiGraph, node_id: str) -> List[str]:
    if node_id not in G:
        return []
    return list(nx.dfs_preorder_nodes(G, node_id))[1:]


def related_to(node_id: str, tree: TreeLike) -> Relations:
    """Ancestors, siblings and descendants of node_id. Unknown ids give empty results."""
    G = _as_graph(tree)
    if node_id not in G:
        return EMPTY_RELATIONS
    return Relations(
        ancestors=tuple(get_ancestor_chain(G, node_id)),
        siblings=tuple(get_sibling_ids(G, node_id)),
        descendants=tuple(get_descendant_ids(G, node_id)),
    )


def node_highlight(node_id: str, tree: TreeLike) -> FrozenSet[str]:
    """Highlight set for hovering a node: the node plus its whole structural context."""
    G = _as_graph(tree)
    if node_id not in G:
        return frozenset()
    return related_to(node_id, G).ids() | {node_id}


def edge_highlight(source: str, target: str, tree: TreeLike) -> FrozenSet[str]:
    """Highlight set for hovering a connector: both endpoints and their contexts."""
    G = _as_graph(tree)
    ids = related_to(source, G).ids() | related_to(target, G).ids()
    return ids | {nid for nid in (source, target) if nid in G}


def render_tree_outline(root: Optional[TreeNode], current_id: Optional[str] = None, indent: str = "") -> str:
    """Indented label outline; the node being decomposed is marked with '▶ '."""
    if root is None:
        return ""
    prefix = "▶ " if root.id == current_id else "  "
    lines = [f"{indent}{prefix}{root.label}\n"]
    for child in root.children:
        lines.append(render_tree_outline(child, current_id, indent + "  "))
    return "".join(lines)


def label_path(root: Optional[TreeNode], node_id: str) -> List[str]:
    """Labels from root down to node_id, e.g. ['Job', 'Build', 'Test']. Empty if not found."""
    if root is None:
        return []
    G = build_tree_graph(root)
    if node_id not in G:
        return []
    path = get_ancestor_chain(G, node_id) + [node_id]
    return [G.nodes[nid]["label"] for nid in path]

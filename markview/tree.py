"""
Tree flattening and ancestry indexing.

The host delivers bookmarks as a nested tree. The query engine works on a
flat, pre-ordered list of nodes plus an ancestor index mapping every node
id to the set of folder ids above it. Both are rebuilt wholesale from each
new snapshot.
"""
import logging
from dataclasses import dataclass, field
from typing import Dict, FrozenSet, Iterable, List, Mapping, Optional, Sequence

from markview.errors import StructuralError
from markview.models import BookmarkNode

logger = logging.getLogger(__name__)

DEFAULT_MAX_DEPTH = 256

AncestorIndex = Dict[str, FrozenSet[str]]


@dataclass
class FlatTree:
    """Flattened snapshot of a bookmark tree."""
    nodes: List[BookmarkNode] = field(default_factory=list)
    ancestors: AncestorIndex = field(default_factory=dict)

    def __post_init__(self):
        self._by_id = {node.id: node for node in self.nodes}

    @property
    def by_id(self) -> Dict[str, BookmarkNode]:
        return self._by_id

    def get(self, node_id: str) -> Optional[BookmarkNode]:
        return self._by_id.get(node_id)

    def __len__(self) -> int:
        return len(self.nodes)


def flatten_tree(roots: Sequence[BookmarkNode], max_depth: int = DEFAULT_MAX_DEPTH) -> FlatTree:
    """
    Flatten a nested bookmark tree in pre-order.

    Each node's ancestor set is a copy of its parent's set plus the
    parent's own id. A root maps to the empty set, unless it declares a
    parent_id (a subtree delivered on its own): that parent then counts
    as its one known ancestor, as build_ancestor_index would record it.

    Args:
        roots: Top-level nodes as delivered by the host
        max_depth: Nesting bound; deeper trees are treated as cyclic

    Returns:
        FlatTree with folders and leaves, parents before children

    Raises:
        StructuralError: On cycles, duplicate ids, parent_id disagreeing
            with the enclosing folder, or nesting deeper than max_depth
    """
    nodes: List[BookmarkNode] = []
    ancestors: AncestorIndex = {}

    # (node, ancestors of node, enclosing folder, depth)
    stack = [(root, _root_ancestors(root), None, 1) for root in reversed(roots)]
    while stack:
        node, inherited, parent, depth = stack.pop()

        if depth > max_depth:
            raise StructuralError(
                f"Bookmark tree deeper than {max_depth} levels at node {node.id!r}; "
                f"assuming a cycle"
            )
        if node.id in inherited:
            raise StructuralError(f"Cycle detected: node {node.id!r} is its own ancestor")
        if node.id in ancestors:
            raise StructuralError(f"Duplicate node id {node.id!r} in bookmark tree")
        if parent is not None and node.parent_id is not None and node.parent_id != parent.id:
            raise StructuralError(
                f"Node {node.id!r} declares parent {node.parent_id!r} "
                f"but is nested under {parent.id!r}"
            )

        nodes.append(node)
        ancestors[node.id] = inherited

        if node.children:
            below = inherited | {node.id}
            stack.extend((child, below, node, depth + 1) for child in reversed(node.children))

    logger.debug(f"Flattened bookmark tree: {len(nodes)} nodes")
    return FlatTree(nodes=nodes, ancestors=ancestors)


def _root_ancestors(root: BookmarkNode) -> FrozenSet[str]:
    return frozenset({root.parent_id}) if root.parent_id is not None else frozenset()


def build_ancestor_index(nodes: Iterable[BookmarkNode],
                         max_depth: int = DEFAULT_MAX_DEPTH) -> AncestorIndex:
    """
    Derive the ancestor index from parent_id back-links alone.

    Used for hosts that deliver a flat node list. Each walk keeps its own
    visited set so a parent_id loop fails fast instead of spinning.

    Raises:
        StructuralError: If a parent_id chain loops or exceeds max_depth
    """
    by_id = {node.id: node for node in nodes}
    index: AncestorIndex = {}

    for node in by_id.values():
        visited = {node.id}
        found = []
        parent_id = node.parent_id
        while parent_id is not None:
            if parent_id in visited:
                raise StructuralError(f"Cycle detected in parent links of node {node.id!r}")
            if len(found) >= max_depth:
                raise StructuralError(f"Parent chain of node {node.id!r} exceeds {max_depth} levels")
            visited.add(parent_id)
            found.append(parent_id)
            parent = by_id.get(parent_id)
            parent_id = parent.parent_id if parent else None
        index[node.id] = frozenset(found)

    return index


def folder_path(folder_id: str, by_id: Mapping[str, BookmarkNode]) -> str:
    """
    Human readable path of a folder, e.g. "Root / Bookmarks bar / Work".

    Falls back to the id itself when the folder is unknown.
    """
    path: List[str] = []
    seen = set()
    current = by_id.get(folder_id)
    while current is not None and current.id not in seen:
        seen.add(current.id)
        path.insert(0, current.title or "Root")
        if not current.parent_id or current.id == "0":
            break
        current = by_id.get(current.parent_id)
    return " / ".join(path) or folder_id


@dataclass
class FolderTreeNode:
    """A folder in the folder-only tree shown in a sidebar."""
    id: str
    title: str
    parent_id: Optional[str] = None
    children: List["FolderTreeNode"] = field(default_factory=list)


def build_folder_tree(nodes: Iterable[BookmarkNode]) -> List[FolderTreeNode]:
    """
    Build a tree of folders only from a flat node list.

    Folders whose parent is not part of the list become roots.
    """
    folder_map: Dict[str, FolderTreeNode] = {}
    for node in nodes:
        if node.is_folder:
            folder_map[node.id] = FolderTreeNode(
                id=node.id,
                title=node.title or "(Untitled)",
                parent_id=node.parent_id,
            )

    roots: List[FolderTreeNode] = []
    for folder in folder_map.values():
        if folder.parent_id and folder.parent_id in folder_map:
            folder_map[folder.parent_id].children.append(folder)
        else:
            roots.append(folder)
    return roots

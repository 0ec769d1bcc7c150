"""
Query pipeline and engine state.

run_query is the pure pipeline: given the flattened tree, the filters and
the sort settings it produces the display set. QueryEngine owns the state
those inputs come from and recomputes on a fixed set of events:

- the host tree changed (refresh)
- the active filter list changed
- the sort key or direction changed

Recompute failures never escape the engine. The previous display set is
kept and the error is exposed as ``last_error``.
"""

import logging
from functools import reduce
from typing import Callable, Iterable, List, Optional, Sequence, Tuple, Union

from markview.errors import MarkviewError, StructuralError
from markview.host import BookmarkStore
from markview.models import BookmarkNode, SortDirection, SortKey
from markview.query.filter_set import FilterSet
from markview.query.filters import Filter, evaluate
from markview.query.sorting import sort_nodes
from markview.query.tags import TagIndex
from markview.tree import DEFAULT_MAX_DEPTH, AncestorIndex, FlatTree, flatten_tree

logger = logging.getLogger(__name__)

DisplayListener = Callable[[List[BookmarkNode]], None]


def run_query(
    nodes: Iterable[BookmarkNode],
    ancestors: AncestorIndex,
    filters: Sequence[Filter] = (),
    sort_key: Union[SortKey, str] = SortKey.DATE_ADDED,
    direction: Union[SortDirection, str] = SortDirection.DESC,
) -> List[BookmarkNode]:
    """
    Compute a display set.

    Steps:
        1. Drop folders; they are never output rows
        2. Apply the filters left to right, each narrowing the previous result
        3. Sort

    The result depends only on the arguments, so equal inputs always give
    the same order, ties included.
    """
    leaves = [node for node in nodes if not node.is_folder]
    matching = reduce(lambda acc, f: evaluate(f, acc, ancestors), filters, leaves)
    return sort_nodes(matching, sort_key, direction)


class QueryEngine:
    """
    Owns the query inputs and the derived display set.

    Example:
        engine = QueryEngine(MemoryBookmarkStore(tree))
        engine.filters.add(TagFilter("python"))
        engine.set_sort_key("title")
        for node in engine.display:
            print(node.title)
    """

    def __init__(
        self,
        host: BookmarkStore,
        filters: Optional[FilterSet] = None,
        sort_key: Union[SortKey, str] = SortKey.DATE_ADDED,
        direction: Union[SortDirection, str] = SortDirection.DESC,
        max_depth: int = DEFAULT_MAX_DEPTH,
        subscribe: bool = True,
    ):
        self.host = host
        self.filters = filters if filters is not None else FilterSet()
        self.sort_key = SortKey(sort_key)
        self.sort_direction = SortDirection(direction)
        self.max_depth = max_depth

        self.tree = FlatTree()
        self.display: List[BookmarkNode] = []
        self.tags = TagIndex()
        self.last_error: Optional[MarkviewError] = None

        self._listeners: List[DisplayListener] = []
        self._unsubscribe: List[Callable[[], None]] = [
            self.filters.subscribe(lambda _filters: self.recompute())
        ]
        if subscribe:
            self._unsubscribe.append(self.host.subscribe(self.refresh))

        self.refresh()

    @property
    def all_nodes(self) -> List[BookmarkNode]:
        """Every node of the current snapshot, folders included."""
        return self.tree.nodes

    def on_display_change(self, listener: DisplayListener) -> Callable[[], None]:
        self._listeners.append(listener)
        return lambda: self._listeners.remove(listener)

    def refresh(self) -> None:
        """Re-read the host tree and recompute. Called on every change signal."""
        try:
            roots = self.host.get_tree()
            tree = flatten_tree(roots, max_depth=self.max_depth)
        except StructuralError as e:
            logger.error(f"Bookmark tree rejected, keeping previous results: {e}")
            self.last_error = e
            return
        except OSError as e:
            logger.error(f"Could not read bookmark tree, keeping previous results: {e}")
            self.last_error = StructuralError(f"Host read failed: {e}")
            return
        except (KeyError, TypeError, ValueError) as e:
            logger.error(f"Malformed bookmark data, keeping previous results: {e!r}")
            self.last_error = StructuralError(f"Malformed bookmark data: {e!r}")
            return

        self.tree = tree
        self.recompute()

    def recompute(self) -> None:
        """Rebuild the display set and tag index from the current inputs."""
        try:
            display = run_query(
                self.tree.nodes,
                self.tree.ancestors,
                self.filters.list,
                self.sort_key,
                self.sort_direction,
            )
        except MarkviewError as e:
            logger.error(f"Query failed, keeping previous results: {e}")
            self.last_error = e
            return
        except (TypeError, ValueError) as e:
            logger.error(f"Query failed, keeping previous results: {e}")
            self.last_error = MarkviewError(f"Query failed: {e}")
            return

        self.display = display
        self.tags = TagIndex.from_nodes(display)
        self.last_error = None
        logger.debug(
            f"Display set: {len(display)} of {len(self.tree)} nodes "
            f"({len(self.filters)} filters, {self.sort_key.value} {self.sort_direction.value})"
        )
        for listener in list(self._listeners):
            listener(display)

    def set_sort_key(self, key: Union[SortKey, str]) -> None:
        key = SortKey(key)
        if key is self.sort_key:
            return
        self.sort_key = key
        self.recompute()

    def set_sort_direction(self, direction: Union[SortDirection, str]) -> None:
        direction = SortDirection(direction)
        if direction is self.sort_direction:
            return
        self.sort_direction = direction
        self.recompute()

    def toggle_sort_direction(self) -> SortDirection:
        self.set_sort_direction(self.sort_direction.toggled())
        return self.sort_direction

    def rename_bookmark(self, node_id: str, title: str) -> None:
        """
        Ask the host to rename a node.

        Local state is not patched; the host's change signal triggers a
        refresh with the new title.
        """
        self.host.update(node_id, title)

    @property
    def sort(self) -> Tuple[SortKey, SortDirection]:
        return self.sort_key, self.sort_direction

    def close(self) -> None:
        """Detach from the host store and the filter set."""
        for unsubscribe in self._unsubscribe:
            unsubscribe()
        self._unsubscribe = []

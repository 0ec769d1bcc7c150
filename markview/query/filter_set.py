"""
The active filter list.

FilterSet owns the ordered filters fed into the query pipeline. The list
is held as an immutable tuple and every mutation swaps in a whole new
tuple, so readers never observe a half-applied change.
"""

import logging
import threading
from typing import Callable, Iterable, Iterator, List, Optional, Tuple

from markview.errors import FilterConstructionError
from markview.query.filters import Filter, FolderFilter, StrictFolderFilter, TagFilter

logger = logging.getLogger(__name__)

Listener = Callable[[Tuple[Filter, ...]], None]


class FilterSet:
    """
    Ordered list of active filters.

    At most one filter per (kind, discriminant) is present: adding the
    opposite polarity of an active filter replaces it, adding an identical
    filter does nothing.

    Example:
        filters = FilterSet()
        filters.add(TagFilter("python"))
        filters.add(TagFilter("python", negative=True))
        filters.list  # (TagFilter(tag='python', negative=True),)
    """

    def __init__(self, filters: Optional[Iterable[Filter]] = None):
        self._filters: Tuple[Filter, ...] = ()
        self._lock = threading.Lock()
        self._listeners: List[Listener] = []
        if filters:
            self.set(filters)

    @property
    def list(self) -> Tuple[Filter, ...]:
        """Current filters, in application order."""
        return self._filters

    def __len__(self) -> int:
        return len(self._filters)

    def __iter__(self) -> Iterator[Filter]:
        return iter(self._filters)

    def __contains__(self, filter: Filter) -> bool:
        return filter in self._filters

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Register a callback fired after every effective change."""
        self._listeners.append(listener)
        return lambda: self._listeners.remove(listener)

    def add(self, filter: Filter) -> None:
        """Add a filter, replacing its opposite polarity if present."""
        _check(filter)
        with self._lock:
            current = self._filters
            if filter in current:
                return
            opposite = filter.opposite()
            updated = tuple(f for f in current if f != opposite) + (filter,)
            self._filters = updated
        self._notify(updated)

    def remove(self, filter: Filter) -> None:
        """Remove a filter by value; absent filters are ignored."""
        with self._lock:
            current = self._filters
            if filter not in current:
                return
            updated = tuple(f for f in current if f != filter)
            self._filters = updated
        self._notify(updated)

    def remove_last(self) -> Optional[Filter]:
        """Drop the most recently added filter and return it."""
        with self._lock:
            if not self._filters:
                return None
            last = self._filters[-1]
            updated = self._filters[:-1]
            self._filters = updated
        self._notify(updated)
        return last

    def clear(self) -> None:
        with self._lock:
            if not self._filters:
                return
            self._filters = ()
        self._notify(())

    def set(self, filters: Iterable[Filter]) -> None:
        """
        Replace the whole list at once.

        Every item is validated before anything changes; one bad item
        rejects the batch.
        """
        updated = tuple(filters)
        for f in updated:
            _check(f)
        with self._lock:
            if updated == self._filters:
                return
            self._filters = updated
        self._notify(updated)

    def state_of_tag(self, tag: str) -> Optional[str]:
        """'positive', 'negative' or None for a tag in the sidebar."""
        for f in self._filters:
            if isinstance(f, TagFilter) and f.tag.lower() == tag.lower():
                return "negative" if f.negative else "positive"
        return None

    def state_of_folder(self, folder_id: str) -> Optional[str]:
        """'positive', 'negative', 'strict' or None for a folder in the sidebar."""
        for f in self._filters:
            if isinstance(f, FolderFilter) and f.folder_id == folder_id:
                return "negative" if f.negative else "positive"
            if isinstance(f, StrictFolderFilter) and f.folder_id == folder_id:
                return "strict"
        return None

    def _notify(self, filters: Tuple[Filter, ...]) -> None:
        for listener in list(self._listeners):
            listener(filters)

    def __repr__(self) -> str:
        return f"FilterSet({list(self._filters)!r})"


def _check(filter: object) -> None:
    if not isinstance(filter, Filter):
        raise FilterConstructionError(f"Not a filter: {filter!r}")

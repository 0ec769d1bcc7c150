"""
Sorting of display sets.

Each sort key maps to a key function; direction only flips the order.
Python's sort is stable in both directions, so nodes with equal keys keep
the relative order the pipeline fed in.
"""

import locale
import logging
from typing import Any, Callable, Dict, Iterable, List, Union

from markview.models import BookmarkNode, SortDirection, SortKey

logger = logging.getLogger(__name__)


def _title_key(node: BookmarkNode) -> Any:
    # strxfrm rejects embedded NUL; casefold keeps "apple" before "Zebra" in the C locale
    title = node.title.replace("\x00", "")
    return (locale.strxfrm(title.casefold()), title)


# Missing timestamps sort as the epoch (oldest)
SORT_KEYS: Dict[SortKey, Callable[[BookmarkNode], Any]] = {
    SortKey.ID: lambda node: node.id,
    SortKey.TITLE: _title_key,
    SortKey.DATE_ADDED: lambda node: node.date_added or 0,
    SortKey.DATE_LAST_USED: lambda node: node.date_last_used or 0,
}


def sort_nodes(
    nodes: Iterable[BookmarkNode],
    key: Union[SortKey, str] = SortKey.DATE_ADDED,
    direction: Union[SortDirection, str] = SortDirection.DESC,
) -> List[BookmarkNode]:
    """
    Return the nodes ordered by key and direction.

    Args:
        nodes: Nodes in pipeline order
        key: SortKey or its string value ("id", "title", "dateAdded", "dateLastUsed")
        direction: SortDirection or "asc"/"desc"

    Raises:
        ValueError: Unknown key or direction
    """
    key = SortKey(key)
    direction = SortDirection(direction)
    return sorted(nodes, key=SORT_KEYS[key], reverse=direction is SortDirection.DESC)


def use_system_collation() -> bool:
    """
    Collate titles by the user's locale (LC_COLLATE from the environment).

    Returns:
        False if the environment names a locale that is not installed
    """
    try:
        locale.setlocale(locale.LC_COLLATE, "")
    except locale.Error as e:
        logger.warning(f"Unsupported collation locale, sorting titles by code point: {e}")
        return False
    return True

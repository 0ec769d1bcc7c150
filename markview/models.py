"""
Data model for MarkView.

BookmarkNode is a read-only snapshot of one entry in the host bookmark
tree. The host store owns the canonical data; the engine rebuilds these
snapshots on every change notification and never edits them in place.
"""
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Optional, Tuple


class SortKey(str, Enum):
    """Fields the display set can be ordered by."""
    ID = "id"
    TITLE = "title"
    DATE_ADDED = "dateAdded"
    DATE_LAST_USED = "dateLastUsed"


class SortDirection(str, Enum):
    """Sort direction."""
    ASC = "asc"
    DESC = "desc"

    def toggled(self) -> "SortDirection":
        return SortDirection.ASC if self is SortDirection.DESC else SortDirection.DESC


@dataclass(frozen=True)
class BookmarkNode:
    """
    One entry in the host bookmark tree.

    Attributes:
        id: Unique id, stable for the session
        title: Display title, may embed whitespace-delimited #tag tokens
        url: Target URL; None marks the node as a folder
        parent_id: Id of the containing folder (None only for tree roots)
        date_added: Creation time in ms since the Unix epoch
        date_last_used: Last use time in ms since the Unix epoch
        children: Child nodes, in host order (folders only)
    """
    id: str
    title: str = ""
    url: Optional[str] = None
    parent_id: Optional[str] = None
    date_added: Optional[int] = None
    date_last_used: Optional[int] = None
    children: Tuple["BookmarkNode", ...] = field(default=(), repr=False, compare=False)

    @property
    def is_folder(self) -> bool:
        """Folders have no url."""
        return self.url is None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "BookmarkNode":
        """
        Build a node (and its subtree) from the browser bookmarks API shape.

        Expected keys: id, title, url, parentId, dateAdded, dateLastUsed,
        children. Only id is required.
        """
        children = tuple(cls.from_dict(child) for child in data.get("children") or [])
        return cls(
            id=str(data["id"]),
            title=data.get("title") or "",
            url=data.get("url"),
            parent_id=str(data["parentId"]) if data.get("parentId") is not None else None,
            date_added=_as_millis(data.get("dateAdded")),
            date_last_used=_as_millis(data.get("dateLastUsed")),
            children=children,
        )

    def to_dict(self, include_children: bool = True) -> Dict[str, Any]:
        """Convert back to the browser bookmarks API shape."""
        result: Dict[str, Any] = {"id": self.id, "title": self.title}
        if self.url is not None:
            result["url"] = self.url
        if self.parent_id is not None:
            result["parentId"] = self.parent_id
        if self.date_added is not None:
            result["dateAdded"] = self.date_added
        if self.date_last_used is not None:
            result["dateLastUsed"] = self.date_last_used
        if include_children and self.is_folder:
            result["children"] = [c.to_dict() for c in self.children]
        return result

    def tags(self) -> Tuple[str, ...]:
        """Tag tokens embedded in the title, without the # marker."""
        return tuple(
            word[1:] for word in self.title.split()
            if word.startswith("#") and len(word) > 1
        )


def _as_millis(value: Any) -> Optional[int]:
    if value is None or value == "":
        return None
    return int(float(value))

"""
Filter system for the query pipeline.

A filter is a boolean test over bookmark nodes. The family is closed: one
frozen dataclass per filter kind, each implementing its own raw match.
Every filter carries a ``negative`` flag; the evaluator keeps a node when
the raw match differs from that flag.

Filters compare structurally, so two separately built
``TagFilter("js")`` instances are the same filter.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, replace
from typing import Any, ClassVar, Dict, Iterable, List, Mapping, Optional, Tuple, Type

from markview.errors import FilterConstructionError
from markview.models import BookmarkNode
from markview.tree import AncestorIndex


class Filter(ABC):
    """
    Abstract base for filters.

    Subclasses declare ``kind`` (the wire type name), ``wire_field`` (the
    key holding the discriminating value) and ``attribute`` (the dataclass
    field holding it).
    """

    kind: ClassVar[str]
    wire_field: ClassVar[str]
    attribute: ClassVar[str]
    negative: bool

    @abstractmethod
    def matches(self, node: BookmarkNode, ancestors: AncestorIndex) -> bool:
        """Raw match, before negation is applied."""
        pass

    def keeps(self, node: BookmarkNode, ancestors: AncestorIndex) -> bool:
        """Whether the node survives this filter."""
        return self.matches(node, ancestors) != self.negative

    @property
    def discriminant(self) -> str:
        return getattr(self, self.attribute)

    @property
    def identity(self) -> Tuple[str, str]:
        """(kind, discriminant); polarity is not part of identity."""
        return (self.kind, self.discriminant)

    def opposite(self) -> "Filter":
        """The same filter with inverted polarity."""
        return replace(self, negative=not self.negative)

    def to_dict(self) -> Dict[str, Any]:
        return {"type": self.kind, self.wire_field: self.discriminant, "negative": self.negative}

    def _validate(self, allow_empty: bool = True):
        value = self.discriminant
        if not isinstance(value, str):
            raise FilterConstructionError(
                f"{self.kind} filter needs a string {self.wire_field!r}, got {value!r}"
            )
        if not allow_empty and not value:
            raise FilterConstructionError(f"{self.kind} filter needs a non-empty {self.wire_field!r}")
        if not isinstance(self.negative, bool):
            raise FilterConstructionError(f"'negative' must be a boolean, got {self.negative!r}")


def _contains(needle: str, haystack: Optional[str]) -> bool:
    """Case-insensitive substring test; a missing field never matches."""
    if haystack is None:
        return False
    return needle.lower() in haystack.lower()


@dataclass(frozen=True)
class AnyFilter(Filter):
    """Substring match against title or url."""
    kind: ClassVar[str] = "any"
    wire_field: ClassVar[str] = "value"
    attribute: ClassVar[str] = "value"

    value: str
    negative: bool = False

    def __post_init__(self):
        self._validate()

    def matches(self, node: BookmarkNode, ancestors: AncestorIndex) -> bool:
        return _contains(self.value, node.title) or _contains(self.value, node.url)


@dataclass(frozen=True)
class TagFilter(Filter):
    """Title contains #<tag> as a case-insensitive substring."""
    kind: ClassVar[str] = "tag"
    wire_field: ClassVar[str] = "tag"
    attribute: ClassVar[str] = "tag"

    tag: str
    negative: bool = False

    def __post_init__(self):
        self._validate(allow_empty=False)

    def matches(self, node: BookmarkNode, ancestors: AncestorIndex) -> bool:
        return _contains(f"#{self.tag}", node.title)


@dataclass(frozen=True)
class TitleFilter(Filter):
    """Substring match against the title."""
    kind: ClassVar[str] = "title"
    wire_field: ClassVar[str] = "title"
    attribute: ClassVar[str] = "title"

    title: str
    negative: bool = False

    def __post_init__(self):
        self._validate()

    def matches(self, node: BookmarkNode, ancestors: AncestorIndex) -> bool:
        return _contains(self.title, node.title)


@dataclass(frozen=True)
class UrlFilter(Filter):
    """Substring match against the url."""
    kind: ClassVar[str] = "url"
    wire_field: ClassVar[str] = "url"
    attribute: ClassVar[str] = "url"

    url: str
    negative: bool = False

    def __post_init__(self):
        self._validate()

    def matches(self, node: BookmarkNode, ancestors: AncestorIndex) -> bool:
        return _contains(self.url, node.url)


@dataclass(frozen=True)
class FolderFilter(Filter):
    """
    Node lives anywhere below the folder, nested subfolders included.

    Negated, it hides the folder's whole subtree.
    """
    kind: ClassVar[str] = "folder"
    wire_field: ClassVar[str] = "folderId"
    attribute: ClassVar[str] = "folder_id"

    folder_id: str
    negative: bool = False

    def __post_init__(self):
        self._validate(allow_empty=False)

    def matches(self, node: BookmarkNode, ancestors: AncestorIndex) -> bool:
        return self.folder_id in ancestors.get(node.id, frozenset())


@dataclass(frozen=True)
class StrictFolderFilter(Filter):
    """Node is an immediate child of the folder."""
    kind: ClassVar[str] = "strict_folder"
    wire_field: ClassVar[str] = "folderId"
    attribute: ClassVar[str] = "folder_id"

    folder_id: str
    negative: bool = False

    def __post_init__(self):
        self._validate(allow_empty=False)

    def matches(self, node: BookmarkNode, ancestors: AncestorIndex) -> bool:
        return node.parent_id == self.folder_id


FILTER_TYPES: Dict[str, Type[Filter]] = {
    cls.kind: cls
    for cls in (AnyFilter, TagFilter, TitleFilter, UrlFilter, FolderFilter, StrictFolderFilter)
}


def evaluate(filter: Filter, candidates: Iterable[BookmarkNode],
             ancestors: AncestorIndex) -> List[BookmarkNode]:
    """
    Apply one filter to a candidate list.

    Args:
        filter: Filter to apply
        candidates: Nodes to test, in order
        ancestors: Ancestor index of the current tree

    Returns:
        Nodes that survive the filter, original order preserved
    """
    return [node for node in candidates if filter.keeps(node, ancestors)]


def filter_from_dict(data: Mapping[str, Any]) -> Filter:
    """
    Build a filter from its wire form.

    Example:
        filter_from_dict({"type": "folder", "folderId": "12", "negative": True})

    Raises:
        FilterConstructionError: Unknown type or missing discriminant
    """
    if not isinstance(data, Mapping):
        raise FilterConstructionError(f"Filter must be a mapping, got {type(data).__name__}")

    kind = data.get("type")
    cls = FILTER_TYPES.get(kind)
    if cls is None:
        raise FilterConstructionError(f"Unknown filter type: {kind!r}")

    if cls.wire_field not in data:
        raise FilterConstructionError(f"{kind} filter is missing {cls.wire_field!r}")

    return cls(data[cls.wire_field], negative=data.get("negative", False))


def filters_from_list(items: Iterable[Mapping[str, Any]]) -> List[Filter]:
    """Build a list of filters, failing on the first bad entry."""
    return [filter_from_dict(item) for item in items]


def filters_to_list(filters: Iterable[Filter]) -> List[Dict[str, Any]]:
    return [f.to_dict() for f in filters]

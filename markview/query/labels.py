"""
Text forms of filters.

Covers the filter input syntax typed by users and the short labels shown
for active filters and saved views.

Input syntax (a leading ``-`` negates any form):

    #python              tag filter
    folder:12            folder and all its subfolders
    strictfolder:12      immediate children of folder 12
    title:release notes  title substring
    url:github.com       url substring
    anything else        title or url substring
"""

from typing import Mapping

from markview.errors import FilterConstructionError
from markview.models import BookmarkNode
from markview.query.filters import (
    AnyFilter,
    Filter,
    FolderFilter,
    StrictFolderFilter,
    TagFilter,
    TitleFilter,
    UrlFilter,
)
from markview.tree import folder_path

# Prefix -> filter class; checked in order
PREFIXES = (
    ("folder:", FolderFilter),
    ("strictfolder:", StrictFolderFilter),
    ("title:", TitleFilter),
    ("url:", UrlFilter),
)


def parse_filter_text(text: str) -> Filter:
    """
    Turn one typed filter expression into a filter.

    Raises:
        FilterConstructionError: Empty input, or a prefix with nothing after it
            where a value is required
    """
    if not text or not text.strip():
        raise FilterConstructionError("Empty filter expression")

    negative = text.startswith("-")
    clean = text[1:] if negative else text
    if not clean.strip():
        raise FilterConstructionError(f"Empty filter expression: {text!r}")

    if clean.startswith("#"):
        return TagFilter(clean[1:], negative=negative)

    for prefix, cls in PREFIXES:
        if clean.startswith(prefix):
            return cls(clean[len(prefix):], negative=negative)

    return AnyFilter(clean, negative=negative)


def filter_label(filter: Filter, by_id: Mapping[str, BookmarkNode]) -> str:
    """Short text for an active filter capsule."""
    if isinstance(filter, TagFilter):
        return f"#{filter.tag}"
    if isinstance(filter, FolderFilter):
        return f"folder:{folder_path(filter.folder_id, by_id)}"
    if isinstance(filter, StrictFolderFilter):
        return f"strict:{folder_path(filter.folder_id, by_id)}"
    if isinstance(filter, TitleFilter):
        return f"title:{filter.title}"
    if isinstance(filter, UrlFilter):
        return f"url:{filter.url}"
    return filter.discriminant


def filter_description(filter: Filter, by_id: Mapping[str, BookmarkNode]) -> str:
    """Longer explanatory text, e.g. for a tooltip."""
    prefix = "Negative filter for" if filter.negative else "Filter for"
    if isinstance(filter, TagFilter):
        return f"{prefix} tag: #{filter.tag}"
    if isinstance(filter, FolderFilter):
        return f"{prefix} folder: {folder_path(filter.folder_id, by_id)} ({filter.folder_id})"
    if isinstance(filter, StrictFolderFilter):
        return f"{prefix} strict folder: {folder_path(filter.folder_id, by_id)} ({filter.folder_id})"
    if isinstance(filter, TitleFilter):
        return f"{prefix} title: '{filter.title}'"
    if isinstance(filter, UrlFilter):
        return f"{prefix} URL: {filter.url}"
    return f"{prefix} title or URL: {filter.discriminant}"


def view_label_part(filter: Filter, by_id: Mapping[str, BookmarkNode]) -> str:
    """Compact label used when a saved view has no name."""
    prefix = "!" if filter.negative else ""
    if isinstance(filter, TagFilter):
        return f"{prefix}#{filter.tag}"
    if isinstance(filter, (FolderFilter, StrictFolderFilter)):
        folder = by_id.get(filter.folder_id)
        return f"{prefix}{(folder.title if folder else '') or 'Folder'}"
    if isinstance(filter, TitleFilter):
        return f"{prefix}T:{filter.title}"
    if isinstance(filter, UrlFilter):
        return f"{prefix}U:{filter.url}"
    return f"{prefix}{filter.discriminant}"

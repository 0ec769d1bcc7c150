"""
MarkView query engine.

Turns a flattened bookmark tree into an ordered display set:

1. Filters: a closed family of boolean tests, each with a polarity
2. FilterSet: the active filter list with toggle-on-opposite semantics
3. Sorting: stable ordering by id, title, date added or date last used
4. Pipeline: folders dropped, filters intersected left to right, sorted
5. TagIndex: #tag frequencies of the display set

Example:
    from markview.host import MemoryBookmarkStore
    from markview.query import QueryEngine, TagFilter

    engine = QueryEngine(MemoryBookmarkStore(tree))
    engine.filters.add(TagFilter("python"))
    for node in engine.display:
        print(node.title)
"""

from markview.query.filters import (
    Filter,
    AnyFilter,
    TagFilter,
    TitleFilter,
    UrlFilter,
    FolderFilter,
    StrictFolderFilter,
    FILTER_TYPES,
    evaluate,
    filter_from_dict,
    filters_from_list,
    filters_to_list,
)

from markview.query.filter_set import FilterSet
from markview.query.sorting import sort_nodes
from markview.query.tags import TagIndex
from markview.query.labels import (
    parse_filter_text,
    filter_label,
    filter_description,
)
from markview.query.pipeline import QueryEngine, run_query

__all__ = [
    # Filters
    "Filter",
    "AnyFilter",
    "TagFilter",
    "TitleFilter",
    "UrlFilter",
    "FolderFilter",
    "StrictFolderFilter",
    "FILTER_TYPES",
    "evaluate",
    "filter_from_dict",
    "filters_from_list",
    "filters_to_list",
    # State
    "FilterSet",
    # Sorting and tags
    "sort_nodes",
    "TagIndex",
    # Labels
    "parse_filter_text",
    "filter_label",
    "filter_description",
    # Pipeline
    "QueryEngine",
    "run_query",
]

"""
MarkView - Bookmark Query Engine

Filters, sorts and saves views of a browser's bookmark tree.

Design Principles:
- The browser's bookmark store stays the single source of truth
- Every change notification rebuilds state from a fresh snapshot
- Filters compose by intersection; each carries its own polarity
- Sorting is stable, so identical inputs give identical output

Example Usage:
    >>> from markview import ChromeBookmarksFile, QueryEngine, TagFilter
    >>> engine = QueryEngine(ChromeBookmarksFile("~/.config/chromium/Default/Bookmarks"))
    >>> engine.filters.add(TagFilter("python"))
    >>> [node.title for node in engine.display]
"""

__version__ = "0.3.0"
__author__ = "MarkView Contributors"

# Configuration
from markview.config import MarkviewConfig, get_config, init_config

# Errors
from markview.errors import (
    MarkviewError,
    StructuralError,
    FilterConstructionError,
    PersistenceError,
    ParseError,
)

# Models and tree
from markview.models import BookmarkNode, SortKey, SortDirection
from markview.tree import FlatTree, flatten_tree, build_ancestor_index

# Collaborators
from markview.host import BookmarkStore, MemoryBookmarkStore, ChromeBookmarksFile
from markview.storage import KeyValueStore, MemoryKeyValueStore, SqlKeyValueStore

# Query engine
from markview.query import (
    Filter,
    AnyFilter,
    TagFilter,
    TitleFilter,
    UrlFilter,
    FolderFilter,
    StrictFolderFilter,
    FilterSet,
    QueryEngine,
    TagIndex,
    run_query,
)

# Saved views
from markview.saved_views import SavedView, ViewStore

# Preferences
from markview.preferences import Preferences, load_preferences, save_preferences

__all__ = [
    # Config
    "MarkviewConfig",
    "get_config",
    "init_config",
    # Errors
    "MarkviewError",
    "StructuralError",
    "FilterConstructionError",
    "PersistenceError",
    "ParseError",
    # Models
    "BookmarkNode",
    "SortKey",
    "SortDirection",
    "FlatTree",
    "flatten_tree",
    "build_ancestor_index",
    # Collaborators
    "BookmarkStore",
    "MemoryBookmarkStore",
    "ChromeBookmarksFile",
    "KeyValueStore",
    "MemoryKeyValueStore",
    "SqlKeyValueStore",
    # Query
    "Filter",
    "AnyFilter",
    "TagFilter",
    "TitleFilter",
    "UrlFilter",
    "FolderFilter",
    "StrictFolderFilter",
    "FilterSet",
    "QueryEngine",
    "TagIndex",
    "run_query",
    # Views
    "SavedView",
    "ViewStore",
    # Preferences
    "Preferences",
    "load_preferences",
    "save_preferences",
]

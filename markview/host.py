"""
Host bookmark stores.

The host store owns the canonical bookmark tree. MarkView only reads the
whole tree, renames single nodes, and listens for a coalesced "something
changed, re-fetch" signal.

Two stores are provided:
- MemoryBookmarkStore: an in-process tree (tests, embedding)
- ChromeBookmarksFile: the "Bookmarks" JSON file of a Chromium profile
"""

import copy
import json
import logging
import os
import platform
import tempfile
from abc import ABC, abstractmethod
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Sequence, Union

from markview.errors import StructuralError
from markview.models import BookmarkNode

logger = logging.getLogger(__name__)

ChangeListener = Callable[[], None]

# Chrome timestamps count microseconds from 1601-01-01
CHROME_EPOCH_OFFSET_US = 11644473600000000

ROOT_ID = "0"


class BookmarkStore(ABC):
    """Base class for host bookmark stores."""

    def __init__(self):
        self._listeners: List[ChangeListener] = []

    @abstractmethod
    def get_tree(self) -> List[BookmarkNode]:
        """Read the full hierarchy as a list of root nodes."""
        raise NotImplementedError

    @abstractmethod
    def update(self, node_id: str, title: str) -> None:
        """Rename a single node."""
        raise NotImplementedError

    def subscribe(self, listener: ChangeListener) -> Callable[[], None]:
        """
        Register a change listener.

        Creates, removals, moves and edits all arrive as the same
        argument-less signal; listeners re-fetch the whole tree.

        Returns:
            Callable that removes the listener
        """
        self._listeners.append(listener)

        def unsubscribe():
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _notify(self) -> None:
        for listener in list(self._listeners):
            listener()


class MemoryBookmarkStore(BookmarkStore):
    """
    Bookmark store backed by an in-memory tree.

    Accepts the browser API shape (dicts with id, title, url, parentId,
    dateAdded, dateLastUsed, children) or ready-made BookmarkNodes.
    """

    def __init__(self, tree: Optional[Sequence[Union[Dict[str, Any], BookmarkNode]]] = None):
        super().__init__()
        self._tree: List[Dict[str, Any]] = [_as_dict(item) for item in tree or []]

    def get_tree(self) -> List[BookmarkNode]:
        return [BookmarkNode.from_dict(item) for item in self._tree]

    def update(self, node_id: str, title: str) -> None:
        node = _find(self._tree, node_id, key="id")
        if node is None:
            raise KeyError(f"Bookmark not found: {node_id}")
        node["title"] = title
        self._notify()

    def replace_tree(self, tree: Sequence[Union[Dict[str, Any], BookmarkNode]]) -> None:
        """Swap the whole tree, as if edited by another client."""
        self._tree = [_as_dict(item) for item in tree]
        self._notify()


class ChromeBookmarksFile(BookmarkStore):
    """
    Bookmark store backed by a Chromium profile "Bookmarks" file.

    The on-disk roots (bookmark bar, other, synced) are wrapped under a
    synthetic root folder with id "0", matching the browser API.
    """

    def __init__(self, path: Union[str, Path]):
        super().__init__()
        self.path = Path(path)
        self._mtime: Optional[float] = self._stat_mtime()

    def get_tree(self) -> List[BookmarkNode]:
        data = self._read()
        roots = data.get("roots")
        if not isinstance(roots, dict):
            raise StructuralError(f"No bookmark roots in {self.path}")

        children = [
            _chrome_to_api(root, ROOT_ID)
            for root in roots.values()
            if isinstance(root, dict) and "children" in root
        ]
        root = {"id": ROOT_ID, "title": "", "children": children}
        return [BookmarkNode.from_dict(root)]

    def update(self, node_id: str, title: str) -> None:
        data = self._read()
        roots = data.get("roots") or {}
        node = _find([r for r in roots.values() if isinstance(r, dict)], node_id, key="id")
        if node is None:
            raise KeyError(f"Bookmark not found: {node_id}")

        node["name"] = title
        # Chrome re-validates the checksum on load; drop the stale one
        data.pop("checksum", None)
        self._write(data)
        logger.info(f"Renamed bookmark {node_id} in {self.path}")

        self._mtime = self._stat_mtime()
        self._notify()

    def poll(self) -> bool:
        """
        Check whether the file changed on disk and signal listeners if so.

        Returns:
            True if a change was detected
        """
        mtime = self._stat_mtime()
        if mtime == self._mtime:
            return False
        self._mtime = mtime
        logger.debug(f"Bookmarks file changed: {self.path}")
        self._notify()
        return True

    def _stat_mtime(self) -> Optional[float]:
        try:
            return self.path.stat().st_mtime
        except FileNotFoundError:
            return None

    def _read(self) -> Dict[str, Any]:
        with open(self.path, "r", encoding="utf-8") as f:
            try:
                data = json.load(f)
            except json.JSONDecodeError as e:
                raise StructuralError(f"Malformed bookmarks file {self.path}: {e}") from e
        if not isinstance(data, dict):
            raise StructuralError(f"Malformed bookmarks file {self.path}")
        return data

    def _write(self, data: Dict[str, Any]) -> None:
        temp_fd, temp_path = tempfile.mkstemp(dir=self.path.parent, suffix=".tmp")
        try:
            with os.fdopen(temp_fd, "w", encoding="utf-8") as f:
                json.dump(data, f, indent=3, ensure_ascii=False)
            os.replace(temp_path, self.path)
        except BaseException:
            if os.path.exists(temp_path):
                os.unlink(temp_path)
            raise


def chrome_timestamp_to_millis(value: Any) -> Optional[int]:
    """
    Convert a Chrome timestamp (microseconds since 1601) to ms since 1970.

    Chrome writes "0" for never; that maps to None.
    """
    if value in (None, "", "0", 0):
        return None
    try:
        return (int(value) - CHROME_EPOCH_OFFSET_US) // 1000
    except (TypeError, ValueError):
        return None


def _chrome_to_api(item: Dict[str, Any], parent_id: str) -> Dict[str, Any]:
    node: Dict[str, Any] = {
        "id": str(item.get("id", "")),
        "title": item.get("name", ""),
        "parentId": parent_id,
        "dateAdded": chrome_timestamp_to_millis(item.get("date_added")),
        "dateLastUsed": chrome_timestamp_to_millis(item.get("date_last_used")),
    }
    if item.get("type") == "url":
        node["url"] = item.get("url", "")
    else:
        node["children"] = [
            _chrome_to_api(child, node["id"]) for child in item.get("children", [])
        ]
    return node


def _as_dict(item: Union[Dict[str, Any], BookmarkNode]) -> Dict[str, Any]:
    if isinstance(item, BookmarkNode):
        return item.to_dict()
    return copy.deepcopy(item)


def _find(items: List[Dict[str, Any]], node_id: str, key: str) -> Optional[Dict[str, Any]]:
    stack = list(items)
    while stack:
        item = stack.pop()
        if str(item.get(key)) == node_id:
            return item
        stack.extend(item.get("children") or [])
    return None


@dataclass
class BrowserProfile:
    """Information about a Chromium-family browser profile."""
    name: str
    path: Path
    browser: str
    is_default: bool = False

    @property
    def bookmarks_file(self) -> Path:
        return self.path / "Bookmarks"


def find_chrome_profiles(system: Optional[str] = None,
                         home: Optional[Path] = None) -> List[BrowserProfile]:
    """Find Chrome, Chromium, Edge and Brave profiles that have a bookmarks file."""
    system = system or platform.system()
    home = home or Path.home()

    if system == "Darwin":
        chrome_dirs = [
            home / "Library/Application Support/Google/Chrome",
            home / "Library/Application Support/Chromium",
            home / "Library/Application Support/Microsoft Edge",
            home / "Library/Application Support/BraveSoftware/Brave-Browser",
        ]
    elif system == "Linux":
        chrome_dirs = [
            home / ".config/google-chrome",
            home / ".config/chromium",
            home / ".config/microsoft-edge",
            home / ".config/BraveSoftware/Brave-Browser",
        ]
    elif system == "Windows":
        appdata = os.environ.get("LOCALAPPDATA", "")
        chrome_dirs = [
            Path(appdata) / "Google/Chrome/User Data",
            Path(appdata) / "Chromium/User Data",
            Path(appdata) / "Microsoft/Edge/User Data",
            Path(appdata) / "BraveSoftware/Brave-Browser/User Data",
        ]
    else:
        return []

    profiles = []
    for chrome_dir in chrome_dirs:
        if not chrome_dir.exists():
            continue

        browser_name = _browser_name(chrome_dir)
        candidates = [(chrome_dir / "Default", True)]
        candidates += [(p, False) for p in sorted(chrome_dir.glob("Profile *"))]

        for profile_dir, is_default in candidates:
            if (profile_dir / "Bookmarks").exists():
                profiles.append(BrowserProfile(
                    name=profile_dir.name,
                    path=profile_dir,
                    browser=browser_name,
                    is_default=is_default,
                ))

    return profiles


def _browser_name(chrome_dir: Path) -> str:
    path_str = str(chrome_dir).lower()
    if "edge" in path_str:
        return "Microsoft Edge"
    elif "brave" in path_str:
        return "Brave"
    elif "chromium" in path_str:
        return "Chromium"
    else:
        return "Chrome"

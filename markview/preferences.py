"""
Display preferences kept in the key-value store.

Only the theme and the sidebar state are persisted here. Stored values
that are missing or not recognised fall back to the defaults, and a store
failure is logged rather than raised.
"""
import logging
from dataclasses import dataclass
from typing import Optional

from markview.errors import PersistenceError
from markview.storage import KeyValueStore

logger = logging.getLogger(__name__)

THEMES = ("light", "dark")
SIDEBAR_MODES = ("tags", "folders", "views")
PREFERENCE_KEYS = ("theme", "sidebar_open", "sidebar_mode")


@dataclass
class Preferences:
    """Theme and sidebar state."""
    theme: str = "light"
    sidebar_open: bool = False
    sidebar_mode: str = "tags"

    def toggle_sidebar(self) -> bool:
        self.sidebar_open = not self.sidebar_open
        return self.sidebar_open


def load_preferences(store: Optional[KeyValueStore]) -> Preferences:
    """Read preferences, using defaults for anything missing or unreadable."""
    prefs = Preferences()
    if store is None:
        return prefs

    try:
        stored = store.get(["theme", "sidebarOpen", "sidebarMode"])
    except PersistenceError as e:
        logger.error(f"Could not load preferences, using defaults: {e}")
        return prefs

    if stored.get("theme") in THEMES:
        prefs.theme = stored["theme"]
    if isinstance(stored.get("sidebarOpen"), bool):
        prefs.sidebar_open = stored["sidebarOpen"]
    if stored.get("sidebarMode") in SIDEBAR_MODES:
        prefs.sidebar_mode = stored["sidebarMode"]
    return prefs


def save_preferences(store: Optional[KeyValueStore], prefs: Preferences) -> None:
    """Write preferences; failures are logged."""
    if prefs.theme not in THEMES:
        raise ValueError(f"Unknown theme: {prefs.theme!r}")
    if prefs.sidebar_mode not in SIDEBAR_MODES:
        raise ValueError(f"Unknown sidebar mode: {prefs.sidebar_mode!r}")
    if store is None:
        return

    try:
        store.set({
            "theme": prefs.theme,
            "sidebarOpen": prefs.sidebar_open,
            "sidebarMode": prefs.sidebar_mode,
        })
    except PersistenceError as e:
        logger.error(f"Could not save preferences: {e}")

"""
Saved views - named snapshots of the active filter list.

A view stores a copy of the filters active when it was saved. Loading it
replaces the whole active list. Editing filters afterwards changes
neither the stored view nor the active-view pointer: the pointer only
records which view was loaded last.

Views are persisted under the "savedViews" key of a key-value store and
can be exported to and imported from YAML files of the form:

    views:
      - id: 5b0c...
        name: Frontend reading
        filters:
          - {type: tag, tag: react, negative: false}
          - {type: folder, folderId: "12", negative: true}
"""

import logging
import uuid
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Tuple, Union

import yaml

from markview.errors import FilterConstructionError, ParseError, PersistenceError
from markview.models import BookmarkNode
from markview.query.filter_set import FilterSet
from markview.query.filters import Filter, filters_from_list, filters_to_list
from markview.query.labels import view_label_part
from markview.storage import KeyValueStore

logger = logging.getLogger(__name__)

STORAGE_KEY = "savedViews"
EMPTY_VIEW_LABEL = "Empty View"


def generate_id() -> str:
    return str(uuid.uuid4())


@dataclass(frozen=True)
class SavedView:
    """A named snapshot of a filter list."""
    id: str
    name: str = ""
    filters: Tuple[Filter, ...] = field(default_factory=tuple)

    def to_dict(self) -> Dict[str, Any]:
        return {"id": self.id, "name": self.name, "filters": filters_to_list(self.filters)}

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "SavedView":
        """
        Raises:
            FilterConstructionError: If the entry or one of its filters is malformed
        """
        if not isinstance(data, Mapping) or not data.get("id"):
            raise FilterConstructionError(f"Saved view entry without an id: {data!r}")
        return cls(
            id=str(data["id"]),
            name=str(data.get("name") or ""),
            filters=tuple(filters_from_list(data.get("filters") or [])),
        )


def display_name(view: SavedView, by_id: Optional[Mapping[str, BookmarkNode]] = None) -> str:
    """
    Name to show for a view.

    Blank names fall back to a label built from the filters, or to
    "Empty View" when there are none.
    """
    if view.name.strip():
        return view.name
    if not view.filters:
        return EMPTY_VIEW_LABEL
    return ", ".join(view_label_part(f, by_id or {}) for f in view.filters)


class ViewStore:
    """
    Collection of saved views plus the active-view pointer.

    Every change replaces the views tuple as a whole and is written to the
    key-value store, if one is attached. Store failures are logged and
    never undo the in-memory change.

    Example:
        views = ViewStore(engine.filters, SqlKeyValueStore(path="state.db"))
        view = views.save_view("Reading list")
        engine.filters.clear()
        views.load_view(view.id)  # filters are back
    """

    def __init__(
        self,
        filters: FilterSet,
        store: Optional[KeyValueStore] = None,
        id_factory: Callable[[], str] = generate_id,
    ):
        self.filters = filters
        self.store = store
        self._new_id = id_factory
        self._views: Tuple[SavedView, ...] = ()
        self.active_view_id: Optional[str] = None
        self._load()

    @property
    def views(self) -> Tuple[SavedView, ...]:
        return self._views

    @property
    def active_view(self) -> Optional[SavedView]:
        return self.get(self.active_view_id) if self.active_view_id else None

    def __len__(self) -> int:
        return len(self._views)

    def get(self, view_id: str) -> Optional[SavedView]:
        for view in self._views:
            if view.id == view_id:
                return view
        return None

    def find(self, key: str) -> Optional[SavedView]:
        """Look a view up by id, then by exact name, then by unique id prefix."""
        view = self.get(key)
        if view:
            return view
        for view in self._views:
            if view.name == key:
                return view
        prefixed = [v for v in self._views if v.id.startswith(key)]
        return prefixed[0] if len(prefixed) == 1 else None

    def save_view(self, name: str) -> SavedView:
        """Snapshot the active filters as a new view and make it active."""
        view = SavedView(id=self._new_id(), name=name, filters=tuple(self.filters.list))
        self._replace(self._views + (view,))
        self.active_view_id = view.id
        logger.info(f"Saved view {view.id} ({display_name(view)})")
        return view

    def load_view(self, view_id: str) -> Optional[SavedView]:
        """
        Replace the active filters with the view's filters.

        Unknown ids are ignored and return None.
        """
        view = self.get(view_id)
        if view is None:
            logger.debug(f"Ignoring load of unknown view {view_id}")
            return None
        self.filters.set(list(view.filters))
        self.active_view_id = view.id
        return view

    def delete_view(self, view_id: str) -> bool:
        if self.get(view_id) is None:
            return False
        self._replace(tuple(v for v in self._views if v.id != view_id))
        if self.active_view_id == view_id:
            self.active_view_id = None
        return True

    def duplicate_view(self, view_id: str) -> Optional[SavedView]:
        """Copy a view under a new id and a " (copy)" name. The copy is not activated."""
        view = self.get(view_id)
        if view is None:
            return None
        duplicate = SavedView(id=self._new_id(), name=f"{view.name} (copy)", filters=tuple(view.filters))
        self._replace(self._views + (duplicate,))
        return duplicate

    def rename_view(self, view_id: str, new_name: str) -> bool:
        if self.get(view_id) is None:
            return False
        self._replace(tuple(
            replace(v, name=new_name) if v.id == view_id else v for v in self._views
        ))
        return True

    def clear_active_view(self) -> None:
        """Forget the active view; filters are left alone."""
        self.active_view_id = None

    def export_views(self, path: Union[str, Path]) -> int:
        """Write all views to a YAML file. Returns the number written."""
        data = {"views": [v.to_dict() for v in self._views]}
        with open(path, "w", encoding="utf-8") as f:
            yaml.safe_dump(data, f, sort_keys=False, allow_unicode=True)
        return len(self._views)

    def import_views(self, path: Union[str, Path]) -> List[SavedView]:
        """
        Append views from a YAML file written by export_views.

        Views whose id already exists get a fresh id. Malformed entries
        are skipped with a warning.

        Raises:
            ParseError: If the file is not valid YAML or has no views list
        """
        with open(path, encoding="utf-8") as f:
            try:
                data = yaml.safe_load(f)
            except yaml.YAMLError as e:
                raise ParseError(f"Invalid views file {path}: {e}") from e

        if not isinstance(data, dict) or not isinstance(data.get("views"), list):
            raise ParseError(f"Views file {path} must contain a 'views' list")

        existing = {v.id for v in self._views}
        imported = []
        for view in self._parse_entries(data["views"]):
            if view.id in existing:
                view = replace(view, id=self._new_id())
            existing.add(view.id)
            imported.append(view)

        if imported:
            self._replace(self._views + tuple(imported))
        return imported

    def _parse_entries(self, entries: Iterable[Any]) -> List[SavedView]:
        views = []
        for entry in entries:
            try:
                views.append(SavedView.from_dict(entry))
            except FilterConstructionError as e:
                logger.warning(f"Skipping malformed saved view: {e}")
        return views

    def _replace(self, views: Tuple[SavedView, ...]) -> None:
        self._views = views
        self._persist()

    def _load(self) -> None:
        if self.store is None:
            return
        try:
            stored = self.store.get([STORAGE_KEY]).get(STORAGE_KEY)
        except PersistenceError as e:
            logger.error(f"Could not load saved views, starting empty: {e}")
            return
        if not stored:
            return
        if not isinstance(stored, list):
            logger.warning(f"Ignoring saved views of unexpected type {type(stored).__name__}")
            return
        self._views = tuple(self._parse_entries(stored))

    def _persist(self) -> None:
        if self.store is None:
            return
        try:
            self.store.set({STORAGE_KEY: [v.to_dict() for v in self._views]})
        except PersistenceError as e:
            logger.error(f"Could not save views: {e}")

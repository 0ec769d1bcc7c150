import copy
import os
import json

import pytest

from markview import config as config_module
from markview.host import CHROME_EPOCH_OFFSET_US, MemoryBookmarkStore
from markview.models import BookmarkNode
from markview.tree import flatten_tree


SAMPLE_TREE = [
    {
        "id": "0",
        "title": "",
        "children": [
            {
                "id": "1",
                "title": "Bookmarks bar",
                "parentId": "0",
                "children": [
                    {
                        "id": "F1",
                        "title": "A",
                        "parentId": "1",
                        "children": [
                            {
                                "id": "10",
                                "title": "Guide #react #js",
                                "url": "http://x",
                                "parentId": "F1",
                                "dateAdded": 1000,
                                "dateLastUsed": 5000,
                            },
                            {
                                "id": "F2",
                                "title": "B",
                                "parentId": "F1",
                                "children": [
                                    {
                                        "id": "20",
                                        "title": "Deep #js",
                                        "url": "http://y",
                                        "parentId": "F2",
                                        "dateAdded": 2000,
                                    },
                                ],
                            },
                        ],
                    },
                    {
                        "id": "30",
                        "title": "Python docs #python #Docs",
                        "url": "https://docs.python.org",
                        "parentId": "1",
                        "dateAdded": 3000,
                        "dateLastUsed": 9000,
                    },
                ],
            },
            {
                "id": "2",
                "title": "Other bookmarks",
                "parentId": "0",
                "children": [
                    {
                        "id": "40",
                        "title": "GitHub #dev #docs",
                        "url": "https://github.com",
                        "parentId": "2",
                        "dateAdded": 4000,
                        "dateLastUsed": 1000,
                    },
                ],
            },
        ],
    }
]


def chrome_ts(millis):
    """Chrome on-disk timestamp for a time in ms since the Unix epoch."""
    return str(millis * 1000 + CHROME_EPOCH_OFFSET_US)


@pytest.fixture(autouse=True)
def isolated_environment(tmp_path, monkeypatch):
    """Keep tests away from the real home directory, config and environment."""
    home = tmp_path / "home"
    home.mkdir()
    monkeypatch.setenv("HOME", str(home))
    monkeypatch.chdir(tmp_path)
    for key in list(os.environ):
        if key.startswith("MARKVIEW_"):
            monkeypatch.delenv(key)
    monkeypatch.setattr(config_module, "_config", None)
    yield


@pytest.fixture
def sample_tree():
    """Browser-API shaped tree with nested folders F1 > F2."""
    return copy.deepcopy(SAMPLE_TREE)


@pytest.fixture
def roots(sample_tree):
    return [BookmarkNode.from_dict(item) for item in sample_tree]


@pytest.fixture
def flat(roots):
    return flatten_tree(roots)


@pytest.fixture
def host(sample_tree):
    return MemoryBookmarkStore(sample_tree)


@pytest.fixture
def chrome_data():
    """Contents of a Chromium profile "Bookmarks" file."""
    return {
        "checksum": "0123456789abcdef",
        "roots": {
            "bookmark_bar": {
                "id": "1",
                "name": "Bookmarks bar",
                "type": "folder",
                "date_added": chrome_ts(500),
                "children": [
                    {
                        "id": "5",
                        "name": "Work",
                        "type": "folder",
                        "date_added": chrome_ts(600),
                        "children": [
                            {
                                "id": "6",
                                "name": "Tracker #work",
                                "type": "url",
                                "url": "https://tracker.example.com",
                                "date_added": chrome_ts(1000),
                                "date_last_used": chrome_ts(8000),
                            },
                        ],
                    },
                    {
                        "id": "7",
                        "name": "News #daily",
                        "type": "url",
                        "url": "https://news.example.com",
                        "date_added": chrome_ts(2000),
                        "date_last_used": "0",
                    },
                ],
            },
            "other": {
                "id": "2",
                "name": "Other bookmarks",
                "type": "folder",
                "children": [
                    {
                        "id": "8",
                        "name": "Recipes #food #daily",
                        "type": "url",
                        "url": "https://recipes.example.com",
                        "date_added": chrome_ts(3000),
                    },
                ],
            },
            "synced": {
                "id": "3",
                "name": "Mobile bookmarks",
                "type": "folder",
                "children": [],
            },
        },
        "version": 1,
    }


@pytest.fixture
def chrome_file(tmp_path, chrome_data):
    path = tmp_path / "Bookmarks"
    path.write_text(json.dumps(chrome_data, indent=3), encoding="utf-8")
    return path

"""
Tests for markview/cli.py

Runs the command line entry point against a Chromium "Bookmarks" file:
- Listing with filters, sort options and output formats
- Tag frequencies and suggestions
- Renaming through the host file
- Share query strings
- Saved view commands
- Configuration commands and error handling
"""
import json
from unittest.mock import patch

import pytest
import yaml

from markview import Preferences, cli
from markview import config as config_module
from markview.host import BrowserProfile
from markview.urlstate import decode_query


@pytest.fixture
def run(chrome_file, tmp_path, capsys):
    """Run the CLI against the sample Bookmarks file and return stdout."""
    state_db = str(tmp_path / "state.db")

    def _run(*args):
        cli.main(["--bookmarks", str(chrome_file), "--state-db", state_db, *args])
        return capsys.readouterr().out

    return _run


def listed_ids(output):
    return [item["id"] for item in json.loads(output)]


class TestParser:
    """Test the argument parser structure."""

    def test_subcommands(self):
        parser = cli.build_parser()
        args = parser.parse_args(["list", "-f", "#a", "--filter=-folder:1", "--sort", "title", "--asc"])
        assert args.filter == ["#a", "-folder:1"]
        assert args.sort == "title"
        assert args.direction == "asc"
        assert args.func is cli.cmd_list

    def test_command_required(self):
        with pytest.raises(SystemExit):
            cli.build_parser().parse_args([])

    def test_sort_choices(self):
        with pytest.raises(SystemExit):
            cli.build_parser().parse_args(["list", "--sort", "popularity"])

    def test_view_subcommands(self):
        args = cli.build_parser().parse_args(["view", "rename", "abc", "New name"])
        assert args.view_command == "rename"
        assert args.key == "abc"
        assert args.name == "New name"


class TestListCommand:
    """Test `markview list`."""

    def test_all_leaves_newest_first(self, run):
        assert listed_ids(run("-o", "json", "list")) == ["8", "7", "6"]

    def test_tag_filter(self, run):
        assert listed_ids(run("-o", "json", "list", "-f", "#daily")) == ["8", "7"]

    def test_negative_folder_filter(self, run):
        assert listed_ids(run("-o", "json", "list", "--filter=-folder:1")) == ["8"]

    def test_strict_folder_filter(self, run):
        assert listed_ids(run("-o", "json", "list", "-f", "strictfolder:1")) == ["7"]

    def test_sort_and_direction(self, run):
        assert listed_ids(run("-o", "json", "list", "--sort", "title", "--asc")) == ["7", "8", "6"]

    def test_limit(self, run):
        assert listed_ids(run("-o", "json", "list", "--limit", "1")) == ["8"]

    def test_page_size_from_config(self, run, monkeypatch):
        monkeypatch.setenv("MARKVIEW_PAGE_SIZE", "2")
        assert listed_ids(run("-o", "json", "list")) == ["8", "7"]
        assert len(json.loads(run("-o", "json", "list", "--limit", "0"))) == 3

    def test_urls_output(self, run):
        out = run("-o", "urls", "list", "-f", "#work")
        assert out.strip() == "https://tracker.example.com"

    def test_plain_output(self, run):
        out = run("-o", "plain", "list", "-f", "url:news")
        assert "[7] News #daily" in out

    def test_table_output(self, run):
        out = run("list")
        assert "Bookmarks (3)" in out

    def test_invalid_filter_expression(self, run):
        with pytest.raises(SystemExit) as exc:
            run("list", "-f", "#")
        assert exc.value.code == 1


class TestTagsCommand:
    """Test `markview tags`."""

    def test_counts(self, run):
        assert json.loads(run("-o", "json", "tags")) == {"daily": 2, "work": 1, "food": 1}

    def test_counts_follow_filters(self, run):
        assert json.loads(run("-o", "json", "tags", "-f", "#food")) == {"food": 1, "daily": 1}

    def test_prefix_suggestions(self, run):
        assert run("tags", "--prefix", "d").split() == ["#daily"]

    def test_plain(self, run):
        assert "daily\t2" in run("-o", "plain", "tags")


class TestFoldersCommand:
    """Test `markview folders`."""

    def test_json_tree(self, run):
        roots = json.loads(run("-o", "json", "folders"))
        assert roots[0]["id"] == "0"
        bar = roots[0]["children"][0]
        assert bar["title"] == "Bookmarks bar"
        assert [c["title"] for c in bar["children"]] == ["Work"]

    def test_rich_tree(self, run):
        assert "Work" in run("folders")


class TestRenameCommand:
    """Test `markview rename`."""

    def test_rename_updates_file(self, run, chrome_file):
        run("-q", "rename", "6", "Tracker #jobs")
        data = json.loads(chrome_file.read_text(encoding="utf-8"))
        tracker = data["roots"]["bookmark_bar"]["children"][0]["children"][0]
        assert tracker["name"] == "Tracker #jobs"
        assert json.loads(run("-o", "json", "tags", "-f", "#jobs")) == {"jobs": 1}

    def test_rename_unknown(self, run):
        with pytest.raises(SystemExit) as exc:
            run("rename", "999", "x")
        assert exc.value.code == 1


class TestShareCommand:
    """Test `markview share` and --query."""

    def test_share_encodes_state(self, run):
        out = run("share", "-f", "#daily", "--sort", "title", "--asc").strip()
        assert out.startswith("?")
        state = decode_query(out)
        assert [f.to_dict() for f in state.filters] == [{"type": "tag", "tag": "daily", "negative": False}]
        assert state.sort_key.value == "title"
        assert state.sort_direction.value == "asc"

    def test_query_round_trip(self, run):
        query = run("share", "--filter=-#food", "--sort", "id", "--asc").strip()
        assert listed_ids(run("-o", "json", "list", "--query", query)) == ["6", "7"]


class TestViewCommands:
    """Test `markview view ...`."""

    def test_save_and_list(self, run):
        run("-q", "view", "save", "Daily", "-f", "#daily")
        views = json.loads(run("-o", "json", "view", "list"))
        assert [v["name"] for v in views] == ["Daily"]
        assert views[0]["filters"] == [{"type": "tag", "tag": "daily", "negative": False}]

    def test_show(self, run):
        run("-q", "view", "save", "Daily", "-f", "#daily")
        assert listed_ids(run("-o", "json", "view", "show", "Daily", "--asc")) == ["7", "8"]

    def test_list_with_view(self, run):
        run("-q", "view", "save", "Not work", "--filter=-#work")
        assert listed_ids(run("-o", "json", "list", "--view", "Not work", "-f", "#food")) == ["8"]

    def test_unknown_view(self, run):
        with pytest.raises(SystemExit) as exc:
            run("view", "show", "nope")
        assert exc.value.code == 1

    def test_rename_duplicate_delete(self, run):
        run("-q", "view", "save", "One", "-f", "#work")
        run("-q", "view", "rename", "One", "Uno")
        run("-q", "view", "duplicate", "Uno")
        names = [v["name"] for v in json.loads(run("-o", "json", "view", "list"))]
        assert names == ["Uno", "Uno (copy)"]

        run("-q", "view", "delete", "Uno")
        names = [v["name"] for v in json.loads(run("-o", "json", "view", "list"))]
        assert names == ["Uno (copy)"]

    def test_unnamed_view_table(self, run):
        run("-q", "view", "save", "-f", "#daily")
        assert "#daily" in run("view", "list")

    def test_export_import(self, run, tmp_path):
        run("-q", "view", "save", "Daily", "-f", "#daily")
        export = tmp_path / "views.yaml"
        run("-q", "view", "export", str(export))
        assert yaml.safe_load(export.read_text())["views"][0]["name"] == "Daily"

        run("-q", "view", "import", str(export))
        assert len(json.loads(run("-o", "json", "view", "list"))) == 2


class TestConfigCommand:
    """Test `markview config`."""

    def test_show_key(self, run):
        assert run("config", "show", "default_sort").strip() == "dateAdded"

    def test_show_all(self, run):
        data = json.loads(run("config", "show"))
        assert data["max_tree_depth"] == 256

    def test_set_persists(self, run, monkeypatch):
        run("-q", "config", "set", "page_size", "20")
        monkeypatch.setattr(config_module, "_config", None)
        assert run("config", "show", "page_size").strip() == "20"

    def test_unknown_key(self, run):
        with pytest.raises(SystemExit) as exc:
            run("config", "show", "nope")
        assert exc.value.code == 1


class TestPrefsCommand:
    """Test `markview prefs`."""

    def test_show_defaults(self, run):
        assert json.loads(run("-o", "json", "prefs", "show")) == {
            "theme": "light", "sidebar_open": False, "sidebar_mode": "tags",
        }

    def test_set_persists(self, run):
        run("-q", "prefs", "set", "theme", "dark")
        run("-q", "prefs", "set", "sidebar_mode", "folders")
        prefs = json.loads(run("-o", "json", "prefs", "show"))
        assert prefs["theme"] == "dark"
        assert prefs["sidebar_mode"] == "folders"

    def test_toggle_sidebar(self, run):
        run("-q", "prefs", "toggle-sidebar")
        assert json.loads(run("-o", "json", "prefs", "show"))["sidebar_open"] is True
        run("-q", "prefs", "toggle-sidebar")
        assert json.loads(run("-o", "json", "prefs", "show"))["sidebar_open"] is False

    def test_plain_show(self, run):
        assert "theme\tlight" in run("-o", "plain", "prefs", "show")

    def test_invalid_value(self, run):
        with pytest.raises(SystemExit) as exc:
            run("prefs", "set", "theme", "neon")
        assert exc.value.code == 1
        assert json.loads(run("-o", "json", "prefs", "show"))["theme"] == "light"

    def test_unknown_key(self, run):
        with pytest.raises(SystemExit) as exc:
            run("prefs", "set", "font", "mono")
        assert exc.value.code == 1

    def test_exported_from_package(self):
        assert cli.load_preferences(None) == Preferences()


class TestErrors:
    """Test error reporting and exit codes."""

    def test_malformed_bookmarks_file(self, tmp_path, capsys):
        path = tmp_path / "Broken"
        path.write_text("{nope")
        with pytest.raises(SystemExit) as exc:
            cli.main(["--bookmarks", str(path), "list"])
        assert exc.value.code == 1
        assert "Error" in capsys.readouterr().out

    def test_no_profile_found(self, capsys):
        with patch("markview.cli.find_chrome_profiles", return_value=[]):
            with pytest.raises(SystemExit) as exc:
                cli.main(["list"])
        assert exc.value.code == 1
        assert "No bookmarks file configured" in capsys.readouterr().out

    def test_default_profile_used(self, chrome_file, tmp_path, capsys):
        profile = BrowserProfile(name="Default", path=chrome_file.parent, browser="Chromium", is_default=True)
        with patch("markview.cli.find_chrome_profiles", return_value=[profile]):
            cli.main(["-o", "json", "list"])
        assert listed_ids(capsys.readouterr().out) == ["8", "7", "6"]

    def test_profiles_command(self, capsys):
        with patch("markview.cli.find_chrome_profiles", return_value=[]):
            cli.main(["profiles"])
        assert "No browser profiles found" in capsys.readouterr().out


class TestHelpers:
    """Test small formatting helpers."""

    def test_format_date(self):
        assert cli.format_date(0) == ""
        assert cli.format_date(None) == ""
        assert cli.format_date(86400000) == "1970-01-02"

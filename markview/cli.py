#!/usr/bin/env python3
"""
MarkView command line interface.

Queries a browser bookmark tree with composable filters, manages saved
views and prints the results as tables, JSON or plain text.
"""
import argparse
import json
import logging
import sys
from dataclasses import asdict
from datetime import datetime, timezone
from pathlib import Path
from typing import Dict, List, Mapping, Optional

from rich.console import Console
from rich.table import Table
from rich.tree import Tree

from markview.config import MarkviewConfig, get_config, init_config
from markview.errors import MarkviewError, PersistenceError
from markview.host import BookmarkStore, ChromeBookmarksFile, find_chrome_profiles
from markview.models import BookmarkNode, SortDirection, SortKey
from markview.preferences import PREFERENCE_KEYS, load_preferences, save_preferences
from markview.query.filter_set import FilterSet
from markview.query.labels import filter_label, parse_filter_text
from markview.query.pipeline import QueryEngine
from markview.query.sorting import use_system_collation
from markview.saved_views import ViewStore, display_name
from markview.storage import KeyValueStore, SqlKeyValueStore
from markview.tree import FolderTreeNode, build_folder_tree, folder_path
from markview.urlstate import decode_query, encode_query

logger = logging.getLogger(__name__)


console = Console()


def configure_logging(level: str) -> None:
    logging.basicConfig(level=getattr(logging, level.upper(), logging.WARNING),
                        format="%(levelname)s: %(message)s")


def format_date(millis: Optional[int]) -> str:
    if not millis:
        return ""
    return datetime.fromtimestamp(millis / 1000, tz=timezone.utc).strftime("%Y-%m-%d")


def open_host(config: MarkviewConfig) -> BookmarkStore:
    """Bookmarks file from config, or the default profile of the first browser found."""
    if config.bookmarks_file:
        return ChromeBookmarksFile(config.bookmarks_file)

    profiles = find_chrome_profiles()
    default = next((p for p in profiles if p.is_default), profiles[0] if profiles else None)
    if default is None:
        raise MarkviewError("No bookmarks file configured and no browser profile found "
                            "(use --bookmarks or set bookmarks_file)")
    logger.info(f"Using {default.browser} profile {default.name}")
    return ChromeBookmarksFile(default.bookmarks_file)


def open_state(config: MarkviewConfig) -> Optional[KeyValueStore]:
    """State database, or None (nothing persisted) if it cannot be opened."""
    try:
        if "://" in config.state_database:
            return SqlKeyValueStore(url=config.state_database, echo=config.database_echo)
        return SqlKeyValueStore(path=config.state_database, echo=config.database_echo)
    except PersistenceError as e:
        logger.error(f"State database unavailable, saved views will not persist: {e}")
        return None


def build_engine(config: MarkviewConfig, filters: Optional[FilterSet] = None) -> QueryEngine:
    engine = QueryEngine(
        open_host(config),
        filters=filters,
        sort_key=config.default_sort,
        direction=config.default_sort_direction,
        max_depth=config.max_tree_depth,
        subscribe=False,
    )
    if engine.last_error:
        raise engine.last_error
    return engine


def apply_query_args(engine: QueryEngine, views: Optional[ViewStore], args) -> None:
    """Apply --query, --view, --filter, --sort and --asc/--desc, in that order."""
    if getattr(args, "query", None):
        state = decode_query(args.query, engine.sort_key, engine.sort_direction)
        engine.filters.set(state.filters)
        engine.set_sort_key(state.sort_key)
        engine.set_sort_direction(state.sort_direction)

    if getattr(args, "view", None) and views is not None:
        view = views.find(args.view)
        if view is None:
            raise MarkviewError(f"View not found: {args.view}")
        views.load_view(view.id)

    for expression in getattr(args, "filter", None) or []:
        engine.filters.add(parse_filter_text(expression))

    if getattr(args, "sort", None):
        engine.set_sort_key(args.sort)
    if getattr(args, "direction", None):
        engine.set_sort_direction(args.direction)


def output_nodes(nodes: List[BookmarkNode], by_id: Mapping[str, BookmarkNode], format: str = "table"):
    """Output bookmarks in the specified format."""
    if format == "table":
        table = Table(title=f"Bookmarks ({len(nodes)})")
        table.add_column("ID", style="cyan")
        table.add_column("Title", style="green")
        table.add_column("URL", style="blue")
        table.add_column("Folder", style="yellow")
        table.add_column("Added", style="magenta")

        for node in nodes:
            table.add_row(
                node.id,
                node.title[:60],
                (node.url or "")[:60],
                folder_path(node.parent_id, by_id) if node.parent_id else "",
                format_date(node.date_added),
            )

        console.print(table)
    elif format == "json":
        print(json.dumps([node.to_dict(include_children=False) for node in nodes], indent=2))
    elif format == "urls":
        for node in nodes:
            print(node.url)
    else:  # plain
        for node in nodes:
            print(f"[{node.id}] {node.title}\n    {node.url}")


def cmd_list(args):
    """List the display set."""
    config = get_config()
    engine = build_engine(config)
    views = ViewStore(engine.filters, open_state(config)) if args.view else None
    apply_query_args(engine, views, args)

    nodes = engine.display
    limit = args.limit if args.limit is not None else config.page_size
    if limit:
        nodes = nodes[:limit]
    output_nodes(nodes, engine.tree.by_id, args.output)


def cmd_tags(args):
    """Show tag frequencies of the display set."""
    config = get_config()
    engine = build_engine(config)
    views = ViewStore(engine.filters, open_state(config)) if args.view else None
    apply_query_args(engine, views, args)

    rows = engine.tags.rank_for_sidebar(engine.filters.list)
    if args.prefix:
        suggestions = engine.tags.suggest(args.prefix, engine.filters.list, limit=args.limit or 20)
        for suggestion in suggestions:
            print(suggestion)
        return
    if args.limit:
        rows = rows[:args.limit]

    if args.output == "json":
        print(json.dumps({tag: count for tag, count, _ in rows}, indent=2))
    elif args.output == "table":
        table = Table(title="Tags")
        table.add_column("Tag", style="green")
        table.add_column("Count", style="cyan", justify="right")
        table.add_column("Filter", style="yellow")
        for tag, count, state in rows:
            table.add_row(f"#{tag}", str(count), state or "")
        console.print(table)
    else:
        for tag, count, _ in rows:
            print(f"{tag}\t{count}")


def cmd_folders(args):
    """Show the folder tree."""
    engine = build_engine(get_config())
    roots = build_folder_tree(engine.all_nodes)

    if args.output == "json":
        def to_dict(folder: FolderTreeNode) -> Dict:
            return {"id": folder.id, "title": folder.title,
                    "children": [to_dict(c) for c in folder.children]}
        print(json.dumps([to_dict(r) for r in roots], indent=2))
        return

    counts: Dict[str, int] = {}
    for node in engine.display:
        for folder_id in engine.tree.ancestors.get(node.id, ()):
            counts[folder_id] = counts.get(folder_id, 0) + 1

    tree = Tree("[bold]Folders[/bold]")

    def add(branch: Tree, folder: FolderTreeNode):
        label = f"{folder.title} [dim]({folder.id}) {counts.get(folder.id, 0)}[/dim]"
        child_branch = branch.add(label)
        for child in folder.children:
            add(child_branch, child)

    for root in roots:
        add(tree, root)
    console.print(tree)


def cmd_rename(args):
    """Rename a bookmark or folder in the host store."""
    engine = build_engine(get_config())
    if engine.tree.get(args.id) is None:
        console.print(f"[red]Bookmark not found: {args.id}[/red]")
        sys.exit(1)
    engine.rename_bookmark(args.id, args.title)
    if not args.quiet:
        console.print(f"[green]Renamed {args.id} to {args.title!r}[/green]")


def cmd_share(args):
    """Print the query string for the current filters and sort."""
    config = get_config()
    engine = build_engine(config)
    views = ViewStore(engine.filters, open_state(config)) if args.view else None
    apply_query_args(engine, views, args)
    print("?" + encode_query(engine.filters.list, engine.sort_key, engine.sort_direction))


def cmd_profiles(args):
    """List detected browser profiles."""
    profiles = find_chrome_profiles()
    if not profiles:
        console.print("[yellow]No browser profiles found[/yellow]")
        return

    if args.output == "json":
        print(json.dumps([{"browser": p.browser, "name": p.name, "default": p.is_default,
                           "bookmarks_file": str(p.bookmarks_file)} for p in profiles], indent=2))
        return

    table = Table(title="Browser profiles")
    table.add_column("Browser", style="cyan")
    table.add_column("Profile", style="green")
    table.add_column("Default")
    table.add_column("Bookmarks file", style="blue")
    for p in profiles:
        table.add_row(p.browser, p.name, "✓" if p.is_default else "", str(p.bookmarks_file))
    console.print(table)


def _folder_lookup(config: MarkviewConfig) -> Mapping[str, BookmarkNode]:
    """Node lookup for labels; empty when no bookmarks are reachable."""
    try:
        return build_engine(config).tree.by_id
    except (MarkviewError, OSError) as e:
        logger.debug(f"Folder titles unavailable: {e}")
        return {}


def cmd_view(args):
    """Saved view operations."""
    config = get_config()
    store = open_state(config)
    action = args.view_command

    if action in ("save", "show"):
        engine = build_engine(config)
        views = ViewStore(engine.filters, store)
    else:
        engine = None
        views = ViewStore(FilterSet(), store)

    if action == "list":
        by_id = _folder_lookup(config)
        if args.output == "json":
            print(json.dumps([v.to_dict() for v in views.views], indent=2))
            return
        if not views.views:
            console.print("[yellow]No saved views[/yellow]")
            return
        table = Table(title="Saved views")
        table.add_column("ID", style="cyan")
        table.add_column("Name", style="green")
        table.add_column("Filters", style="yellow")
        for view in views.views:
            table.add_row(view.id[:8], display_name(view, by_id),
                          " ".join(filter_label(f, by_id) for f in view.filters))
        console.print(table)

    elif action == "save":
        apply_query_args(engine, None, args)
        view = views.save_view(args.name)
        if not args.quiet:
            console.print(f"[green]Saved view {view.id[:8]}: "
                          f"{display_name(view, engine.tree.by_id)}[/green]")

    elif action == "show":
        view = views.find(args.key)
        if view is None:
            console.print(f"[red]View not found: {args.key}[/red]")
            sys.exit(1)
        views.load_view(view.id)
        if args.sort:
            engine.set_sort_key(args.sort)
        if args.direction:
            engine.set_sort_direction(args.direction)
        output_nodes(engine.display, engine.tree.by_id, args.output)

    elif action in ("delete", "rename", "duplicate"):
        view = views.find(args.key)
        if view is None:
            console.print(f"[red]View not found: {args.key}[/red]")
            sys.exit(1)
        if action == "delete":
            views.delete_view(view.id)
            message = f"Deleted view {view.id[:8]}"
        elif action == "rename":
            views.rename_view(view.id, args.name)
            message = f"Renamed view {view.id[:8]} to {args.name!r}"
        else:
            copy = views.duplicate_view(view.id)
            message = f"Duplicated view as {copy.id[:8]}: {copy.name}"
        if not args.quiet:
            console.print(f"[green]{message}[/green]")

    elif action == "export":
        count = views.export_views(args.file)
        if not args.quiet:
            console.print(f"[green]Exported {count} views to {args.file}[/green]")

    elif action == "import":
        imported = views.import_views(args.file)
        if not args.quiet:
            console.print(f"[green]Imported {len(imported)} views from {args.file}[/green]")


def cmd_config(args):
    """Show or change configuration."""
    config = get_config()

    if args.action == "show":
        if args.key:
            if not hasattr(config, args.key):
                console.print(f"[red]Unknown config key: {args.key}[/red]")
                sys.exit(1)
            print(getattr(config, args.key))
        else:
            print(json.dumps(asdict(config), indent=2))

    elif args.action == "set":
        if not hasattr(config, args.key) or args.value is None:
            console.print("[red]Usage: markview config set KEY VALUE (known key)[/red]")
            sys.exit(1)
        config.update({args.key: args.value})
        config.save()
        if not args.quiet:
            console.print(f"[green]Set {args.key} = {getattr(config, args.key)}[/green]")


def cmd_prefs(args):
    """Show or change display preferences."""
    store = open_state(get_config())
    prefs = load_preferences(store)

    if args.action == "toggle-sidebar":
        prefs.toggle_sidebar()
    elif args.action == "set":
        if args.key not in PREFERENCE_KEYS or args.value is None:
            console.print(f"[red]Usage: markview prefs set KEY VALUE "
                          f"(KEY is one of {', '.join(PREFERENCE_KEYS)})[/red]")
            sys.exit(1)
        if args.key == "sidebar_open":
            prefs.sidebar_open = args.value.lower() in ("true", "1", "yes")
        else:
            setattr(prefs, args.key, args.value)

    if args.action != "show":
        if store is None:
            raise MarkviewError("State database unavailable, preferences not saved")
        save_preferences(store, prefs)

    if args.output == "json":
        print(json.dumps(asdict(prefs), indent=2))
    elif not args.quiet or args.action == "show":
        for key, value in asdict(prefs).items():
            print(f"{key}\t{value}")


def add_query_arguments(parser: argparse.ArgumentParser, with_view: bool = True):
    parser.add_argument("-f", "--filter", action="append", metavar="EXPR",
                        help="Filter expression: #tag, folder:ID, strictfolder:ID, title:TEXT, "
                             "url:TEXT or TEXT; prefix with '-' to negate, as in --filter=-#tag "
                             "(repeatable)")
    parser.add_argument("--sort", choices=[k.value for k in SortKey], help="Sort key")
    direction = parser.add_mutually_exclusive_group()
    direction.add_argument("--asc", dest="direction", action="store_const",
                           const=SortDirection.ASC.value, help="Ascending order")
    direction.add_argument("--desc", dest="direction", action="store_const",
                           const=SortDirection.DESC.value, help="Descending order")
    parser.add_argument("--query", help="Query string produced by 'markview share'")
    if with_view:
        parser.add_argument("--view", help="Start from a saved view (id or name)")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="markview",
        description="MarkView - filter, sort and save views of your browser bookmarks",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  markview list -f '#python' --filter=-folder:12 --sort title --asc
  markview tags --prefix py
  markview folders
  markview rename 123 "Release notes #work"
  markview share -f '#react'
  markview view save "Frontend" -f '#react' -f '#js'
  markview view show Frontend
  markview prefs set theme dark

Configuration:
  Config file: ~/.config/markview/config.toml
  Environment: MARKVIEW_BOOKMARKS_FILE, MARKVIEW_STATE_DATABASE
        """
    )

    parser.add_argument("--bookmarks", help="Chromium 'Bookmarks' file to read")
    parser.add_argument("--state-db", help="State database file (saved views, preferences)")
    parser.add_argument("--config", help="Config file path")
    parser.add_argument("-q", "--quiet", action="store_true", help="Minimal output")
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    parser.add_argument("-o", "--output", choices=["table", "json", "plain", "urls"],
                        help="Output format")

    subparsers = parser.add_subparsers(dest="command", required=True, help="Commands")

    list_parser = subparsers.add_parser("list", help="List bookmarks matching filters")
    add_query_arguments(list_parser)
    list_parser.add_argument("--limit", type=int, help="Show at most N bookmarks (default: page_size, 0 for all)")
    list_parser.set_defaults(func=cmd_list)

    tags_parser = subparsers.add_parser("tags", help="Tag frequencies of matching bookmarks")
    add_query_arguments(tags_parser)
    tags_parser.add_argument("--prefix", help="Autocomplete suggestions for a tag prefix")
    tags_parser.add_argument("--limit", type=int, help="Show at most N tags")
    tags_parser.set_defaults(func=cmd_tags)

    folders_parser = subparsers.add_parser("folders", help="Show the folder tree")
    folders_parser.set_defaults(func=cmd_folders)

    rename_parser = subparsers.add_parser("rename", help="Rename a bookmark")
    rename_parser.add_argument("id", help="Bookmark id")
    rename_parser.add_argument("title", help="New title")
    rename_parser.set_defaults(func=cmd_rename)

    share_parser = subparsers.add_parser("share", help="Print a shareable query string")
    add_query_arguments(share_parser)
    share_parser.set_defaults(func=cmd_share)

    profiles_parser = subparsers.add_parser("profiles", help="List browser profiles")
    profiles_parser.set_defaults(func=cmd_profiles)

    view_parser = subparsers.add_parser("view", help="Saved views")
    view_subparsers = view_parser.add_subparsers(dest="view_command", required=True)

    view_list = view_subparsers.add_parser("list", help="List saved views")
    view_list.set_defaults(func=cmd_view)

    view_save = view_subparsers.add_parser("save", help="Save filters as a view")
    view_save.add_argument("name", nargs="?", default="", help="View name (may be empty)")
    add_query_arguments(view_save, with_view=False)
    view_save.set_defaults(func=cmd_view)

    view_show = view_subparsers.add_parser("show", help="List bookmarks of a view")
    view_show.add_argument("key", help="View id, id prefix or name")
    view_show.add_argument("--sort", choices=[k.value for k in SortKey], help="Sort key")
    show_direction = view_show.add_mutually_exclusive_group()
    show_direction.add_argument("--asc", dest="direction", action="store_const", const="asc")
    show_direction.add_argument("--desc", dest="direction", action="store_const", const="desc")
    view_show.set_defaults(func=cmd_view)

    view_delete = view_subparsers.add_parser("delete", help="Delete a view")
    view_delete.add_argument("key", help="View id, id prefix or name")
    view_delete.set_defaults(func=cmd_view)

    view_rename = view_subparsers.add_parser("rename", help="Rename a view")
    view_rename.add_argument("key", help="View id, id prefix or name")
    view_rename.add_argument("name", help="New name")
    view_rename.set_defaults(func=cmd_view)

    view_duplicate = view_subparsers.add_parser("duplicate", help="Copy a view")
    view_duplicate.add_argument("key", help="View id, id prefix or name")
    view_duplicate.set_defaults(func=cmd_view)

    view_export = view_subparsers.add_parser("export", help="Export views to YAML")
    view_export.add_argument("file", help="Output file")
    view_export.set_defaults(func=cmd_view)

    view_import = view_subparsers.add_parser("import", help="Import views from YAML")
    view_import.add_argument("file", help="Input file")
    view_import.set_defaults(func=cmd_view)

    config_parser = subparsers.add_parser("config", help="Show or change configuration")
    config_parser.add_argument("action", choices=["show", "set"], help="Config action")
    config_parser.add_argument("key", nargs="?", help="Config key")
    config_parser.add_argument("value", nargs="?", help="Config value (for set)")
    config_parser.set_defaults(func=cmd_config)

    prefs_parser = subparsers.add_parser("prefs", help="Show or change display preferences")
    prefs_parser.add_argument("action", choices=["show", "set", "toggle-sidebar"], help="Prefs action")
    prefs_parser.add_argument("key", nargs="?", help="theme, sidebar_open or sidebar_mode (for set)")
    prefs_parser.add_argument("value", nargs="?", help="New value (for set)")
    prefs_parser.set_defaults(func=cmd_prefs)

    return parser


def main(argv: Optional[List[str]] = None):
    """Main entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)

    config_args = {}
    if args.output:
        config_args["output_format"] = args.output
    if args.state_db:
        config_args["state_database"] = args.state_db

    config = init_config(
        bookmarks_file=args.bookmarks,
        config_file=Path(args.config) if args.config else None,
        **config_args,
    )
    configure_logging("DEBUG" if args.verbose else config.log_level)
    console.no_color = not config.color_output
    use_system_collation()

    if not args.output:
        args.output = config.output_format

    try:
        args.func(args)
    except KeyboardInterrupt:
        console.print("\n[yellow]Interrupted[/yellow]")
        sys.exit(130)
    except (MarkviewError, OSError, KeyError, ValueError) as e:
        console.print(f"[red]Error: {e}[/red]")
        sys.exit(1)


if __name__ == "__main__":
    main()

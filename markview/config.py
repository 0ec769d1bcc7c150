"""
MarkView settings.

Settings come from layered TOML files plus MARKVIEW_* environment
variables, with the command line applied last by init_config():

    ~/.config/markview/config.toml     user settings
    ./markview.toml                    per-directory settings (first found of
    ./.markviewrc                      these three wins)
    ./.markview/config.toml
    MARKVIEW_<FIELD>=value             e.g. MARKVIEW_DEFAULT_SORT=title
"""
import logging
import os
from dataclasses import asdict, dataclass, fields
from pathlib import Path
from typing import Any, Dict, Iterator, Optional

import tomli
import tomli_w

logger = logging.getLogger(__name__)

ENV_PREFIX = "MARKVIEW_"
LOCAL_CONFIG_NAMES = ("markview.toml", ".markviewrc", ".markview/config.toml")


def user_config_path() -> Path:
    return Path.home() / ".config" / "markview" / "config.toml"


@dataclass
class MarkviewConfig:
    """
    Settings for the CLI and the stores it opens.

    Attributes:
        bookmarks_file: Chromium "Bookmarks" file; None picks the default browser profile
        state_database: SQLite file or SQLAlchemy URL for saved views and preferences
        database_echo: Log SQL statements
        default_sort: Sort key used when none is given
        default_sort_direction: "asc" or "desc"
        max_tree_depth: Folder nesting beyond this is rejected as a cycle
        output_format: table, json, plain or urls
        color_output: Colored console output
        page_size: Rows listed when --limit is not given (0 for all)
        log_level: Root logging level name
    """
    bookmarks_file: Optional[str] = None
    state_database: str = "~/.local/share/markview/state.db"
    database_echo: bool = False
    default_sort: str = "dateAdded"
    default_sort_direction: str = "desc"
    max_tree_depth: int = 256
    output_format: str = "table"
    color_output: bool = True
    page_size: int = 50
    log_level: str = "WARNING"

    @classmethod
    def load(cls, config_file: Optional[Path] = None) -> "MarkviewConfig":
        """Build settings from the files, an optional extra file, then the environment."""
        config = cls()
        for path in _config_files(config_file):
            logger.debug(f"Reading settings from {path}")
            with open(path, "rb") as f:
                config.update(tomli.load(f))
        config.update(_environment_settings())
        config.bookmarks_file = _expand(config.bookmarks_file)
        config.state_database = _expand(config.state_database)
        return config

    def update(self, values: Dict[str, Any]) -> None:
        """Set known fields, converting strings to the field's type. Unknown keys are ignored."""
        for key, value in values.items():
            if key not in _FIELD_NAMES:
                logger.debug(f"Ignoring unknown setting {key!r}")
                continue
            current = getattr(self, key)
            if isinstance(value, str) and isinstance(current, bool):
                value = value.lower() in ("true", "1", "yes")
            elif isinstance(value, str) and isinstance(current, int):
                value = int(value)
            setattr(self, key, value)

    def save(self, path: Optional[Path] = None) -> Path:
        """Write the settings as TOML (user config by default) and return the path."""
        path = path or user_config_path()
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, "wb") as f:
            tomli_w.dump({k: v for k, v in asdict(self).items() if v is not None}, f)
        return path


_FIELD_NAMES = {f.name for f in fields(MarkviewConfig)}


def _config_files(extra: Optional[Path]) -> Iterator[Path]:
    if user_config_path().exists():
        yield user_config_path()
    local = next((Path.cwd() / name for name in LOCAL_CONFIG_NAMES
                  if (Path.cwd() / name).exists()), None)
    if local:
        yield local
    if extra and extra.exists():
        yield extra


def _environment_settings() -> Dict[str, str]:
    return {
        key[len(ENV_PREFIX):].lower(): value
        for key, value in os.environ.items()
        if key.startswith(ENV_PREFIX)
    }


def _expand(value: Optional[str]) -> Optional[str]:
    if value is None or "://" in value:
        return value
    return os.path.expanduser(os.path.expandvars(value))


_config: Optional[MarkviewConfig] = None


def get_config(reload: bool = False, config_file: Optional[Path] = None) -> MarkviewConfig:
    """Settings for this process, loaded on first use."""
    global _config
    if _config is None or reload:
        _config = MarkviewConfig.load(config_file)
    return _config


def init_config(bookmarks_file: Optional[str] = None, config_file: Optional[Path] = None,
                **overrides) -> MarkviewConfig:
    """Load settings and apply command line overrides; None overrides are skipped."""
    config = get_config(reload=config_file is not None, config_file=config_file)
    if bookmarks_file:
        config.bookmarks_file = os.path.expanduser(bookmarks_file)
    config.update({k: v for k, v in overrides.items() if v is not None})
    return config

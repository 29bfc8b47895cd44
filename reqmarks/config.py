"""
ReqMarks Configuration Management
=================================
Handles config loading, env-var overrides, logging setup and
platform-specific paths.
"""

from __future__ import annotations

import copy
import logging
import os
import platform
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict

import yaml
from platformdirs import user_config_dir, user_data_dir

APP_NAME = "reqmarks"

# ── paths ────────────────────────────────────────────────────────────────────

CONFIG_DIR = Path(user_config_dir(APP_NAME))
DATA_DIR = Path(user_data_dir(APP_NAME))
BUFFERS_DIR = DATA_DIR / "buffers"
LOGS_DIR = DATA_DIR / "logs"
CONFIG_FILE = CONFIG_DIR / "config.yaml"


def ensure_dirs() -> None:
    """Create all required directories."""
    for d in (CONFIG_DIR, DATA_DIR, BUFFERS_DIR, LOGS_DIR):
        d.mkdir(parents=True, exist_ok=True)


# ── default config ───────────────────────────────────────────────────────────

DEFAULT_CONFIG: Dict[str, Any] = {
    "bookmarks": {
        "highlight_color": "magenta",
        "comment": "[^]",
        "max_parameters": 5,
        "repeat_in_table": True,
    },
    "repeat": {
        "timeout": 30,
        "verify_tls": False,
        "follow_redirects": False,
        "max_workers": 0,
    },
    "storage": {
        "buffers_dir": "",
    },
    "ui": {
        "show_banner": True,
        "verbose": False,
    },
}


@dataclass
class BookmarksConfig:
    highlight_color: str = "magenta"
    comment: str = "[^]"
    max_parameters: int = 5
    repeat_in_table: bool = True


@dataclass
class RepeatConfig:
    timeout: float = 30
    verify_tls: bool = False
    follow_redirects: bool = False
    max_workers: int = 0  # 0 = one thread per repeat


@dataclass
class StorageConfig:
    buffers_dir: str = ""

    @property
    def buffers_path(self) -> Path:
        return Path(self.buffers_dir) if self.buffers_dir else BUFFERS_DIR


@dataclass
class UIConfig:
    show_banner: bool = True
    verbose: bool = False


@dataclass
class ReqMarksConfig:
    bookmarks: BookmarksConfig = field(default_factory=BookmarksConfig)
    repeat: RepeatConfig = field(default_factory=RepeatConfig)
    storage: StorageConfig = field(default_factory=StorageConfig)
    ui: UIConfig = field(default_factory=UIConfig)


def _env_bool(value: str) -> bool:
    return value.strip().lower() in ("1", "true", "yes", "on")


def load_config() -> ReqMarksConfig:
    """Load configuration from disk, env vars, and defaults."""
    ensure_dirs()
    raw: Dict[str, Any] = {}

    if CONFIG_FILE.exists():
        with open(CONFIG_FILE) as f:
            raw = yaml.safe_load(f) or {}

    # Merge with defaults
    merged = _deep_merge(copy.deepcopy(DEFAULT_CONFIG), raw)

    # Env-var overrides
    if os.environ.get("REQMARKS_TIMEOUT"):
        merged["repeat"]["timeout"] = float(os.environ["REQMARKS_TIMEOUT"])
    if os.environ.get("REQMARKS_VERIFY_TLS"):
        merged["repeat"]["verify_tls"] = _env_bool(os.environ["REQMARKS_VERIFY_TLS"])
    if os.environ.get("REQMARKS_MAX_WORKERS"):
        merged["repeat"]["max_workers"] = int(os.environ["REQMARKS_MAX_WORKERS"])
    if os.environ.get("REQMARKS_BUFFERS_DIR"):
        merged["storage"]["buffers_dir"] = os.environ["REQMARKS_BUFFERS_DIR"]

    cfg = ReqMarksConfig(
        bookmarks=BookmarksConfig(**merged.get("bookmarks", {})),
        repeat=RepeatConfig(**merged.get("repeat", {})),
        storage=StorageConfig(**merged.get("storage", {})),
        ui=UIConfig(**merged.get("ui", {})),
    )
    return cfg


def save_config(cfg: ReqMarksConfig) -> None:
    """Persist current configuration to disk."""
    ensure_dirs()
    data = {
        "bookmarks": {
            "highlight_color": cfg.bookmarks.highlight_color,
            "comment": cfg.bookmarks.comment,
            "max_parameters": cfg.bookmarks.max_parameters,
            "repeat_in_table": cfg.bookmarks.repeat_in_table,
        },
        "repeat": {
            "timeout": cfg.repeat.timeout,
            "verify_tls": cfg.repeat.verify_tls,
            "follow_redirects": cfg.repeat.follow_redirects,
            "max_workers": cfg.repeat.max_workers,
        },
        "storage": {
            "buffers_dir": cfg.storage.buffers_dir,
        },
        "ui": {
            "show_banner": cfg.ui.show_banner,
            "verbose": cfg.ui.verbose,
        },
    }
    with open(CONFIG_FILE, "w") as f:
        yaml.dump(data, f, default_flow_style=False, sort_keys=False)


def _deep_merge(base: dict, override: dict) -> dict:
    """Recursively merge override into base."""
    result = base.copy()
    for k, v in override.items():
        if k in result and isinstance(result[k], dict) and isinstance(v, dict):
            result[k] = _deep_merge(result[k], v)
        else:
            result[k] = v
    return result


# ── logging ──────────────────────────────────────────────────────────────────

def setup_logging(verbose: bool = False) -> None:
    """Send package logs to LOGS_DIR, and to the terminal when verbose."""
    ensure_dirs()
    root = logging.getLogger(APP_NAME)
    root.setLevel(logging.DEBUG if verbose else logging.INFO)
    root.handlers.clear()

    file_handler = logging.FileHandler(LOGS_DIR / f"{APP_NAME}.log", encoding="utf-8")
    file_handler.setFormatter(
        logging.Formatter("%(asctime)s %(levelname)s %(threadName)s %(name)s: %(message)s")
    )
    root.addHandler(file_handler)

    if verbose:
        from rich.logging import RichHandler
        root.addHandler(RichHandler(show_path=False, rich_tracebacks=True))


# ── platform ─────────────────────────────────────────────────────────────────

def detect_platform() -> Dict[str, str]:
    """Return platform information."""
    return {
        "system": platform.system(),
        "release": platform.release(),
        "machine": platform.machine(),
        "python": platform.python_version(),
    }

"""Tests for ReqMarks configuration module."""

import yaml
import pytest

import reqmarks.config as config_mod
from reqmarks.config import (
    BookmarksConfig,
    ReqMarksConfig,
    RepeatConfig,
    _deep_merge,
    detect_platform,
    load_config,
    save_config,
)


@pytest.fixture
def config_paths(tmp_path, monkeypatch):
    """Point every config path at a temp directory."""
    monkeypatch.setattr(config_mod, "CONFIG_DIR", tmp_path / "config")
    monkeypatch.setattr(config_mod, "DATA_DIR", tmp_path / "data")
    monkeypatch.setattr(config_mod, "BUFFERS_DIR", tmp_path / "data" / "buffers")
    monkeypatch.setattr(config_mod, "LOGS_DIR", tmp_path / "data" / "logs")
    monkeypatch.setattr(config_mod, "CONFIG_FILE", tmp_path / "config" / "config.yaml")
    for var in ("REQMARKS_TIMEOUT", "REQMARKS_VERIFY_TLS",
                "REQMARKS_MAX_WORKERS", "REQMARKS_BUFFERS_DIR"):
        monkeypatch.delenv(var, raising=False)
    return tmp_path


def test_default_config():
    """Test that default config is created properly."""
    cfg = ReqMarksConfig()
    assert cfg.bookmarks.highlight_color == "magenta"
    assert cfg.bookmarks.comment == "[^]"
    assert cfg.bookmarks.max_parameters == 5
    assert cfg.bookmarks.repeat_in_table is True
    assert cfg.repeat.timeout == 30
    assert cfg.repeat.max_workers == 0
    assert cfg.ui.show_banner is True


def test_bookmarks_config():
    """Test bookmarks config dataclass."""
    bm = BookmarksConfig(highlight_color="cyan", comment="[*]", max_parameters=3)
    assert bm.highlight_color == "cyan"
    assert bm.comment == "[*]"
    assert bm.max_parameters == 3


def test_repeat_config_defaults():
    cfg = RepeatConfig()
    assert cfg.verify_tls is False
    assert cfg.follow_redirects is False


def test_buffers_path_default_and_override(tmp_path):
    cfg = ReqMarksConfig()
    assert cfg.storage.buffers_path == config_mod.BUFFERS_DIR
    cfg.storage.buffers_dir = str(tmp_path)
    assert cfg.storage.buffers_path == tmp_path


def test_deep_merge():
    """Test deep merge of config dictionaries."""
    base = {"a": {"b": 1, "c": 2}, "d": 3}
    override = {"a": {"b": 10}, "e": 5}
    result = _deep_merge(base, override)
    assert result["a"]["b"] == 10
    assert result["a"]["c"] == 2
    assert result["d"] == 3
    assert result["e"] == 5


def test_deep_merge_does_not_mutate_base():
    base = {"a": {"b": 1}}
    _deep_merge(base, {"a": {"b": 2}})
    assert base["a"]["b"] == 1


def test_detect_platform():
    """Test platform detection returns valid data."""
    plat = detect_platform()
    assert "system" in plat
    assert "release" in plat
    assert "machine" in plat
    assert "python" in plat


def test_load_config_defaults(config_paths):
    cfg = load_config()
    assert cfg.bookmarks.highlight_color == "magenta"
    assert (config_paths / "data" / "buffers").is_dir()


def test_load_config_from_file(config_paths):
    config_file = config_paths / "config" / "config.yaml"
    config_file.parent.mkdir(parents=True)
    config_file.write_text(yaml.safe_dump({"bookmarks": {"comment": "[bm]"},
                                           "repeat": {"timeout": 5}}))
    cfg = load_config()
    assert cfg.bookmarks.comment == "[bm]"
    assert cfg.bookmarks.highlight_color == "magenta"
    assert cfg.repeat.timeout == 5


def test_env_var_override(config_paths, monkeypatch):
    """Test that environment variables override config."""
    monkeypatch.setenv("REQMARKS_TIMEOUT", "7.5")
    monkeypatch.setenv("REQMARKS_VERIFY_TLS", "yes")
    monkeypatch.setenv("REQMARKS_MAX_WORKERS", "4")
    monkeypatch.setenv("REQMARKS_BUFFERS_DIR", str(config_paths / "bufs"))
    cfg = load_config()
    assert cfg.repeat.timeout == 7.5
    assert cfg.repeat.verify_tls is True
    assert cfg.repeat.max_workers == 4
    assert cfg.storage.buffers_path == config_paths / "bufs"


def test_save_and_reload(config_paths):
    cfg = ReqMarksConfig()
    cfg.bookmarks.highlight_color = "yellow"
    cfg.repeat.max_workers = 2
    save_config(cfg)
    reloaded = load_config()
    assert reloaded.bookmarks.highlight_color == "yellow"
    assert reloaded.repeat.max_workers == 2

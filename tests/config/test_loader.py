# tests/config/test_loader.py
import json

import pytest
from pydantic import ValidationError

from repoviewer.config.loader import get_config, load_config, reset_config_cache, save_config, update_config
from repoviewer.config.paths import get_user_config_file, get_user_log_dir
from repoviewer.config.schema import AppConfig


def test_defaults_when_no_file(isolated_user_dir):
    config = load_config()
    assert config == AppConfig()
    assert config.tree_depth == 10
    assert config.max_file_size_bytes == 10 * 1024 * 1024
    assert get_user_config_file().parent == isolated_user_dir


def test_config_is_cached():
    assert get_config() is get_config()


def test_save_then_load_round_trip():
    save_config(AppConfig(show_hidden=True, tree_depth=3, extra_ignore_patterns=["*.tmp"]))
    reset_config_cache()
    config = load_config()
    assert config.show_hidden is True
    assert config.tree_depth == 3
    assert config.extra_ignore_patterns == ["*.tmp"]
    assert [p.name for p in get_user_config_file().parent.glob(".config.json_tmp*")] == []


def test_corrupted_file_is_backed_up():
    config_path = get_user_config_file()
    config_path.write_text("{not json", encoding="utf-8")
    assert load_config() == AppConfig()
    assert not config_path.exists()
    assert config_path.with_suffix(".json.corrupted").read_text(encoding="utf-8") == "{not json"


def test_non_object_falls_back_to_defaults():
    get_user_config_file().write_text("[1, 2, 3]", encoding="utf-8")
    assert load_config() == AppConfig()


def test_invalid_values_fall_back_to_defaults():
    get_user_config_file().write_text(json.dumps({"tree_depth": 0, "show_hidden": True}), encoding="utf-8")
    config = load_config()
    assert config == AppConfig()
    assert config.show_hidden is False


def test_log_dir_lives_under_user_dir(isolated_user_dir):
    assert get_user_log_dir() == isolated_user_dir / "logs"
    assert get_user_log_dir().is_dir()


def test_environment_overrides_file(monkeypatch):
    save_config(AppConfig(tree_depth=3))
    reset_config_cache()
    monkeypatch.setenv("REPOVIEWER_TREE_DEPTH", "5")
    monkeypatch.setenv("REPOVIEWER_SHOW_HIDDEN", "true")
    monkeypatch.setenv("REPOVIEWER_EXTRA_IGNORE_PATTERNS", "*.tmp, dist/")
    config = load_config()
    assert config.tree_depth == 5
    assert config.show_hidden is True
    assert config.extra_ignore_patterns == ["*.tmp", "dist/"]


def test_update_config_keeps_other_values():
    save_config(AppConfig(show_ignored=True))
    config = update_config(tree_depth=4)
    assert config.tree_depth == 4
    assert config.show_ignored is True
    saved = json.loads(get_user_config_file().read_text(encoding="utf-8"))
    assert saved["tree_depth"] == 4


def test_update_config_rejects_invalid_values():
    with pytest.raises(ValidationError):
        update_config(max_file_size_mb=0)
    assert not get_user_config_file().exists()


def test_update_config_reports_failed_save(mocker):
    mocker.patch("repoviewer.config.loader.os.replace", side_effect=OSError(28, "No space left on device"))
    assert update_config(tree_depth=4) is None
    assert not get_user_config_file().exists()
    assert get_config().tree_depth == 10

# tests/conftest.py
from pathlib import Path
from typing import Dict, Union

import pytest

from repoviewer.config.loader import reset_config_cache


@pytest.fixture(autouse=True)
def isolated_user_dir(tmp_path_factory, monkeypatch):
    """Keeps config and log files out of the real home directory."""
    home = tmp_path_factory.mktemp("repoviewer_home")
    monkeypatch.setenv("REPOVIEWER_HOME", str(home))
    reset_config_cache()
    yield home
    reset_config_cache()


def build_tree(root: Path, layout: Dict[str, Union[str, bytes, dict]]) -> Path:
    """Creates files (str/bytes values) and directories (dict values) under root."""
    root.mkdir(parents=True, exist_ok=True)
    for name, content in layout.items():
        path = root / name
        if isinstance(content, dict):
            build_tree(path, content)
        elif isinstance(content, bytes):
            path.write_bytes(content)
        else:
            path.write_text(content, encoding="utf-8")
    return root


@pytest.fixture
def make_tree(tmp_path):
    def _make(layout, name="proj"):
        return build_tree(tmp_path / name, layout)
    return _make


@pytest.fixture
def repo(make_tree):
    """A small git repository with a .gitignore, hidden files and nested sources."""
    root = make_tree({
        ".git": {"HEAD": "ref: refs/heads/main\n"},
        ".gitignore": "build/\n*.log\n",
        ".env": "SECRET=1\n",
        "README.md": "# Demo\n",
        "debug.log": "noise\n",
        "build": {"out.txt": "artifact\n"},
        "src": {
            "main.rs": "fn main() {}\n",
            "lib.rs": "pub fn lib() {}\n",
            "logo.png": b"\x89PNG\r\n\x1a\n\x00\x00",
            ".cache": {"hidden.txt": "cached\n"},
        },
    })
    return root

# repoviewer/core/exporter.py
import os
import tempfile
import time
from pathlib import Path
from typing import Dict, List, Optional, Tuple, Union

from loguru import logger

from .classifier import decode_text
from .collection import Collection
from .errors import ExportError, ListingError
from .fs_listing import IgnorePredicate, list_directory
from .models import CollectionEntry

FENCE = "````" # four backticks so files containing ``` blocks stay intact
BRANCH, LAST_BRANCH = "├── ", "└── "
PIPE, SPACE = "│   ", "    "


def _read_entry(entry: CollectionEntry) -> str:
    try:
        data = entry.absolute_path.read_bytes()
    except OSError as e:
        logger.error(f"Error reading {entry.absolute_path} for export: {e}")
        raise ExportError(f"Cannot read {entry.relative_display_path}: {e.strerror or e}", entry.absolute_path) from e
    content = decode_text(data)
    if content is None:
        logger.warning(f"Refusing to export {entry.absolute_path}: content looks binary")
        raise ExportError(f"Cannot export {entry.relative_display_path}: content looks binary", entry.absolute_path)
    return content


def render_markdown(collection: Collection, source_name: Optional[str] = None) -> str:
    """
    Renders the collection as one markdown document: a ``##`` heading per file,
    in insertion order, followed by its current content in a tagged fence.

    Every file is read before any output is assembled; one unreadable file
    raises ExportError and nothing is returned.
    """
    entries = collection.entries()
    contents: List[Tuple[CollectionEntry, str]] = [(entry, _read_entry(entry)) for entry in entries]

    if source_name is None:
        base = collection.git_root or collection.start_path
        source_name = base.name or str(base)

    lines = ["# Code Context\n\n", f"Generated from: {source_name}\n\n"]
    for entry, content in contents:
        lines.append(f"\n## {entry.relative_display_path}\n\n")
        lines.append(f"{FENCE}{entry.content_kind.language or ''}\n")
        lines.append(content)
        if content and not content.endswith("\n"):
            lines.append("\n")
        lines.append(f"{FENCE}\n")
    markdown = "".join(lines)
    logger.debug(f"Rendered markdown for {len(contents)} files ({len(markdown)} chars)")
    return markdown


def render_tree(root: Union[str, Path],
                depth_limit: Optional[int] = None,
                show_hidden: bool = False,
                show_ignored: bool = False,
                ignore_predicate: Optional[IgnorePredicate] = None,
                root_label: Optional[str] = None) -> str:
    """
    Draws the filtered directory tree under ``root`` with box-drawing connectors,
    down to ``depth_limit`` levels (unlimited when None).
    """
    root = Path(root)
    output = [f"{root_label if root_label is not None else (root.name or str(root))}\n"]

    def walk(directory: Path, prefix: str, depth: int) -> None:
        if depth_limit is not None and depth >= depth_limit:
            return
        try:
            entries = list_directory(directory, show_hidden, show_ignored, ignore_predicate)
        except ListingError as e:
            raise ExportError(str(e), directory) from e
        for i, entry in enumerate(entries):
            is_last = i == len(entries) - 1
            output.append(prefix + (LAST_BRANCH if is_last else BRANCH))
            if entry.is_directory:
                output.append(f"{entry.display_name}/\n")
                if not entry.is_symlink:
                    walk(entry.absolute_path, prefix + (SPACE if is_last else PIPE), depth + 1)
            else:
                output.append(f"{entry.display_name}\n")

    walk(root, "", 0)
    return "".join(output)


def render_collection_tree(collection: Collection, root_label: Optional[str] = None) -> str:
    """Draws only the collected files, arranged by their display paths."""
    tree: Dict[str, dict] = {}
    for entry in collection:
        node = tree
        for part in entry.relative_display_path.split("/"):
            node = node.setdefault(part, {})

    output = [f"{root_label if root_label is not None else (collection.start_path.name or str(collection.start_path))}\n"]

    def walk(node: Dict[str, dict], prefix: str) -> None:
        names = sorted(node, key=lambda n: (not node[n], n.lower(), n))
        for i, name in enumerate(names):
            is_last = i == len(names) - 1
            children = node[name]
            output.append(prefix + (LAST_BRANCH if is_last else BRANCH))
            output.append(f"{name}/\n" if children else f"{name}\n")
            if children:
                walk(children, prefix + (SPACE if is_last else PIPE))

    walk(tree, "")
    return "".join(output)


def default_export_name(now: Optional[float] = None) -> str:
    return f"code_context_{int(now if now is not None else time.time())}.md"


def write_export(text: str, target: Union[str, Path]) -> Path:
    """Writes ``text`` to ``target`` atomically; on failure nothing is left behind."""
    target = Path(target)
    temp_file_path: Optional[Path] = None
    try:
        with tempfile.NamedTemporaryFile(
            mode="w",
            encoding="utf-8",
            dir=target.parent,
            prefix=f".{target.name}_tmp",
            delete=False,
        ) as temp_f:
            temp_file_path = Path(temp_f.name)
            temp_f.write(text)
            temp_f.flush()
            os.fsync(temp_f.fileno())
        os.replace(temp_file_path, target)
        temp_file_path = None
        logger.info(f"Wrote export to {target} ({len(text)} chars)")
        return target
    except OSError as e:
        logger.error(f"Failed to write export to {target}: {e}")
        raise ExportError(f"Cannot write {target}: {e.strerror or e}", target) from e
    finally:
        if temp_file_path and temp_file_path.exists():
            try: temp_file_path.unlink()
            except OSError as unlink_err: logger.error(f"Failed to remove temporary export file {temp_file_path}: {unlink_err}")

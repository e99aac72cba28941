# repoviewer/core/fs_listing.py
import os
import stat
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Iterable, List, Optional, Union

import pathspec
from loguru import logger

from .errors import ListingError
from .models import Entry

IgnorePredicate = Callable[[Path, bool], bool]

# Never listed, whatever the filters say
ALWAYS_EXCLUDED = frozenset({".git"})


def is_hidden_entry(name: str, st: Optional[os.stat_result] = None) -> bool:
    """Dotfiles are hidden; on Windows the hidden attribute counts too."""
    if name.startswith("."):
        return True
    attributes = getattr(st, "st_file_attributes", 0) if st is not None else 0
    return bool(attributes & getattr(stat, "FILE_ATTRIBUTE_HIDDEN", 0))


def sort_key(entry: Entry):
    # Directories first, then case-insensitive name; exact name breaks ties
    return (not entry.is_directory, entry.display_name.lower(), entry.display_name)


class IgnoreMatcher:
    """
    Matches paths against a repository's root ``.gitignore`` (plus optional extra
    patterns) using gitignore semantics. Paths outside the root never match.
    """

    def __init__(self, root: Path, patterns: Iterable[str] = ()):
        self.root = Path(root).resolve()
        self.patterns = [p for p in patterns if p.strip() and not p.lstrip().startswith("#")]
        self._spec = pathspec.GitIgnoreSpec.from_lines(self.patterns)
        logger.debug(f"Ignore matcher for {self.root} with {len(self.patterns)} patterns")

    @classmethod
    def for_repository(cls, root: Union[str, Path], extra_patterns: Iterable[str] = ()) -> "IgnoreMatcher":
        root = Path(root)
        lines: List[str] = []
        gitignore = root / ".gitignore"
        if gitignore.is_file():
            try:
                lines = gitignore.read_text(encoding="utf-8", errors="replace").splitlines()
            except OSError as e:
                logger.warning(f"Could not read {gitignore}: {e}. Treating repository as having no ignore rules.")
        else:
            logger.trace(f"No .gitignore at {root}")
        return cls(root, [*lines, *extra_patterns])

    def is_ignored(self, path: Path, is_dir: bool) -> bool:
        if not self.patterns:
            return False
        try:
            relative = Path(path).relative_to(self.root).as_posix()
        except ValueError:
            return False
        if relative in ("", "."):
            return False
        if is_dir:
            relative += "/"
        return self._spec.match_file(relative)

    __call__ = is_ignored


def list_directory(
    directory: Union[str, Path],
    show_hidden: bool,
    show_ignored: bool,
    ignore_predicate: Optional[IgnorePredicate] = None,
    error_callback: Optional[Callable[[str], None]] = None,
) -> List[Entry]:
    """
    Lists the immediate children of ``directory`` as an ordered, filtered sequence.

    Hidden and VCS-ignored entries are dropped independently unless the matching
    ``show_*`` flag is set. Raises ListingError when the directory cannot be read.
    """
    directory = Path(directory)
    try:
        with os.scandir(directory) as it:
            raw_entries = list(it)
    except OSError as e:
        logger.warning(f"Could not list directory {directory}: {e}")
        raise ListingError(f"Cannot read directory {directory}: {e.strerror or e}", directory) from e

    entries: List[Entry] = []
    for dir_entry in raw_entries:
        name = dir_entry.name
        if name in ALWAYS_EXCLUDED:
            continue
        entry_path = Path(dir_entry.path)
        try:
            is_symlink = dir_entry.is_symlink()
            is_dir = dir_entry.is_dir() # follows symlinks
            st = dir_entry.stat(follow_symlinks=False) if os.name == "nt" else None
        except OSError as e:
            logger.warning(f"Could not stat {entry_path}: {e}. Skipping.")
            if error_callback:
                try: error_callback(f"Access error: {name}")
                except Exception as cb_err: logger.error(f"Error in error callback: {cb_err}")
            continue

        hidden = is_hidden_entry(name, st)
        if hidden and not show_hidden:
            logger.trace(f"Hiding dotfile {name}")
            continue

        ignored = bool(ignore_predicate(entry_path, is_dir)) if ignore_predicate else False
        if ignored and not show_ignored:
            logger.trace(f"Hiding ignored entry {name}")
            continue

        entries.append(Entry(
            absolute_path=entry_path,
            display_name=name,
            is_directory=is_dir,
            is_hidden=hidden,
            is_ignored_by_vcs=ignored,
            is_symlink=is_symlink,
        ))

    entries.sort(key=sort_key)
    return entries


@dataclass
class ListingFilter:
    """The visibility settings a listing is computed under."""
    show_hidden: bool = False
    show_ignored: bool = False
    ignore_predicate: Optional[IgnorePredicate] = None

    def list(self, directory: Union[str, Path]) -> List[Entry]:
        return list_directory(directory, self.show_hidden, self.show_ignored, self.ignore_predicate)

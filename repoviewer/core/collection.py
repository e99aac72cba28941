# repoviewer/core/collection.py
"""
The working set of files chosen for export.

Entries live in an insertion-ordered dict keyed by canonical path. The
aggregate ``total_size_bytes`` is adjusted in the same step as every insert,
remove or refresh update, so it always equals the sum of entry sizes without
being recomputed.
"""
import os
import stat
import time
from pathlib import Path
from typing import Callable, Dict, Iterator, List, Optional, Set, Union

from loguru import logger

from .classifier import classify, decode_text
from .errors import CollectionError, ListingError, NotCollectable
from .fs_listing import ListingFilter
from .models import (
    AddOutcome, AddReport, BINARY, CollectionEntry, MEGABYTE, RefreshOutcome, RefreshReport,
    WarningLevel, format_size, warning_level,
)

DEFAULT_MAX_FILE_SIZE = 10 * MEGABYTE
DEFAULT_MAX_EXPAND_DEPTH = 64
MAX_DISPLAY_PATH = 60


class Collection:
    """Files staged for export, with an O(1) running size total."""

    def __init__(self,
                 start_path: Union[str, Path],
                 git_root: Optional[Path] = None,
                 max_file_size: int = DEFAULT_MAX_FILE_SIZE,
                 max_expand_depth: int = DEFAULT_MAX_EXPAND_DEPTH,
                 clock: Callable[[], float] = time.time):
        self.start_path = Path(start_path).resolve()
        self.git_root = Path(git_root).resolve() if git_root else None
        self.max_file_size = max_file_size
        self.max_expand_depth = max_expand_depth
        self._clock = clock
        self._entries: Dict[Path, CollectionEntry] = {}
        self._total_size_bytes = 0

    # --- Queries ---

    @property
    def total_size_bytes(self) -> int:
        return self._total_size_bytes

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self) -> Iterator[CollectionEntry]:
        return iter(list(self._entries.values()))

    def __contains__(self, path) -> bool:
        return self._key(path) in self._entries

    @property
    def is_empty(self) -> bool:
        return not self._entries

    def entries(self) -> List[CollectionEntry]:
        return list(self._entries.values())

    def get(self, path: Union[str, Path]) -> Optional[CollectionEntry]:
        return self._entries.get(self._key(path))

    def warning_level(self) -> WarningLevel:
        return warning_level(self._total_size_bytes)

    def oldest_collected_at(self) -> Optional[float]:
        return min((e.collected_at for e in self._entries.values()), default=None)

    def verify_total(self) -> bool:
        """Checks the running total against a full summation."""
        return self._total_size_bytes == sum(e.size_bytes for e in self._entries.values())

    @staticmethod
    def _key(path: Union[str, Path]) -> Path:
        try:
            return Path(path).resolve()
        except OSError:
            return Path(os.path.abspath(path))

    # --- Mutations ---

    def _put(self, entry: CollectionEntry) -> None:
        previous = self._entries.get(entry.absolute_path)
        self._total_size_bytes += entry.size_bytes - (previous.size_bytes if previous else 0)
        self._entries[entry.absolute_path] = entry

    def _drop(self, key: Path) -> Optional[CollectionEntry]:
        entry = self._entries.pop(key, None)
        if entry is not None:
            self._total_size_bytes -= entry.size_bytes
        return entry

    def add(self, path: Union[str, Path]) -> AddOutcome:
        """
        Adds one file, or refreshes its metadata if it is already present.

        Raises NotCollectable for binary-classified, non-regular or oversized files
        and for content that looks binary; CollectionError when the file cannot be
        stat'ed or read.
        """
        key = self._key(path)
        if key.is_dir():
            raise NotCollectable(f"Cannot collect directories: {key.name}", key)
        content_kind = classify(key)
        if not content_kind.is_text:
            raise NotCollectable(f"Cannot collect binary or unrecognized file type: {key.name}", key)
        try:
            st = key.stat()
        except OSError as e:
            logger.error(f"Could not stat {key}: {e}")
            raise CollectionError(f"Cannot read {key.name}: {e.strerror or e}", key) from e
        if not stat.S_ISREG(st.st_mode):
            raise NotCollectable(f"Not a regular file: {key.name}", key)
        if st.st_size > self.max_file_size:
            raise NotCollectable(
                f"File too large: {format_size(st.st_size)} (max: {format_size(self.max_file_size)})", key)

        previous = self._entries.get(key)
        if previous and previous.size_bytes == st.st_size and previous.last_modified == st.st_mtime_ns:
            logger.trace(f"Already collected and unchanged: {key}")
            return AddOutcome.UNCHANGED

        try:
            data = key.read_bytes()
        except OSError as e:
            logger.error(f"Could not read {key}: {e}")
            raise CollectionError(f"Cannot read {key.name}: {e.strerror or e}", key) from e
        if decode_text(data) is None:
            raise NotCollectable(f"Cannot collect binary content: {key.name}", key)

        entry = CollectionEntry(
            absolute_path=key,
            relative_display_path=previous.relative_display_path if previous else self.display_path(key),
            size_bytes=st.st_size,
            last_modified=st.st_mtime_ns,
            content_kind=content_kind,
            collected_at=self._clock(),
        )
        self._put(entry)
        logger.debug(f"{'Updated' if previous else 'Added'} {entry.relative_display_path} ({st.st_size} bytes)")
        return AddOutcome.UPDATED if previous else AddOutcome.ADDED

    def add_directory(self, path: Union[str, Path], filters: ListingFilter) -> AddReport:
        """
        Recursively adds every visible file under ``path``. Filtered-out directories
        are not descended into, nor are symlinked ones. Per-file failures are
        reported, never raised; an unreadable top-level directory raises ListingError.
        """
        report = AddReport()
        root = self._key(path)
        visited: Set[Path] = set()
        self._expand(root, filters, report, visited, depth=0)
        logger.info(f"Expanded {root}: {report.added} added, {report.updated} updated, "
                    f"{len(report.skipped)} skipped, {report.errored} errors")
        return report

    def _expand(self, directory: Path, filters: ListingFilter, report: AddReport, visited: Set[Path], depth: int) -> None:
        if directory in visited:
            logger.debug(f"Already expanded {directory}, skipping")
            return
        if depth > self.max_expand_depth:
            logger.warning(f"Maximum expansion depth reached at {directory}")
            report.errors.append((directory, "maximum depth reached"))
            return
        visited.add(directory)

        try:
            listing = filters.list(directory)
        except ListingError as e:
            if depth == 0:
                raise
            report.errors.append((directory, str(e)))
            return

        for entry in listing:
            if entry.is_directory:
                if entry.is_symlink:
                    logger.trace(f"Not following symlinked directory {entry.absolute_path}")
                    continue
                self._expand(self._key(entry.absolute_path), filters, report, visited, depth + 1)
                continue
            try:
                report.record(self.add(entry.absolute_path))
            except NotCollectable as e:
                report.skipped.append((entry.absolute_path, str(e)))
            except CollectionError as e:
                report.errors.append((entry.absolute_path, str(e)))

    def remove(self, path: Union[str, Path]) -> bool:
        """Removes a file; returns False when it was not collected."""
        removed = self._drop(self._key(path))
        if removed:
            logger.debug(f"Removed {removed.relative_display_path}")
        return removed is not None

    def clear(self) -> int:
        count = len(self._entries)
        self._entries.clear()
        self._total_size_bytes = 0
        logger.debug(f"Cleared {count} files from collection")
        return count

    def refresh(self) -> RefreshReport:
        """
        Reconciles every entry with the filesystem. Deleted files are dropped,
        changed ones updated in place; a failure on one path is recorded and the
        pass carries on with the rest.
        """
        report = RefreshReport()
        for key in list(self._entries):
            entry = self._entries[key]
            try:
                st = key.stat()
            except (FileNotFoundError, NotADirectoryError):
                self._drop(key)
                report.record(key, RefreshOutcome.REMOVED, "deleted")
                continue
            except OSError as e:
                logger.warning(f"Could not check {key}: {e}")
                report.record(key, RefreshOutcome.ERRORED, str(e.strerror or e))
                continue

            if not stat.S_ISREG(st.st_mode):
                self._drop(key)
                report.record(key, RefreshOutcome.REMOVED, "no longer a file")
                continue

            if st.st_size == entry.size_bytes and st.st_mtime_ns == entry.last_modified:
                report.record(key, RefreshOutcome.UNCHANGED)
                continue

            content_kind = classify(key)
            if content_kind.is_text:
                try:
                    if decode_text(key.read_bytes()) is None:
                        content_kind = BINARY
                except OSError as e:
                    logger.warning(f"Could not read {key}: {e}")
                    report.record(key, RefreshOutcome.ERRORED, str(e.strerror or e))
                    continue
            if not content_kind.is_text:
                self._drop(key)
                report.record(key, RefreshOutcome.REMOVED, "no longer a text file")
                continue

            self._put(CollectionEntry(
                absolute_path=key,
                relative_display_path=entry.relative_display_path,
                size_bytes=st.st_size,
                last_modified=st.st_mtime_ns,
                content_kind=content_kind,
                collected_at=self._clock(),
            ))
            report.record(key, RefreshOutcome.UPDATED)

        logger.info(f"Refresh: {report.unchanged} unchanged, {report.updated} updated, "
                    f"{report.removed} removed, {report.errored} errors")
        return report

    # --- Display paths ---

    def display_path(self, path: Path) -> str:
        """Path shown in exports: relative to the start directory, else the git root."""
        for base in (self.start_path, self.git_root):
            if base is None:
                continue
            try:
                return path.relative_to(base).as_posix()
            except ValueError:
                continue

        parent_name = path.parent.name or "root"
        file_name = path.name or "unknown"
        relative = f"{parent_name}/{file_name}"
        if len(relative) > MAX_DISPLAY_PATH:
            max_parent_len = MAX_DISPLAY_PATH - (len(file_name) + 4)
            if len(parent_name) > max_parent_len > 3:
                return f"...{parent_name[len(parent_name) - max_parent_len + 3:]}/{file_name}"
        return relative

# repoviewer/core/session.py
"""
One browsing session: a NavigationState and a Collection owned together,
plus the command handlers a front end calls and the snapshot it draws.

Handlers never raise for recoverable failures. They return a Message (also
kept as ``last_message``) and leave the previous state in place.
"""
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, List, Optional, Tuple, Union

from loguru import logger

from ..config.schema import AppConfig
from .collection import Collection
from .errors import CollectionError, ExportError, ListingError, NotCollectable
from .exporter import default_export_name, render_markdown, render_tree, write_export
from .models import (
    AddOutcome, AddReport, Entry, LARGE_COLLECTION_BYTES, WarningLevel, format_size,
)
from .navigation import NavigationState
from .token_counter import count_tokens

MESSAGE_TIMEOUT = 3.0
STALE_AFTER_SECONDS = 300


@dataclass
class Message:
    text: str
    success: bool = True
    created_at: float = field(default_factory=time.monotonic)
    timeout: float = MESSAGE_TIMEOUT

    def expired(self, now: Optional[float] = None) -> bool:
        return ((now if now is not None else time.monotonic()) - self.created_at) >= self.timeout


@dataclass(frozen=True)
class ViewSnapshot:
    """Everything a renderer needs for one frame. Read-only."""
    current_directory: Path
    listing: Tuple[Entry, ...]
    selected_index: int
    collected: Tuple[bool, ...] # parallel to ``listing``
    total_size_bytes: int
    warning_level: WarningLevel
    file_count: int
    show_hidden: bool
    show_ignored: bool
    git_root: Optional[Path]
    message: Optional[Message]
    hint: Optional[str]


def _default_clipboard(text: str) -> None:
    from ..services.clipboard import copy_text
    copy_text(text)


class AppContext:
    """The single owner of navigation and collection state for a session."""

    def __init__(self,
                 start_path: Union[str, Path],
                 config: Optional[AppConfig] = None,
                 clipboard: Optional[Callable[[str], None]] = None,
                 root_finder: Optional[Callable[[Path], Optional[Path]]] = None):
        self.config = config or AppConfig()
        nav_kwargs = {"root_finder": root_finder} if root_finder else {}
        self.navigation = NavigationState(
            start_path,
            show_hidden=self.config.show_hidden,
            show_ignored=self.config.show_ignored,
            extra_ignore_patterns=self.config.extra_ignore_patterns,
            **nav_kwargs,
        )
        self.collection = Collection(
            self.navigation.start_path,
            git_root=self.navigation.git_root,
            max_file_size=self.config.max_file_size_bytes,
            max_expand_depth=self.config.max_expand_depth,
        )
        self._clipboard = clipboard or _default_clipboard
        self.last_message: Optional[Message] = None
        logger.info(f"Session started in {self.navigation.start_path}")

    # --- Messages ---

    def _success(self, text: str) -> Message:
        self.last_message = Message(text, success=True)
        return self.last_message

    def _error(self, text: str) -> Message:
        logger.warning(text)
        self.last_message = Message(text, success=False)
        return self.last_message

    def update_message(self, now: Optional[float] = None) -> None:
        """Drops the last message once its timeout has elapsed; call once per frame."""
        if self.last_message and self.last_message.expired(now):
            self.last_message = None

    def size_warning(self) -> Optional[str]:
        size = self.collection.total_size_bytes
        level = self.collection.warning_level()
        if level is WarningLevel.CRITICAL:
            return f"Collection is very large ({format_size(size)}) - Consider removing some files"
        if level is WarningLevel.LARGE:
            return f"Collection is getting large ({format_size(size)})"
        return None

    def _with_warning(self, text: str, separator: str = " | ") -> str:
        warning = self.size_warning()
        return f"{text}{separator}{warning}" if warning else text

    # --- Navigation commands ---

    def _navigate(self, action: Callable[[], object]) -> Optional[Message]:
        try:
            action()
        except ListingError as e:
            return self._error(str(e))
        return None

    def move(self, delta: int) -> None:
        self.navigation.move_selection(delta)

    def first(self) -> None:
        self.navigation.jump_to_first()

    def last(self) -> None:
        self.navigation.jump_to_last()

    def enter(self) -> Optional[Message]:
        return self._navigate(self.navigation.enter)

    def up(self) -> Optional[Message]:
        return self._navigate(self.navigation.go_up)

    def back(self) -> Optional[Message]:
        return self._navigate(self.navigation.back)

    def jump_to_start(self) -> Optional[Message]:
        return self._navigate(self.navigation.jump_to_start)

    def jump_to_git_root(self) -> Optional[Message]:
        if self.navigation.git_root is None:
            return self._error("Not in a git repository")
        return self._navigate(self.navigation.jump_to_git_root)

    def toggle_hidden(self) -> Optional[Message]:
        return self._navigate(self.navigation.toggle_hidden)

    def toggle_ignored(self) -> Optional[Message]:
        if self.navigation.git_root is None:
            return self._error("Not in a git repository - nothing is ignored here")
        return self._navigate(self.navigation.toggle_ignored)

    # --- Collection commands ---

    def add_current(self) -> Message:
        selection = self.navigation.current_selection()
        if selection is None:
            return self._error("No file selected")
        if selection.is_directory:
            return self._add_directory(selection.absolute_path)

        try:
            outcome = self.collection.add(selection.absolute_path)
        except (NotCollectable, CollectionError) as e:
            return self._error(str(e))
        entry = self.collection.get(selection.absolute_path)
        size_kb = entry.size_bytes // 1024 if entry else 0
        if outcome is AddOutcome.UNCHANGED:
            return self._success(f"{selection.display_name} is already in the collection - Total: {len(self.collection)} files")
        verb = "Added" if outcome is AddOutcome.ADDED else "Updated"
        return self._success(self._with_warning(
            f"{verb} {selection.display_name} ({size_kb} KB) - Total: {len(self.collection)} files"))

    def add_all_in_directory(self) -> Message:
        return self._add_directory(self.navigation.current_directory)

    def _add_directory(self, directory: Path) -> Message:
        initial_size = self.collection.total_size_bytes
        try:
            report = self.collection.add_directory(directory, self.navigation.listing_filter())
        except ListingError as e:
            return self._error(str(e))
        return self._report_added(report, initial_size)

    def _report_added(self, report: AddReport, initial_size: int) -> Message:
        current_size = self.collection.total_size_bytes
        text = (f"Added {report.added} files, updated {report.updated}, skipped {len(report.skipped)} "
                f"(errors: {report.errored}) - Total: {len(self.collection)} files ({format_size(current_size)})")
        text = self._with_warning(text, separator="\n")
        if initial_size <= LARGE_COLLECTION_BYTES < current_size:
            text += "\nTip: remove individual files or clear the collection to shrink it"
        return self._success(text)

    def remove_current(self) -> Message:
        selection = self.navigation.current_selection()
        if selection is None:
            return self._error("No file selected")
        if selection.is_directory:
            return self._error("Cannot remove directories from collection")
        entry = self.collection.get(selection.absolute_path)
        if not self.collection.remove(selection.absolute_path):
            return self._error(f"{selection.display_name} is not in the collection")
        return self._success(
            f"Removed {selection.display_name} ({entry.size_bytes // 1024} KB) - Total: {len(self.collection)} files")

    def clear_collection(self) -> Message:
        if self.collection.is_empty:
            return self._error("Collection is already empty")
        count = self.collection.clear()
        return self._success(f"Cleared {count} files from collection")

    def refresh_collection(self) -> Message:
        if self.collection.is_empty:
            return self._error("No files in collection to refresh")
        initial_count = len(self.collection)
        report = self.collection.refresh()
        if not report.has_changes:
            return self._success(f"Collection is up to date ({report.unchanged} files checked)")

        changes: List[str] = []
        if report.updated: changes.append(f"{report.updated} updated")
        if report.removed: changes.append(f"{report.removed} removed")
        if report.errored: changes.append(f"{report.errored} failed")
        text = f"Refresh complete: {', '.join(changes)} | {initial_count} → {len(self.collection)} files"
        return self._error(text) if report.errored else self._success(text)

    # --- Export commands ---

    def render_markdown(self) -> str:
        return render_markdown(self.collection)

    def render_tree(self, depth_limit: Optional[int] = None) -> str:
        nav = self.navigation
        return render_tree(nav.current_directory, depth_limit, nav.show_hidden, nav.show_ignored,
                           nav.ignore_matcher(), root_label=self.display_path(nav.current_directory))

    def save_collection(self, filename: Optional[str] = None) -> Message:
        if self.collection.is_empty:
            return self._error("Collection is empty")
        target = self.navigation.current_directory / (filename or default_export_name())
        try:
            write_export(self.render_markdown(), target)
        except ExportError as e:
            return self._error(f"Failed to save collection: {e}")
        return self._success(f"Saved {len(self.collection)} files "
                             f"({format_size(self.collection.total_size_bytes)}) to {self.display_path(target)}")

    def copy_collection(self) -> Message:
        if self.collection.is_empty:
            return self._error("Collection is empty")
        try:
            markdown = self.render_markdown()
            self._clipboard(markdown)
        except ExportError as e:
            return self._error(f"Clipboard error: {e}")
        tokens = count_tokens(markdown, self.config.token_encoding)
        return self._success(f"Copied {len(self.collection)} files "
                             f"({format_size(len(markdown.encode('utf-8')))}, ~{tokens} tokens) to clipboard!")

    def save_tree(self, filename: str = "tree.txt") -> Message:
        target = self.navigation.current_directory / filename
        try:
            write_export(self.render_tree(), target)
        except ExportError as e:
            return self._error(f"Failed to save tree: {e}")
        return self._success(f"Tree saved to {self.display_path(target)}")

    def copy_tree(self) -> Message:
        try:
            tree = self.render_tree()
            self._clipboard(tree)
        except ExportError as e:
            return self._error(f"Clipboard error: {e}")
        return self._success(f"Tree ({format_size(len(tree.encode('utf-8')))}) copied to clipboard!")

    # --- Presentation ---

    def display_path(self, path: Path) -> str:
        """Short path for messages: bare name or ./sub/path inside the current directory."""
        try:
            relative = path.relative_to(self.navigation.current_directory)
        except ValueError:
            return self.collection.display_path(path)
        if not relative.parts:
            return path.name or str(path)
        if len(relative.parts) == 1:
            return relative.as_posix()
        return f"./{relative.as_posix()}"

    def contextual_hint(self, now: Optional[float] = None) -> Optional[str]:
        nav = self.navigation
        if nav.current_directory != nav.start_path and nav.depth() > 3:
            return "Tip: jump back to the start directory at any time"
        if nav.git_root and nav.current_directory != nav.git_root and nav.depth() > 2:
            return "Tip: jump to the git repository root at any time"

        if self.collection.is_empty:
            selection = nav.current_selection()
            if selection is None:
                return "Empty directory - go back to find files to collect"
            if not selection.is_directory:
                return "Add this file to start your collection"
            if any(not e.is_directory for e in nav.listing):
                return "Add all files in this directory to your collection"
            return "Navigate into directories to find files to collect"

        warning = self.size_warning()
        if warning:
            return warning
        oldest = self.collection.oldest_collected_at()
        if oldest is not None and (now if now is not None else time.time()) - oldest > STALE_AFTER_SECONDS:
            return "Files collected a while ago - refresh to sync with disk"
        if not nav.listing:
            return "Empty directory - go back"
        if all(e.is_directory for e in nav.listing):
            return "Only directories here - navigate deeper or save your collection"
        return f"{len(self.collection)} files collected"

    def snapshot(self) -> ViewSnapshot:
        nav = self.navigation
        listing = tuple(nav.listing)
        return ViewSnapshot(
            current_directory=nav.current_directory,
            listing=listing,
            selected_index=nav.selected_index,
            collected=tuple((not e.is_directory) and e.absolute_path in self.collection for e in listing),
            total_size_bytes=self.collection.total_size_bytes,
            warning_level=self.collection.warning_level(),
            file_count=len(self.collection),
            show_hidden=nav.show_hidden,
            show_ignored=nav.show_ignored,
            git_root=nav.git_root,
            message=self.last_message,
            hint=self.contextual_hint(),
        )

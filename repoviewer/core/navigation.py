# repoviewer/core/navigation.py
from pathlib import Path
from typing import Callable, Dict, Iterable, List, Optional, Tuple, Union

from loguru import logger

from .errors import ListingError
from .fs_listing import IgnoreMatcher, ListingFilter, list_directory
from .git_repo import find_repository_root
from .models import Entry


class NavigationState:
    """
    Current directory, cursor, history and bookmarks of one browsing session.

    The listing is recomputed on every directory change or filter toggle. Every
    transition lists the target first, so a ListingError leaves the state as it was.
    """

    def __init__(self,
                 start_path: Union[str, Path],
                 show_hidden: bool = False,
                 show_ignored: bool = False,
                 extra_ignore_patterns: Iterable[str] = (),
                 root_finder: Callable[[Path], Optional[Path]] = find_repository_root):
        self.start_path = Path(start_path).resolve()
        self.current_directory = self.start_path
        self.selected_index = 0
        self.history: List[Path] = []
        self.show_hidden = show_hidden
        self.show_ignored = show_ignored
        self.listing: List[Entry] = []
        self._extra_ignore_patterns = list(extra_ignore_patterns)
        self._root_finder = root_finder
        self._matchers: Dict[Path, IgnoreMatcher] = {}
        self.git_root: Optional[Path] = self._root_finder(self.current_directory)
        self.listing = self._list(self.current_directory, self.git_root)
        logger.debug(f"Navigation started at {self.start_path} (git root: {self.git_root})")

    # --- Filters ---

    def ignore_matcher(self, git_root: Optional[Path] = None) -> Optional[IgnoreMatcher]:
        root = git_root if git_root is not None else self.git_root
        if root is None:
            return None
        if root not in self._matchers:
            self._matchers[root] = IgnoreMatcher.for_repository(root, self._extra_ignore_patterns)
        return self._matchers[root]

    def listing_filter(self) -> ListingFilter:
        """The filters currently in effect, for tree export and directory expansion."""
        return ListingFilter(self.show_hidden, self.show_ignored, self.ignore_matcher())

    def _list(self, directory: Path, git_root: Optional[Path]) -> List[Entry]:
        return list_directory(directory, self.show_hidden, self.show_ignored, self.ignore_matcher(git_root))

    def refresh_listing(self) -> List[Entry]:
        self.listing = self._list(self.current_directory, self.git_root)
        self._clamp()
        return self.listing

    def _clamp(self) -> None:
        if not self.listing:
            self.selected_index = 0
        else:
            self.selected_index = max(0, min(self.selected_index, len(self.listing) - 1))

    def toggle_hidden(self) -> bool:
        self.show_hidden = not self.show_hidden
        try:
            self.refresh_listing()
        except ListingError:
            self.show_hidden = not self.show_hidden
            raise
        logger.debug(f"show_hidden -> {self.show_hidden}")
        return self.show_hidden

    def toggle_ignored(self) -> bool:
        self.show_ignored = not self.show_ignored
        try:
            self.refresh_listing()
        except ListingError:
            self.show_ignored = not self.show_ignored
            raise
        logger.debug(f"show_ignored -> {self.show_ignored}")
        return self.show_ignored

    # --- Directory transitions ---

    def _switch_to(self, directory: Path) -> None:
        """Lists ``directory`` and, only if that succeeds, makes it current."""
        directory = Path(directory).resolve()
        git_root = self.git_root if directory == self.current_directory else self._root_finder(directory)
        listing = self._list(directory, git_root) # raises ListingError
        self.current_directory = directory
        self.git_root = git_root
        self.listing = listing
        self.selected_index = 0
        logger.debug(f"Now in {self.current_directory}")

    def enter(self, directory: Optional[Union[str, Path]] = None) -> bool:
        """
        Enters ``directory`` (default: the selected entry when it is a directory).
        Returns False when there is nothing to enter.
        """
        if directory is None:
            if not self.can_enter_selection():
                return False
            directory = self.listing[self.selected_index].absolute_path
        previous = self.current_directory
        self._switch_to(Path(directory))
        self.history.append(previous)
        return True

    def go_up(self) -> bool:
        if not self.can_go_up():
            return False
        return self.enter(self.current_directory.parent)

    def back(self) -> bool:
        """Returns to the previous directory. An empty history is a no-op."""
        if not self.history:
            return False
        self._switch_to(self.history[-1])
        self.history.pop()
        return True

    def _jump(self, target: Path) -> bool:
        if target == self.current_directory:
            return False
        return self.enter(target)

    def jump_to_start(self) -> bool:
        return self._jump(self.start_path)

    def jump_to_git_root(self) -> bool:
        if self.git_root is None:
            return False
        return self._jump(self.git_root)

    # --- Selection ---

    def move_selection(self, delta: int) -> int:
        if self.listing:
            self.selected_index = max(0, min(self.selected_index + delta, len(self.listing) - 1))
        else:
            self.selected_index = 0
        return self.selected_index

    def jump_to_first(self) -> int:
        self.selected_index = 0
        return self.selected_index

    def jump_to_last(self) -> int:
        self.selected_index = max(len(self.listing) - 1, 0)
        return self.selected_index

    def current_selection(self) -> Optional[Entry]:
        if 0 <= self.selected_index < len(self.listing):
            return self.listing[self.selected_index]
        return None

    # --- Helpers ---

    def can_go_up(self) -> bool:
        return self.current_directory.parent != self.current_directory

    def can_enter_selection(self) -> bool:
        selection = self.current_selection()
        return bool(selection and selection.is_directory and not selection.is_symlink)

    def depth(self) -> int:
        """Number of path components between the start path and the current directory."""
        try:
            return len(self.current_directory.relative_to(self.start_path).parts)
        except ValueError:
            return 0

    def breadcrumbs(self) -> List[Tuple[str, Path]]:
        """(name, path) pairs from the start directory (or filesystem root) down to the current one."""
        crumbs: List[Tuple[str, Path]] = []
        current = self.current_directory
        while True:
            if current == self.start_path:
                name = current.name or "~"
            else:
                name = current.name or "/"
            crumbs.append((name, current))
            if current == self.start_path or current.parent == current:
                break
            current = current.parent
        crumbs.reverse()
        return crumbs

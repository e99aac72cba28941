# repoviewer/core/models.py
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Optional, List, Tuple

MEGABYTE = 1024 * 1024
LARGE_COLLECTION_BYTES = 25 * MEGABYTE
CRITICAL_COLLECTION_BYTES = 50 * MEGABYTE


@dataclass(frozen=True)
class Entry:
    """One filesystem node of the current listing. Rebuilt on every listing refresh."""
    absolute_path: Path
    display_name: str
    is_directory: bool
    is_hidden: bool = False
    is_ignored_by_vcs: bool = False
    is_symlink: bool = False


@dataclass(frozen=True)
class ContentKind:
    """Text with a markdown language tag, or binary when ``language`` is None."""
    language: Optional[str] = None

    @property
    def is_text(self) -> bool:
        return self.language is not None

    def __str__(self) -> str:
        return f"Text({self.language})" if self.language else "Binary"

BINARY = ContentKind(None)

def text_kind(language: str) -> ContentKind:
    return ContentKind(language)


@dataclass
class CollectionEntry:
    """A file the user has chosen to keep. ``absolute_path`` is the identity."""
    absolute_path: Path
    relative_display_path: str
    size_bytes: int
    last_modified: int # st_mtime_ns
    content_kind: ContentKind
    collected_at: float = 0.0 # time.time() of the add or last refresh update


class AddOutcome(Enum):
    ADDED = "added"
    UPDATED = "updated"
    UNCHANGED = "unchanged"


@dataclass
class AddReport:
    """Result of expanding a directory into the collection."""
    added: int = 0
    updated: int = 0
    unchanged: int = 0
    skipped: List[Tuple[Path, str]] = field(default_factory=list) # (path, reason) for non-collectable files
    errors: List[Tuple[Path, str]] = field(default_factory=list)

    @property
    def errored(self) -> int:
        return len(self.errors)

    def record(self, outcome: AddOutcome) -> None:
        if outcome is AddOutcome.ADDED: self.added += 1
        elif outcome is AddOutcome.UPDATED: self.updated += 1
        else: self.unchanged += 1


class RefreshOutcome(Enum):
    UNCHANGED = "unchanged"
    UPDATED = "updated"
    REMOVED = "removed"
    ERRORED = "errored"


@dataclass
class RefreshReport:
    """Per-path outcomes of a refresh pass, in collection order."""
    results: List[Tuple[Path, RefreshOutcome, str]] = field(default_factory=list)

    def record(self, path: Path, outcome: RefreshOutcome, detail: str = "") -> None:
        self.results.append((path, outcome, detail))

    def count(self, outcome: RefreshOutcome) -> int:
        return sum(1 for _, o, _ in self.results if o is outcome)

    @property
    def unchanged(self) -> int: return self.count(RefreshOutcome.UNCHANGED)
    @property
    def updated(self) -> int: return self.count(RefreshOutcome.UPDATED)
    @property
    def removed(self) -> int: return self.count(RefreshOutcome.REMOVED)
    @property
    def errored(self) -> int: return self.count(RefreshOutcome.ERRORED)

    @property
    def has_changes(self) -> bool:
        return any(o is not RefreshOutcome.UNCHANGED for _, o, _ in self.results)


class WarningLevel(Enum):
    NONE = 0
    LARGE = 1
    CRITICAL = 2


def warning_level(total_size_bytes: int) -> WarningLevel:
    """Pure read of a collection size against the fixed thresholds."""
    if total_size_bytes > CRITICAL_COLLECTION_BYTES: return WarningLevel.CRITICAL
    if total_size_bytes > LARGE_COLLECTION_BYTES: return WarningLevel.LARGE
    return WarningLevel.NONE


def format_size(size_bytes: int) -> str:
    kb = 1024; mb = kb * 1024; gb = mb * 1024
    if size_bytes >= gb: return f"{size_bytes / gb:.2f} GB"
    elif size_bytes >= mb: return f"{size_bytes / mb:.2f} MB"
    elif size_bytes >= kb: return f"{size_bytes / kb:.2f} KB"
    else: return f"{size_bytes} bytes"

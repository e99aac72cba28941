# tests/core/test_collection.py
import pytest

from repoviewer.core.collection import Collection
from repoviewer.core.errors import CollectionError, ListingError, NotCollectable
from repoviewer.core.fs_listing import IgnoreMatcher, ListingFilter
from repoviewer.core.models import (
    AddOutcome, CRITICAL_COLLECTION_BYTES, LARGE_COLLECTION_BYTES, RefreshOutcome, WarningLevel,
    text_kind, warning_level,
)


@pytest.fixture
def collection(repo):
    return Collection(repo, git_root=repo)


def test_add_classifies_and_tracks_size(collection, repo):
    assert collection.add(repo / "src" / "main.rs") is AddOutcome.ADDED
    entry = collection.get(repo / "src" / "main.rs")
    assert entry.content_kind == text_kind("rust")
    assert entry.relative_display_path == "src/main.rs"
    assert collection.total_size_bytes == len("fn main() {}\n")
    assert collection.verify_total()


def test_add_is_idempotent(collection, repo):
    collection.add(repo / "README.md")
    size = collection.total_size_bytes
    assert collection.add(repo / "README.md") is AddOutcome.UNCHANGED
    assert collection.add(repo / "src" / ".." / "README.md") is AddOutcome.UNCHANGED
    assert len(collection) == 1
    assert collection.total_size_bytes == size


def test_re_adding_a_changed_file_updates_it(collection, repo):
    target = repo / "README.md"
    collection.add(target)
    target.write_text("# Demo with more text\n")
    assert collection.add(target) is AddOutcome.UPDATED
    assert len(collection) == 1
    assert collection.total_size_bytes == len("# Demo with more text\n")


def test_insertion_order_is_kept(collection, repo):
    for name in ("src/main.rs", "README.md", "src/lib.rs"):
        collection.add(repo / name)
    assert [e.relative_display_path for e in collection] == ["src/main.rs", "README.md", "src/lib.rs"]


@pytest.mark.parametrize("relative", ["src/logo.png", "src"])
def test_not_collectable(collection, repo, relative):
    with pytest.raises(NotCollectable):
        collection.add(repo / relative)
    assert collection.is_empty
    assert collection.total_size_bytes == 0


def test_directory_message(collection, repo):
    with pytest.raises(NotCollectable, match="Cannot collect directories"):
        collection.add(repo / "src")


def test_too_large_file_is_rejected(repo):
    small = Collection(repo, max_file_size=4)
    with pytest.raises(NotCollectable, match="File too large"):
        small.add(repo / "README.md")
    assert small.is_empty


def test_missing_file_is_not_added(collection, repo):
    with pytest.raises(CollectionError):
        collection.add(repo / "nope.py")
    assert collection.is_empty


def test_remove_and_clear(collection, repo):
    collection.add(repo / "README.md")
    collection.add(repo / "src" / "lib.rs")
    assert collection.remove(repo / "README.md") is True
    assert collection.remove(repo / "README.md") is False
    assert collection.total_size_bytes == len("pub fn lib() {}\n")
    assert collection.clear() == 1
    assert collection.is_empty
    assert collection.total_size_bytes == 0


def test_refresh_drops_deleted_files(make_tree):
    root = make_tree({"a.rs": "0123456789", "b.rs": "abcdefghij"})
    collection = Collection(root)
    collection.add(root / "a.rs")
    collection.add(root / "b.rs")
    assert collection.total_size_bytes == 20

    (root / "a.rs").unlink()
    report = collection.refresh()

    assert report.removed == 1 and report.unchanged == 1
    assert report.results[0][1] is RefreshOutcome.REMOVED
    assert collection.total_size_bytes == 10
    assert root / "a.rs" not in collection
    assert collection.verify_total()


def test_refresh_updates_changed_files(make_tree):
    root = make_tree({"a.rs": "0123456789"})
    times = iter([100.0, 200.0])
    collection = Collection(root, clock=lambda: next(times))
    collection.add(root / "a.rs")
    (root / "a.rs").write_text("x" * 30)

    report = collection.refresh()

    assert report.updated == 1
    assert report.has_changes
    entry = collection.get(root / "a.rs")
    assert entry.size_bytes == 30
    assert entry.collected_at == 200.0
    assert collection.total_size_bytes == 30


def test_refresh_without_changes(collection, repo):
    collection.add(repo / "README.md")
    report = collection.refresh()
    assert report.unchanged == 1
    assert not report.has_changes


def test_refresh_keeps_entries_it_cannot_check(make_tree, mocker):
    root = make_tree({"a.rs": "0123456789", "b.rs": "abcdefghij"})
    collection = Collection(root)
    collection.add(root / "a.rs")
    collection.add(root / "b.rs")

    path_type = type(root)
    original_stat = path_type.stat

    def flaky_stat(self, *args, **kwargs):
        if self.name == "b.rs":
            raise PermissionError(13, "Permission denied")
        return original_stat(self, *args, **kwargs)

    mocker.patch.object(path_type, "stat", flaky_stat)
    report = collection.refresh()

    assert report.errored == 1 and report.unchanged == 1
    assert report.results[1] == (root / "b.rs", RefreshOutcome.ERRORED, "Permission denied")
    assert len(collection) == 2
    assert collection.total_size_bytes == 20


def test_add_directory_respects_filters(collection, repo):
    filters = ListingFilter(False, False, IgnoreMatcher.for_repository(repo))
    report = collection.add_directory(repo, filters)

    assert report.added == 3
    assert [p.name for p, _ in report.skipped] == ["logo.png"]
    assert report.errored == 0
    assert [e.relative_display_path for e in collection] == ["src/lib.rs", "src/main.rs", "README.md"]


def test_add_directory_with_everything_visible(collection, repo):
    filters = ListingFilter(True, True, IgnoreMatcher.for_repository(repo))
    collection.add_directory(repo, filters)
    paths = {e.relative_display_path for e in collection}
    assert {"build/out.txt", "debug.log", ".env", ".gitignore", "src/.cache/hidden.txt"} <= paths
    assert not any(p.startswith(".git/") for p in paths)


def test_add_directory_twice_reports_unchanged(collection, repo):
    filters = ListingFilter()
    collection.add_directory(repo / "src", filters)
    report = collection.add_directory(repo / "src", filters)
    assert report.added == 0
    assert report.unchanged == 2


def test_add_directory_does_not_follow_symlink_loops(make_tree):
    root = make_tree({"pkg": {"mod.py": "x = 1\n"}})
    try:
        (root / "pkg" / "loop").symlink_to(root, target_is_directory=True)
    except (OSError, NotImplementedError):
        pytest.skip("symlinks not supported")
    collection = Collection(root)
    report = collection.add_directory(root, ListingFilter())
    assert report.added == 1
    assert [e.relative_display_path for e in collection] == ["pkg/mod.py"]


def test_add_directory_respects_depth_limit(make_tree):
    root = make_tree({"a": {"b": {"c": {"deep.py": ""}}}, "top.py": ""})
    collection = Collection(root, max_expand_depth=1)
    report = collection.add_directory(root, ListingFilter())
    assert [e.relative_display_path for e in collection] == ["top.py"]
    assert report.errored == 1


def test_add_directory_on_unreadable_root_raises(collection, repo):
    with pytest.raises(ListingError):
        collection.add_directory(repo / "missing", ListingFilter())


def test_display_path_falls_back_to_git_root(repo):
    collection = Collection(repo / "src", git_root=repo)
    collection.add(repo / "README.md")
    assert collection.get(repo / "README.md").relative_display_path == "README.md"


def test_display_path_outside_both_roots(make_tree, repo):
    other = make_tree({"lib": {"util.py": ""}}, name="other")
    collection = Collection(repo / "src", git_root=repo)
    collection.add(other / "lib" / "util.py")
    assert collection.get(other / "lib" / "util.py").relative_display_path == "lib/util.py"


def test_warning_levels():
    assert warning_level(0) is WarningLevel.NONE
    assert warning_level(LARGE_COLLECTION_BYTES) is WarningLevel.NONE
    assert warning_level(LARGE_COLLECTION_BYTES + 1) is WarningLevel.LARGE
    assert warning_level(CRITICAL_COLLECTION_BYTES) is WarningLevel.LARGE
    assert warning_level(CRITICAL_COLLECTION_BYTES + 1) is WarningLevel.CRITICAL


def test_oldest_collected_at(make_tree):
    root = make_tree({"a.py": "", "b.py": ""})
    times = iter([5.0, 7.0])
    collection = Collection(root, clock=lambda: next(times))
    assert collection.oldest_collected_at() is None
    collection.add(root / "a.py")
    collection.add(root / "b.py")
    assert collection.oldest_collected_at() == 5.0


def test_binary_content_with_text_extension_is_not_collectable(make_tree):
    root = make_tree({"dump.txt": b"\x00\x01\x02\xff\xfe\x00garbage\x00\x07\x08"})
    collection = Collection(root)
    with pytest.raises(NotCollectable, match="dump.txt"):
        collection.add(root / "dump.txt")
    assert collection.is_empty


def test_refresh_drops_files_that_became_binary(make_tree):
    root = make_tree({"notes.txt": "plain text\n"})
    collection = Collection(root)
    collection.add(root / "notes.txt")
    (root / "notes.txt").write_bytes(b"\x00\x01\x02\xff\xfe\x00garbage\x00\x07\x08")

    report = collection.refresh()

    assert report.results == [(root / "notes.txt", RefreshOutcome.REMOVED, "no longer a text file")]
    assert collection.is_empty
    assert collection.total_size_bytes == 0


def test_total_matches_sum_through_mixed_operations(collection, repo):
    collection.add(repo / "README.md")
    assert collection.verify_total()

    collection.add_directory(repo / "src", ListingFilter())
    assert len(collection) == 3
    assert collection.verify_total()

    collection.remove(repo / "src" / "main.rs")
    assert collection.verify_total()

    (repo / "src" / "lib.rs").write_text("pub fn lib() { /* longer body */ }\n")
    (repo / "README.md").unlink()
    report = collection.refresh()
    assert report.updated == 1 and report.removed == 1
    assert collection.total_size_bytes == len("pub fn lib() { /* longer body */ }\n")
    assert collection.verify_total()

    collection.add_directory(repo / "src", ListingFilter())
    assert collection.verify_total()

    collection.clear()
    assert collection.total_size_bytes == 0
    assert collection.verify_total()

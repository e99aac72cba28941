# tests/core/test_fs_listing.py
import pytest

from repoviewer.core.errors import ListingError
from repoviewer.core.fs_listing import IgnoreMatcher, ListingFilter, list_directory


def names(entries):
    return [e.display_name for e in entries]


def test_directories_first_then_case_insensitive(make_tree):
    root = make_tree({"b.txt": "b", "A": {}, "a.txt": "a"})
    entries = list_directory(root, show_hidden=False, show_ignored=False)
    assert names(entries) == ["A", "a.txt", "b.txt"]
    assert entries[0].is_directory and not entries[1].is_directory


def test_order_is_stable_for_mixed_case(make_tree):
    root = make_tree({"zeta": {}, "Beta": {}, "alpha.py": "", "Gamma.py": "", "beta.py": ""})
    assert names(list_directory(root, False, False)) == ["Beta", "zeta", "alpha.py", "beta.py", "Gamma.py"]


def test_git_directory_is_never_listed(repo):
    entries = list_directory(repo, show_hidden=True, show_ignored=True)
    assert ".git" not in names(entries)


def test_hidden_entries_need_show_hidden(repo):
    matcher = IgnoreMatcher.for_repository(repo)
    hidden_off = names(list_directory(repo, False, False, matcher))
    hidden_on = names(list_directory(repo, True, False, matcher))
    assert ".env" not in hidden_off and ".gitignore" not in hidden_off
    assert ".env" in hidden_on and ".gitignore" in hidden_on
    entry = next(e for e in list_directory(repo, True, False, matcher) if e.display_name == ".env")
    assert entry.is_hidden and not entry.is_ignored_by_vcs


def test_ignored_entries_need_show_ignored(repo):
    matcher = IgnoreMatcher.for_repository(repo)
    ignored_off = names(list_directory(repo, False, False, matcher))
    ignored_on = list_directory(repo, False, True, matcher)
    assert "build" not in ignored_off and "debug.log" not in ignored_off
    flagged = {e.display_name for e in ignored_on if e.is_ignored_by_vcs}
    assert flagged == {"build", "debug.log"}


def test_filters_are_independent(repo):
    matcher = IgnoreMatcher.for_repository(repo)

    def ignored_visible(show_hidden):
        return {e.display_name for e in list_directory(repo, show_hidden, True, matcher) if e.is_ignored_by_vcs}

    def hidden_visible(show_ignored):
        return {e.display_name for e in list_directory(repo, True, show_ignored, matcher) if e.is_hidden}

    assert ignored_visible(False) == ignored_visible(True)
    assert hidden_visible(False) == hidden_visible(True)


def test_without_predicate_nothing_is_ignored(repo):
    entries = list_directory(repo, show_hidden=False, show_ignored=False, ignore_predicate=None)
    assert "build" in names(entries)
    assert not any(e.is_ignored_by_vcs for e in entries)


def test_missing_directory_raises_listing_error(tmp_path):
    with pytest.raises(ListingError) as excinfo:
        list_directory(tmp_path / "gone", False, False)
    assert excinfo.value.path == tmp_path / "gone"


def test_file_instead_of_directory_raises_listing_error(make_tree):
    root = make_tree({"file.txt": "x"})
    with pytest.raises(ListingError):
        list_directory(root / "file.txt", False, False)


def test_ignore_matcher_patterns(repo):
    matcher = IgnoreMatcher.for_repository(repo, extra_patterns=["*.rs"])
    assert matcher.is_ignored(repo / "build", is_dir=True)
    assert matcher.is_ignored(repo / "build" / "out.txt", is_dir=False)
    assert matcher.is_ignored(repo / "src" / "deep.log", is_dir=False)
    assert matcher.is_ignored(repo / "src" / "main.rs", is_dir=False)
    assert not matcher.is_ignored(repo / "README.md", is_dir=False)
    # "build/" only matches directories
    assert not matcher.is_ignored(repo / "build", is_dir=False)


def test_ignore_matcher_outside_root_never_matches(repo, tmp_path):
    matcher = IgnoreMatcher.for_repository(repo)
    assert not matcher.is_ignored(tmp_path / "elsewhere.log", is_dir=False)
    assert not matcher.is_ignored(repo, is_dir=True)


def test_ignore_matcher_without_gitignore(make_tree):
    root = make_tree({".git": {}, "a.log": "x"})
    matcher = IgnoreMatcher.for_repository(root)
    assert not matcher.is_ignored(root / "a.log", is_dir=False)


def test_listing_filter_delegates(repo):
    listing_filter = ListingFilter(show_hidden=False, show_ignored=False,
                                   ignore_predicate=IgnoreMatcher.for_repository(repo))
    assert names(listing_filter.list(repo)) == ["src", "README.md"]

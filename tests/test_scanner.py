"""Tests for easyplug.scanner - archive discovery and entry listing."""

from __future__ import annotations

import os
from pathlib import Path
from unittest.mock import patch

import pytest

from easyplug.scanner import (
    ArchiveScanner,
    UnreadableArchiveError,
    UnreadableDirectoryError,
)


# ===========================================================================
# discover_archives
# ===========================================================================

class TestDiscoverArchives:
    """Tests for recursive archive discovery."""

    def test_finds_archives_at_any_depth(self, tmp_path, make_archive):
        """Archives nested arbitrarily deep are all found."""
        expected = {
            make_archive("a.zip", {}),
            make_archive("one/b.zip", {}),
            make_archive("one/two/three/c.zip", {}),
            make_archive("other/four/d.zip", {}),
        }

        found = ArchiveScanner().discover_archives(tmp_path)

        assert set(found) == expected

    def test_ignores_non_archives(self, tmp_path, make_archive):
        """Files with other extensions are not yielded."""
        make_archive("plugins/a.zip", {})
        (tmp_path / "plugins" / "notes.txt").write_text("hello")
        (tmp_path / "plugins" / "a.zip.bak").write_text("old")
        (tmp_path / "plugins" / "zip").mkdir()

        found = ArchiveScanner().discover_archives(tmp_path)

        assert [p.name for p in found] == ["a.zip"]

    def test_suffix_match_is_case_insensitive(self, tmp_path, make_archive):
        """Upper-case archive extensions still match."""
        make_archive("A.ZIP", {})
        make_archive("b.Zip", {})

        found = ArchiveScanner().discover_archives(tmp_path)

        assert sorted(p.name for p in found) == ["A.ZIP", "b.Zip"]

    def test_custom_archive_suffix(self, tmp_path, make_archive):
        """A configured suffix replaces the default."""
        make_archive("a.zip", {})
        make_archive("b.plug", {})

        found = ArchiveScanner(archive_suffix=".plug").discover_archives(tmp_path)

        assert [p.name for p in found] == ["b.plug"]

    def test_root_that_is_an_archive(self, make_archive):
        """A root pointing at an archive yields just that archive."""
        archive = make_archive("single.zip", {})

        assert ArchiveScanner().discover_archives(archive) == [archive]

    def test_missing_root_yields_nothing(self, tmp_path):
        """A root that does not exist is not an error."""
        assert ArchiveScanner().discover_archives(tmp_path / "missing") == []

    def test_unreadable_subtree_is_skipped(self, tmp_path, make_archive):
        """A directory that cannot be listed contributes nothing."""
        good = make_archive("good/a.zip", {})
        make_archive("bad/b.zip", {})
        scanner = ArchiveScanner()
        real_walk = scanner.walk_directory

        def failing_walk(directory):
            if Path(directory).name == "bad":
                raise UnreadableDirectoryError(directory, "Permission denied")
            return real_walk(directory)

        with patch.object(scanner, "walk_directory", side_effect=failing_walk):
            found = scanner.discover_archives(tmp_path)

        assert found == [good]

    @pytest.mark.skipif(not hasattr(os, "symlink"), reason="symlinks unsupported")
    def test_broken_symlink_is_skipped(self, tmp_path, make_archive):
        """Dangling links are neither followed nor reported."""
        archive = make_archive("a.zip", {})
        try:
            os.symlink(tmp_path / "nowhere.zip", tmp_path / "dangling.zip")
        except OSError:
            pytest.skip("cannot create symlinks here")

        assert ArchiveScanner().discover_archives(tmp_path) == [archive]

    @pytest.mark.skipif(not hasattr(os, "symlink"), reason="symlinks unsupported")
    def test_symlink_cycle_terminates(self, tmp_path, make_archive):
        """A directory linking to its ancestor is visited once."""
        archive = make_archive("plugins/a.zip", {})
        try:
            os.symlink(tmp_path, tmp_path / "plugins" / "loop", target_is_directory=True)
        except OSError:
            pytest.skip("cannot create symlinks here")

        assert ArchiveScanner().discover_archives(tmp_path) == [archive]


class TestWalkDirectory:
    """Tests for single-level directory listing."""

    def test_raises_for_missing_directory(self, tmp_path):
        with pytest.raises(UnreadableDirectoryError) as exc_info:
            ArchiveScanner().walk_directory(tmp_path / "missing")
        assert exc_info.value.directory == tmp_path / "missing"

    def test_sorted_by_name(self, tmp_path):
        for name in ("c", "a", "b"):
            (tmp_path / name).write_text("")

        names = [e.name for e in ArchiveScanner().walk_directory(tmp_path)]

        assert names == ["a", "b", "c"]


# ===========================================================================
# list_class_names
# ===========================================================================

class TestListClassNames:
    """Tests for enumerating type names inside an archive."""

    def test_converts_paths_to_dotted_names(self, make_archive):
        """Entry paths become dotted names without the suffix."""
        archive = make_archive("a.zip", {
            "com/x/Foo.py": "class Foo: pass\n",
            "com/x/Bar.py": "class Bar: pass\n",
            "Top.py": "class Top: pass\n",
        })

        names = ArchiveScanner().list_class_names(archive)

        assert names == ["com.x.Foo", "com.x.Bar", "Top"]

    def test_skips_directory_entries_and_other_files(self, make_archive):
        """Directory markers and non-unit files are ignored."""
        archive = make_archive("a.zip", [
            ("com/", None),
            ("com/x/", None),
            ("com/x/Foo.py", "class Foo: pass\n"),
            ("com/x/data.json", "{}"),
            ("README.txt", "docs"),
        ])

        assert ArchiveScanner().list_class_names(archive) == ["com.x.Foo"]

    def test_directory_entry_with_unit_suffix_is_skipped(self, make_archive):
        """A directory whose name ends with the suffix is not a unit."""
        archive = make_archive("a.zip", [
            ("weird.py/", None),
            ("com/Foo.py", "class Foo: pass\n"),
        ])

        assert ArchiveScanner().list_class_names(archive) == ["com.Foo"]

    def test_duplicates_preserved_in_order(self, make_archive):
        archive = make_archive("a.zip", [
            ("com/Foo.py", "class Foo: pass\n"),
            ("com/Foo.py", "class Foo: pass\n"),
        ])

        assert ArchiveScanner().list_class_names(archive) == ["com.Foo", "com.Foo"]

    def test_custom_unit_suffix(self, make_archive):
        archive = make_archive("a.zip", {
            "com/Foo.plugin.py": "class Foo: pass\n",
            "com/Bar.py": "class Bar: pass\n",
        })

        names = ArchiveScanner(unit_suffix=".plugin.py").list_class_names(archive)

        assert names == ["com.Foo"]

    def test_corrupt_archive_yields_empty(self, tmp_path):
        """A file that is not a zip produces no names, not an error."""
        bogus = tmp_path / "bogus.zip"
        bogus.write_bytes(b"definitely not a zip file")

        assert ArchiveScanner().list_class_names(bogus) == []

    def test_missing_archive_yields_empty(self, tmp_path):
        assert ArchiveScanner().list_class_names(tmp_path / "gone.zip") == []

    def test_iter_archive_raises_for_corrupt_archive(self, tmp_path):
        bogus = tmp_path / "bogus.zip"
        bogus.write_bytes(b"PK but not really")

        with pytest.raises(UnreadableArchiveError) as exc_info:
            ArchiveScanner().iter_archive(bogus)
        assert exc_info.value.archive == bogus

    def test_iter_archive_reports_directories(self, make_archive):
        archive = make_archive("a.zip", [
            ("com/", None),
            ("com/Foo.py", "class Foo: pass\n"),
        ])

        assert ArchiveScanner().iter_archive(archive) == [
            ("com/", True),
            ("com/Foo.py", False),
        ]


class TestScannerConfig:
    """Tests for scanner construction."""

    def test_empty_suffix_rejected(self):
        with pytest.raises(ValueError, match="cannot be empty"):
            ArchiveScanner(archive_suffix="")
        with pytest.raises(ValueError, match="cannot be empty"):
            ArchiveScanner(unit_suffix="")

    def test_repr(self):
        assert repr(ArchiveScanner()) == "<ArchiveScanner archives=*.zip units=*.py>"

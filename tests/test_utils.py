"""Tests for utility functions."""

import hashlib

from archive_mirror.utils import (
    ensure_unique_directory,
    ensure_unique_name,
    find_identical_file,
    format_timestamp,
    join_url,
    normalize_path,
    sanitize_file_name,
    sha256_file,
    split_extension,
)


class TestSha256File:
    def test_known_content(self, tmp_path):
        f = tmp_path / "test.txt"
        f.write_bytes(b"hello world")
        expected = "sha256:" + hashlib.sha256(b"hello world").hexdigest()
        assert sha256_file(f) == expected

    def test_empty_file(self, tmp_path):
        f = tmp_path / "empty.txt"
        f.write_bytes(b"")
        expected = "sha256:" + hashlib.sha256(b"").hexdigest()
        assert sha256_file(f) == expected

    def test_large_file(self, tmp_path):
        """Verify chunked reading works for files larger than 8KB."""
        f = tmp_path / "large.bin"
        data = b"x" * 20000
        f.write_bytes(data)
        expected = "sha256:" + hashlib.sha256(data).hexdigest()
        assert sha256_file(f) == expected


class TestRemotePaths:
    def test_normalize_strips_one_leading_slash(self):
        assert normalize_path("/item-sorters") == "item-sorters"
        assert normalize_path("item-sorters") == "item-sorters"
        assert normalize_path(None) == ""

    def test_join_url(self):
        base = "https://raw.example.com/o/r/main/"
        assert join_url(base, "/channel", "entry", "data.json") == \
            "https://raw.example.com/o/r/main/channel/entry/data.json"

    def test_join_url_skips_empty_parts(self):
        assert join_url("https://x.test/a", None, "", "b") == "https://x.test/a/b"


class TestSanitizeFileName:
    def test_keeps_plain_name(self):
        assert sanitize_file_name("sorter.litematic", "download") == "sorter.litematic"

    def test_illegal_characters_replaced(self):
        result = sanitize_file_name('Big: Sorter?*"<>|.litematic', "download")
        for ch in ':?*"<>|':
            assert ch not in result
        assert result.endswith(".litematic")

    def test_path_traversal_reduced_to_final_component(self):
        assert sanitize_file_name("../../etc/passwd", "download") == "passwd"
        assert sanitize_file_name("..\\..\\evil.zip", "download") == "evil.zip"

    def test_empty_falls_back_to_default(self):
        assert sanitize_file_name("", "download") == "download"
        assert sanitize_file_name(None, "download") == "download"
        assert sanitize_file_name("..", "download") == "download"


class TestUniqueNames:
    def test_split_extension(self):
        assert split_extension("schema.dat") == ("schema", ".dat")
        assert split_extension("archive.tar.gz") == ("archive.tar", ".gz")
        assert split_extension(".hidden") == (".hidden", "")
        assert split_extension("noext") == ("noext", "")

    def test_free_name_unchanged(self, tmp_path):
        assert ensure_unique_name(tmp_path, "a.litematic") == tmp_path / "a.litematic"

    def test_counter_suffix(self, tmp_path):
        (tmp_path / "a.litematic").write_bytes(b"1")
        (tmp_path / "a_1.litematic").write_bytes(b"2")
        assert ensure_unique_name(tmp_path, "a.litematic") == tmp_path / "a_2.litematic"

    def test_unique_directory(self, tmp_path):
        (tmp_path / "World").mkdir()
        assert ensure_unique_directory(tmp_path, "World") == tmp_path / "World_1"


class TestFindIdenticalFile:
    def test_identical_content_found(self, tmp_path):
        (tmp_path / "schema.dat").write_bytes(b"payload")
        assert find_identical_file(tmp_path, "schema.dat", b"payload") == tmp_path / "schema.dat"

    def test_different_content_not_found(self, tmp_path):
        (tmp_path / "schema.dat").write_bytes(b"payload")
        assert find_identical_file(tmp_path, "schema.dat", b"other!!") is None

    def test_numbered_variant_found(self, tmp_path):
        (tmp_path / "schema.dat").write_bytes(b"first")
        (tmp_path / "schema_1.dat").write_bytes(b"second")
        assert find_identical_file(tmp_path, "schema.dat", b"second") == tmp_path / "schema_1.dat"

    def test_unrelated_names_ignored(self, tmp_path):
        (tmp_path / "schema_old.dat").write_bytes(b"payload")
        (tmp_path / "schema.txt").write_bytes(b"payload")
        assert find_identical_file(tmp_path, "schema.dat", b"payload") is None

    def test_stem_and_extension_do_not_overlap(self, tmp_path):
        (tmp_path / "a.b").write_bytes(b"payload")
        assert find_identical_file(tmp_path, "a..b", b"payload") is None
        (tmp_path / "a._2.b").write_bytes(b"payload")
        assert find_identical_file(tmp_path, "a..b", b"payload") == tmp_path / "a._2.b"

    def test_missing_directory(self, tmp_path):
        assert find_identical_file(tmp_path / "nope", "schema.dat", b"x") is None


class TestFormatTimestamp:
    def test_unset(self):
        assert format_timestamp(0) == "-"

    def test_epoch_millis(self):
        assert format_timestamp(86_400_000) == "1970-01-02"

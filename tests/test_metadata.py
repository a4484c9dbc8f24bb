"""Tests for the metadata table and path reconstruction."""

import pytest

from constants import ROOT
from errors import AlreadyExists, DirectoryFull, NotADirectory, NotFound, TableFull
from metadata import MetadataTable
from paths import current_path
from structures import DirectoryRecord, FileRecord, Record


@pytest.fixture
def table():
    return MetadataTable(max_records=4, max_children=3)


class TestFind:
    """Lookups among direct children."""

    def test_finds_direct_child(self, table):
        index = table.insert(ROOT, FileRecord("notes"))
        assert table.find(ROOT, "notes") == index

    def test_is_case_sensitive(self, table):
        table.insert(ROOT, FileRecord("notes"))
        assert table.find(ROOT, "Notes") is None

    def test_does_not_search_subdirectories(self, table):
        docs = table.insert(ROOT, DirectoryRecord("docs"))
        table.insert(docs, FileRecord("inner"))
        assert table.find(ROOT, "inner") is None
        assert table.find(docs, "inner") is not None

    def test_file_has_no_children(self, table):
        index = table.insert(ROOT, FileRecord("notes"))
        with pytest.raises(NotADirectory):
            table.find(index, "x")


class TestInsert:
    """Inserting records."""

    def test_sets_both_directions(self, table):
        docs = table.insert(ROOT, DirectoryRecord("docs"))
        child = table.insert(docs, FileRecord("a"))

        assert table.get(child).parent == docs
        assert child in table.children(docs)

    def test_rejects_duplicate_name(self, table):
        original = table.insert(ROOT, FileRecord("a"))
        with pytest.raises(AlreadyExists):
            table.insert(ROOT, DirectoryRecord("a"))
        assert isinstance(table.get(original), FileRecord)
        assert len(table.children(ROOT)) == 1

    def test_same_name_allowed_in_different_directories(self, table):
        docs = table.insert(ROOT, DirectoryRecord("a"))
        table.insert(docs, FileRecord("a"))
        assert table.find(docs, "a") != table.find(ROOT, "a")

    def test_directory_full(self, table):
        for name in "abc":
            table.insert(ROOT, FileRecord(name))
        with pytest.raises(DirectoryFull):
            table.insert(ROOT, FileRecord("d"))

    def test_table_full(self, table):
        docs = table.insert(ROOT, DirectoryRecord("docs"))
        for name in "abc":
            table.insert(docs, FileRecord(name))
        with pytest.raises(TableFull):
            table.insert(ROOT, FileRecord("e"))

    def test_directories_get_distinct_child_sets(self, table):
        a = table.get(table.insert(ROOT, DirectoryRecord("a")))
        b = table.get(table.insert(ROOT, DirectoryRecord("b")))
        assert a.child_set != b.child_set
        assert 0 not in (a.child_set, b.child_set)


class TestRemove:
    """Detaching records."""

    def test_releases_slot_for_reuse(self, table):
        first = table.insert(ROOT, FileRecord("a"))
        table.remove(ROOT, first)

        assert table.find(ROOT, "a") is None
        assert table.insert(ROOT, FileRecord("b")) == first

    def test_wrong_parent(self, table):
        docs = table.insert(ROOT, DirectoryRecord("docs"))
        index = table.insert(ROOT, FileRecord("a"))
        with pytest.raises(NotFound):
            table.remove(docs, index)

    def test_refuses_non_empty_directory(self, table):
        docs = table.insert(ROOT, DirectoryRecord("docs"))
        table.insert(docs, FileRecord("a"))
        with pytest.raises(ValueError):
            table.remove(ROOT, docs)

    def test_get_after_remove(self, table):
        index = table.insert(ROOT, FileRecord("a"))
        table.remove(ROOT, index)
        with pytest.raises(NotFound):
            table.get(index)


class TestPacking:
    """Serialized form of the table."""

    def test_unpack_restores_tree(self, table):
        docs = table.insert(ROOT, DirectoryRecord("docs"))
        child = table.insert(docs, FileRecord("readme", start_block=7))
        table.get(child).size = 42

        restored = MetadataTable.unpack(table.pack_records(), table.pack_child_sets(), 4, 3)

        assert restored.find(ROOT, "docs") == docs
        record = restored.get(restored.find(docs, "readme"))
        assert isinstance(record, FileRecord)
        assert (record.start_block, record.size, record.parent) == (7, 42, docs)


class TestCurrentPath:
    """Absolute path reconstruction."""

    def test_root(self, table):
        assert current_path(table, ROOT) == "/"

    def test_nested_order(self, table):
        a = table.insert(ROOT, DirectoryRecord("a"))
        b = table.insert(a, DirectoryRecord("b"))
        c = table.insert(b, DirectoryRecord("c"))
        assert current_path(table, c) == "/a/b/c"
        assert current_path(table, a) == "/a"


class TestRecordTypes:
    """Records are either files or directories."""

    def test_base_record_has_no_kind(self):
        assert not hasattr(Record, 'kind')
        assert FileRecord("f").kind == Record.TYPE_FILE
        assert DirectoryRecord("d").kind == Record.TYPE_DIR

    def test_base_record_has_no_content(self):
        with pytest.raises(NotImplementedError):
            Record("x").content

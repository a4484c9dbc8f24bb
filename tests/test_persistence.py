"""Tests for saving metadata into the arena and disk images."""

import struct

import pytest

from arena import Arena
from conftest import BLOCK, make_fs
from errors import InvalidFormat
from file_system import FileSystem
from persistence import MetadataStore
from structures import Layout


def build_tree(fs):
    fs.create("docs", is_directory=True)
    fs.change_directory("docs")
    fs.create("notes")
    fs.write("notes", b"hello " * 20)
    fs.chmod("notes", 6)
    fs.change_directory("/")
    fs.create("top")


class TestSaveLoad:
    """Metadata region round trips."""

    def test_every_mutation_is_saved(self, fs):
        build_tree(fs)
        table, allocator = MetadataStore(fs.arena, fs.max_file_size).load()
        assert allocator.fat == fs.allocator.fat
        assert table.pack_records() == fs.table.pack_records()
        assert table.pack_child_sets() == fs.table.pack_child_sets()

    def test_load_restores_tree_and_resets_cursor(self, fs):
        build_tree(fs)
        fs.change_directory("docs")

        fs.load()

        assert fs.current_path() == "/"
        assert [entry.name for entry in fs.list()] == ["docs", "top"]
        fs.change_directory("docs")
        assert fs.read("notes") == b"hello " * 20
        assert fs.stat("notes")['permissions'] == "rw-"
        assert fs.check() == []

    def test_in_memory_variant_leaves_region_untouched(self, clock):
        fs = make_fs(clock=clock, persist=False)
        build_tree(fs)
        assert not any(fs.arena.buffer[:fs.layout.metadata_size])

        fs.save()
        fs.load()
        assert [entry.name for entry in fs.list()] == ["docs", "top"]

    def test_load_without_saved_metadata(self, clock):
        fs = make_fs(clock=clock, persist=False)
        with pytest.raises(InvalidFormat):
            fs.load()

    def test_corrupt_entry_count(self, fs):
        build_tree(fs)
        struct.pack_into("<I", fs.arena.buffer, fs.layout.childset_offset(0) + 4, 999)
        with pytest.raises(InvalidFormat):
            fs.load()

    def test_mount_from_arena(self, fs):
        build_tree(fs)
        mounted = FileSystem.mount(fs.arena)
        mounted.change_directory("docs")
        assert mounted.read("notes") == b"hello " * 20
        assert mounted.max_file_size == fs.max_file_size


class TestDiskImage:
    """Host file copies of the arena."""

    def test_image_round_trip(self, fs, tmp_path):
        build_tree(fs)
        path = str(tmp_path / "disk.img")
        fs.arena.save_image(path)

        mounted = FileSystem.mount(Arena.open_image(path))

        assert mounted.layout.blocks == fs.layout.blocks
        assert [entry.name for entry in mounted.list()] == ["docs", "top"]

    def test_bad_magic(self, tmp_path):
        path = tmp_path / "junk.img"
        path.write_bytes(b"\x01" * 4096)
        with pytest.raises(InvalidFormat):
            Arena.open_image(str(path))

    def test_truncated_image(self, fs, tmp_path):
        path = tmp_path / "short.img"
        path.write_bytes(bytes(fs.arena.buffer[:-1]))
        with pytest.raises(InvalidFormat):
            Arena.open_image(str(path))


class TestArena:
    """Block level access."""

    def test_block_bounds(self):
        arena = Arena(Layout.for_blocks(2, BLOCK, 4, 4))
        with pytest.raises(ValueError):
            arena.read_block(2)
        with pytest.raises(ValueError):
            arena.write_block(-1, b"")

    def test_short_write_zero_fills(self):
        arena = Arena(Layout.for_blocks(2, BLOCK, 4, 4))
        arena.write_block(1, b"\xff" * BLOCK)
        arena.write_block(1, b"ab")
        assert arena.read_block(1) == b"ab" + b"\x00" * (BLOCK - 2)
        assert (arena.reads, arena.writes) == (1, 2)

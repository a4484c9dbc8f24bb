"""Serialization of file system metadata into the arena's reserved region."""

import logging
from typing import Tuple

from constants import MAGIC_NUMBER
from allocator import BlockAllocator
from arena import Arena
from errors import InvalidFormat
from metadata import MetadataTable
from structures import SuperBlock, SUPERBLOCK_SIZE

logger = logging.getLogger(__name__)


class MetadataStore:
    """Copies the FAT, record table and child sets to and from an arena.

    The region has no version field. Its layout follows directly from the
    geometry in the superblock, so any change in record or child-set size
    makes older images unreadable.
    """

    def __init__(self, arena: Arena, max_file_size: int):
        self.arena = arena
        self.layout = arena.layout
        self.max_file_size = max_file_size

    def superblock(self) -> SuperBlock:
        sb = SuperBlock()
        sb.arena_size = self.layout.arena_size
        sb.block_size = self.layout.block_size
        sb.blocks = self.layout.blocks
        sb.max_records = self.layout.max_records
        sb.max_children = self.layout.max_children
        sb.max_file_size = self.max_file_size
        return sb

    def save(self, table: MetadataTable, allocator: BlockAllocator):
        """Write the whole metadata region."""
        data = (self.superblock().pack() +
                allocator.pack() +
                table.pack_records() +
                table.pack_child_sets())
        self.arena.write_metadata(data)
        logger.debug("Saved %d bytes of metadata", len(data))

    def load(self) -> Tuple[MetadataTable, BlockAllocator]:
        """Read the metadata region back into a table and an allocator."""
        data = self.arena.read_metadata()
        layout = self.layout

        sb = SuperBlock.unpack(data[:SUPERBLOCK_SIZE])
        if sb.magic_number != MAGIC_NUMBER:
            raise InvalidFormat(f"Invalid file system (bad magic number: 0x{sb.magic_number:08x})")
        if (sb.arena_size, sb.block_size, sb.blocks, sb.max_records, sb.max_children) != \
                (layout.arena_size, layout.block_size, layout.blocks,
                 layout.max_records, layout.max_children):
            raise InvalidFormat("Superblock geometry does not match the arena")

        allocator = BlockAllocator.unpack(data[layout.fat_offset:layout.records_offset], layout.blocks)
        try:
            table = MetadataTable.unpack(data[layout.records_offset:layout.childsets_offset],
                                         data[layout.childsets_offset:layout.metadata_size],
                                         layout.max_records, layout.max_children)
        except ValueError as e:
            raise InvalidFormat(f"Corrupt metadata: {e}") from e
        self.max_file_size = sb.max_file_size
        logger.debug("Loaded metadata: %d blocks in use, %d records",
                     allocator.used_count(), layout.max_records - table.free_slots())
        return table, allocator

"""In-memory arena emulating a block device."""

import logging
import os
from typing import Optional

from constants import MAGIC_NUMBER
from errors import InvalidFormat
from structures import Layout, SuperBlock, SUPERBLOCK_SIZE

logger = logging.getLogger(__name__)


class Arena:
    """Emulates a disk as a fixed-size byte buffer split into a metadata
    region and a data region of equal-size blocks.

    The buffer lives for as long as the object does. ``save_image`` and
    ``open_image`` copy it to and from a host file.
    """

    def __init__(self, layout: Layout, data: Optional[bytes] = None):
        self.layout = layout
        self.block_size = layout.block_size
        self.blocks = layout.blocks
        if data is None:
            self.buffer = bytearray(layout.arena_size)
        else:
            if len(data) != layout.arena_size:
                raise ValueError(f"Arena image is {len(data)} bytes, expected {layout.arena_size}")
            self.buffer = bytearray(data)
        self.reads = 0
        self.writes = 0

    @property
    def size(self) -> int:
        return len(self.buffer)

    def read_block(self, block_num: int) -> bytes:
        """Read a block from the data region."""
        self._check_block(block_num)
        offset = self.layout.block_offset(block_num)
        self.reads += 1
        return bytes(self.buffer[offset:offset + self.block_size])

    def write_block(self, block_num: int, data: bytes):
        """Write up to one block of data; the rest of the block is zeroed."""
        self._check_block(block_num)
        if len(data) > self.block_size:
            raise ValueError(f"Data must be at most {self.block_size} bytes")

        offset = self.layout.block_offset(block_num)
        self.buffer[offset:offset + self.block_size] = bytes(data).ljust(self.block_size, b'\x00')
        self.writes += 1

    def read_metadata(self) -> bytes:
        """Read the whole reserved metadata region."""
        self.reads += 1
        return bytes(self.buffer[:self.layout.metadata_size])

    def write_metadata(self, data: bytes):
        """Overwrite the reserved metadata region."""
        if len(data) != self.layout.metadata_size:
            raise ValueError(f"Metadata must be exactly {self.layout.metadata_size} bytes")
        self.buffer[:self.layout.metadata_size] = data
        self.writes += 1

    def save_image(self, path: str):
        """Copy the arena to a host file."""
        with open(path, 'wb') as f:
            f.write(self.buffer)
        logger.info("Saved %d byte arena to %s", self.size, path)

    @classmethod
    def open_image(cls, path: str) -> 'Arena':
        """Load an arena previously written by ``save_image``.

        The geometry is taken from the superblock at the start of the image.
        """
        if not os.path.exists(path):
            raise FileNotFoundError(path)

        with open(path, 'rb') as f:
            data = f.read()

        if len(data) < SUPERBLOCK_SIZE:
            raise InvalidFormat(f"Image '{path}' is too small to hold a superblock")

        sb = SuperBlock.unpack(data[:SUPERBLOCK_SIZE])
        if sb.magic_number != MAGIC_NUMBER:
            raise InvalidFormat(f"Invalid file system (bad magic number: 0x{sb.magic_number:08x})")
        if sb.arena_size != len(data):
            raise InvalidFormat(f"Image is {len(data)} bytes but superblock says {sb.arena_size}")

        try:
            layout = Layout(sb.arena_size, sb.block_size, sb.max_records, sb.max_children)
        except ValueError as e:
            raise InvalidFormat(f"Bad geometry in superblock: {e}") from e
        logger.info("Loaded %d byte arena from %s", len(data), path)
        return cls(layout, data)

    def _check_block(self, block_num: int):
        if block_num < 0 or block_num >= self.blocks:
            raise ValueError(f"Invalid block number {block_num}")

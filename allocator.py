"""File allocation table tracking which data blocks are in use."""

import logging
import struct
from typing import List

from constants import FAT_FREE, FAT_EOF
from errors import NoSpace

logger = logging.getLogger(__name__)


class BlockAllocator:
    """Per-block table of ``FAT_FREE``, ``FAT_EOF`` or the next block index.

    A file's content is a singly linked chain through this table. Allocation
    is first-fit by block index.
    """

    def __init__(self, blocks: int):
        self.blocks = blocks
        self.fat = [FAT_FREE] * blocks

    def allocate_block(self) -> int:
        """Find the first free block and mark it as the end of a chain."""
        for i, entry in enumerate(self.fat):
            if entry == FAT_FREE:
                self.fat[i] = FAT_EOF
                logger.debug("Allocated block %d", i)
                return i
        raise NoSpace("No free blocks available")

    def link(self, prev: int, block: int):
        """Append ``block`` after ``prev`` in a chain."""
        self.fat[prev] = block

    def free_chain(self, head: int):
        """Release every block of the chain starting at ``head``.

        Passing ``FAT_EOF``, ``FAT_FREE`` or an already free block is a no-op.
        """
        block = head
        freed = 0
        while 0 <= block < self.blocks and self.fat[block] != FAT_FREE:
            next_block = self.fat[block]
            self.fat[block] = FAT_FREE
            block = next_block
            freed += 1
        if freed:
            logger.debug("Freed %d block(s) starting at %d", freed, head)

    def chain(self, head: int) -> List[int]:
        """Block indices of the chain starting at ``head``, in order."""
        blocks = []
        block = head
        while 0 <= block < self.blocks and self.fat[block] != FAT_FREE:
            if len(blocks) >= self.blocks:
                raise ValueError(f"Cycle in block chain starting at {head}")
            blocks.append(block)
            block = self.fat[block]
        return blocks

    def is_free(self, block: int) -> bool:
        return self.fat[block] == FAT_FREE

    def free_count(self) -> int:
        return sum(1 for entry in self.fat if entry == FAT_FREE)

    def used_count(self) -> int:
        return self.blocks - self.free_count()

    def pack(self) -> bytes:
        return struct.pack(f'<{self.blocks}i', *self.fat)

    @staticmethod
    def unpack(data: bytes, blocks: int) -> 'BlockAllocator':
        allocator = BlockAllocator(blocks)
        allocator.fat = list(struct.unpack(f'<{blocks}i', data[:blocks * 4]))
        return allocator

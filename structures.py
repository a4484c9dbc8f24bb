"""Data structures for the file system."""

import struct
from typing import Iterator, List, Optional

from constants import (
    MAGIC_NUMBER, FAT_EOF, ROOT,
    PERM_READ, PERM_WRITE, PERM_EXECUTE, PERM_ALL
)

SUPERBLOCK_FORMAT = '<7I'
SUPERBLOCK_SIZE = 32  # 28 bytes of fields, padded
FAT_ENTRY_SIZE = 4

# used, kind, permissions, pad, name, size, created, modified, content, parent
RECORD_FORMAT = '<BBBx32sIqqii'
RECORD_SIZE = struct.calcsize(RECORD_FORMAT)  # 64 bytes

CHILDSET_HEADER = '<BxxxI'
CHILDSET_HEADER_SIZE = struct.calcsize(CHILDSET_HEADER)


def permission_string(permissions: int) -> str:
    """Render permission bits as an ``rwx`` triple."""
    return ''.join(
        char if permissions & bit else '-'
        for char, bit in (('r', PERM_READ), ('w', PERM_WRITE), ('x', PERM_EXECUTE))
    )


class SuperBlock:
    """Geometry header stored at the start of the metadata region."""

    def __init__(self):
        self.magic_number = MAGIC_NUMBER
        self.arena_size = 0
        self.block_size = 0
        self.blocks = 0
        self.max_records = 0
        self.max_children = 0
        self.max_file_size = 0

    def pack(self) -> bytes:
        """Pack superblock into bytes."""
        data = struct.pack(SUPERBLOCK_FORMAT,
                           self.magic_number,
                           self.arena_size,
                           self.block_size,
                           self.blocks,
                           self.max_records,
                           self.max_children,
                           self.max_file_size)
        return data + b'\x00' * (SUPERBLOCK_SIZE - len(data))

    @staticmethod
    def unpack(data: bytes) -> 'SuperBlock':
        """Unpack superblock from bytes."""
        sb = SuperBlock()
        values = struct.unpack(SUPERBLOCK_FORMAT, data[:struct.calcsize(SUPERBLOCK_FORMAT)])
        sb.magic_number = values[0]
        sb.arena_size = values[1]
        sb.block_size = values[2]
        sb.blocks = values[3]
        sb.max_records = values[4]
        sb.max_children = values[5]
        sb.max_file_size = values[6]
        return sb


class Record:
    """Common part of a file or directory record. Only the two subclasses
    are ever instantiated.

    Records are addressed by their slot index in the metadata table. The
    parent is the slot index of the owning directory, or ``ROOT``.
    """

    TYPE_FILE = 0
    TYPE_DIR = 1

    kind: int

    def __init__(self, name: str, created: int = 0,
                 permissions: int = PERM_ALL, parent: int = ROOT):
        self.name = name
        self.size = 0
        self.created = created
        self.modified = created
        self.permissions = permissions
        self.parent = parent

    @property
    def is_directory(self) -> bool:
        return self.kind == self.TYPE_DIR

    @property
    def content(self) -> int:
        """Head block for files, child-set slot for directories."""
        raise NotImplementedError

    def pack(self) -> bytes:
        """Pack record into a fixed-size slot."""
        return struct.pack(RECORD_FORMAT,
                           1,
                           self.kind,
                           self.permissions,
                           self.name.encode('utf-8'),
                           self.size,
                           self.created,
                           self.modified,
                           self.content,
                           self.parent)

    @staticmethod
    def unpack(data: bytes) -> Optional['Record']:
        """Unpack a record slot. Returns None for a free slot."""
        (used, kind, permissions, name, size,
         created, modified, content, parent) = struct.unpack(RECORD_FORMAT, data[:RECORD_SIZE])
        if not used:
            return None

        name = name.rstrip(b'\x00').decode('utf-8', errors='replace')
        if kind == Record.TYPE_DIR:
            record = DirectoryRecord(name, child_set=content)
        else:
            record = FileRecord(name, start_block=content)
        record.size = size
        record.created = created
        record.modified = modified
        record.permissions = permissions
        record.parent = parent
        return record

    def __repr__(self):
        return (f"{type(self).__name__}(name={self.name!r}, size={self.size}, "
                f"parent={self.parent}, content={self.content})")


class FileRecord(Record):
    """A regular file whose content is a chain of blocks."""

    kind = Record.TYPE_FILE

    def __init__(self, name: str, start_block: int = FAT_EOF, **kwargs):
        super().__init__(name, **kwargs)
        self.start_block = start_block

    @property
    def content(self) -> int:
        return self.start_block


class DirectoryRecord(Record):
    """A directory whose content is a slot in the child-set table."""

    kind = Record.TYPE_DIR

    def __init__(self, name: str, child_set: int = -1, **kwargs):
        super().__init__(name, **kwargs)
        self.child_set = child_set

    @property
    def content(self) -> int:
        return self.child_set


FREE_RECORD = b'\x00' * RECORD_SIZE


class ChildSet:
    """Ordered, bounded list of record indices owned by one directory."""

    def __init__(self, capacity: int, entries: Optional[List[int]] = None):
        self.capacity = capacity
        self.entries = list(entries or [])

    @staticmethod
    def packed_size(capacity: int) -> int:
        return CHILDSET_HEADER_SIZE + capacity * 4

    def is_full(self) -> bool:
        return len(self.entries) >= self.capacity

    def append(self, index: int):
        self.entries.append(index)

    def remove(self, index: int):
        self.entries.remove(index)

    def __contains__(self, index: int) -> bool:
        return index in self.entries

    def __iter__(self) -> Iterator[int]:
        return iter(self.entries)

    def __len__(self) -> int:
        return len(self.entries)

    def pack(self) -> bytes:
        """Pack child set; unused entries are -1."""
        padded = self.entries + [-1] * (self.capacity - len(self.entries))
        return (struct.pack(CHILDSET_HEADER, 1, len(self.entries)) +
                struct.pack(f'<{self.capacity}i', *padded))

    @staticmethod
    def pack_free(capacity: int) -> bytes:
        return b'\x00' * ChildSet.packed_size(capacity)

    @staticmethod
    def unpack(data: bytes, capacity: int) -> Optional['ChildSet']:
        """Unpack a child-set slot. Returns None for a free slot."""
        used, count = struct.unpack(CHILDSET_HEADER, data[:CHILDSET_HEADER_SIZE])
        if not used:
            return None
        if count > capacity:
            raise ValueError(f"Child set holds {count} entries, capacity is {capacity}")
        entries = struct.unpack(f'<{capacity}i',
                                data[CHILDSET_HEADER_SIZE:ChildSet.packed_size(capacity)])
        return ChildSet(capacity, list(entries[:count]))


class Layout:
    """Byte offsets of the metadata region and data region inside an arena.

    The arena is ``[superblock][FAT][record table][child sets][data blocks]``.
    Everything before the data blocks is the metadata region. Child-set slot 0
    belongs to the root directory, so there is one more child-set slot than
    record slots.
    """

    def __init__(self, arena_size: int, block_size: int,
                 max_records: int, max_children: int):
        if block_size <= 0 or max_records <= 0 or max_children <= 0:
            raise ValueError("Block size, record count and directory capacity must be positive")

        self.arena_size = arena_size
        self.block_size = block_size
        self.max_records = max_records
        self.max_children = max_children
        self.childset_size = ChildSet.packed_size(max_children)

        fixed = self._fixed_size(block_size, max_records, max_children)
        self.blocks = (arena_size - fixed) // (block_size + FAT_ENTRY_SIZE)
        if self.blocks < 1:
            raise ValueError(f"Arena of {arena_size} bytes leaves no room for data blocks")

        self.fat_offset = SUPERBLOCK_SIZE
        self.records_offset = self.fat_offset + self.blocks * FAT_ENTRY_SIZE
        self.childsets_offset = self.records_offset + max_records * RECORD_SIZE
        self.metadata_size = self.childsets_offset + (max_records + 1) * self.childset_size
        self.data_offset = self.metadata_size

    @staticmethod
    def _fixed_size(block_size: int, max_records: int, max_children: int) -> int:
        return (SUPERBLOCK_SIZE + max_records * RECORD_SIZE +
                (max_records + 1) * ChildSet.packed_size(max_children))

    @classmethod
    def for_blocks(cls, blocks: int, block_size: int,
                   max_records: int, max_children: int) -> 'Layout':
        """Build the smallest layout holding exactly ``blocks`` data blocks."""
        fixed = cls._fixed_size(block_size, max_records, max_children)
        return cls(fixed + blocks * (block_size + FAT_ENTRY_SIZE),
                   block_size, max_records, max_children)

    def block_offset(self, block_num: int) -> int:
        return self.data_offset + block_num * self.block_size

    def record_offset(self, index: int) -> int:
        return self.records_offset + index * RECORD_SIZE

    def childset_offset(self, slot: int) -> int:
        return self.childsets_offset + slot * self.childset_size

"""Bounded table of file and directory records."""

import logging
from typing import Iterator, List, Optional

from constants import ROOT
from errors import AlreadyExists, DirectoryFull, NotADirectory, NotFound, TableFull
from structures import ChildSet, DirectoryRecord, Record, RECORD_SIZE, FREE_RECORD

logger = logging.getLogger(__name__)

ROOT_CHILD_SET = 0


class MetadataTable:
    """Records addressed by stable slot index, plus one child set per directory.

    Parent/child links are slot indices in both directions: a record's
    ``parent`` names the directory slot (or ``ROOT``), and that directory's
    child set lists the record's slot. Deleted slots are released and reused;
    indices of live records never change.
    """

    def __init__(self, max_records: int, max_children: int):
        self.max_records = max_records
        self.max_children = max_children
        self.records: List[Optional[Record]] = [None] * max_records
        self.child_sets: List[Optional[ChildSet]] = [None] * (max_records + 1)
        self.child_sets[ROOT_CHILD_SET] = ChildSet(max_children)

    def get(self, index: int) -> Record:
        record = self.records[index] if 0 <= index < self.max_records else None
        if record is None:
            raise NotFound(f"No record in slot {index}")
        return record

    def children(self, parent: int) -> ChildSet:
        """Child set of a directory slot, or of the root for ``ROOT``."""
        if parent == ROOT:
            return self.child_sets[ROOT_CHILD_SET]
        record = self.get(parent)
        if not isinstance(record, DirectoryRecord):
            raise NotADirectory(f"'{record.name}' is not a directory")
        return self.child_sets[record.child_set]

    def find(self, parent: int, name: str) -> Optional[int]:
        """Slot of the direct child of ``parent`` called ``name``, or None."""
        for index in self.children(parent):
            if self.records[index].name == name:
                return index
        return None

    def insert(self, parent: int, record: Record) -> int:
        """Add ``record`` under ``parent`` and return its slot."""
        siblings = self.children(parent)
        if self.find(parent, record.name) is not None:
            raise AlreadyExists(f"'{record.name}' already exists")
        if siblings.is_full():
            raise DirectoryFull("Directory full")

        index = self._free_record_slot()
        if isinstance(record, DirectoryRecord):
            record.child_set = self._free_child_set_slot()
            self.child_sets[record.child_set] = ChildSet(self.max_children)

        record.parent = parent
        self.records[index] = record
        siblings.append(index)
        logger.debug("Inserted %r at slot %d", record, index)
        return index

    def remove(self, parent: int, index: int):
        """Detach slot ``index`` from ``parent`` and release the slot.

        Blocks owned by the record are not touched. A directory must already
        be empty.
        """
        record = self.get(index)
        siblings = self.children(parent)
        if index not in siblings or record.parent != parent:
            raise NotFound(f"'{record.name}' is not a child of slot {parent}")

        if isinstance(record, DirectoryRecord):
            if len(self.child_sets[record.child_set]):
                raise ValueError(f"Directory '{record.name}' is not empty")
            self.child_sets[record.child_set] = None

        siblings.remove(index)
        self.records[index] = None
        logger.debug("Removed %r from slot %d", record, index)

    def is_directory(self, index: int) -> bool:
        return isinstance(self.get(index), DirectoryRecord)

    def is_empty(self, index: int) -> bool:
        return len(self.children(index)) == 0

    def live_indices(self) -> Iterator[int]:
        return (i for i, record in enumerate(self.records) if record is not None)

    def free_slots(self) -> int:
        return sum(1 for record in self.records if record is None)

    def _free_record_slot(self) -> int:
        for i, record in enumerate(self.records):
            if record is None:
                return i
        raise TableFull("No free records")

    def _free_child_set_slot(self) -> int:
        for i in range(ROOT_CHILD_SET + 1, len(self.child_sets)):
            if self.child_sets[i] is None:
                return i
        raise TableFull("No free directory slots")

    def pack_records(self) -> bytes:
        return b''.join(record.pack() if record else FREE_RECORD for record in self.records)

    def pack_child_sets(self) -> bytes:
        return b''.join(
            child_set.pack() if child_set else ChildSet.pack_free(self.max_children)
            for child_set in self.child_sets
        )

    @staticmethod
    def unpack(records_data: bytes, child_sets_data: bytes,
               max_records: int, max_children: int) -> 'MetadataTable':
        table = MetadataTable(max_records, max_children)
        for i in range(max_records):
            offset = i * RECORD_SIZE
            table.records[i] = Record.unpack(records_data[offset:offset + RECORD_SIZE])

        size = ChildSet.packed_size(max_children)
        for i in range(max_records + 1):
            offset = i * size
            table.child_sets[i] = ChildSet.unpack(child_sets_data[offset:offset + size], max_children)
        if table.child_sets[ROOT_CHILD_SET] is None:
            table.child_sets[ROOT_CHILD_SET] = ChildSet(max_children)
        return table

"""Core file system implementation."""

import logging
import time
from typing import Callable, Dict, List, NamedTuple, Optional, Any

from constants import (
    BLOCK_SIZE, TOTAL_BLOCKS, MAX_FILES, MAX_CHILDREN, MAX_FILE_BLOCKS,
    MAX_FILENAME, FAT_EOF, FAT_FREE, ROOT, PERM_ALL
)
from allocator import BlockAllocator
from arena import Arena
from errors import (
    AlreadyExists, DirectoryFull, DiskFull, FileSystemError, InvalidName,
    InvalidTarget, NoSpace, NotADirectory, NotFound, NotMounted, TableFull
)
from metadata import MetadataTable
from paths import current_path
from persistence import MetadataStore
from structures import DirectoryRecord, FileRecord, Layout, permission_string

logger = logging.getLogger(__name__)


class Entry(NamedTuple):
    """One line of a directory listing."""

    name: str
    is_directory: bool
    permissions: int
    size: int
    created: int
    modified: int

    @property
    def type_char(self) -> str:
        return 'd' if self.is_directory else '-'

    @property
    def mode(self) -> str:
        return self.type_char + permission_string(self.permissions)


class FileSystem:
    """Main file system implementation.

    Owns the arena, the block allocator, the metadata table and the current
    directory cursor. Every operation works on the direct children of the
    current directory. With ``persist`` set, the metadata region of the arena
    is rewritten after every mutation.
    """

    def __init__(self, arena_size: Optional[int] = None, block_size: int = BLOCK_SIZE,
                 max_records: int = MAX_FILES, max_children: int = MAX_CHILDREN,
                 max_file_size: Optional[int] = None, persist: bool = True,
                 clock: Callable[[], float] = time.time):
        if arena_size is None:
            layout = Layout.for_blocks(TOTAL_BLOCKS, block_size, max_records, max_children)
        else:
            layout = Layout(arena_size, block_size, max_records, max_children)

        if max_file_size is None:
            max_file_size = MAX_FILE_BLOCKS * block_size
        if max_file_size <= 0:
            raise ValueError("Maximum file size must be positive")

        self._attach(Arena(layout), max_file_size, persist, clock)
        self.table = MetadataTable(max_records, max_children)
        self.allocator = BlockAllocator(layout.blocks)
        self.cwd = ROOT
        self._commit()

        logger.info("Formatted file system: %d blocks of %d bytes, %d records",
                    layout.blocks, block_size, max_records)

    @classmethod
    def mount(cls, arena: Arena, persist: bool = True,
              clock: Callable[[], float] = time.time) -> 'FileSystem':
        """Mount an arena whose metadata region was previously saved."""
        fs = cls.__new__(cls)
        fs._attach(arena, 0, persist, clock)
        fs.load()
        logger.info("Mounted file system: %d blocks, %d records",
                    arena.blocks, arena.layout.max_records)
        return fs

    def _attach(self, arena: Arena, max_file_size: int, persist: bool,
                clock: Callable[[], float]):
        self.arena = arena
        self.layout = arena.layout
        self.block_size = arena.block_size
        self.max_file_size = max_file_size
        self.persist = persist
        self.clock = clock
        self.store = MetadataStore(arena, max_file_size)
        self.mounted = True

    def shutdown(self):
        """Flush metadata and detach the arena."""
        if not self.mounted:
            return
        if self.persist:
            self.save()
        self.mounted = False
        logger.info("File system unmounted")

    def save(self):
        """Copy the metadata table and FAT into the arena."""
        self._check_mounted()
        self.store.max_file_size = self.max_file_size
        self.store.save(self.table, self.allocator)

    def load(self):
        """Rebuild the metadata table and FAT from the arena.

        The current directory is reset to the root.
        """
        self._check_mounted()
        self.table, self.allocator = self.store.load()
        self.max_file_size = self.store.max_file_size
        self.cwd = ROOT

    def create(self, name: str, is_directory: bool = False) -> int:
        """Create a file or directory in the current directory.

        A new file reserves one block straight away. Returns the record slot.
        """
        self._check_mounted()
        self._validate_name(name)

        # Check if name already exists
        if self.table.find(self.cwd, name) is not None:
            raise AlreadyExists(f"'{name}' already exists")

        if self.table.children(self.cwd).is_full():
            raise DirectoryFull(f"Directory '{self.current_path()}' is full")
        if self.table.free_slots() == 0:
            raise TableFull("No free records")

        now = self._now()
        if is_directory:
            record = DirectoryRecord(name, created=now, permissions=PERM_ALL)
        else:
            start_block = self.allocator.allocate_block()
            record = FileRecord(name, start_block=start_block, created=now,
                                permissions=PERM_ALL)

        try:
            index = self.table.insert(self.cwd, record)
        except FileSystemError:
            if not is_directory:
                self.allocator.free_chain(record.start_block)
            raise

        self._commit()
        logger.info("Created %s '%s' in slot %d",
                    "directory" if is_directory else "file", name, index)
        return index

    def delete(self, name: str, confirm: Optional[Callable[[], bool]] = None) -> bool:
        """Delete a file or a directory and everything below it.

        A non-empty directory is only deleted when ``confirm()`` returns a
        true value. Returns False when the deletion was declined.
        """
        self._check_mounted()
        index = self._lookup(name)

        if self.table.is_directory(index) and not self.table.is_empty(index):
            if confirm is None or not confirm():
                logger.info("Deletion of non-empty directory '%s' declined", name)
                return False

        self._destroy(index)
        self._commit()
        logger.info("Deleted '%s'", name)
        return True

    def _destroy(self, index: int):
        """Release a record and, depth first, all of its descendants.

        Walks the subtree with an explicit stack so depth is bounded only by
        the table size. A directory is pushed twice: once to queue its
        children, once more to release it after they are gone.
        """
        stack = [(index, False)]
        while stack:
            current, children_pushed = stack.pop()
            record = self.table.get(current)
            if isinstance(record, DirectoryRecord) and not children_pushed:
                stack.append((current, True))
                stack.extend((child, False) for child in reversed(list(self.table.children(current))))
                continue

            if isinstance(record, FileRecord):
                self.allocator.free_chain(record.start_block)
            self.table.remove(record.parent, current)

    def write(self, name: str, data: bytes) -> int:
        """Replace the content of a file.

        Data beyond the maximum file size is dropped. The old chain is freed
        before any new block is allocated. If the disk fills up part way, the
        file keeps what was written, its size says how much, and DiskFull is
        raised.
        """
        self._check_mounted()
        index = self._lookup(name)
        record = self.table.get(index)
        if record.is_directory:
            raise InvalidTarget(f"'{name}' is a directory")

        data = bytes(data)
        if len(data) > self.max_file_size:
            logger.warning("Truncating write to '%s' from %d to %d bytes",
                           name, len(data), self.max_file_size)
            data = data[:self.max_file_size]

        self.allocator.free_chain(record.start_block)
        record.start_block = FAT_EOF
        record.size = 0

        bytes_written = 0
        prev = FAT_EOF
        try:
            while bytes_written < len(data):
                block = self.allocator.allocate_block()
                chunk = data[bytes_written:bytes_written + self.block_size]
                self.arena.write_block(block, chunk)

                if prev == FAT_EOF:
                    record.start_block = block
                else:
                    self.allocator.link(prev, block)
                prev = block
                bytes_written += len(chunk)
        except NoSpace:
            self._finish_write(record, bytes_written)
            logger.warning("Disk full writing '%s': %d of %d bytes written",
                           name, bytes_written, len(data))
            raise DiskFull(f"Disk full after {bytes_written} bytes", written=bytes_written) from None

        self._finish_write(record, bytes_written)
        return bytes_written

    def _finish_write(self, record: FileRecord, size: int):
        record.size = size
        record.modified = self._now()
        self._commit()

    def read(self, name: str) -> bytes:
        """Return the whole content of a file."""
        self._check_mounted()
        index = self._lookup(name)
        record = self.table.get(index)
        if record.is_directory:
            raise InvalidTarget(f"'{name}' is a directory")

        result = bytearray()
        remaining = record.size
        block = record.start_block
        while remaining > 0 and block not in (FAT_EOF, FAT_FREE):
            chunk = min(remaining, self.block_size)
            result.extend(self.arena.read_block(block)[:chunk])
            remaining -= chunk
            block = self.allocator.fat[block]

        return bytes(result)

    def list(self) -> List[Entry]:
        """List the current directory sorted by name."""
        self._check_mounted()
        entries = []
        for index in self.table.children(self.cwd):
            record = self.table.get(index)
            entries.append(Entry(record.name, record.is_directory, record.permissions,
                                 record.size, record.created, record.modified))
        entries.sort(key=lambda entry: entry.name.encode('utf-8'))
        return entries

    def change_directory(self, name: str):
        """Change current directory. ``..`` at the root stays at the root."""
        self._check_mounted()

        if name == "/":
            self.cwd = ROOT
            return

        if name == "..":
            if self.cwd != ROOT:
                self.cwd = self.table.get(self.cwd).parent
            return

        index = self._lookup(name)
        if not self.table.is_directory(index):
            raise NotADirectory(f"'{name}' is not a directory")
        self.cwd = index

    def current_path(self) -> str:
        """Absolute path of the current directory."""
        self._check_mounted()
        return current_path(self.table, self.cwd)

    def chmod(self, name: str, permissions: int):
        """Set the permission bits of an entry. They are recorded only."""
        self._check_mounted()
        if not 0 <= permissions <= PERM_ALL:
            raise ValueError(f"Invalid permissions {permissions}")
        index = self._lookup(name)
        self.table.get(index).permissions = permissions
        self._commit()

    def stat(self, name: str) -> Dict[str, Any]:
        """Detailed information about one entry."""
        self._check_mounted()
        index = self._lookup(name)
        record = self.table.get(index)

        info = {
            'name': record.name,
            'slot': index,
            'type': 'directory' if record.is_directory else 'file',
            'size': record.size,
            'permissions': permission_string(record.permissions),
            'created': record.created,
            'modified': record.modified,
        }
        if isinstance(record, DirectoryRecord):
            info['entries'] = len(self.table.children(index))
        else:
            info['blocks'] = self.allocator.chain(record.start_block)
        return info

    def usage(self) -> Dict[str, int]:
        """Block and record usage of the arena."""
        self._check_mounted()
        free_blocks = self.allocator.free_count()
        free_records = self.table.free_slots()
        return {
            'arena_size': self.arena.size,
            'metadata_size': self.layout.metadata_size,
            'block_size': self.block_size,
            'total_blocks': self.layout.blocks,
            'used_blocks': self.layout.blocks - free_blocks,
            'free_blocks': free_blocks,
            'total_records': self.table.max_records,
            'used_records': self.table.max_records - free_records,
            'free_records': free_records,
            'disk_reads': self.arena.reads,
            'disk_writes': self.arena.writes,
        }

    def check(self) -> List[str]:
        """Verify the tree and the FAT against each other.

        Returns a list of problems; an empty list means consistent.
        """
        self._check_mounted()
        problems = []
        table = self.table
        owner = {}

        for index in table.live_indices():
            record = table.records[index]
            if record.parent != ROOT:
                parent = table.records[record.parent] if 0 <= record.parent < table.max_records else None
                if not isinstance(parent, DirectoryRecord):
                    problems.append(f"'{record.name}' (slot {index}) has no live parent directory")
                    continue
            if index not in table.children(record.parent):
                problems.append(f"'{record.name}' (slot {index}) missing from its parent's entries")

            if isinstance(record, DirectoryRecord):
                if table.child_sets[record.child_set] is None:
                    problems.append(f"Directory '{record.name}' has no entry table")
                continue

            if record.size > self.max_file_size:
                problems.append(f"'{record.name}' exceeds the maximum file size")
            try:
                blocks = self.allocator.chain(record.start_block)
            except ValueError as e:
                problems.append(str(e))
                continue
            needed = -(-record.size // self.block_size)
            if len(blocks) != needed and not (record.size == 0 and len(blocks) <= 1):
                problems.append(f"'{record.name}' has {len(blocks)} block(s) for {record.size} bytes")
            for block in blocks:
                if block in owner:
                    problems.append(f"Block {block} shared by slots {owner[block]} and {index}")
                owner[block] = index

        directories = [ROOT] + [i for i in table.live_indices() if table.is_directory(i)]
        for directory in directories:
            names = set()
            for child in table.children(directory):
                record = table.records[child]
                if record is None:
                    problems.append(f"Entry for free slot {child} in directory slot {directory}")
                    continue
                if record.parent != directory:
                    problems.append(f"'{record.name}' listed under slot {directory} "
                                    f"but its parent is {record.parent}")
                if record.name in names:
                    problems.append(f"Duplicate name '{record.name}' in directory slot {directory}")
                names.add(record.name)

        for block in range(self.layout.blocks):
            if not self.allocator.is_free(block) and block not in owner:
                problems.append(f"Block {block} is allocated but not owned by any file")

        return problems

    def _lookup(self, name: str) -> int:
        index = self.table.find(self.cwd, name)
        if index is None:
            raise NotFound(f"'{name}' not found")
        return index

    def _validate_name(self, name: str):
        if not name or name in (".", ".."):
            raise InvalidName(f"Invalid name '{name}'")
        if "/" in name or "\x00" in name:
            raise InvalidName(f"Name '{name}' contains a reserved character")
        if len(name.encode('utf-8')) > MAX_FILENAME:
            raise InvalidName(f"Name '{name}' is longer than {MAX_FILENAME} bytes")

    def _check_mounted(self):
        if not self.mounted:
            raise NotMounted("File system not mounted")

    def _commit(self):
        if self.persist:
            self.save()

    def _now(self) -> int:
        return int(self.clock())


def init(arena_size: Optional[int] = None, block_size: int = BLOCK_SIZE,
         max_records: int = MAX_FILES, **kwargs) -> FileSystem:
    """Create a freshly formatted file system."""
    return FileSystem(arena_size, block_size, max_records, **kwargs)


def shutdown(fs: FileSystem):
    fs.shutdown()

"""Global constants for the file system."""

# Block and size constants
BLOCK_SIZE = 512  # bytes per data block
TOTAL_BLOCKS = 1024  # default data region size in blocks
MAX_FILES = 128  # record table slots
MAX_CHILDREN = 64  # entries per directory
MAX_FILE_BLOCKS = 10
MAX_FILE_SIZE = BLOCK_SIZE * MAX_FILE_BLOCKS
MAX_FILENAME = 31  # bytes, one less than the packed name field
MAGIC_NUMBER = 0xF0F05A7E

# FAT markers
FAT_FREE = -2
FAT_EOF = -1

# Parent index of top-level records
ROOT = -1

# Permission bits
PERM_READ = 1
PERM_WRITE = 2
PERM_EXECUTE = 4
PERM_ALL = PERM_READ | PERM_WRITE | PERM_EXECUTE

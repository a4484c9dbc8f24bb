"""Shared fixtures for the file system tests."""

import pytest

from file_system import FileSystem
from structures import Layout

BLOCK = 64
BLOCKS = 16
RECORDS = 16
CHILDREN = 8
MAX_SIZE = 4 * BLOCK


class FakeClock:
    """Callable clock that only moves when told to."""

    def __init__(self, now: float = 1_700_000_000.0):
        self.now = now

    def advance(self, seconds: float = 1.0):
        self.now += seconds

    def __call__(self) -> float:
        return self.now


def make_fs(blocks: int = BLOCKS, clock=None, **kwargs) -> FileSystem:
    layout = Layout.for_blocks(blocks, BLOCK, RECORDS, CHILDREN)
    return FileSystem(layout.arena_size, block_size=BLOCK, max_records=RECORDS,
                      max_children=CHILDREN, max_file_size=MAX_SIZE,
                      clock=clock or FakeClock(), **kwargs)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def fs(clock):
    return make_fs(clock=clock)


@pytest.fixture
def tiny_fs(clock):
    """File system with only two data blocks."""
    return make_fs(blocks=2, clock=clock)

"""Exceptions raised by the file system engine."""


class FileSystemError(Exception):
    """Base class for every recoverable file system failure."""


class AlreadyExists(FileSystemError):
    pass


class NotFound(FileSystemError):
    pass


class InvalidTarget(FileSystemError):
    """The operation needs a file but got a directory, or the reverse."""


class NotADirectory(InvalidTarget):
    pass


class DirectoryFull(FileSystemError):
    pass


class TableFull(DirectoryFull):
    """No free record or child-set slot is left in the metadata table."""


class NoSpace(FileSystemError):
    pass


class DiskFull(NoSpace):
    """Block allocation ran out in the middle of a write."""

    def __init__(self, message: str, written: int = 0):
        super().__init__(message)
        self.written = written


class InvalidName(FileSystemError):
    pass


class InvalidFormat(FileSystemError):
    """The arena's metadata region does not hold a valid file system."""


class NotMounted(FileSystemError):
    pass

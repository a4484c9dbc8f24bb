"""Absolute path reconstruction from parent links."""

from constants import ROOT
from metadata import MetadataTable


def current_path(table: MetadataTable, cursor: int) -> str:
    """Absolute path of the directory in slot ``cursor``.

    Walks parent links up to the root, collecting names deepest first, then
    joins them root first. The root itself is ``"/"``.
    """
    if cursor == ROOT:
        return "/"

    segments = []
    index = cursor
    while index != ROOT:
        record = table.get(index)
        segments.append(record.name)
        index = record.parent
    return "/" + "/".join(reversed(segments))

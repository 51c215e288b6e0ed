"""Reading and writing of index fragments.

A fragment is UTF-8 text with one ``entity:tag`` fact per line, sorted so
that identical content always produces identical bytes.
"""

from __future__ import annotations

import logging
import os
import tempfile
from pathlib import Path
from typing import Callable, Iterable, Iterator, Optional

from classtags.entry import FIELD_SEPARATOR, Entry

logger = logging.getLogger(__name__)

INDEX_FILE_NAME = "classtags.idx"
INDEX_CHARSET = "utf-8"

EntryFilter = Callable[[Entry], bool]


def decode(
    data: bytes | str,
    entry_filter: Optional[EntryFilter] = None,
    into: Optional[set[Entry]] = None,
) -> set[Entry]:
    """Parse fragment content into entries.

    Lines that are not valid UTF-8 or do not split into exactly two
    non-empty fields are skipped, so a corrupted or foreign line never
    blocks a build.

    Args:
        data: Raw fragment content.
        entry_filter: Optional predicate; rejected entries are never added.
        into: Set to add entries to (a new set if omitted).

    Returns:
        The set entries were added to.
    """
    result = into if into is not None else set()

    for line in _lines(data):
        if not line:
            continue
        parts = line.split(FIELD_SEPARATOR)
        if len(parts) != 2 or not parts[0] or not parts[1]:
            logger.debug(f"Skipping invalid index line: {line!r}")
            continue
        try:
            entry = Entry(parts[0], parts[1])
        except ValueError as e:
            logger.debug(f"Skipping invalid index line: {line!r} ({e})")
            continue
        if entry_filter is None or entry_filter(entry):
            result.add(entry)

    return result


def _lines(data: bytes | str) -> Iterator[str]:
    """Split fragment content into text lines.

    Raw content is decoded line by line; a line that is not valid UTF-8
    is skipped instead of failing the whole fragment.
    """
    if isinstance(data, str):
        yield from data.splitlines()
        return

    for raw in data.splitlines():
        try:
            yield raw.decode(INDEX_CHARSET)
        except UnicodeDecodeError:
            logger.debug(f"Skipping undecodable index line: {raw!r}")


def encode(entries: Iterable[Entry]) -> bytes:
    """Serialize entries in sorted order, one per line."""
    lines = [f"{entry}\n" for entry in sorted(entries)]
    return "".join(lines).encode(INDEX_CHARSET)


def load_entries(
    path: Path | str,
    into: Optional[set[Entry]] = None,
    entry_filter: Optional[EntryFilter] = None,
) -> set[Entry]:
    """Read one fragment file.

    Raises:
        OSError: If the file cannot be opened or read.
    """
    path = Path(path)
    with open(path, "rb") as f:
        return decode(f.read(), entry_filter=entry_filter, into=into)


def write_entries(entries: Iterable[Entry], path: Path | str) -> None:
    """Write entries to a fragment file, replacing previous content.

    Writes to a temporary file in the same directory, then renames, so a
    failed write never leaves a half-written index behind.

    Raises:
        OSError: If the file cannot be written.
    """
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    data = encode(entries)

    fd, tmp_path = tempfile.mkstemp(dir=str(path.parent), suffix=".tmp")
    try:
        with os.fdopen(fd, "wb") as f:
            f.write(data)
        os.replace(tmp_path, str(path))
    except Exception:
        try:
            os.unlink(tmp_path)
        except OSError:
            pass
        raise

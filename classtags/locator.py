"""Discovery of index fragments on the import path."""

from __future__ import annotations

import logging
import os
import sys
from pathlib import Path
from typing import Callable, Iterable, Optional

from classtags.codec import INDEX_FILE_NAME

logger = logging.getLogger(__name__)

FragmentLocator = Callable[[Optional[Iterable[str | Path]]], list[Path]]


def list_fragments(
    roots: Optional[Iterable[str | Path]] = None,
    file_name: str = INDEX_FILE_NAME,
) -> list[Path]:
    """List every index fragment visible from a set of roots.

    Each root is checked for ``<root>/<file_name>``. Roots that are not
    directories (zip archives, missing paths) are skipped, and a file
    reachable from several roots is returned once.

    Args:
        roots: Directories to search (defaults to ``sys.path``).
        file_name: Relative path of the fragment inside each root.

    Returns:
        Fragment paths in root order.
    """
    if roots is None:
        roots = sys.path

    fragments: list[Path] = []
    seen: set[str] = set()

    for root in roots:
        # An empty sys.path entry means the current directory
        root_path = Path(root) if str(root) else Path.cwd()
        if not root_path.is_dir():
            continue

        candidate = root_path / file_name
        if not candidate.is_file():
            continue

        key = os.path.normcase(str(candidate.resolve()))
        if key in seen:
            continue
        seen.add(key)
        fragments.append(candidate)

    logger.debug(f"Found {len(fragments)} index fragments")
    return fragments

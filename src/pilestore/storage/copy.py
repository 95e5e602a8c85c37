"""One-shot duplication of a library into another directory."""

from __future__ import annotations

import logging
import shutil
from pathlib import Path

from .paths import KIND_ORDER, kind_dir

LOGGER = logging.getLogger(__name__)


def copy_library(from_root: Path, to_root: Path) -> int:
    """Copy every kind directory of ``from_root`` into ``to_root``.

    Files are copied byte for byte, including ones that are not entity files.
    Kind directories missing from the source are skipped. The destination is
    not watched while copying.

    Args:
        from_root: Existing library root.
        to_root: Destination library root; created when missing.

    Returns:
        int: Number of files copied.
    """
    copied = 0
    for kind in KIND_ORDER:
        source = kind_dir(Path(from_root), kind)
        target = kind_dir(Path(to_root), kind)
        target.mkdir(parents=True, exist_ok=True)
        if not source.is_dir():
            LOGGER.info("No %s directory in %s; nothing to copy", kind.dirname, from_root)
            continue
        for entry in sorted(source.iterdir()):
            if not entry.is_file():
                continue
            shutil.copyfile(entry, target / entry.name)
            copied += 1
    LOGGER.info("Copied %d files from %s to %s", copied, from_root, to_root)
    return copied


__all__ = ["copy_library"]

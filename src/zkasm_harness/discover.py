"""Discover zkASM test files from a file or directory argument."""

from __future__ import annotations

import logging
from pathlib import Path

LOGGER = logging.getLogger(__name__)

DEFAULT_EXTENSION = ".zkasm"
DEFAULT_IGNORE_MARKER = "ignore"


def discover_test_files(
    input_path: Path,
    extension: str = DEFAULT_EXTENSION,
    logger: logging.Logger | None = None,
) -> list[Path]:
    """Resolve `input_path` into candidate test files.

    A missing path yields nothing, a file is returned as-is without an
    extension check, and a directory contributes its direct children whose
    name ends with `extension` (no recursion).
    """

    effective_logger = logger or LOGGER
    if not input_path.exists():
        effective_logger.warning("discover.path_missing path=%s", input_path)
        return []

    if not input_path.is_dir():
        return [input_path]

    return sorted(child for child in input_path.iterdir() if child.name.endswith(extension))


def is_ignored(path: Path, marker: str = DEFAULT_IGNORE_MARKER) -> bool:
    """Return True when the path text contains the ignore marker anywhere."""

    return marker in str(path)

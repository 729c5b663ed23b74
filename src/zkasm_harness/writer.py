"""Atomic writers for harness artifacts."""

from __future__ import annotations

import json
import os
from pathlib import Path
from typing import Any
from uuid import uuid4


def _atomic_temp_path(target_path: Path) -> Path:
    return target_path.parent / f".{target_path.name}.{uuid4().hex}.tmp"


def write_text_atomically(text: str, output_path: Path) -> Path:
    """Write text atomically via temporary file then os.replace."""

    output_path.parent.mkdir(parents=True, exist_ok=True)
    temp_path = _atomic_temp_path(output_path)
    try:
        temp_path.write_text(text, encoding="utf-8")
        os.replace(temp_path, output_path)
    finally:
        if temp_path.exists():
            temp_path.unlink()
    return output_path


def write_json_atomically(
    payload: Any,
    output_path: Path,
    *,
    indent: int | None = 2,
    sort_keys: bool = True,
) -> Path:
    """Write a JSON payload atomically, newline-terminated."""

    text = json.dumps(payload, indent=indent, sort_keys=sort_keys, allow_nan=False) + "\n"
    return write_text_atomically(text, output_path)

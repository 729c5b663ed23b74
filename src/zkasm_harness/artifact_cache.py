"""Build-once cache for the compiled constraint-system artifact."""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from zkasm_harness.config import PilConfig
from zkasm_harness.toolchain import Toolchain
from zkasm_harness.writer import write_text_atomically

LOGGER = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class CachedArtifact:
    """Compiled artifact plus the executable polynomial array derived from it."""

    cache_file: Path
    artifact: Any
    polynomials: Any
    built: bool


def serialize_artifact(artifact: Any) -> str:
    return json.dumps(artifact, indent=1) + "\n"


def ensure_artifact(
    cache_file: Path,
    source_path: Path,
    config: PilConfig,
    toolchain: Toolchain,
    logger: logging.Logger | None = None,
) -> Any:
    """Load the artifact from `cache_file`, compiling and caching it first if absent.

    The cache is keyed by path only; a cache older than its source is reused as-is.
    """

    effective_logger = logger or LOGGER
    if cache_file.exists():
        if source_path.exists() and source_path.stat().st_mtime > cache_file.stat().st_mtime:
            effective_logger.warning(
                "artifact_cache.possibly_stale cache_file=%s source=%s",
                cache_file,
                source_path,
            )
        effective_logger.info("artifact_cache.hit cache_file=%s", cache_file)
        return json.loads(cache_file.read_text(encoding="utf-8"))

    effective_logger.info(
        "artifact_cache.miss cache_file=%s source=%s domain_size=%s namespaces=%s",
        cache_file,
        source_path,
        config.domain_size,
        ",".join(config.namespaces),
    )
    field = toolchain.field_builder.build_field()
    artifact = toolchain.constraint_compiler.compile(field, source_path, config)
    write_text_atomically(serialize_artifact(artifact), cache_file)
    effective_logger.info("artifact_cache.written cache_file=%s", cache_file)
    return artifact


def warm_artifact_cache(
    cache_file: Path,
    source_path: Path,
    config: PilConfig,
    toolchain: Toolchain,
    logger: logging.Logger | None = None,
) -> CachedArtifact:
    """Ensure the artifact exists and build its executable polynomial array."""

    built = not cache_file.exists()
    artifact = ensure_artifact(cache_file, source_path, config, toolchain, logger=logger)
    polynomials = toolchain.constraint_compiler.new_polynomial_array(artifact)
    return CachedArtifact(
        cache_file=cache_file,
        artifact=artifact,
        polynomials=polynomials,
        built=built,
    )

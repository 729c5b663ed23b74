"""Run orchestration: cache warm-up, discovery, sequential execution, output."""

from __future__ import annotations

import logging
import sys
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Any, TextIO
from uuid import uuid4

from zkasm_harness.artifact_cache import CachedArtifact, warm_artifact_cache
from zkasm_harness.config import HarnessSettings
from zkasm_harness.discover import discover_test_files, is_ignored
from zkasm_harness.executor import TestRunOptions, run_test
from zkasm_harness.results import ResultRecord, render_results, write_results
from zkasm_harness.toolchain import Toolchain
from zkasm_harness.utils.time_utils import now_utc

LOGGER = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class HarnessRunResult:
    """Return object for one harness invocation."""

    run_id: str
    records: list[ResultRecord]
    summary: dict[str, Any]
    output_path: Path | None


def warm_cache(
    settings: HarnessSettings,
    toolchain: Toolchain,
    logger: logging.Logger | None = None,
) -> CachedArtifact:
    """Build or load the shared constraint artifact for this run."""

    return warm_artifact_cache(
        settings.paths.cache_file,
        settings.paths.pil_source,
        settings.pil,
        toolchain,
        logger=logger,
    )


def run_harness(
    settings: HarnessSettings,
    test_path: Path,
    toolchain: Toolchain,
    *,
    output_path: Path | None = None,
    stream: TextIO | None = None,
    logger: logging.Logger | None = None,
) -> HarnessRunResult:
    """Execute every discovered test once, in discovery order, and emit the results.

    Results go to `output_path` as JSON when given, otherwise a readable dump
    is written to `stream` (stdout by default).
    """

    effective_logger = logger or LOGGER
    run_id = f"harness-run-{uuid4().hex[:12]}"
    started_ts = now_utc()
    started_mono = time.monotonic()

    cached = warm_cache(settings, toolchain, logger=effective_logger)

    discovered = discover_test_files(test_path, extension=settings.discovery.extension, logger=effective_logger)
    selected = [path for path in discovered if not is_ignored(path, settings.discovery.ignore_marker)]
    effective_logger.info(
        "harness_run.start run_id=%s test_path=%s discovered=%s ignored=%s artifact_built=%s",
        run_id,
        test_path,
        len(discovered),
        len(discovered) - len(selected),
        cached.built,
    )

    options = TestRunOptions.from_settings(settings)
    records: list[ResultRecord] = []
    for index, test_file in enumerate(selected, start=1):
        record = run_test(test_file, cached.polynomials, toolchain, options, logger=effective_logger)
        records.append(record)
        effective_logger.info(
            "harness_run.test_done index=%s/%s path=%s status=%s",
            index,
            len(selected),
            test_file,
            record.status,
        )

    if output_path is not None:
        write_results(records, output_path)
        effective_logger.info("harness_run.output_path %s", output_path)
    else:
        (stream or sys.stdout).write(render_results(records))

    passed = sum(1 for record in records if record.ok)
    summary: dict[str, Any] = {
        "run_id": run_id,
        "started_ts": started_ts.isoformat(),
        "finished_ts": now_utc().isoformat(),
        "duration_sec": round(time.monotonic() - started_mono, 3),
        "test_path": str(test_path),
        "files_discovered": len(discovered),
        "files_ignored": len(discovered) - len(selected),
        "tests_executed": len(records),
        "tests_passed": passed,
        "tests_failed": len(records) - passed,
        "artifact_built": cached.built,
        "cache_file": str(cached.cache_file),
    }
    effective_logger.info(
        "harness_run.finished run_id=%s executed=%s passed=%s failed=%s duration_sec=%s",
        run_id,
        summary["tests_executed"],
        summary["tests_passed"],
        summary["tests_failed"],
        summary["duration_sec"],
    )
    return HarnessRunResult(run_id=run_id, records=records, summary=summary, output_path=output_path)

"""Compile and execute a single zkASM test file."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from zkasm_harness.config import AssemblerConfig, ExecutionConfig, HarnessSettings
from zkasm_harness.counters import InstructionCounterHelper
from zkasm_harness.results import ResultRecord
from zkasm_harness.toolchain import EMPTY_INPUT, ExecutorOptions, Toolchain

LOGGER = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class TestRunOptions:
    """Fixed per-test configuration shared by every test in a run."""

    __test__ = False

    assembler: AssemblerConfig = field(default_factory=AssemblerConfig)
    execution: ExecutionConfig = field(default_factory=ExecutionConfig)
    counters_report: Path | None = None

    @classmethod
    def from_settings(cls, settings: HarnessSettings) -> "TestRunOptions":
        return cls(
            assembler=settings.assembler,
            execution=settings.execution,
            counters_report=settings.paths.counters_report,
        )


def build_executor_options(
    execution: ExecutionConfig,
    helper: InstructionCounterHelper,
) -> ExecutorOptions:
    return ExecutorOptions(
        debug=execution.debug,
        max_steps=execution.max_steps,
        assert_outputs=execution.assert_outputs,
        helpers=(helper,),
    )


def run_test(
    test_file: Path,
    polynomials: Any,
    toolchain: Toolchain,
    options: TestRunOptions | None = None,
    logger: logging.Logger | None = None,
) -> ResultRecord:
    """Run one test file and capture its outcome.

    Any exception raised while compiling or executing becomes a
    "runtime error" record; nothing is retried.
    """

    effective_logger = logger or LOGGER
    run_options = options or TestRunOptions()
    helper = InstructionCounterHelper(run_options.counters_report, logger=effective_logger)
    executor_options = build_executor_options(run_options.execution, helper)

    try:
        rom = toolchain.assembler.compile(test_file, run_options.assembler)
        result = toolchain.executor.execute(polynomials, EMPTY_INPUT, rom, executor_options)
        return ResultRecord.passed(
            test_file,
            counters=result.get("counters"),
            output=result.get("output"),
            logs=result.get("logs"),
        )
    except Exception as exc:
        effective_logger.exception("run_test.failed path=%s", test_file)
        return ResultRecord.runtime_error(test_file, exc)

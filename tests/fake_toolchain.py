"""In-process stand-ins for the external zkASM toolchain used by the tests.

Test programs are plain text: one instruction name per non-empty line.
A line reading `INVALID` makes the assembler fail, and a line reading
`OVERFLOW` makes the executor exceed its step limit.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from zkasm_harness.config import AssemblerConfig, PilConfig
from zkasm_harness.toolchain import ExecutorOptions, Toolchain


class FakeAssemblyError(ValueError):
    def __init__(self, message: str, *, line: int, source: str) -> None:
        super().__init__(message)
        self.line = line
        self.source = source


class StepLimitExceeded(RuntimeError):
    pass


class CompileFailure(RuntimeError):
    pass


@dataclass
class FakeFieldBuilder:
    calls: int = 0

    def build_field(self) -> Any:
        self.calls += 1
        return {"p": 2**64 - 2**32 + 1}


@dataclass
class FakeConstraintCompiler:
    fail: bool = False
    compile_calls: int = 0
    polynomial_calls: int = 0
    seen_configs: list[PilConfig] = field(default_factory=list)

    def compile(self, field: Any, source_path: Path, config: PilConfig) -> Any:
        self.compile_calls += 1
        self.seen_configs.append(config)
        if self.fail:
            raise CompileFailure(f"cannot compile {source_path}")
        return {
            "source": str(source_path),
            "N": config.domain_size,
            "namespaces": list(config.namespaces),
            "nCommitments": 2,
        }

    def new_polynomial_array(self, artifact: Any) -> Any:
        self.polynomial_calls += 1
        return {"Main": {"N": artifact["N"]}}


@dataclass
class FakeAssembler:
    seen_configs: list[AssemblerConfig] = field(default_factory=list)

    def compile(self, path: Path, config: AssemblerConfig) -> Any:
        self.seen_configs.append(config)
        program: list[str] = []
        for line_no, raw_line in enumerate(path.read_text(encoding="utf-8").splitlines(), start=1):
            line = raw_line.strip()
            if not line:
                continue
            if line == "INVALID":
                raise FakeAssemblyError(f"syntax error at line {line_no}", line=line_no, source=str(path))
            program.append(line)
        return {"program": program}


@dataclass
class FakeExecutor:
    seen_options: list[ExecutorOptions] = field(default_factory=list)
    seen_inputs: list[Any] = field(default_factory=list)

    def execute(self, polynomials: Any, input_context: Any, rom: Any, options: ExecutorOptions) -> Any:
        self.seen_options.append(options)
        self.seen_inputs.append(input_context)
        for helper in options.helpers:
            helper.setup()
        steps = 0
        for instruction in rom["program"]:
            steps += 1
            if instruction == "OVERFLOW" or steps > options.max_steps:
                raise StepLimitExceeded(f"step limit {options.max_steps} exceeded")
            for helper in options.helpers:
                helper.on_instruction([{"varName": instruction}])
        for helper in options.helpers:
            helper.on_flush()
        return {
            "counters": {"steps": steps, "cntArith": 0},
            "output": [2**70, steps],
            "logs": {"lines": list(rom["program"])},
        }


def build_fake_toolchain() -> Toolchain:
    return Toolchain(
        field_builder=FakeFieldBuilder(),
        constraint_compiler=FakeConstraintCompiler(),
        assembler=FakeAssembler(),
        executor=FakeExecutor(),
    )


NOT_A_TOOLCHAIN = object()

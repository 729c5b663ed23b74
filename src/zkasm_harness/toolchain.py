"""Interfaces to the external zkASM toolchain and factory loading."""

from __future__ import annotations

import importlib
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from pathlib import Path
from types import MappingProxyType
from typing import Any, Protocol, runtime_checkable

from zkasm_harness.config import AssemblerConfig, PilConfig

# Fixed input context handed to the executor for every test.
EMPTY_INPUT: Mapping[str, Any] = MappingProxyType({})


class ToolchainLoadError(RuntimeError):
    """Raised when the configured toolchain factory cannot be used."""


@runtime_checkable
class ExecutionHelper(Protocol):
    """Hooks the executor calls while running a program."""

    def setup(self) -> None: ...

    def on_instruction(self, params: Sequence[Any]) -> None: ...

    def on_flush(self) -> Any: ...


@dataclass(frozen=True, slots=True)
class ExecutorOptions:
    """Per-test execution options forwarded to the VM executor."""

    debug: bool
    max_steps: int
    assert_outputs: bool
    helpers: tuple[ExecutionHelper, ...] = ()


class FieldBuilder(Protocol):
    def build_field(self) -> Any: ...


class ConstraintCompiler(Protocol):
    def compile(self, field: Any, source_path: Path, config: PilConfig) -> Any: ...

    def new_polynomial_array(self, artifact: Any) -> Any: ...


class AssemblyCompiler(Protocol):
    def compile(self, path: Path, config: AssemblerConfig) -> Any: ...


class Executor(Protocol):
    def execute(
        self,
        polynomials: Any,
        input_context: Mapping[str, Any],
        rom: Any,
        options: ExecutorOptions,
    ) -> Mapping[str, Any]: ...


@dataclass(frozen=True, slots=True)
class Toolchain:
    """Bundle of the external services a harness run depends on."""

    field_builder: FieldBuilder
    constraint_compiler: ConstraintCompiler
    assembler: AssemblyCompiler
    executor: Executor


def load_toolchain(factory_path: str | None) -> Toolchain:
    """Import `module:attribute` and call it to obtain a `Toolchain`."""

    if not factory_path:
        raise ToolchainLoadError("no toolchain factory configured (set toolchain.factory)")
    module_name, sep, attr_name = factory_path.partition(":")
    if not sep or not module_name or not attr_name:
        raise ToolchainLoadError(f"toolchain factory must look like 'module:attribute', got {factory_path!r}")
    try:
        module = importlib.import_module(module_name)
    except ImportError as exc:
        raise ToolchainLoadError(f"cannot import toolchain module {module_name!r}") from exc
    factory = getattr(module, attr_name, None)
    if factory is None:
        raise ToolchainLoadError(f"module {module_name!r} has no attribute {attr_name!r}")

    toolchain = factory() if callable(factory) else factory
    if not isinstance(toolchain, Toolchain):
        raise ToolchainLoadError(
            f"toolchain factory {factory_path!r} returned {type(toolchain).__name__}, expected Toolchain"
        )
    return toolchain

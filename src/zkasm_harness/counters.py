"""Instruction counters collected while the VM executes an instrumented program."""

from __future__ import annotations

import json
import logging
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal
from pathlib import Path
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from zkasm_harness.writer import write_json_atomically

LOGGER = logging.getLogger(__name__)

FRACTION_QUANTUM = Decimal("0.0001")


class ReportDestinationError(RuntimeError):
    """Raised when a counter report is written without a configured destination."""

    def __init__(self) -> None:
        super().__init__("no output configured for the instruction counter report")


@dataclass(frozen=True, slots=True)
class CounterReportEntry:
    """One rendered row of the counter report."""

    name: str
    count: int
    fraction: str

    def to_dict(self) -> dict[str, object]:
        return {"name": self.name, "count": self.count, "fraction": self.fraction}


def format_fraction(count: int, total: int) -> str:
    """Render count/total with exactly four decimals, rounding half away from zero."""

    ratio = Decimal(count) / Decimal(total)
    return format(ratio.quantize(FRACTION_QUANTUM, rounding=ROUND_HALF_UP), "f")


class CounterStore:
    """Occurrence counts keyed by instruction identifier for a single run."""

    def __init__(self) -> None:
        self._counts: dict[str, int] = {}

    def increment(self, identifier: str) -> None:
        self._counts[identifier] = self._counts.get(identifier, 0) + 1

    def count(self, identifier: str) -> int:
        return self._counts.get(identifier, 0)

    @property
    def total(self) -> int:
        return sum(self._counts.values())

    def as_dict(self) -> dict[str, int]:
        return dict(self._counts)

    def render(self) -> list[CounterReportEntry]:
        """Return report entries sorted by upper-cased name.

        An empty store renders as an empty list.
        """

        total = self.total
        if total == 0:
            return []
        entries = [
            CounterReportEntry(name=name, count=count, fraction=format_fraction(count, total))
            for name, count in self._counts.items()
        ]
        # Stable sort keeps insertion order for names equal after upper-casing.
        entries.sort(key=lambda entry: entry.name.upper())
        return entries

    def report_payload(self) -> dict[str, list[dict[str, object]]]:
        return {"counters": [entry.to_dict() for entry in self.render()]}

    def write_report(self, destination: Path | None) -> Path:
        """Persist the rendered report as `{"counters": [...]}` at `destination`."""

        if destination is None:
            raise ReportDestinationError()
        return write_json_atomically(self.report_payload(), destination, indent=None, sort_keys=False)


def identifier_from_params(params: Sequence[Any]) -> str:
    """Extract the instruction identifier from instrumentation tag parameters."""

    if len(params) != 1:
        raise ValueError(f"instrumentation tag expects exactly 1 parameter, got {len(params)}")
    param = params[0]
    if isinstance(param, str):
        return param
    if isinstance(param, Mapping) and isinstance(param.get("varName"), str):
        return param["varName"]
    var_name = getattr(param, "var_name", None)
    if isinstance(var_name, str):
        return var_name
    raise ValueError(f"instrumentation tag parameter has no identifier: {param!r}")


class InstructionCounterHelper:
    """Executor hook adapter that counts instrumented instructions.

    Each instance owns a fresh `CounterStore`; create one per test execution.
    """

    def __init__(self, output_file: Path | None, logger: logging.Logger | None = None) -> None:
        self.output_file = output_file
        self.store = CounterStore()
        self._logger = logger or LOGGER

    def setup(self) -> None:
        self._logger.debug("instrument.setup output_file=%s", self.output_file)

    def on_instruction(self, params: Sequence[Any]) -> None:
        self.store.increment(identifier_from_params(params))

    def on_flush(self) -> Path:
        path = self.store.write_report(self.output_file)
        self._logger.debug("instrument.report_written path=%s total=%s", path, self.store.total)
        return path


class CounterReportRow(BaseModel):
    """Validated report row as read back from disk."""

    model_config = ConfigDict(extra="forbid")

    name: str
    count: int = Field(ge=1)
    fraction: str = Field(pattern=r"^\d+\.\d{4}$")


class CounterReport(BaseModel):
    """Validated counter report file."""

    model_config = ConfigDict(extra="forbid")

    counters: list[CounterReportRow]

    @property
    def total(self) -> int:
        return sum(row.count for row in self.counters)


def load_counter_report(path: Path) -> CounterReport:
    """Read and validate a counter report written by `CounterStore.write_report`."""

    payload = json.loads(path.read_text(encoding="utf-8"))
    return CounterReport.model_validate(payload)

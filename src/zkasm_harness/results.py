"""Per-test result records and their JSON-safe serialization."""

from __future__ import annotations

import dataclasses
import math
import traceback
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Literal

import yaml

from zkasm_harness.writer import write_json_atomically

ResultStatus = Literal["pass", "runtime error"]
STATUS_PASS: ResultStatus = "pass"
STATUS_RUNTIME_ERROR: ResultStatus = "runtime error"

# Largest integer a JSON consumer can hold in an IEEE-754 double without loss.
MAX_SAFE_INTEGER = 2**53 - 1
CIRCULAR_MARKER = "[circular]"


@dataclass(frozen=True, slots=True)
class ResultRecord:
    """Outcome of one test file: either the executor payload or the captured failure."""

    path: str
    status: ResultStatus
    counters: Any = None
    output: Any = None
    logs: Any = None
    error: BaseException | None = None

    def __post_init__(self) -> None:
        if self.status == STATUS_PASS:
            if self.error is not None:
                raise ValueError("passing result cannot carry an error")
        elif self.status == STATUS_RUNTIME_ERROR:
            if self.error is None:
                raise ValueError("runtime error result requires an error")
            if any(value is not None for value in (self.counters, self.output, self.logs)):
                raise ValueError("runtime error result cannot carry execution output")
        else:
            raise ValueError(f"unknown result status: {self.status!r}")

    @classmethod
    def passed(cls, path: Path | str, *, counters: Any, output: Any, logs: Any) -> "ResultRecord":
        return cls(path=str(path), status=STATUS_PASS, counters=counters, output=output, logs=logs)

    @classmethod
    def runtime_error(cls, path: Path | str, error: BaseException) -> "ResultRecord":
        return cls(path=str(path), status=STATUS_RUNTIME_ERROR, error=error)

    @property
    def ok(self) -> bool:
        return self.status == STATUS_PASS

    def to_dict(self) -> dict[str, Any]:
        """Return the JSON-safe record with only the fields its status allows."""

        if self.ok:
            payload: dict[str, Any] = {
                "path": self.path,
                "status": self.status,
                "counters": self.counters,
                "output": self.output,
                "logs": self.logs,
            }
        else:
            payload = {"path": self.path, "status": self.status, "error": self.error}
        return to_jsonable(payload)


def _exception_reference(exc: BaseException) -> dict[str, Any]:
    return {"name": type(exc).__name__, "message": str(exc), "circular": True}


def exception_to_dict(exc: BaseException, _seen: set[int] | None = None) -> dict[str, Any]:
    """Inline every attribute of an exception, plus name, message, args, and stack.

    An exception reached again through its own attributes or cause chain is
    written as a short reference marked `circular`.
    """

    seen = _seen if _seen is not None else set()
    seen.add(id(exc))

    payload: dict[str, Any] = {
        "name": type(exc).__name__,
        "message": str(exc),
        "args": [to_jsonable(arg, seen) for arg in exc.args],
        "stack": "".join(traceback.format_exception(type(exc), exc, exc.__traceback__)),
    }
    for key, value in getattr(exc, "__dict__", {}).items():
        payload[key] = to_jsonable(value, seen)

    cause = exc.__cause__
    if cause is None and not exc.__suppress_context__:
        cause = exc.__context__
    if cause is not None:
        payload["cause"] = _exception_reference(cause) if id(cause) in seen else exception_to_dict(cause, seen)
    return payload


def _float_to_jsonable(value: float) -> float | str:
    if math.isnan(value):
        return "NaN"
    if math.isinf(value):
        return "Infinity" if value > 0 else "-Infinity"
    return value


def to_jsonable(value: Any, _seen: set[int] | None = None) -> Any:
    """Convert executor values into JSON-native data.

    Integers beyond the double-precision safe range and non-finite floats
    become strings. Containers that contain themselves are cut with
    `CIRCULAR_MARKER`.
    """

    seen = _seen if _seen is not None else set()
    if value is None or isinstance(value, (bool, str)):
        return value
    if isinstance(value, float):
        return _float_to_jsonable(value)
    if isinstance(value, int):
        return str(value) if abs(value) > MAX_SAFE_INTEGER else value
    if isinstance(value, BaseException):
        if id(value) in seen:
            return _exception_reference(value)
        return exception_to_dict(value, seen)
    if isinstance(value, Path):
        return str(value)
    if isinstance(value, (bytes, bytearray)):
        return "0x" + bytes(value).hex()

    is_dataclass_value = dataclasses.is_dataclass(value) and not isinstance(value, type)
    if not (is_dataclass_value or isinstance(value, (Mapping, Sequence, set, frozenset))):
        return str(value)
    if id(value) in seen:
        return CIRCULAR_MARKER

    seen.add(id(value))
    try:
        if is_dataclass_value:
            return {
                field.name: to_jsonable(getattr(value, field.name), seen)
                for field in dataclasses.fields(value)
            }
        if isinstance(value, Mapping):
            return {str(key): to_jsonable(item, seen) for key, item in value.items()}
        return [to_jsonable(item, seen) for item in value]
    finally:
        seen.discard(id(value))


def write_results(records: Sequence[ResultRecord], output_path: Path) -> Path:
    """Write the ordered result list as one JSON array."""

    payload = [record.to_dict() for record in records]
    return write_json_atomically(payload, output_path, indent=None, sort_keys=False)


def render_results(records: Sequence[ResultRecord]) -> str:
    """Human-readable dump of the result list."""

    payload = [record.to_dict() for record in records]
    return yaml.safe_dump(payload, sort_keys=False, allow_unicode=True)

"""Shared utility helpers."""

from zkasm_harness.utils.time_utils import now_utc

__all__ = ["now_utc"]

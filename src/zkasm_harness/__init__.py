"""Test harness for zkASM programs executed on an external VM toolchain."""

__version__ = "0.1.0"

"""Toolchain invocation module."""

from binsync.toolchain.base import ExitResult, Toolchain
from binsync.toolchain.local import SubprocessToolchain

__all__ = ["ExitResult", "SubprocessToolchain", "Toolchain"]

"""Toolchain protocol for per-target build invocations."""

from dataclasses import dataclass
from pathlib import Path
from typing import Protocol


@dataclass
class ExitResult:
    """Result of a completed toolchain process."""

    exit_code: int
    failed: bool
    error_message: str | None = None
    output_tail: str = ""


class Toolchain(Protocol):
    """Protocol for invoking the external cross-compilation toolchain."""

    def run(
        self,
        args: list[str],
        env: dict[str, str],
        cwd: Path,
        timeout: int | None = None,
    ) -> ExitResult:
        """Run one build command to completion."""
        ...

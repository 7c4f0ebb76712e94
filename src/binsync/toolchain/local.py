"""Local toolchain runner using subprocess."""

import logging
import subprocess
from pathlib import Path

from binsync.toolchain.base import ExitResult

logger = logging.getLogger(__name__)


class SubprocessToolchain:
    """Runs build commands as local child processes."""

    def __init__(self, tail_lines: int = 40):
        self.tail_lines = tail_lines

    def run(
        self,
        args: list[str],
        env: dict[str, str],
        cwd: Path,
        timeout: int | None = None,
    ) -> ExitResult:
        """Run a build command and wait for it."""
        logger.debug(f"Running {' '.join(args)} in {cwd}")
        try:
            result = subprocess.run(
                args,
                capture_output=True,
                text=True,
                timeout=timeout,
                cwd=cwd,
                env=env,
            )
        except subprocess.TimeoutExpired:
            return ExitResult(
                exit_code=-1,
                failed=True,
                error_message=f"Process timed out after {timeout}s",
            )
        except OSError as e:
            # Executable missing or not runnable
            return ExitResult(exit_code=-1, failed=True, error_message=str(e))

        output_tail = self._tail(result.stdout + result.stderr)
        if result.returncode != 0:
            return ExitResult(
                exit_code=result.returncode,
                failed=True,
                error_message=f"Process exited with code {result.returncode}",
                output_tail=output_tail,
            )
        return ExitResult(exit_code=0, failed=False, output_tail=output_tail)

    def _tail(self, output: str) -> str:
        lines = output.splitlines()
        return "\n".join(lines[-self.tail_lines:])

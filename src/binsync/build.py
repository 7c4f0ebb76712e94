"""Build driver: one toolchain invocation per target, artifacts into the output tree."""

import glob
import logging
import os
import shutil
import threading
import time
import uuid
from pathlib import Path

from binsync.config import BinsyncConfig, parse_duration
from binsync.errors import BuildError
from binsync.pool import run_bounded
from binsync.toolchain.base import Toolchain
from binsync.toolchain.local import SubprocessToolchain
from binsync.types import BuildOutcome, TargetSpec

logger = logging.getLogger(__name__)

# Filesystem timestamps can trail the wall clock by a clock tick
MTIME_SLACK = 1.0

# Host variables a cross toolchain needs to find itself; always passed through if set
COMMON_BUILD_ENV_VARS = [
    "PATH",
    "HOME",
    "USER",
    "LANG",
    "TMPDIR",
    "CARGO_HOME",
    "RUSTUP_HOME",
    "DOCKER_HOST",
    "SYSTEMROOT",
]


def collect_build_env(config: BinsyncConfig, target: TargetSpec, output_dir: Path) -> dict[str, str]:
    """Collect environment variables for one toolchain invocation.

    Order of precedence (later wins):
    1. Common host variables from current env
    2. Explicit env_passthrough from config
    3. Explicit env from config
    4. BINSYNC_TARGET / BINSYNC_OUTPUT_DIR
    """
    env = {}

    for key in COMMON_BUILD_ENV_VARS:
        if key in os.environ:
            env[key] = os.environ[key]

    for var_name in config.toolchain.env_passthrough:
        if var_name in os.environ:
            env[var_name] = os.environ[var_name]

    env.update(config.toolchain.env)

    env["BINSYNC_TARGET"] = target.id
    env["BINSYNC_OUTPUT_DIR"] = str(output_dir)
    return env


class BuildDriver:
    """Invokes the toolchain per target and normalizes outputs into ``output_root``.

    Each invocation gets its own staging directory and environment, so
    builds for different targets share no mutable state.
    """

    def __init__(self, config: BinsyncConfig, toolchain: Toolchain | None = None):
        self.config = config
        self.toolchain = toolchain or SubprocessToolchain()
        self.work_dir = Path(config.project.work_dir).expanduser().resolve()
        self.output_root = self._resolve(config.project.output_root)
        self.staging_root = self._resolve(config.project.staging_dir)
        self.timeout = parse_duration(config.toolchain.timeout)

    def _resolve(self, path: str) -> Path:
        p = Path(path).expanduser()
        return p if p.is_absolute() else self.work_dir / p

    def build(self, target: TargetSpec) -> Path:
        """Build one target. Returns its directory under ``output_root``."""
        staging = self.staging_root / target.id
        if staging.exists():
            shutil.rmtree(staging)
        staging.mkdir(parents=True)

        placeholders = {
            "target": target.id,
            "output_dir": str(staging),
            "work_dir": str(self.work_dir),
        }
        try:
            args = [arg.format_map(placeholders) for arg in target.build_args]
        except (KeyError, IndexError, ValueError) as e:
            raise BuildError(target.id, f"bad placeholder in build_args: {e}")

        env = collect_build_env(self.config, target, staging)
        logger.info(f"Building {target.id}")
        started = time.time() - MTIME_SLACK
        result = self.toolchain.run(args, env, cwd=self.work_dir, timeout=self.timeout)
        if result.failed:
            if result.output_tail:
                logger.debug(f"[{target.id}] toolchain output:\n{result.output_tail}")
            raise BuildError(target.id, result.error_message or f"exit code {result.exit_code}")

        files = self._collect(target, staging, started)
        output_dir = self._publish(target, files)
        logger.info(f"Built {target.id}: {len(files)} artifact(s) in {output_dir}")
        return output_dir

    def _collect(self, target: TargetSpec, staging: Path, since: float) -> dict[str, Path]:
        """Map artifact name -> produced file.

        Glob matches older than ``since`` are leftovers from an earlier build
        and do not count.
        """
        collected: dict[str, Path] = {}

        if target.artifacts:
            for pattern in target.artifacts:
                full_pattern = str(self.work_dir / pattern.format(target=target.id))
                matches = sorted(
                    Path(p)
                    for p in glob.glob(full_pattern, recursive=True)
                    if Path(p).is_file() and Path(p).stat().st_mtime >= since
                )
                if not matches:
                    raise BuildError(target.id, f"missing expected output artifact: {pattern}")
                for path in matches:
                    self._add(target, collected, path.name, path)
        else:
            for path in sorted(staging.rglob("*")):
                if path.is_file() and not path.is_symlink():
                    self._add(target, collected, path.relative_to(staging).as_posix(), path)

        if not collected:
            raise BuildError(target.id, "toolchain produced no output files")
        return collected

    def _add(self, target: TargetSpec, collected: dict[str, Path], name: str, path: Path) -> None:
        if name in collected:
            raise BuildError(target.id, f"two outputs would both be named {name}")
        collected[name] = path

    def _publish(self, target: TargetSpec, files: dict[str, Path]) -> Path:
        """Replace the target's output subdir with the freshly collected files."""
        self.output_root.mkdir(parents=True, exist_ok=True)
        dest = self.output_root / target.output_subdir
        tmp = self.output_root / f".{target.output_subdir}.tmp-{uuid.uuid4().hex[:8]}"

        try:
            for name, src in files.items():
                out = tmp / name
                out.parent.mkdir(parents=True, exist_ok=True)
                shutil.copy2(src, out)
        except OSError as e:
            shutil.rmtree(tmp, ignore_errors=True)
            raise BuildError(target.id, f"failed to copy artifacts: {e}")

        # Swap the new tree in before removing the old one
        old = None
        if dest.exists():
            old = self.output_root / f".{target.output_subdir}.old-{uuid.uuid4().hex[:8]}"
            os.replace(dest, old)
        try:
            os.replace(tmp, dest)
        except OSError as e:
            if old is not None:
                os.replace(old, dest)
            shutil.rmtree(tmp, ignore_errors=True)
            raise BuildError(target.id, f"failed to publish artifacts: {e}")
        if old is not None:
            shutil.rmtree(old, ignore_errors=True)
        return dest

    def _build_one(self, target: TargetSpec) -> BuildOutcome:
        try:
            output_dir = self.build(target)
        except BuildError as e:
            logger.error(str(e))
            return BuildOutcome(target_id=target.id, error=e.cause)
        artifacts = tuple(
            sorted(p.relative_to(self.output_root).as_posix() for p in output_dir.rglob("*") if p.is_file())
        )
        return BuildOutcome(target_id=target.id, output_dir=str(output_dir), artifacts=artifacts)

    def build_all(
        self,
        targets: tuple[TargetSpec, ...] | list[TargetSpec],
        concurrency: int | None = None,
        cancel: threading.Event | None = None,
    ) -> list[BuildOutcome]:
        """Build every target, continuing past failures unless fail_fast is set.

        Returns one outcome per target, in registry order.
        """
        by_id = {t.id: t for t in targets}
        stop_when = (lambda o: o.failed) if self.config.sync.fail_fast else None
        pool = run_bounded(
            list(by_id),
            lambda target_id: self._build_one(by_id[target_id]),
            max_workers=concurrency or self.config.sync.concurrency,
            cancel=cancel,
            stop_when=stop_when,
        )

        outcomes = []
        for target_id in by_id:
            if target_id in pool.results:
                outcomes.append(pool.results[target_id])
            elif target_id in pool.errors:
                outcomes.append(BuildOutcome(target_id=target_id, error=repr(pool.errors[target_id])))
            else:
                logger.warning(f"Skipped {target_id}: run cancelled")
                outcomes.append(BuildOutcome(target_id=target_id, error="cancelled"))
        return outcomes

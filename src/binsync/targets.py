"""Target platform registry."""

from binsync.config import TargetConfig
from binsync.errors import ConfigError
from binsync.types import TargetSpec

CROSS_BUILD = ("cross", "build", "--release", "--locked", "--target", "{target}")

DEFAULT_TARGETS: tuple[TargetSpec, ...] = (
    TargetSpec(
        id="x86_64-unknown-linux-musl",
        build_args=CROSS_BUILD,
        output_subdir="linux-x64",
        artifacts=("target/{target}/release/geph4-client",),
    ),
    TargetSpec(
        id="i686-unknown-linux-musl",
        build_args=CROSS_BUILD,
        output_subdir="linux-x86",
        artifacts=("target/{target}/release/geph4-client",),
    ),
    TargetSpec(
        id="armv7-unknown-linux-musleabihf",
        build_args=CROSS_BUILD,
        output_subdir="linux-armv7",
        artifacts=("target/{target}/release/geph4-client",),
    ),
    TargetSpec(
        id="aarch64-unknown-linux-musl",
        build_args=CROSS_BUILD,
        output_subdir="linux-arm64",
        artifacts=("target/{target}/release/geph4-client",),
    ),
    TargetSpec(
        id="x86_64-pc-windows-gnu",
        build_args=CROSS_BUILD,
        output_subdir="windows-x64",
        artifacts=("target/{target}/release/geph4-client.exe",),
    ),
)


class TargetRegistry:
    """Fixed, validated list of targets."""

    def __init__(self, targets: list[TargetSpec] | tuple[TargetSpec, ...]):
        validate_targets(targets)
        self._targets = tuple(targets)

    @classmethod
    def from_config(cls, targets: list[TargetConfig] | None) -> "TargetRegistry":
        if targets is None:
            return cls(DEFAULT_TARGETS)
        return cls(
            [
                TargetSpec(
                    id=t.id,
                    build_args=tuple(t.build_args),
                    output_subdir=t.output_subdir,
                    artifacts=tuple(t.artifacts),
                )
                for t in targets
            ]
        )

    def list_targets(self) -> tuple[TargetSpec, ...]:
        return self._targets

    def get(self, target_id: str) -> TargetSpec:
        for target in self._targets:
            if target.id == target_id:
                return target
        raise ConfigError(f"Unknown target: {target_id}")

    def select(self, selection: str | list[str]) -> tuple[TargetSpec, ...]:
        """Select targets by id, preserving registry order. "all" selects everything."""
        if isinstance(selection, str):
            selection = [s.strip() for s in selection.split(",") if s.strip()]
        if not selection or selection == ["all"]:
            return self._targets
        wanted = set(selection)
        for target_id in wanted:
            self.get(target_id)
        return tuple(t for t in self._targets if t.id in wanted)


def validate_targets(targets: list[TargetSpec] | tuple[TargetSpec, ...]) -> None:
    """Reject duplicate ids, duplicate output subdirs and empty build_args."""
    if not targets:
        raise ConfigError("No targets defined")

    seen_ids: set[str] = set()
    seen_subdirs: set[str] = set()
    for target in targets:
        if not target.id:
            raise ConfigError("Target id must not be empty")
        if target.id in seen_ids:
            raise ConfigError(f"Duplicate target id: {target.id}")
        if not target.build_args:
            raise ConfigError(f"Target {target.id} has empty build_args")

        subdir = target.output_subdir.strip("/")
        if not subdir or "/" in subdir or subdir in (".", ".."):
            raise ConfigError(
                f"Target {target.id} output_subdir must be a single path component, "
                f"got {target.output_subdir!r}"
            )
        if subdir in seen_subdirs:
            raise ConfigError(f"Duplicate output_subdir: {subdir}")

        seen_ids.add(target.id)
        seen_subdirs.add(subdir)

"""Core type definitions for binsync."""

from dataclasses import dataclass, field
from enum import IntEnum

from pydantic import BaseModel, ConfigDict

# Preferred order when both sides of a comparison carry more than one digest.
HASH_PREFERENCE = ("sha256", "md5")


class TargetSpec(BaseModel):
    """A platform/architecture the project is compiled for."""

    model_config = ConfigDict(frozen=True)

    id: str
    build_args: tuple[str, ...]
    output_subdir: str
    artifacts: tuple[str, ...] = ()


class ManifestEntry(BaseModel):
    """Metadata for one file, local or remote.

    ``hashes`` maps an algorithm name to a hex digest. A remote entry with no
    hashes has an unknown content hash and is compared by size and mtime.
    """

    model_config = ConfigDict(frozen=True)

    relative_path: str
    size_bytes: int
    hashes: dict[str, str] = {}
    mtime: float | None = None

    @property
    def content_hash(self) -> str | None:
        for algorithm in HASH_PREFERENCE:
            if algorithm in self.hashes:
                return self.hashes[algorithm]
        return None


class Artifact(ManifestEntry):
    """A local build output, attributed to the target that produced it."""

    source_target: str | None = None


# relative_path -> entry; exactly one entry per path.
Manifest = dict[str, ManifestEntry]


@dataclass(frozen=True)
class SyncPlan:
    """Uploads, deletes and skips needed to reconcile remote with local."""

    uploads: frozenset[str] = frozenset()
    deletes: frozenset[str] = frozenset()
    skips: frozenset[str] = frozenset()

    @property
    def is_empty(self) -> bool:
        return not self.uploads and not self.deletes


@dataclass(frozen=True)
class SyncResult:
    """Outcome of executing a plan."""

    succeeded: frozenset[str] = frozenset()
    failed: dict[str, str] = field(default_factory=dict)  # path -> error kind
    cancelled: frozenset[str] = frozenset()

    @property
    def ok(self) -> bool:
        return not self.failed and not self.cancelled


@dataclass(frozen=True)
class BuildOutcome:
    """Result of building one target."""

    target_id: str
    output_dir: str | None = None
    artifacts: tuple[str, ...] = ()
    error: str | None = None

    @property
    def failed(self) -> bool:
        return self.error is not None


class ExitCode(IntEnum):
    """Process exit codes for the command surface."""

    OK = 0
    FATAL = 1
    BUILD_FAILED = 3
    SYNC_FAILED = 4
    BUILD_AND_SYNC_FAILED = 5
    CANCELLED = 130

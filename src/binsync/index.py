"""Artifact indexer: builds a manifest from the local output tree."""

import hashlib
import logging
from pathlib import Path

from binsync.types import Artifact, Manifest, TargetSpec

logger = logging.getLogger(__name__)

CHUNK_SIZE = 1024 * 1024


def compute_digests(path: Path) -> dict[str, str]:
    """Compute SHA-256 and MD5 of a file in one pass."""
    sha256 = hashlib.sha256()
    md5 = hashlib.md5()
    with open(path, "rb") as f:
        while chunk := f.read(CHUNK_SIZE):
            sha256.update(chunk)
            md5.update(chunk)
    return {"sha256": sha256.hexdigest(), "md5": md5.hexdigest()}


def index(root_dir: Path, targets: tuple[TargetSpec, ...] | list[TargetSpec] = ()) -> Manifest:
    """Walk ``root_dir`` and return a manifest keyed by POSIX relative path.

    Symlinks and non-regular files are skipped. Hidden entries starting with
    ``.`` at the top level (in-progress output dirs) are ignored. When
    ``targets`` is given, each artifact is attributed to the target whose
    ``output_subdir`` is its first path component.
    """
    root_dir = Path(root_dir)
    manifest: Manifest = {}
    if not root_dir.is_dir():
        logger.warning(f"Output root {root_dir} does not exist; local manifest is empty")
        return manifest

    subdir_to_target = {t.output_subdir.strip("/"): t.id for t in targets}

    for path in sorted(root_dir.rglob("*")):
        rel = path.relative_to(root_dir)
        if rel.parts[0].startswith("."):
            continue
        if path.is_symlink():
            logger.info(f"Skipping symlink {rel.as_posix()}")
            continue
        if path.is_dir():
            continue
        if not path.is_file():
            logger.info(f"Skipping non-regular file {rel.as_posix()}")
            continue

        stat = path.stat()
        relative_path = rel.as_posix()
        manifest[relative_path] = Artifact(
            relative_path=relative_path,
            size_bytes=stat.st_size,
            hashes=compute_digests(path),
            mtime=stat.st_mtime,
            source_target=subdir_to_target.get(rel.parts[0]) if len(rel.parts) > 1 else None,
        )

    logger.debug(f"Indexed {len(manifest)} file(s) under {root_dir}")
    return manifest

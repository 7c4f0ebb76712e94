"""Local filesystem object store: a directory acting as a bucket."""

import logging
import os
import shutil
import uuid
from pathlib import Path

from binsync.errors import RemoteError, TransferError
from binsync.index import compute_digests
from binsync.storage.base import ListPage
from binsync.types import ManifestEntry

logger = logging.getLogger(__name__)

TMP_MARKER = ".binsync-tmp-"


class LocalObjectStore:
    """Directory-backed store, used for ``file://`` destinations and mirrors.

    Objects are written whole via a temp file and rename. With
    ``compute_hashes`` off, listings carry no hashes and callers fall back to
    size and mtime comparison.
    """

    def __init__(self, base_path: Path, compute_hashes: bool = True, page_size: int = 1000):
        self.base_path = Path(base_path).expanduser()
        self.base_path.mkdir(parents=True, exist_ok=True)
        self.compute_hashes = compute_hashes
        self.page_size = page_size

    def _key_to_path(self, key: str) -> Path:
        path = (self.base_path / key).resolve()
        if self.base_path.resolve() not in path.parents:
            raise ValueError(f"Key escapes store root: {key}")
        return path

    def list_page(self, prefix: str, token: str | None = None) -> ListPage:
        try:
            keys = sorted(
                p.relative_to(self.base_path).as_posix()
                for p in self.base_path.rglob("*")
                if p.is_file() and not p.name.startswith(TMP_MARKER)
            )
        except OSError as e:
            raise RemoteError(f"Listing {self.base_path} failed: {e}")

        keys = [k for k in keys if k.startswith(prefix) and (token is None or k > token)]
        page_keys = keys[: self.page_size]

        objects = []
        for key in page_keys:
            path = self.base_path / key
            stat = path.stat()
            objects.append(
                ManifestEntry(
                    relative_path=key,
                    size_bytes=stat.st_size,
                    hashes=compute_digests(path) if self.compute_hashes else {},
                    mtime=stat.st_mtime,
                )
            )

        next_token = page_keys[-1] if len(keys) > self.page_size else None
        return ListPage(objects=objects, next_token=next_token)

    def put_object(self, key: str, local_path: Path, hashes: dict[str, str]) -> None:
        try:
            dest = self._key_to_path(key)
        except ValueError as e:
            raise TransferError(key, "invalid_key", str(e))

        tmp = dest.parent / f"{TMP_MARKER}{uuid.uuid4().hex[:8]}"
        try:
            dest.parent.mkdir(parents=True, exist_ok=True)
            shutil.copyfile(local_path, tmp)
            os.replace(tmp, dest)
        except OSError as e:
            tmp.unlink(missing_ok=True)
            # A concurrent delete may have pruned the parent we just created
            raise TransferError(key, "local_io", str(e), transient=not dest.parent.is_dir())

        if "sha256" in hashes and self.compute_hashes:
            actual = compute_digests(dest)["sha256"]
            if actual != hashes["sha256"]:
                raise TransferError(key, "checksum_mismatch", f"stored {actual}", transient=True)

    def delete_object(self, key: str) -> None:
        try:
            path = self._key_to_path(key)
        except ValueError as e:
            raise TransferError(key, "invalid_key", str(e))

        try:
            path.unlink(missing_ok=True)
        except OSError as e:
            raise TransferError(key, "local_io", str(e))
        logger.debug(f"Deleted {key} from {self.base_path}")

        # Drop directories the delete left empty
        parent = path.parent
        base = self.base_path.resolve()
        while parent != base:
            try:
                parent.rmdir()
            except OSError:
                # Not empty, or a sibling delete got there first
                break
            parent = parent.parent

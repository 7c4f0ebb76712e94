"""Shared test fixtures for binsync."""

import hashlib
import threading
from pathlib import Path

import pytest

from binsync.errors import TransferError
from binsync.index import compute_digests
from binsync.storage.base import ListPage
from binsync.toolchain.base import ExitResult
from binsync.types import ManifestEntry


class MemoryStore:
    """In-memory ObjectStore with scripted failures.

    ``put_failures`` / ``delete_failures`` map a key to a list of errors
    raised on successive attempts before the operation succeeds.
    """

    def __init__(self, page_size: int = 2, with_hashes: bool = True):
        self.objects: dict[str, tuple[bytes, dict[str, str]]] = {}
        self.page_size = page_size
        self.with_hashes = with_hashes
        self.put_failures: dict[str, list[Exception]] = {}
        self.delete_failures: dict[str, list[Exception]] = {}
        self.list_failures: list[Exception] = []
        self.calls: list[tuple[str, str]] = []
        self.list_calls = 0
        self._lock = threading.Lock()

    def seed(self, key: str, data: bytes) -> None:
        self.objects[key] = (data, {"sha256": hashlib.sha256(data).hexdigest()})

    def list_page(self, prefix: str, token: str | None = None) -> ListPage:
        self.list_calls += 1
        if self.list_failures:
            raise self.list_failures.pop(0)
        keys = sorted(k for k in self.objects if k.startswith(prefix) and (token is None or k > token))
        page = keys[: self.page_size]
        objects = [
            ManifestEntry(
                relative_path=k,
                size_bytes=len(self.objects[k][0]),
                hashes=dict(self.objects[k][1]) if self.with_hashes else {},
                mtime=None,
            )
            for k in page
        ]
        return ListPage(objects=objects, next_token=page[-1] if len(keys) > self.page_size else None)

    def put_object(self, key: str, local_path: Path, hashes: dict[str, str]) -> None:
        with self._lock:
            self.calls.append(("put", key))
            failures = self.put_failures.get(key)
            if failures:
                raise failures.pop(0)
        data = Path(local_path).read_bytes()
        with self._lock:
            self.objects[key] = (data, {"sha256": compute_digests(Path(local_path))["sha256"]})

    def delete_object(self, key: str) -> None:
        with self._lock:
            self.calls.append(("delete", key))
            failures = self.delete_failures.get(key)
            if failures:
                raise failures.pop(0)
            self.objects.pop(key, None)


class ScriptedToolchain:
    """Toolchain that writes files instead of compiling.

    ``outputs`` maps target id -> {relative path under work_dir: content};
    ``failures`` maps target id -> exit code.
    """

    def __init__(self, outputs: dict[str, dict[str, bytes]], failures: dict[str, int] | None = None):
        self.outputs = outputs
        self.failures = failures or {}
        self.invocations: list[tuple[list[str], dict[str, str]]] = []
        self._lock = threading.Lock()

    def run(self, args, env, cwd, timeout=None) -> ExitResult:
        target = env["BINSYNC_TARGET"]
        with self._lock:
            self.invocations.append((list(args), dict(env)))
        if target in self.failures:
            code = self.failures[target]
            return ExitResult(exit_code=code, failed=True, error_message=f"Process exited with code {code}")
        for rel, content in self.outputs.get(target, {}).items():
            path = Path(cwd) / rel.format(output_dir=env["BINSYNC_OUTPUT_DIR"])
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_bytes(content)
        return ExitResult(exit_code=0, failed=False)


def transient(key: str, kind: str = "http_503") -> TransferError:
    return TransferError(key, kind, "injected", transient=True)


def permanent(key: str, kind: str = "AccessDenied") -> TransferError:
    return TransferError(key, kind, "injected", transient=False)


@pytest.fixture
def memory_store() -> MemoryStore:
    """Provide an empty in-memory object store."""
    return MemoryStore()


@pytest.fixture
def no_sleep():
    """A sleep replacement that records requested delays."""
    delays: list[float] = []
    return delays.append, delays


@pytest.fixture
def make_tree(tmp_path: Path):
    """Create files under a fresh root: make_tree({"a/b.bin": b"..."})."""

    def _make(files: dict[str, bytes], root: Path | None = None) -> Path:
        root = root or tmp_path / "out"
        root.mkdir(parents=True, exist_ok=True)
        for rel, content in files.items():
            path = root / rel
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_bytes(content)
        return root

    return _make


"""Tests for the remote state reader."""

import pytest

from binsync.errors import RemoteError
from binsync.remote import list_remote, normalize_prefix
from binsync.retry import RetryPolicy
from binsync.storage.base import ListPage
from binsync.types import ManifestEntry

FAST = RetryPolicy(max_attempts=3, backoff_base=0.0, backoff_max=0.0)


class TestNormalizePrefix:
    def test_values(self):
        assert normalize_prefix("") == ""
        assert normalize_prefix("/") == ""
        assert normalize_prefix("geph4-binaries") == "geph4-binaries/"
        assert normalize_prefix("/a/b/") == "a/b/"


class TestListRemote:
    def test_combines_pages(self, memory_store):
        for i in range(5):
            memory_store.seed(f"bins/f{i}", b"x" * i)
        memory_store.seed("other/ignored", b"")

        manifest = list_remote(memory_store, "bins", FAST)

        assert set(manifest) == {f"f{i}" for i in range(5)}
        assert memory_store.list_calls == 3  # page_size 2
        assert manifest["f3"].size_bytes == 3
        assert manifest["f3"].relative_path == "f3"
        assert manifest["f3"].content_hash is not None

    def test_empty_prefix(self, memory_store):
        memory_store.seed("a/b", b"1")
        assert set(list_remote(memory_store, "", FAST)) == {"a/b"}

    def test_unknown_hashes_are_kept_unknown(self):
        from conftest import MemoryStore

        store = MemoryStore(with_hashes=False)
        store.seed("p/a", b"1")
        assert list_remote(store, "p/", FAST)["a"].hashes == {}

    def test_transient_page_failure_is_retried(self, memory_store):
        memory_store.seed("p/a", b"1")
        memory_store.list_failures = [RemoteError("503", transient=True)]
        assert set(list_remote(memory_store, "p", FAST)) == {"a"}

    def test_permanent_failure_is_fatal(self, memory_store):
        memory_store.list_failures = [RemoteError("AccessDenied")]
        with pytest.raises(RemoteError, match="AccessDenied"):
            list_remote(memory_store, "p", FAST)
        assert memory_store.list_calls == 1

    def test_exhausted_retries_are_fatal(self, memory_store):
        memory_store.list_failures = [RemoteError("timeout", transient=True)] * 3
        with pytest.raises(RemoteError):
            list_remote(memory_store, "p", FAST)

    def test_stuck_pagination_token(self):
        class StuckStore:
            def list_page(self, prefix, token=None):
                return ListPage(
                    objects=[ManifestEntry(relative_path=f"p/{token}", size_bytes=0)],
                    next_token="same",
                )

        with pytest.raises(RemoteError, match="did not advance"):
            list_remote(StuckStore(), "p", FAST)

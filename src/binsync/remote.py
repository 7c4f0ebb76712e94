"""Remote state reader: lists the bucket prefix into a manifest."""

import logging
import threading

from binsync.errors import RemoteError
from binsync.retry import RetryPolicy, call_with_retries
from binsync.storage.base import ObjectStore
from binsync.types import Manifest

logger = logging.getLogger(__name__)


def normalize_prefix(prefix: str) -> str:
    """Strip leading slashes and make a non-empty prefix end with exactly one slash."""
    prefix = prefix.strip("/")
    return f"{prefix}/" if prefix else ""


def list_remote(
    store: ObjectStore,
    prefix: str,
    policy: RetryPolicy | None = None,
    cancel: threading.Event | None = None,
) -> Manifest:
    """List every object under ``prefix`` into one manifest keyed by path relative to it.

    Pagination is followed until the store reports no further pages. Each
    page request is retried on transient errors; anything else, or running
    out of attempts, raises RemoteError.
    """
    policy = policy or RetryPolicy()
    prefix = normalize_prefix(prefix)
    manifest: Manifest = {}
    token: str | None = None
    pages = 0

    while True:
        page = call_with_retries(
            lambda: store.list_page(prefix, token),
            policy,
            is_transient=lambda e: isinstance(e, RemoteError) and e.transient,
            describe=f"Listing {prefix or '/'}",
            cancel=cancel,
        )
        pages += 1

        for entry in page.objects:
            if not entry.relative_path.startswith(prefix):
                continue
            relative_path = entry.relative_path[len(prefix):]
            if not relative_path:
                continue
            if relative_path in manifest:
                raise RemoteError(f"Listing returned {entry.relative_path} twice")
            manifest[relative_path] = entry.model_copy(update={"relative_path": relative_path})

        if not page.next_token:
            break
        if page.next_token == token:
            raise RemoteError(f"Listing did not advance past token {token}")
        token = page.next_token

    logger.info(f"Remote has {len(manifest)} object(s) under {prefix or '/'} ({pages} page(s))")
    return manifest

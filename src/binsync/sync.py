"""Sync executor: carries out a plan against the remote store."""

import logging
import threading
import time
from pathlib import Path
from typing import Callable

from binsync.errors import TransferError, UnsafeSyncError
from binsync.pool import run_bounded
from binsync.remote import normalize_prefix
from binsync.retry import RetryPolicy, call_with_retries
from binsync.storage.base import ObjectStore
from binsync.types import Manifest, SyncPlan, SyncResult

logger = logging.getLogger(__name__)

DONE = {"upload": "Uploaded", "delete": "Deleted"}


def check_mass_delete(local: Manifest, sync_plan: SyncPlan, allow: bool = False) -> None:
    """Refuse a plan that deletes remote objects while nothing exists locally."""
    if not local and sync_plan.deletes and not allow:
        raise UnsafeSyncError(
            f"Local manifest is empty; refusing to delete all {len(sync_plan.deletes)} "
            "remote object(s). Pass --allow-mass-delete to confirm."
        )


class SyncExecutor:
    """Uploads and deletes exactly the paths named in a plan."""

    def __init__(
        self,
        store: ObjectStore,
        local_root: Path,
        local: Manifest,
        policy: RetryPolicy | None = None,
        concurrency: int = 8,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.store = store
        self.local_root = Path(local_root)
        self.local = local
        self.policy = policy or RetryPolicy()
        self.concurrency = concurrency
        self._sleep = sleep

    def execute(
        self,
        sync_plan: SyncPlan,
        prefix: str,
        cancel: threading.Event | None = None,
    ) -> SyncResult:
        """Run every upload and delete, then aggregate one result.

        Each path is handled by exactly one task; ordering between tasks is
        not guaranteed. Failures are isolated per path.
        """
        cancel = cancel if cancel is not None else threading.Event()
        prefix = normalize_prefix(prefix)
        operations = {path: "upload" for path in sorted(sync_plan.uploads)}
        for path in sorted(sync_plan.deletes):
            if path in operations:
                raise ValueError(f"{path} is both uploaded and deleted in the plan")
            operations[path] = "delete"

        logger.info(
            f"Syncing: {len(sync_plan.uploads)} upload(s), {len(sync_plan.deletes)} delete(s), "
            f"{len(sync_plan.skips)} unchanged"
        )

        def run(path: str) -> str | None:
            key = prefix + path
            if operations[path] == "upload":
                op = lambda: self.store.put_object(key, self.local_root / path, self.local[path].hashes)
            else:
                op = lambda: self.store.delete_object(key)
            try:
                call_with_retries(
                    op,
                    self.policy,
                    is_transient=lambda e: isinstance(e, TransferError) and e.transient,
                    describe=f"{operations[path].capitalize()} {key}",
                    sleep=self._sleep,
                    cancel=cancel,
                )
            except TransferError as e:
                logger.error(f"{operations[path].capitalize()} failed for {key}: {e}")
                return e.kind
            logger.debug(f"{DONE[operations[path]]} {key}")
            return None

        pool = run_bounded(list(operations), run, max_workers=self.concurrency, cancel=cancel)

        succeeded = {path for path, kind in pool.results.items() if kind is None}
        failed = {path: kind for path, kind in pool.results.items() if kind is not None}
        for path, error in pool.errors.items():
            failed[path] = type(error).__name__

        return SyncResult(
            succeeded=frozenset(succeeded),
            failed=failed,
            cancelled=frozenset(pool.cancelled),
        )

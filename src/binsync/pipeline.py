"""Release pipeline: build targets, index outputs, plan and execute the sync."""

import logging
import threading
import time
from dataclasses import dataclass, field
from typing import Callable

from binsync.build import BuildDriver
from binsync.config import BinsyncConfig
from binsync.index import index
from binsync.planner import plan, withhold_deletes
from binsync.remote import list_remote
from binsync.retry import RetryPolicy
from binsync.storage.base import ObjectStore
from binsync.storage.factory import create_store
from binsync.sync import SyncExecutor, check_mass_delete
from binsync.toolchain.base import Toolchain
from binsync.types import BuildOutcome, ExitCode, Manifest, SyncPlan, SyncResult, TargetSpec

logger = logging.getLogger(__name__)


@dataclass
class ReleaseReport:
    """Everything a run produced, for the final summary."""

    builds: list[BuildOutcome] = field(default_factory=list)
    local: Manifest = field(default_factory=dict)
    plan: SyncPlan | None = None
    result: SyncResult | None = None
    cancelled: bool = False

    @property
    def failed_targets(self) -> list[BuildOutcome]:
        return [b for b in self.builds if b.failed]

    @property
    def build_failed(self) -> bool:
        return bool(self.failed_targets)

    @property
    def sync_failed(self) -> bool:
        return self.result is not None and not self.result.ok

    def exit_code(self) -> ExitCode:
        if self.cancelled:
            return ExitCode.CANCELLED
        if self.build_failed and self.sync_failed:
            return ExitCode.BUILD_AND_SYNC_FAILED
        if self.build_failed:
            return ExitCode.BUILD_FAILED
        if self.sync_failed:
            return ExitCode.SYNC_FAILED
        return ExitCode.OK


class ReleasePipeline:
    """Wires registry, build driver, indexer, remote reader, planner and executor.

    All settings come from the config passed in; nothing is read from
    ambient state except the credentials the remote config names.
    """

    def __init__(
        self,
        config: BinsyncConfig,
        store: ObjectStore | None = None,
        toolchain: Toolchain | None = None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.config = config
        self.driver = BuildDriver(config, toolchain)
        self._store = store
        self._sleep = sleep
        self.policy = RetryPolicy(
            max_attempts=config.sync.max_attempts,
            backoff_base=config.sync.backoff_base,
            backoff_max=config.sync.backoff_max,
        )

    @property
    def store(self) -> ObjectStore:
        """Get or create the object store."""
        if self._store is None:
            self._store = create_store(self.config.remote)
        return self._store

    @property
    def output_root(self):
        return self.driver.output_root

    def build(
        self,
        targets: tuple[TargetSpec, ...],
        cancel: threading.Event | None = None,
    ) -> list[BuildOutcome]:
        return self.driver.build_all(targets, cancel=cancel)

    def compute_plan(
        self,
        targets: tuple[TargetSpec, ...],
        failed_targets: list[BuildOutcome] | None = None,
        cancel: threading.Event | None = None,
    ) -> tuple[Manifest, SyncPlan]:
        """Index the output tree, list the remote and diff them.

        Deletes under a failed target's subdir are withheld so a broken build
        never unpublishes that target's previous binaries.
        """
        local = index(self.output_root, targets)
        remote = list_remote(self.store, self.config.remote.prefix, self.policy, cancel=cancel)
        sync_plan = plan(local, remote, self.config.sync.delete_stale)

        if failed_targets:
            failed_ids = {b.target_id for b in failed_targets}
            protected = [t.output_subdir for t in targets if t.id in failed_ids]
            withheld = withhold_deletes(sync_plan, protected)
            if len(withheld.deletes) < len(sync_plan.deletes):
                logger.warning(
                    f"Withholding {len(sync_plan.deletes) - len(withheld.deletes)} delete(s) "
                    "under failed targets"
                )
            sync_plan = withheld

        return local, sync_plan

    def sync(
        self,
        local: Manifest,
        sync_plan: SyncPlan,
        cancel: threading.Event | None = None,
    ) -> SyncResult:
        check_mass_delete(local, sync_plan, self.config.sync.allow_mass_delete)
        executor = SyncExecutor(
            self.store,
            self.output_root,
            local,
            policy=self.policy,
            concurrency=self.config.sync.concurrency,
            sleep=self._sleep,
        )
        return executor.execute(sync_plan, self.config.remote.prefix, cancel=cancel)

    def run(
        self,
        targets: tuple[TargetSpec, ...],
        build: bool = True,
        dry_run: bool = False,
        cancel: threading.Event | None = None,
    ) -> ReleaseReport:
        """Build (optionally), then plan and sync.

        Raises ConfigError, RemoteError or UnsafeSyncError on run-fatal
        conditions; per-target and per-path failures end up in the report.
        """
        cancel = cancel if cancel is not None else threading.Event()
        report = ReleaseReport()

        if build:
            report.builds = self.build(targets, cancel=cancel)
            if cancel.is_set():
                report.cancelled = True
                return report
            built = [b for b in report.builds if not b.failed]
            logger.info(f"Built {len(built)}/{len(report.builds)} target(s)")
            if report.build_failed and self.config.sync.fail_fast:
                logger.error("Build failed with fail_fast set; not syncing")
                return report

        report.local, report.plan = self.compute_plan(targets, report.failed_targets, cancel=cancel)
        if dry_run:
            return report

        report.result = self.sync(report.local, report.plan, cancel=cancel)
        report.cancelled = bool(report.result.cancelled)
        return report

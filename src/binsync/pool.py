"""Bounded worker pool shared by the build driver and the sync executor."""

import logging
import threading
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass, field
from typing import Callable, Generic, Hashable, TypeVar

logger = logging.getLogger(__name__)

K = TypeVar("K", bound=Hashable)
V = TypeVar("V")

_CANCELLED = object()


@dataclass
class PoolResult(Generic[K, V]):
    """Aggregated outcome of a pool run, collected after every task settled."""

    results: dict[K, V] = field(default_factory=dict)
    errors: dict[K, BaseException] = field(default_factory=dict)
    cancelled: list[K] = field(default_factory=list)


def run_bounded(
    keys: list[K],
    fn: Callable[[K], V],
    max_workers: int,
    cancel: threading.Event | None = None,
    stop_when: Callable[[V], bool] | None = None,
) -> PoolResult[K, V]:
    """Run ``fn`` for every key with at most ``max_workers`` in flight.

    Tasks that have not started when ``cancel`` is set are dropped and
    reported in ``cancelled``; tasks already running finish normally. If
    ``stop_when`` returns True for a result, unstarted tasks are dropped the
    same way without touching ``cancel``. Ctrl-C sets ``cancel`` and waits
    for in-flight tasks before returning.
    """
    cancel = cancel if cancel is not None else threading.Event()
    stopped = threading.Event()
    outcome: PoolResult[K, V] = PoolResult()
    if not keys:
        return outcome

    def guarded(key: K):
        if cancel.is_set() or stopped.is_set():
            return _CANCELLED
        value = fn(key)
        if stop_when is not None and stop_when(value):
            stopped.set()
        return value

    with ThreadPoolExecutor(max_workers=max_workers) as pool:
        futures = {pool.submit(guarded, key): key for key in keys}
        try:
            for _ in as_completed(futures):
                if cancel.is_set() or stopped.is_set():
                    for f in futures:
                        f.cancel()
        except KeyboardInterrupt:
            logger.warning("Interrupted; waiting for in-flight operations to finish")
            cancel.set()
            for f in futures:
                f.cancel()

    for future, key in futures.items():
        if future.cancelled():
            outcome.cancelled.append(key)
            continue
        error = future.exception()
        if error is not None:
            logger.error(f"Task {key} raised unexpected exception: {error!r}")
            outcome.errors[key] = error
            continue
        value = future.result()
        if value is _CANCELLED:
            outcome.cancelled.append(key)
        else:
            outcome.results[key] = value

    return outcome

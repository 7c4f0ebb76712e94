"""Sync planner: a pure diff of the local manifest against the remote one."""

from binsync.types import HASH_PREFERENCE, Manifest, ManifestEntry, SyncPlan


def entries_match(local: ManifestEntry, remote: ManifestEntry) -> bool:
    """Decide whether the remote copy already holds the local content.

    When both sides carry a digest of the same algorithm, it decides alone.
    Otherwise fall back to size and modification time: equal size and a
    remote copy at least as new as the local file count as unchanged. This
    weaker test may re-upload identical content but never skips a file
    that was modified after it was last published.
    """
    for algorithm in HASH_PREFERENCE:
        if algorithm in local.hashes and algorithm in remote.hashes:
            return local.hashes[algorithm] == remote.hashes[algorithm]

    if local.size_bytes != remote.size_bytes:
        return False
    if local.mtime is None or remote.mtime is None:
        return False
    return remote.mtime >= local.mtime


def plan(local: Manifest, remote: Manifest, delete_stale: bool) -> SyncPlan:
    """Compute uploads, deletes and skips.

    Remote-only paths are deleted only when ``delete_stale`` is set and are
    otherwise left out of the plan entirely. An empty ``local`` with
    ``delete_stale`` deletes everything; guarding against that is the
    caller's job.
    """
    uploads = set()
    skips = set()
    for path, entry in local.items():
        remote_entry = remote.get(path)
        if remote_entry is not None and entries_match(entry, remote_entry):
            skips.add(path)
        else:
            uploads.add(path)

    deletes = set()
    if delete_stale:
        deletes = {path for path in remote if path not in local}

    return SyncPlan(
        uploads=frozenset(uploads),
        deletes=frozenset(deletes),
        skips=frozenset(skips),
    )


def withhold_deletes(sync_plan: SyncPlan, protected_prefixes: list[str]) -> SyncPlan:
    """Drop deletes under any of the given path prefixes (e.g. failed targets' subdirs)."""
    prefixes = tuple(p.strip("/") + "/" for p in protected_prefixes if p.strip("/"))
    if not prefixes:
        return sync_plan
    kept = frozenset(p for p in sync_plan.deletes if not p.startswith(prefixes))
    return SyncPlan(uploads=sync_plan.uploads, deletes=kept, skips=sync_plan.skips)

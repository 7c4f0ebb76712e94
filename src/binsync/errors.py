"""Error taxonomy for binsync."""


class BinsyncError(Exception):
    """Base class for all binsync errors."""


class ConfigError(BinsyncError):
    """Malformed configuration or target registry. Fatal before any work."""


class BuildError(BinsyncError):
    """One target's toolchain invocation failed."""

    def __init__(self, target_id: str, cause: str):
        super().__init__(f"Build failed for {target_id}: {cause}")
        self.target_id = target_id
        self.cause = cause


class RemoteError(BinsyncError):
    """Listing, authentication or network failure against the remote store."""

    def __init__(self, message: str, transient: bool = False):
        super().__init__(message)
        self.transient = transient


class TransferError(BinsyncError):
    """A single upload or delete failed.

    ``kind`` is a short error classification (e.g. ``timeout``, ``http_503``,
    ``access_denied``) recorded in the sync result. Only transient errors are
    retried.
    """

    def __init__(self, path: str, kind: str, message: str = "", transient: bool = False):
        super().__init__(f"{path}: {kind}" + (f" ({message})" if message else ""))
        self.path = path
        self.kind = kind
        self.transient = transient


class UnsafeSyncError(BinsyncError):
    """The plan would delete every remote object because nothing was built."""

"""Object store protocol."""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Protocol

from binsync.types import ManifestEntry


@dataclass
class ListPage:
    """One page of a prefix listing. Entry paths are full object keys."""

    objects: list[ManifestEntry] = field(default_factory=list)
    next_token: str | None = None


class ObjectStore(Protocol):
    """Protocol for a remote bucket. Every operation is idempotent."""

    def list_page(self, prefix: str, token: str | None = None) -> ListPage:
        """List one page of objects under prefix. Raises RemoteError."""
        ...

    def put_object(self, key: str, local_path: Path, hashes: dict[str, str]) -> None:
        """Upload a whole file. Raises TransferError."""
        ...

    def delete_object(self, key: str) -> None:
        """Delete an object; deleting a missing key succeeds. Raises TransferError."""
        ...

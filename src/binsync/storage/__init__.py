"""Remote object storage module."""

from binsync.storage.base import ListPage, ObjectStore
from binsync.storage.factory import create_store
from binsync.storage.local import LocalObjectStore
from binsync.storage.s3 import S3ObjectStore

__all__ = ["ListPage", "LocalObjectStore", "ObjectStore", "S3ObjectStore", "create_store"]

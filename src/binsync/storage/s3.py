"""S3-compatible object store (AWS S3, Backblaze B2, MinIO)."""

import base64
import logging
from pathlib import Path

import boto3
from botocore.config import Config
from botocore.exceptions import (
    BotoCoreError,
    ClientError,
    ConnectionClosedError,
    ConnectTimeoutError,
    EndpointConnectionError,
    ReadTimeoutError,
)

from binsync.errors import RemoteError, TransferError
from binsync.storage.base import ListPage
from binsync.types import ManifestEntry

logger = logging.getLogger(__name__)

TRANSIENT_NETWORK_ERRORS = (
    ConnectionClosedError,
    ConnectTimeoutError,
    EndpointConnectionError,
    ReadTimeoutError,
)
TRANSIENT_ERROR_CODES = {
    "RequestTimeout",
    "RequestTimeTooSkewed",
    "SlowDown",
    "Throttling",
    "ThrottlingException",
    "ServiceUnavailable",
    "InternalError",
}


def classify_client_error(e: ClientError) -> tuple[str, bool]:
    """Return (error kind, transient) for a botocore ClientError."""
    error = e.response.get("Error", {})
    code = error.get("Code", "Unknown")
    status = e.response.get("ResponseMetadata", {}).get("HTTPStatusCode", 0) or 0
    transient = status >= 500 or status == 429 or code in TRANSIENT_ERROR_CODES
    kind = f"http_{status}" if status >= 500 else code
    return kind, transient


class S3ObjectStore:
    """Object store backed by any S3-compatible endpoint.

    Retries are left to the caller, so botocore's own retrying is disabled.
    """

    def __init__(
        self,
        bucket_name: str,
        region: str = "us-east-1",
        endpoint_url: str | None = None,
        aws_access_key_id: str | None = None,
        aws_secret_access_key: str | None = None,
        trust_etag: bool = True,
        page_size: int = 1000,
        client=None,
    ):
        self._bucket = bucket_name
        self.trust_etag = trust_etag
        self.page_size = page_size

        if client is not None:
            self._client = client
            return

        kwargs: dict = {
            "config": Config(
                region_name=region,
                signature_version="s3v4",
                retries={"max_attempts": 1, "mode": "standard"},
            ),
        }
        if aws_access_key_id and aws_secret_access_key:
            kwargs["aws_access_key_id"] = aws_access_key_id
            kwargs["aws_secret_access_key"] = aws_secret_access_key
        if endpoint_url:
            kwargs["endpoint_url"] = endpoint_url

        self._client = boto3.client("s3", **kwargs)

    def list_page(self, prefix: str, token: str | None = None) -> ListPage:
        kwargs = {"Bucket": self._bucket, "Prefix": prefix, "MaxKeys": self.page_size}
        if token:
            kwargs["ContinuationToken"] = token

        try:
            response = self._client.list_objects_v2(**kwargs)
        except ClientError as e:
            kind, transient = classify_client_error(e)
            raise RemoteError(f"Listing s3://{self._bucket}/{prefix} failed: {kind}", transient=transient) from e
        except TRANSIENT_NETWORK_ERRORS as e:
            raise RemoteError(f"Listing s3://{self._bucket}/{prefix} failed: {e}", transient=True) from e
        except BotoCoreError as e:
            # Includes NoCredentialsError
            raise RemoteError(f"Listing s3://{self._bucket}/{prefix} failed: {e}") from e

        objects = []
        for obj in response.get("Contents", []):
            key = obj["Key"]
            if key.endswith("/"):
                continue  # Folder placeholder
            objects.append(
                ManifestEntry(
                    relative_path=key,
                    size_bytes=obj["Size"],
                    hashes=self._hashes_from_etag(obj.get("ETag", "")),
                    mtime=obj["LastModified"].timestamp() if obj.get("LastModified") else None,
                )
            )

        next_token = response.get("NextContinuationToken") if response.get("IsTruncated") else None
        return ListPage(objects=objects, next_token=next_token)

    def _hashes_from_etag(self, etag: str) -> dict[str, str]:
        """A single-part upload's ETag is the MD5 of its content; multipart ETags are not."""
        etag = etag.strip('"')
        if not self.trust_etag or not etag or "-" in etag or len(etag) != 32:
            return {}
        return {"md5": etag.lower()}

    def put_object(self, key: str, local_path: Path, hashes: dict[str, str]) -> None:
        kwargs: dict = {"Bucket": self._bucket, "Key": key}
        if "md5" in hashes:
            kwargs["ContentMD5"] = base64.b64encode(bytes.fromhex(hashes["md5"])).decode()
        if "sha256" in hashes:
            kwargs["Metadata"] = {"sha256": hashes["sha256"]}

        try:
            with open(local_path, "rb") as f:
                self._client.put_object(Body=f, **kwargs)
            logger.debug(f"Uploaded s3://{self._bucket}/{key}")
        except ClientError as e:
            kind, transient = classify_client_error(e)
            raise TransferError(key, kind, str(e), transient=transient) from e
        except TRANSIENT_NETWORK_ERRORS as e:
            raise TransferError(key, "network", str(e), transient=True) from e
        except BotoCoreError as e:
            raise TransferError(key, type(e).__name__, str(e)) from e
        except OSError as e:
            raise TransferError(key, "local_io", str(e)) from e

    def delete_object(self, key: str) -> None:
        try:
            self._client.delete_object(Bucket=self._bucket, Key=key)
        except ClientError as e:
            kind, transient = classify_client_error(e)
            raise TransferError(key, kind, str(e), transient=transient) from e
        except TRANSIENT_NETWORK_ERRORS as e:
            raise TransferError(key, "network", str(e), transient=True) from e
        except BotoCoreError as e:
            raise TransferError(key, type(e).__name__, str(e)) from e

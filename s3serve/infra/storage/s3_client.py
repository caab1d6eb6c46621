"""S3-compatible storage client implementation.

This module provides an S3-compatible storage client that works with
AWS S3, MinIO, and other S3-compatible object storage services.

Dependencies:
    - boto3
    - botocore
"""

from __future__ import annotations

from datetime import datetime, timezone
from email.utils import format_datetime
from functools import lru_cache
from typing import Any

import boto3
from botocore.config import Config
from botocore.exceptions import (
    ClientError,
    ConnectionClosedError,
    ConnectTimeoutError,
    EndpointConnectionError,
    IncompleteReadError,
    ReadTimeoutError,
)

from s3serve.common.config import Settings, get_settings
from s3serve.infra.storage.client import (
    ObjectHead,
    ObjectNotFoundError,
    StorageError,
    StoredObject,
    TransientStorageError,
)

NOT_FOUND_CODES = {"NoSuchKey", "NotFound", "404"}
TRANSIENT_CODES = {
    "InternalError",
    "RequestTimeout",
    "ServiceUnavailable",
    "SlowDown",
    "Throttling",
    "ThrottlingException",
}
TRANSIENT_CONNECTION_ERRORS = (
    ConnectionClosedError,
    ConnectTimeoutError,
    EndpointConnectionError,
    IncompleteReadError,
    ReadTimeoutError,
    ConnectionResetError,
    TimeoutError,
)


def _format_http_date(value: Any) -> str | None:
    if value is None:
        return None
    if isinstance(value, datetime):
        aware = value if value.tzinfo is not None else value.replace(tzinfo=timezone.utc)
        return format_datetime(aware.astimezone(timezone.utc), usegmt=True)
    return str(value)


class S3StorageClient:
    """S3-compatible object storage client.

    Supports AWS S3, MinIO, and other S3-compatible services.
    Uses boto3 for all storage operations.
    """

    def __init__(
        self,
        *,
        settings: Settings,
        access_key_id: str | None = None,
        secret_access_key: str | None = None,
    ) -> None:
        """Initialize the S3 client with configuration from settings.

        Explicit credentials are used only when both are given; otherwise the
        credentials from settings apply, and boto3's default credential chain
        when those are empty too.

        Args:
            settings: Application settings containing S3 configuration.
            access_key_id: Optional access key overriding settings.
            secret_access_key: Optional secret key overriding settings.
        """
        self._settings = settings
        if not (access_key_id and secret_access_key):
            access_key_id = settings.S3_ACCESS_KEY_ID
            secret_access_key = settings.S3_SECRET_ACCESS_KEY
        self._client = self._build_client(
            settings,
            access_key_id=access_key_id,
            secret_access_key=secret_access_key,
        )

    @staticmethod
    def _build_client(
        settings: Settings,
        *,
        access_key_id: str | None,
        secret_access_key: str | None,
    ) -> Any:
        """Create a boto3 S3 client from settings."""
        config = Config(s3={"addressing_style": settings.S3_ADDRESSING_STYLE})
        return boto3.client(
            "s3",
            endpoint_url=settings.S3_ENDPOINT_URL,
            region_name=settings.S3_REGION,
            aws_access_key_id=access_key_id,
            aws_secret_access_key=secret_access_key,
            use_ssl=bool(settings.S3_USE_SSL),
            config=config,
        )

    def get_object(self, *, bucket: str, object_key: str) -> StoredObject:
        """Fetch metadata and content of an object."""
        try:
            response = self._client.get_object(Bucket=bucket, Key=object_key)
            stream = response["Body"]
            try:
                body = stream.read()
            finally:
                stream.close()
        except ClientError as exc:
            raise self._translate_client_error(exc, bucket, object_key) from exc
        except TRANSIENT_CONNECTION_ERRORS as exc:
            raise TransientStorageError(f"Failed to reach storage: {exc}") from exc
        except Exception as exc:
            raise StorageError(f"Failed to get object: {exc}") from exc

        size = response.get("ContentLength")
        head = ObjectHead(
            content_type=response.get("ContentType"),
            size_bytes=int(size) if size is not None else None,
            etag=response.get("ETag"),
            last_modified=_format_http_date(response.get("LastModified")),
        )
        return StoredObject(key=object_key, head=head, body=body)

    @staticmethod
    def _translate_client_error(
        exc: ClientError, bucket: str, object_key: str
    ) -> StorageError:
        error = exc.response.get("Error", {})
        code = str(error.get("Code", ""))
        status = exc.response.get("ResponseMetadata", {}).get("HTTPStatusCode")
        if code in NOT_FOUND_CODES:
            return ObjectNotFoundError(bucket, object_key)
        if code in TRANSIENT_CODES or (status is not None and int(status) >= 500):
            return TransientStorageError(f"Storage service error: {exc}")
        return StorageError(f"Failed to get object: {exc}")


@lru_cache(maxsize=1)
def get_storage_client() -> S3StorageClient:
    """Process-wide client shared by gateways configured without credentials."""
    return S3StorageClient(settings=get_settings())

"""Storage client protocol and data types.

This module defines the read-only interface the gateway needs from an
object storage backend, together with the error hierarchy used to tell
missing objects and transient failures apart from fatal ones.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol


class StorageError(RuntimeError):
    """Raised when object storage operations fail."""


class ObjectNotFoundError(StorageError):
    """Raised when the requested key does not exist in the bucket."""

    def __init__(self, bucket: str, object_key: str) -> None:
        super().__init__(f"Object not found: s3://{bucket}/{object_key}")
        self.bucket = bucket
        self.object_key = object_key


class TransientStorageError(StorageError):
    """Raised for failures that are likely temporary and safe to retry."""


@dataclass(frozen=True, slots=True)
class ObjectHead:
    """Metadata facet of a stored object."""

    content_type: str | None
    size_bytes: int | None
    etag: str | None
    last_modified: str | None


@dataclass(frozen=True, slots=True)
class StoredObject:
    """A fetched object: its metadata and its full content."""

    key: str
    head: ObjectHead
    body: bytes


class StorageClient(Protocol):
    """Protocol defining the interface for object storage backends.

    Implementations must classify failures into the error hierarchy above so
    callers can decide what to retry.
    """

    def get_object(self, *, bucket: str, object_key: str) -> StoredObject:
        """Fetch metadata and content of an object.

        Args:
            bucket: Source bucket name.
            object_key: Object key (path) in the bucket.

        Returns:
            StoredObject holding the metadata and the raw content.

        Raises:
            ObjectNotFoundError: If the key does not exist.
            TransientStorageError: On connection resets, timeouts or
                backend service errors.
            StorageError: If the operation fails for any other reason.
        """
        ...

"""Object lookup service.

Resolves request paths to object keys and fetches objects from storage with a
bounded retry on transient failures.
"""

from __future__ import annotations

import logging
from urllib.parse import unquote_plus

from s3serve.common.config import DEFAULT_MAX_ATTEMPTS
from s3serve.infra.storage.client import (
    StorageClient,
    StoredObject,
    TransientStorageError,
)

logger = logging.getLogger("s3serve.gateway")

TRANSIENT_ERRORS: tuple[type[BaseException], ...] = (
    TransientStorageError,
    ConnectionResetError,
    TimeoutError,
)


def resolve_path_info(raw_path: str) -> str:
    """Percent-decode a raw request path."""
    return unquote_plus(raw_path)


def resolve_object_key(raw_path: str) -> str:
    """Map a raw request path to an object key.

    The path is decoded first, then exactly one leading slash is removed.
    """
    path_info = resolve_path_info(raw_path)
    if path_info.startswith("/"):
        return path_info[1:]
    return path_info


def is_transient(exc: BaseException) -> bool:
    return isinstance(exc, TRANSIENT_ERRORS)


class ObjectService:
    """Fetches objects from one bucket, retrying transient failures."""

    def __init__(
        self,
        storage: StorageClient,
        bucket: str,
        *,
        max_attempts: int = DEFAULT_MAX_ATTEMPTS,
    ) -> None:
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        self.storage = storage
        self.bucket = bucket
        self.max_attempts = max_attempts

    def fetch(self, object_key: str) -> StoredObject:
        """Fetch an object, making at most ``max_attempts`` storage calls.

        ObjectNotFoundError and unclassified errors propagate on the first
        occurrence. When every attempt fails transiently the last error is
        re-raised unchanged.
        """
        attempt = 1
        while True:
            try:
                return self.storage.get_object(
                    bucket=self.bucket, object_key=object_key
                )
            except Exception as exc:
                if not is_transient(exc):
                    raise
                if attempt >= self.max_attempts:
                    logger.error(
                        "object_fetch_exhausted bucket=%s key=%s attempts=%s error=%s",
                        self.bucket,
                        object_key,
                        attempt,
                        exc,
                        extra={
                            "extra": {
                                "bucket": self.bucket,
                                "object_key": object_key,
                                "attempts": attempt,
                                "exception": repr(exc),
                            }
                        },
                    )
                    raise
                logger.warning(
                    "object_fetch_retry bucket=%s key=%s attempt=%s error=%s",
                    self.bucket,
                    object_key,
                    attempt,
                    exc,
                    extra={
                        "extra": {
                            "bucket": self.bucket,
                            "object_key": object_key,
                            "attempt": attempt,
                            "exception": repr(exc),
                        }
                    },
                )
                attempt += 1

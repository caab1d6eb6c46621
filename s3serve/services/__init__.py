"""Application services."""

from .object_service import (
    ObjectService,
    is_transient,
    resolve_object_key,
    resolve_path_info,
)

__all__ = [
    "ObjectService",
    "is_transient",
    "resolve_object_key",
    "resolve_path_info",
]

"""Object gateway.

``ObjectGateway`` is a terminal ASGI application serving the objects of one
bucket. Mount it behind other middleware, under any path prefix::

    app.mount("/thumbs", ObjectGateway({"bucket": "my-special-things"}))

Credentials are optional. When both ``accessKeyId`` and ``secretAccessKey``
are given the gateway builds its own storage client with them. Without
credentials it builds one from the ``settings`` it was given, or shares the
process-wide client when no settings were passed.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from typing import Any
from urllib.parse import quote, unquote

from starlette.concurrency import run_in_threadpool
from starlette.datastructures import Headers
from starlette.responses import Response
from starlette.types import Receive, Scope, Send
from starlette.websockets import WebSocketClose

from s3serve.common.config import Settings, get_settings
from s3serve.infra.storage.client import (
    ObjectNotFoundError,
    StorageClient,
    StoredObject,
)
from s3serve.infra.storage.s3_client import S3StorageClient, get_storage_client
from s3serve.services.object_service import (
    ObjectService,
    resolve_object_key,
    resolve_path_info,
)

logger = logging.getLogger("s3serve.gateway")


@dataclass(frozen=True, slots=True)
class GatewayConfig:
    bucket: str
    access_key_id: str | None = None
    secret_access_key: str | None = None

    def __post_init__(self) -> None:
        if not self.bucket:
            raise ValueError("bucket is required")

    @property
    def has_credentials(self) -> bool:
        return bool(self.access_key_id and self.secret_access_key)

    @classmethod
    def from_mapping(cls, options: Mapping[str, Any]) -> "GatewayConfig":
        """Build a config from ``bucket``/``accessKeyId``/``secretAccessKey``.

        Snake-case credential keys are accepted as well.
        """
        bucket = options.get("bucket")
        if not bucket:
            raise ValueError("bucket is required")
        return cls(
            bucket=str(bucket),
            access_key_id=options.get("accessKeyId", options.get("access_key_id")),
            secret_access_key=options.get(
                "secretAccessKey", options.get("secret_access_key")
            ),
        )


@dataclass(frozen=True, slots=True)
class GatewayRequest:
    path: str
    method: str = "GET"
    headers: Mapping[str, str] = field(default_factory=dict)


@dataclass(frozen=True, slots=True)
class GatewayResponse:
    status_code: int
    headers: dict[str, str]
    body: bytes = b""


@dataclass(slots=True)
class RequestContext:
    """State of a single request. Never shared between requests."""

    request: GatewayRequest
    _object: StoredObject | None = field(default=None, repr=False)

    @property
    def path_info(self) -> str:
        return resolve_path_info(self.request.path)

    @property
    def object_key(self) -> str:
        return resolve_object_key(self.request.path)

    def remote_object(self, loader: Callable[[str], StoredObject]) -> StoredObject:
        if self._object is None:
            self._object = loader(self.object_key)
        return self._object


def _route_raw_path(scope: Scope) -> str:
    """Return the still-encoded request path relative to the mount point."""
    raw_path = scope.get("raw_path")
    if raw_path:
        path = raw_path.decode("latin-1")
    else:
        path = quote(scope["path"])
    path = path.split("?", 1)[0]
    root_path = scope.get("root_path", "")
    if not root_path:
        return path
    # mounts match on the decoded path, so the prefix is found segment by segment
    end = 0
    while end < len(path):
        end = path.find("/", end + 1)
        if end == -1:
            end = len(path)
        if unquote(path[:end]) == root_path:
            return path[end:]
    return path


class ObjectGateway:
    def __init__(
        self,
        config: GatewayConfig | Mapping[str, Any],
        storage: StorageClient | None = None,
        *,
        settings: Settings | None = None,
    ) -> None:
        if not isinstance(config, GatewayConfig):
            config = GatewayConfig.from_mapping(config)
        if storage is None:
            storage = self._establish_storage(config, settings)
        settings = settings or get_settings()
        self.config = config
        self.objects = ObjectService(
            storage, config.bucket, max_attempts=settings.S3_MAX_ATTEMPTS
        )

    @staticmethod
    def _establish_storage(
        config: GatewayConfig, settings: Settings | None
    ) -> StorageClient:
        if config.has_credentials:
            return S3StorageClient(
                settings=settings or get_settings(),
                access_key_id=config.access_key_id,
                secret_access_key=config.secret_access_key,
            )
        if settings is not None:
            return S3StorageClient(settings=settings)
        return get_storage_client()

    def handle(self, request: GatewayRequest) -> GatewayResponse:
        """Serve one request. Blocks for the whole fetch, retries included."""
        ctx = RequestContext(request)
        try:
            stored = ctx.remote_object(self.objects.fetch)
        except ObjectNotFoundError:
            return self._not_found(ctx)
        return GatewayResponse(
            status_code=200,
            headers=self._headers(stored),
            body=stored.body,
        )

    @staticmethod
    def _headers(stored: StoredObject) -> dict[str, str]:
        head = stored.head
        size = head.size_bytes if head.size_bytes is not None else len(stored.body)
        candidates = {
            "Content-Type": head.content_type,
            "Content-Length": str(size),
            "Etag": head.etag,
            "Last-Modified": head.last_modified,
        }
        return {name: value for name, value in candidates.items() if value is not None}

    def _not_found(self, ctx: RequestContext) -> GatewayResponse:
        logger.info(
            "object_not_found bucket=%s key=%s",
            self.config.bucket,
            ctx.object_key,
            extra={
                "extra": {
                    "bucket": self.config.bucket,
                    "object_key": ctx.object_key,
                    "path": ctx.request.path,
                }
            },
        )
        body = f"File not found: {ctx.request.path}\n".encode("utf-8")
        return GatewayResponse(
            status_code=404,
            headers={
                "Content-Type": "text/plain",
                "Content-Length": str(len(body)),
            },
            body=body,
        )

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] == "websocket":
            await WebSocketClose()(scope, receive, send)
            return
        if scope["type"] != "http":
            raise RuntimeError(f"Unsupported ASGI scope type: {scope['type']}")
        request = GatewayRequest(
            path=_route_raw_path(scope),
            method=scope["method"],
            headers=Headers(scope=scope),
        )
        result = await run_in_threadpool(self.handle, request)
        response = Response(
            content=result.body,
            status_code=result.status_code,
            headers=result.headers,
        )
        await response(scope, receive, send)

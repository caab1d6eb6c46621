import logging

import uvicorn
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from s3serve import __version__
from s3serve.api.gateway import GatewayConfig, ObjectGateway
from s3serve.common.config import get_settings
from s3serve.common.logging import setup_logging
from s3serve.infra.observability.middleware import RequestLoggingMiddleware
from s3serve.infra.storage.client import StorageClient

ERROR_CODE_BY_STATUS = {
    404: "not_found",
    405: "method_not_allowed",
    500: "internal_error",
    502: "bad_gateway",
    503: "service_unavailable",
}


def _resolve_error_code(status_code: int) -> str:
    return ERROR_CODE_BY_STATUS.get(status_code, "unknown_error")


def create_app(storage: StorageClient | None = None) -> FastAPI:
    settings = get_settings()
    setup_logging(settings.LOG_LEVEL)
    if not settings.S3_BUCKET:
        raise ValueError("S3_BUCKET must name the bucket to serve.")

    gateway = ObjectGateway(
        GatewayConfig(
            bucket=settings.S3_BUCKET,
            access_key_id=settings.S3_ACCESS_KEY_ID,
            secret_access_key=settings.S3_SECRET_ACCESS_KEY,
        ),
        storage,
        settings=settings,
    )

    # the gateway owns every path under its mount point
    app = FastAPI(
        title="s3serve",
        version=__version__,
        description="Serves objects of an S3 bucket over HTTP",
        docs_url=None,
        redoc_url=None,
        openapi_url=None,
    )

    # Optional CORS
    if settings.CORS_ENABLED:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=settings.CORS_ORIGINS or ["*"],
            allow_methods=["GET", "HEAD"],
            allow_headers=["*"],
        )

    app.add_middleware(RequestLoggingMiddleware)

    @app.on_event("startup")
    def on_startup() -> None:
        startup_logger = logging.getLogger("s3serve.startup")
        startup_logger.info(
            "Serving bucket %s at %s (max_attempts=%s, endpoint=%s)",
            settings.S3_BUCKET,
            settings.GATEWAY_MOUNT_PATH,
            settings.S3_MAX_ATTEMPTS,
            settings.S3_ENDPOINT_URL or "<default>",
        )

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException):
        logger = logging.getLogger("http")
        logger.log(
            logging.WARNING if exc.status_code < 500 else logging.ERROR,
            "http_exception status=%s detail=%s method=%s path=%s request_id=%s",
            exc.status_code,
            exc.detail,
            request.method,
            request.url.path,
            request.headers.get("X-Request-Id"),
            extra={
                "extra": {
                    "status": exc.status_code,
                    "detail": exc.detail,
                    "method": request.method,
                    "path": request.url.path,
                    "request_id": request.headers.get("X-Request-Id"),
                }
            },
        )
        return JSONResponse(
            status_code=exc.status_code,
            media_type="application/problem+json",
            content={
                "type": "about:blank",
                "title": "HTTP Error",
                "status": exc.status_code,
                "detail": exc.detail,
                "error_code": _resolve_error_code(exc.status_code),
                "instance": str(request.url),
                "request_id": request.headers.get("X-Request-Id"),
            },
        )

    if settings.HEALTH_ENABLED:

        @app.get("/health")
        async def health():
            return {"status": "ok", "bucket": settings.S3_BUCKET}

    app.mount(settings.GATEWAY_MOUNT_PATH, gateway, name="objects")
    return app


if __name__ == "__main__":
    uvicorn.run("s3serve.main:create_app", factory=True, host="0.0.0.0", port=8000)

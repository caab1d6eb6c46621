from __future__ import annotations

import pytest

from s3serve.common.config import get_settings
from s3serve.infra.storage.s3_client import get_storage_client

SETTINGS_ENV_KEYS = (
    "S3_BUCKET",
    "S3_ACCESS_KEY_ID",
    "S3_SECRET_ACCESS_KEY",
    "S3_ENDPOINT_URL",
    "S3_REGION",
    "S3_USE_SSL",
    "S3_ADDRESSING_STYLE",
    "S3_MAX_ATTEMPTS",
    "GATEWAY_MOUNT_PATH",
    "HEALTH_ENABLED",
    "CORS_ENABLED",
    "CORS_ORIGINS",
    "LOG_LEVEL",
)


@pytest.fixture(autouse=True)
def isolated_settings(monkeypatch, tmp_path):
    # keep a developer's .env out of the tests
    monkeypatch.setattr("s3serve.common.config.ENV_FILE", tmp_path / ".env")
    for key in SETTINGS_ENV_KEYS:
        monkeypatch.delenv(key, raising=False)
    get_settings.cache_clear()  # type: ignore[attr-defined]
    get_storage_client.cache_clear()  # type: ignore[attr-defined]
    yield
    get_settings.cache_clear()  # type: ignore[attr-defined]
    get_storage_client.cache_clear()  # type: ignore[attr-defined]

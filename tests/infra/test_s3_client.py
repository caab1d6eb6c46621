"""Tests for S3 storage client."""

import io
from datetime import datetime, timezone
from unittest.mock import MagicMock, patch

import pytest
from botocore.exceptions import (
    ClientError,
    ConnectTimeoutError,
    EndpointConnectionError,
    ReadTimeoutError,
)

from s3serve.common.config import Settings
from s3serve.infra.storage.client import (
    ObjectNotFoundError,
    StorageError,
    StoredObject,
    TransientStorageError,
)
from s3serve.infra.storage.s3_client import S3StorageClient, get_storage_client


def _client_error(code: str, status: int) -> ClientError:
    return ClientError(
        {
            "Error": {"Code": code, "Message": f"{code} message"},
            "ResponseMetadata": {"HTTPStatusCode": status},
        },
        "GetObject",
    )


@pytest.fixture
def settings():
    return Settings(
        S3_ENDPOINT_URL="http://localhost:9000",
        S3_REGION="us-east-1",
        S3_ACCESS_KEY_ID="test-key",
        S3_SECRET_ACCESS_KEY="test-secret",
        S3_USE_SSL=False,
        S3_ADDRESSING_STYLE="path",
    )


class TestS3StorageClient:
    """Test S3StorageClient implementation."""

    @pytest.fixture
    def mock_s3(self):
        """Mock boto3 S3 client."""
        mock_client = MagicMock()
        with patch.object(S3StorageClient, "_build_client", return_value=mock_client):
            yield mock_client

    @pytest.fixture
    def client(self, mock_s3, settings):
        """Create S3StorageClient with mocked boto3."""
        return S3StorageClient(settings=settings)

    def test_get_object(self, client, mock_s3):
        """Test fetching metadata and content."""
        mock_s3.get_object.return_value = {
            "Body": io.BytesIO(b"png-bytes"),
            "ContentType": "image/png",
            "ContentLength": 9,
            "ETag": '"abc"',
            "LastModified": datetime(2024, 1, 1, tzinfo=timezone.utc),
        }

        result = client.get_object(bucket="test-bucket", object_key="img/foo.png")

        assert isinstance(result, StoredObject)
        assert result.key == "img/foo.png"
        assert result.body == b"png-bytes"
        assert result.head.content_type == "image/png"
        assert result.head.size_bytes == 9
        assert result.head.etag == '"abc"'
        assert result.head.last_modified == "Mon, 01 Jan 2024 00:00:00 GMT"
        mock_s3.get_object.assert_called_once_with(
            Bucket="test-bucket", Key="img/foo.png"
        )

    def test_get_object_closes_body(self, client, mock_s3):
        """The streaming body is closed once read."""
        body = io.BytesIO(b"data")
        mock_s3.get_object.return_value = {"Body": body}

        client.get_object(bucket="test-bucket", object_key="key")

        assert body.closed

    def test_get_object_missing_metadata(self, client, mock_s3):
        """Absent metadata fields stay None."""
        mock_s3.get_object.return_value = {"Body": io.BytesIO(b"")}

        result = client.get_object(bucket="test-bucket", object_key="key")

        assert result.head.content_type is None
        assert result.head.size_bytes is None
        assert result.head.etag is None
        assert result.head.last_modified is None

    def test_naive_last_modified_is_treated_as_utc(self, client, mock_s3):
        mock_s3.get_object.return_value = {
            "Body": io.BytesIO(b"x"),
            "LastModified": datetime(2024, 1, 1, 12, 30),
        }

        result = client.get_object(bucket="test-bucket", object_key="key")

        assert result.head.last_modified == "Mon, 01 Jan 2024 12:30:00 GMT"

    @pytest.mark.parametrize("code", ["NoSuchKey", "NotFound", "404"])
    def test_not_found_codes(self, client, mock_s3, code):
        mock_s3.get_object.side_effect = _client_error(code, 404)

        with pytest.raises(ObjectNotFoundError) as excinfo:
            client.get_object(bucket="test-bucket", object_key="missing.png")

        assert excinfo.value.bucket == "test-bucket"
        assert excinfo.value.object_key == "missing.png"

    @pytest.mark.parametrize(
        ("code", "status"),
        [("InternalError", 500), ("SlowDown", 503), ("ServiceUnavailable", 503)],
    )
    def test_service_errors_are_transient(self, client, mock_s3, code, status):
        mock_s3.get_object.side_effect = _client_error(code, status)

        with pytest.raises(TransientStorageError, match="Storage service error"):
            client.get_object(bucket="test-bucket", object_key="key")

    @pytest.mark.parametrize(
        "exc",
        [
            EndpointConnectionError(endpoint_url="http://localhost:9000"),
            ConnectTimeoutError(endpoint_url="http://localhost:9000"),
            ReadTimeoutError(endpoint_url="http://localhost:9000"),
            ConnectionResetError("reset by peer"),
            TimeoutError("timed out"),
        ],
    )
    def test_connection_errors_are_transient(self, client, mock_s3, exc):
        mock_s3.get_object.side_effect = exc

        with pytest.raises(TransientStorageError, match="Failed to reach storage"):
            client.get_object(bucket="test-bucket", object_key="key")

    def test_read_timeout_while_streaming_is_transient(self, client, mock_s3):
        body = MagicMock()
        body.read.side_effect = ReadTimeoutError(endpoint_url="http://localhost:9000")
        mock_s3.get_object.return_value = {"Body": body}

        with pytest.raises(TransientStorageError):
            client.get_object(bucket="test-bucket", object_key="key")
        body.close.assert_called_once()

    def test_access_denied_is_fatal(self, client, mock_s3):
        mock_s3.get_object.side_effect = _client_error("AccessDenied", 403)

        with pytest.raises(StorageError, match="Failed to get object") as excinfo:
            client.get_object(bucket="test-bucket", object_key="key")

        assert not isinstance(excinfo.value, TransientStorageError)
        assert not isinstance(excinfo.value, ObjectNotFoundError)

    def test_unexpected_exception(self, client, mock_s3):
        mock_s3.get_object.side_effect = Exception("S3 error")

        with pytest.raises(StorageError, match="Failed to get object"):
            client.get_object(bucket="test-bucket", object_key="key")


class TestClientConstruction:
    def test_explicit_credentials_override_settings(self, settings):
        with patch("s3serve.infra.storage.s3_client.boto3.client") as factory:
            S3StorageClient(
                settings=settings,
                access_key_id="explicit-key",
                secret_access_key="explicit-secret",
            )

        kwargs = factory.call_args.kwargs
        assert factory.call_args.args == ("s3",)
        assert kwargs["aws_access_key_id"] == "explicit-key"
        assert kwargs["aws_secret_access_key"] == "explicit-secret"
        assert kwargs["endpoint_url"] == "http://localhost:9000"
        assert kwargs["region_name"] == "us-east-1"
        assert kwargs["use_ssl"] is False

    def test_partial_credentials_fall_back_to_settings(self, settings):
        with patch("s3serve.infra.storage.s3_client.boto3.client") as factory:
            S3StorageClient(settings=settings, access_key_id="only-key")

        kwargs = factory.call_args.kwargs
        assert kwargs["aws_access_key_id"] == "test-key"
        assert kwargs["aws_secret_access_key"] == "test-secret"

    def test_construction_errors_propagate(self, settings):
        with patch(
            "s3serve.infra.storage.s3_client.boto3.client",
            side_effect=ValueError("Invalid endpoint"),
        ) as factory:
            with pytest.raises(ValueError, match="Invalid endpoint"):
                S3StorageClient(settings=settings)
        factory.assert_called_once()

    def test_default_client_is_shared(self, monkeypatch):
        monkeypatch.setenv("S3_REGION", "eu-west-1")
        with patch("s3serve.infra.storage.s3_client.boto3.client") as factory:
            first = get_storage_client()
            second = get_storage_client()

        assert first is second
        factory.assert_called_once()
        assert factory.call_args.kwargs["region_name"] == "eu-west-1"

# tests/unit/test_exceptions.py

import pytest

from logbucket.exceptions import (
    ConfigurationError,
    DownloadError,
    ListingError,
    LogBucketError,
    MetadataResolutionError,
    NonRetryableError,
    ProcessedObjectsError,
    RetryableError,
    S3AccessDeniedError,
    S3ClientError,
    S3Error,
    S3ObjectNotFoundError,
    S3ThrottlingError,
    S3TimeoutError,
    get_error_context,
    is_retryable_error,
)


class TestLogBucketError:
    """Test the base LogBucketError class."""

    def test_basic_initialization(self):
        """Test basic error initialization."""
        error = LogBucketError("Test message")
        assert str(error) == "Test message"
        assert error.message == "Test message"
        assert error.error_code == "LogBucketError"
        assert error.context == {}
        assert error.correlation_id is None

    def test_context_is_copied(self):
        """The caller's dict must not be shared with the exception."""
        context = {"key": "value"}
        error = LogBucketError("Test message", context=context)
        context["key"] = "changed"
        assert error.context == {"key": "value"}

    def test_to_dict(self):
        """Test conversion to dictionary."""
        error = LogBucketError(
            "Test message",
            error_code="TEST_CODE",
            context={"key": "value"},
            correlation_id="test-123",
        )
        assert error.to_dict() == {
            "error_type": "LogBucketError",
            "error_code": "TEST_CODE",
            "message": "Test message",
            "context": {"key": "value"},
            "correlation_id": "test-123",
            "retryable": False,
        }


class TestS3Errors:
    """Test S3-related error classes."""

    def test_s3_object_not_found_error(self):
        error = S3ObjectNotFoundError("test-bucket", "test-key")
        assert "s3://test-bucket/test-key" in str(error)
        assert error.error_code == "S3_OBJECT_NOT_FOUND"
        assert error.context == {"bucket": "test-bucket", "key": "test-key"}
        assert isinstance(error, NonRetryableError)
        assert isinstance(error, S3Error)

    def test_s3_access_denied_error_keeps_extra_context(self):
        error = S3AccessDeniedError("b", "k", context={"aws_error_code": "AccessDenied"})
        assert "Access denied" in str(error)
        assert error.context == {"bucket": "b", "key": "k", "aws_error_code": "AccessDenied"}
        assert isinstance(error, NonRetryableError)

    def test_s3_throttling_error(self):
        error = S3ThrottlingError("GetObject")
        assert "throttled" in str(error)
        assert error.error_code == "S3_THROTTLING"
        assert error.context["operation"] == "GetObject"
        assert isinstance(error, RetryableError)

    def test_s3_timeout_error_accepts_custom_code(self):
        error = S3TimeoutError(
            "GetObject", 30.0, error_code="S3_READ_TIMEOUT", context={"key": "k"}
        )
        assert "30.0s" in str(error)
        assert error.error_code == "S3_READ_TIMEOUT"
        assert error.context == {"key": "k", "operation": "GetObject", "timeout_seconds": 30.0}
        assert isinstance(error, RetryableError)

    def test_s3_client_error_is_not_retryable(self):
        error = S3ClientError("ListObjectsV2", "Internal error")
        assert error.error_code == "S3_CLIENT_ERROR"
        assert not is_retryable_error(error)


class TestPipelineErrors:
    def test_listing_error(self):
        error = ListingError("bucket", "logs/x", "denied", context={"entity": "my-lb"})
        assert "Error listing/paging bucket objects" in str(error)
        assert error.error_code == "LISTING_FAILED"
        assert error.context == {"entity": "my-lb", "bucket": "bucket", "prefix": "logs/x"}
        assert not is_retryable_error(error)

    def test_download_error(self):
        error = DownloadError("k", "disk full")
        assert error.error_code == "DOWNLOAD_FAILED"
        assert error.context["key"] == "k"
        assert is_retryable_error(error)

    def test_processed_objects_error(self):
        error = ProcessedObjectsError("my-lb", "timeout")
        assert error.context == {"entity": "my-lb"}
        assert is_retryable_error(error)

    def test_processed_objects_error_keeps_extra_context(self):
        error = ProcessedObjectsError("my-lb", "timeout", context={"cause": "ReadTimeout"})
        assert error.context == {"cause": "ReadTimeout", "entity": "my-lb"}

    def test_metadata_resolution_error(self):
        error = MetadataResolutionError("no region")
        assert error.error_code == "METADATA_RESOLUTION_FAILED"
        assert isinstance(error, NonRetryableError)


class TestConfigurationErrors:
    def test_configuration_error(self):
        error = ConfigurationError("bad")
        assert error.error_code == "CONFIGURATION_ERROR"
        assert isinstance(error, NonRetryableError)


class TestUtilities:
    def test_get_error_context_for_service_error(self):
        error = DownloadError("k", "boom")
        assert get_error_context(error) == error.to_dict()

    @pytest.mark.parametrize("error", [ValueError("x"), RuntimeError("y")])
    def test_get_error_context_for_foreign_error(self, error):
        context = get_error_context(error)
        assert context["error_type"] == type(error).__name__
        assert context["retryable"] is False
        assert not is_retryable_error(error)

# src/logbucket/exceptions.py

"""
Shared custom exceptions for the logbucket service.

Centralizing exception definitions in a separate module prevents circular
import errors between other modules that need to raise or catch them.

Exception Hierarchy:
- LogBucketError (base)
  - RetryableError (can be retried)
    - S3ThrottlingError
    - S3TimeoutError
    - DownloadError
    - ProcessedObjectsError
  - NonRetryableError (should not be retried)
    - S3AccessDeniedError
    - S3ObjectNotFoundError
    - ConfigurationError
    - MetadataResolutionError
  - S3ClientError (unclassified S3 failures)
  - ListingError (fatal to the pipeline)
"""

from typing import Any, Dict, Optional


class LogBucketError(Exception):
    """Base exception for all logbucket service errors."""

    def __init__(
        self,
        message: str,
        error_code: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
        correlation_id: Optional[str] = None,
    ):
        super().__init__(message)
        self.message = message
        self.error_code = error_code or self.__class__.__name__
        self.context = dict(context) if context else {}  # Copy context to prevent mutation
        self.correlation_id = correlation_id

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to dictionary for structured logging."""
        return {
            "error_type": self.__class__.__name__,
            "error_code": self.error_code,
            "message": self.message,
            "context": self.context,
            "correlation_id": self.correlation_id,
            "retryable": isinstance(self, RetryableError),
        }


class RetryableError(LogBucketError):
    """Base class for errors that can be retried."""
    pass


class NonRetryableError(LogBucketError):
    """Base class for errors that should not be retried."""
    pass


# === S3-Related Errors ===

class S3Error(LogBucketError):
    """Base class for S3-related errors."""
    pass


class S3ObjectNotFoundError(S3Error, NonRetryableError):
    """Raised when a requested S3 object does not exist."""

    def __init__(self, bucket: str, key: str, **kwargs):
        message = f"S3 object not found: s3://{bucket}/{key}"
        context = {"bucket": bucket, "key": key}
        context.update(kwargs.pop("context", None) or {})
        super().__init__(message, error_code="S3_OBJECT_NOT_FOUND", context=context, **kwargs)


class S3AccessDeniedError(S3Error, NonRetryableError):
    """Raised when access is denied to an S3 bucket or object."""

    def __init__(self, bucket: str, key: str, **kwargs):
        message = f"Access denied to S3 object: s3://{bucket}/{key}"
        context = {"bucket": bucket, "key": key}
        context.update(kwargs.pop("context", None) or {})
        super().__init__(message, error_code="S3_ACCESS_DENIED", context=context, **kwargs)


class S3ThrottlingError(S3Error, RetryableError):
    """Raised when S3 operations are being throttled."""

    def __init__(self, operation: str, **kwargs):
        message = f"S3 operation throttled: {operation}"
        context = dict(kwargs.pop("context", None) or {})
        context.update({"operation": operation})
        kwargs.setdefault("error_code", "S3_THROTTLING")
        super().__init__(message, context=context, **kwargs)


class S3TimeoutError(S3Error, RetryableError):
    """Raised when S3 operations timeout."""

    def __init__(self, operation: str, timeout_seconds: float, **kwargs):
        message = f"S3 operation timed out after {timeout_seconds}s: {operation}"
        # Start with provided context, then add our default context
        context = {}
        if "context" in kwargs:
            context.update(kwargs.pop("context") or {})
        # Add our default context (this will override any conflicting keys)
        context.update({"operation": operation, "timeout_seconds": timeout_seconds})
        kwargs.setdefault("error_code", "S3_TIMEOUT")
        super().__init__(message, context=context, **kwargs)


class S3ClientError(S3Error):
    """Raised for S3 client errors that have no more specific mapping."""

    def __init__(self, operation: str, aws_error_message: str, **kwargs):
        message = f"S3 client error during {operation}: {aws_error_message}"
        context = dict(kwargs.pop("context", None) or {})
        context.update({"operation": operation})
        kwargs.setdefault("error_code", "S3_CLIENT_ERROR")
        super().__init__(message, context=context, **kwargs)


# === Pipeline Errors ===

class ListingError(LogBucketError):
    """Raised when a bucket listing cannot be completed. Fatal to the pipeline."""

    def __init__(self, bucket: str, prefix: str, reason: str, **kwargs):
        message = f"Error listing/paging bucket objects in s3://{bucket}/{prefix}: {reason}"
        context = dict(kwargs.pop("context", None) or {})
        context.update({"bucket": bucket, "prefix": prefix})
        super().__init__(message, error_code="LISTING_FAILED", context=context, **kwargs)


class DownloadError(RetryableError):
    """Raised when a single object cannot be materialized locally."""

    def __init__(self, key: str, reason: str, **kwargs):
        message = f"Error downloading object {key}: {reason}"
        context = dict(kwargs.pop("context", None) or {})
        context.update({"key": key, "reason": reason})
        super().__init__(message, error_code="DOWNLOAD_FAILED", context=context, **kwargs)


class ProcessedObjectsError(RetryableError):
    """Raised when the processed-object oracle cannot be read."""

    def __init__(self, entity: str, reason: str, **kwargs):
        message = f"Could not fetch processed objects for {entity}: {reason}"
        context = dict(kwargs.pop("context", None) or {})
        context.update({"entity": entity})
        super().__init__(message, error_code="PROCESSED_OBJECTS_UNAVAILABLE", context=context, **kwargs)


class MetadataResolutionError(NonRetryableError):
    """Raised when the account id or region of a load balancer cannot be resolved."""

    def __init__(self, reason: str, **kwargs):
        message = f"Unable to resolve entity metadata: {reason}"
        super().__init__(message, error_code="METADATA_RESOLUTION_FAILED", **kwargs)


# === Configuration Errors ===

class ConfigurationError(NonRetryableError):
    """Raised when there's an error in the application configuration."""

    def __init__(self, message: str, **kwargs):
        super().__init__(message, error_code="CONFIGURATION_ERROR", **kwargs)


# === Utility Functions ===

def is_retryable_error(error: Exception) -> bool:
    """Check if an error is retryable."""
    return isinstance(error, RetryableError)


def get_error_context(error: Exception) -> Dict[str, Any]:
    """Extract error context for logging."""
    if isinstance(error, LogBucketError):
        return error.to_dict()
    else:
        return {
            "error_type": error.__class__.__name__,
            "message": str(error),
            "retryable": False,  # Unknown errors default to non-retryable
        }

import logging
import os
from dataclasses import dataclass
from datetime import timedelta
from functools import lru_cache

from .exceptions import ConfigurationError

logger = logging.getLogger(__name__)

ENTITY_TYPE_ELB = "elb"
ENTITY_TYPE_CLOUDFRONT = "cloudfront"
ALLOWED_ENTITY_TYPES = (ENTITY_TYPE_ELB, ENTITY_TYPE_CLOUDFRONT)

__all__ = ["AppConfig", "ConfigurationError", "get_config"]


def _env_flag(name: str, default: str) -> bool:
    return os.getenv(name, default).lower() in ("true", "1", "yes", "on")


@dataclass(frozen=True, slots=True)
class AppConfig:
    """Application configuration loaded from environment variables."""

    # --- Required Variables ---
    entity_type: str
    bucket_name: str

    # --- Entity Identifiers ---
    bucket_prefix: str
    lb_name: str | None
    distribution_id: str | None
    account_id: str | None
    region: str | None

    # --- Optional Variables with Defaults ---
    poll_interval_seconds: int
    backfill_minutes: int
    download_dir: str | None
    service_name: str
    log_level: str

    # --- Error Handling Configuration ---
    s3_operation_timeout_seconds: int
    s3_max_attempts: int
    exit_on_listing_error: bool

    # --- Derived Properties ---
    @property
    def poll_interval(self) -> timedelta:
        return timedelta(seconds=self.poll_interval_seconds)

    @property
    def backfill_window(self) -> timedelta:
        return timedelta(minutes=self.backfill_minutes)

    @classmethod
    def load_from_env(cls) -> "AppConfig":
        """
        Loads configuration from environment variables, performing validation and type casting.
        Fails fast with a ConfigurationError if anything is invalid.
        """
        try:
            # --- Handle required string variables ---
            entity_type = os.environ["ENTITY_TYPE"].lower()
            bucket_name = os.environ["BUCKET_NAME"]
            if not bucket_name:
                raise ValueError("BUCKET_NAME must not be empty.")

            if entity_type not in ALLOWED_ENTITY_TYPES:
                raise ValueError(
                    f"ENTITY_TYPE must be one of {list(ALLOWED_ENTITY_TYPES)}, not '{entity_type}'"
                )

            # --- Handle entity identifiers ---
            bucket_prefix = os.getenv("BUCKET_PREFIX", "")
            lb_name = os.getenv("LB_NAME") or None
            distribution_id = os.getenv("DISTRIBUTION_ID") or None
            account_id = os.getenv("AWS_ACCOUNT_ID") or None
            region = os.getenv("AWS_REGION") or None

            if entity_type == ENTITY_TYPE_ELB and not lb_name:
                raise ValueError("LB_NAME is required when ENTITY_TYPE is 'elb'.")
            if entity_type == ENTITY_TYPE_CLOUDFRONT and not distribution_id:
                raise ValueError(
                    "DISTRIBUTION_ID is required when ENTITY_TYPE is 'cloudfront'."
                )

            # --- Handle optional and numeric variables with validation ---
            poll_interval_seconds = int(os.getenv("POLL_INTERVAL_SECONDS", "300"))
            if poll_interval_seconds <= 0:
                raise ValueError("POLL_INTERVAL_SECONDS must be a positive integer.")

            backfill_minutes = int(os.getenv("BACKFILL_MINUTES", "60"))
            if backfill_minutes <= 0:
                raise ValueError("BACKFILL_MINUTES must be a positive integer.")

            download_dir = os.getenv("DOWNLOAD_DIR") or None
            if download_dir is not None and not os.path.isdir(download_dir):
                raise ValueError(f"DOWNLOAD_DIR '{download_dir}' is not a directory.")

            service_name = os.getenv("SERVICE_NAME", "logbucket")

            # --- Handle special-case variables like log level ---
            log_level = os.getenv("LOG_LEVEL", "INFO").upper()
            allowed_log_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
            if log_level not in allowed_log_levels:
                raise ValueError(
                    f"LOG_LEVEL must be one of {allowed_log_levels}, not '{log_level}'"
                )

            # --- Handle error handling configuration ---
            s3_operation_timeout_seconds = int(
                os.getenv("S3_OPERATION_TIMEOUT_SECONDS", "30")
            )
            if s3_operation_timeout_seconds <= 0:
                raise ValueError(
                    "S3_OPERATION_TIMEOUT_SECONDS must be a positive integer."
                )

            s3_max_attempts = int(os.getenv("S3_MAX_ATTEMPTS", "3"))
            if s3_max_attempts <= 0:
                raise ValueError("S3_MAX_ATTEMPTS must be a positive integer.")

            exit_on_listing_error = _env_flag("EXIT_ON_LISTING_ERROR", "true")

        except KeyError as e:
            raise ConfigurationError(
                f"Missing required environment variable: {e.args[0]}"
            ) from e
        except (ValueError, TypeError) as e:
            raise ConfigurationError(
                f"Invalid value for an environment variable: {e}"
            ) from e

        return cls(
            entity_type=entity_type,
            bucket_name=bucket_name,
            bucket_prefix=bucket_prefix,
            lb_name=lb_name,
            distribution_id=distribution_id,
            account_id=account_id,
            region=region,
            poll_interval_seconds=poll_interval_seconds,
            backfill_minutes=backfill_minutes,
            download_dir=download_dir,
            service_name=service_name,
            log_level=log_level,
            s3_operation_timeout_seconds=s3_operation_timeout_seconds,
            s3_max_attempts=s3_max_attempts,
            exit_on_listing_error=exit_on_listing_error,
        )


# --- Singleton Factory Function (Lazy-loaded and Cached) ---
@lru_cache(maxsize=1)
def get_config() -> AppConfig:
    """
    Loads the application configuration from environment variables.
    The result is cached using lru_cache, so the environment is only read once
    on the first call. This avoids import-time side effects.
    """
    logger.info("Loading application configuration from environment...")
    return AppConfig.load_from_env()

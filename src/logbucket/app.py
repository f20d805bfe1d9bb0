# src/logbucket/app.py

"""
Process entry point for the logbucket service.

Responsibilities:
- Load and validate configuration from the environment.
- Configure structured JSON logging and EMF metrics.
- Resolve the monitored entity (an ELB needs its account id and region).
- Run the download pipeline and hand every downloaded object to a consumer.
- Decide what a listing failure means: by default the process exits non-zero,
  because a bucket that cannot be listed usually means broken credentials or
  configuration. With EXIT_ON_LISTING_ERROR=false a fresh pipeline is started
  after one polling interval instead.
"""

from __future__ import annotations

import os
import queue
import signal
import sys
import threading
from typing import Callable

import boto3
from aws_lambda_powertools import Logger, Metrics
from aws_lambda_powertools.logging.utils import copy_config_to_registered_loggers
from aws_lambda_powertools.metrics import MetricUnit
from botocore.config import Config as BotoConfig

from .clients import S3Client
from .config import AppConfig, get_config
from .entities import Entity, build_entity, identifier
from .exceptions import (
    ConfigurationError,
    ListingError,
    LogBucketError,
    MetadataResolutionError,
    get_error_context,
)
from .metadata import SessionMetadataResolver
from .pipeline import LogBucketPipeline
from .schemas import DownloadedObject
from .state import InMemoryProcessedObjects

METRICS_NAMESPACE = "LogBucket"
CONSUMER_POLL_SECONDS = 1.0

Consumer = Callable[[DownloadedObject], None]

logger = Logger(service=os.getenv("SERVICE_NAME", "logbucket"))
metrics = Metrics(namespace=METRICS_NAMESPACE, service=os.getenv("SERVICE_NAME", "logbucket"))


def configure_logging(config: AppConfig) -> None:
    """Applies the configured level and shares the JSON formatter with library loggers."""
    logger.setLevel(config.log_level)
    # A "logbucket" service name makes the powertools logger the package's parent logger.
    if config.service_name != "logbucket":
        copy_config_to_registered_loggers(source_logger=logger, include={"logbucket"})


def build_s3_client(session: boto3.session.Session, config: AppConfig) -> S3Client:
    boto_config = BotoConfig(
        connect_timeout=config.s3_operation_timeout_seconds,
        read_timeout=config.s3_operation_timeout_seconds,
        retries={"max_attempts": config.s3_max_attempts, "mode": "standard"},
    )
    return S3Client(
        s3_client=session.client("s3", region_name=config.region, config=boto_config),
        operation_timeout_seconds=config.s3_operation_timeout_seconds,
    )


def build_pipeline(
    config: AppConfig,
    s3_client: S3Client,
    oracle: InMemoryProcessedObjects,
    entity: Entity,
) -> LogBucketPipeline:
    return LogBucketPipeline(
        s3_client=s3_client,
        oracle=oracle,
        entity=entity,
        poll_interval=config.poll_interval,
        backfill_window=config.backfill_window,
        download_dir=config.download_dir,
    )


def acknowledge_and_discard(oracle: InMemoryProcessedObjects) -> Consumer:
    """
    Default consumer: records the object as processed, emits metrics and
    deletes the local copy. Real deployments pass their own consumer to
    ``run`` and take over the temporary file instead.
    """

    def consume(record: DownloadedObject) -> None:
        logger.info(
            "Object ready for ingestion",
            extra={"key": record.key, "file": record.path, "bytes": record.bytes_downloaded},
        )
        oracle.set_processed(record.key)
        metrics.add_metric(name="ObjectsDownloaded", unit=MetricUnit.Count, value=1)
        metrics.add_metric(
            name="BytesDownloaded", unit=MetricUnit.Bytes, value=record.bytes_downloaded
        )
        metrics.flush_metrics()
        try:
            os.unlink(record.path)
        except FileNotFoundError:
            pass

    return consume


def run(
    config: AppConfig,
    pipeline_factory: Callable[[], LogBucketPipeline],
    consumer: Consumer,
    shutdown: threading.Event,
) -> int:
    """
    Drives pipelines until *shutdown* is set or a listing error is fatal.

    Returns the process exit code.
    """
    while not shutdown.is_set():
        pipeline = pipeline_factory()
        downloaded = pipeline.start()
        failure = _consume_until_stopped(pipeline, downloaded, consumer, shutdown)
        pipeline.stop()
        pipeline.join(timeout=config.s3_operation_timeout_seconds)
        pipeline.discard_undelivered()

        if failure is None:
            return 0

        if isinstance(failure, ListingError):
            description = "Error listing/paging bucket objects"
        else:
            description = "Pipeline stage failed"

        if config.exit_on_listing_error:
            logger.error(
                f"{description}, exiting.",
                extra={"error": get_error_context(failure)},
            )
            return 1

        logger.warning(
            f"{description}, restarting after the next interval.",
            extra={
                "error": get_error_context(failure),
                "retry_in_seconds": config.poll_interval_seconds,
            },
        )
        if shutdown.wait(config.poll_interval_seconds):
            return 0
    return 0


def _consume_until_stopped(
    pipeline: LogBucketPipeline,
    downloaded: "queue.Queue[DownloadedObject]",
    consumer: Consumer,
    shutdown: threading.Event,
) -> LogBucketError | None:
    while not shutdown.is_set():
        try:
            record = downloaded.get(timeout=CONSUMER_POLL_SECONDS)
        except queue.Empty:
            record = None

        if record is not None:
            try:
                consumer(record)
            except Exception:
                logger.exception(
                    "Consumer failed for downloaded object.",
                    extra={"key": record.key, "file": record.path},
                )

        try:
            return pipeline.errors.get_nowait()
        except queue.Empty:
            pass
        if pipeline.stopped and not pipeline.is_running:
            return None
    return None


def _install_signal_handlers(shutdown: threading.Event) -> None:
    def _handle(signum, _frame):
        logger.info("Shutdown requested", extra={"signal": signal.Signals(signum).name})
        shutdown.set()

    signal.signal(signal.SIGTERM, _handle)
    signal.signal(signal.SIGINT, _handle)


def main() -> int:
    try:
        config = get_config()
    except ConfigurationError as e:
        logger.error(f"Invalid configuration: {e}", extra={"error": get_error_context(e)})
        return 1

    configure_logging(config)

    session = boto3.session.Session(region_name=config.region)
    s3_client = build_s3_client(session, config)

    try:
        entity = build_entity(
            config,
            SessionMetadataResolver(session, account_id=config.account_id, region=config.region),
        )
    except (MetadataResolutionError, ConfigurationError) as e:
        logger.error(
            f"Could not build entity descriptor: {e}", extra={"error": get_error_context(e)}
        )
        return 1

    metrics.set_default_dimensions(entity=identifier(entity))
    logger.append_keys(entity=identifier(entity), bucket=config.bucket_name)

    oracle = InMemoryProcessedObjects()
    shutdown = threading.Event()
    _install_signal_handlers(shutdown)

    logger.info(
        "Starting logbucket",
        extra={
            "entity_type": config.entity_type,
            "poll_interval_seconds": config.poll_interval_seconds,
            "backfill_minutes": config.backfill_minutes,
        },
    )
    return run(
        config,
        lambda: build_pipeline(config, s3_client, oracle, entity),
        acknowledge_and_discard(oracle),
        shutdown,
    )


if __name__ == "__main__":
    sys.exit(main())

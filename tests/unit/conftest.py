"""
Shared fixtures for unit tests.
"""

from __future__ import annotations

import os
from datetime import datetime, timedelta, timezone

import pytest

from logbucket.entities import CdnEntity, LoadBalancerEntity

FIXED_NOW = datetime(2024, 3, 5, 12, 0, 0, tzinfo=timezone.utc)


@pytest.fixture(scope="session", autouse=True)
def _env_vars():
    """
    Ensures a deterministic environment for every test run.
    """
    original = os.environ.copy()
    os.environ.setdefault("POWERTOOLS_SERVICE_NAME", "logbucket-test")
    os.environ.setdefault("POWERTOOLS_LOG_LEVEL", "INFO")
    os.environ.setdefault("AWS_DEFAULT_REGION", "us-east-1")
    yield
    os.environ.clear()
    os.environ.update(original)


@pytest.fixture
def fixed_now() -> datetime:
    return FIXED_NOW


@pytest.fixture
def clock(fixed_now):
    """A clock that always returns the same instant."""
    return lambda: fixed_now


@pytest.fixture
def elb_entity() -> LoadBalancerEntity:
    return LoadBalancerEntity(
        bucket_name="elb-logs",
        prefix="logs",
        account_id="123456789012",
        region="us-east-1",
        lb_name="my-lb",
    )


@pytest.fixture
def cdn_entity() -> CdnEntity:
    return CdnEntity(
        bucket_name="cf-logs",
        prefix="cflogs",
        distribution_id="EDFDVBD6EXAMPLE",
    )


@pytest.fixture
def make_entry(fixed_now):
    """Builds a raw ListObjectsV2 ``Contents`` entry aged relative to the fixed clock."""

    def _make(key: str, age: timedelta, size: int = 100) -> dict:
        return {"Key": key, "Size": size, "LastModified": fixed_now - age}

    return _make

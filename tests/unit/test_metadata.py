# tests/unit/test_metadata.py

from unittest.mock import MagicMock

import pytest
from botocore.exceptions import ClientError, NoCredentialsError

from logbucket.exceptions import MetadataResolutionError
from logbucket.metadata import EntityMetadata, SessionMetadataResolver


@pytest.fixture
def mock_session() -> MagicMock:
    session = MagicMock()
    session.region_name = "eu-west-1"
    session.client.return_value.get_caller_identity.return_value = {
        "Account": "123456789012",
        "Arn": "arn:aws:iam::123456789012:user/test",
    }
    return session


def test_resolves_account_from_sts_and_region_from_session(mock_session):
    metadata = SessionMetadataResolver(mock_session).resolve()

    assert metadata == EntityMetadata(account_id="123456789012", region="eu-west-1")
    mock_session.client.assert_called_once_with("sts", region_name="eu-west-1")


def test_explicit_values_skip_lookups(mock_session):
    metadata = SessionMetadataResolver(
        mock_session, account_id="210987654321", region="us-west-2"
    ).resolve()

    assert metadata == EntityMetadata(account_id="210987654321", region="us-west-2")
    mock_session.client.assert_not_called()


def test_missing_region_fails(mock_session):
    mock_session.region_name = None

    with pytest.raises(MetadataResolutionError):
        SessionMetadataResolver(mock_session).resolve()


def test_sts_client_error_fails(mock_session):
    mock_session.client.return_value.get_caller_identity.side_effect = ClientError(
        {"Error": {"Code": "ExpiredToken", "Message": "token expired"}}, "GetCallerIdentity"
    )

    with pytest.raises(MetadataResolutionError) as exc_info:
        SessionMetadataResolver(mock_session).resolve()

    assert exc_info.value.context["aws_error_code"] == "ExpiredToken"


def test_missing_credentials_fail(mock_session):
    mock_session.client.return_value.get_caller_identity.side_effect = NoCredentialsError()

    with pytest.raises(MetadataResolutionError):
        SessionMetadataResolver(mock_session).resolve()

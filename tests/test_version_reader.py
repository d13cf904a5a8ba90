"""Tests for reading secret versions with propagation retries."""
from unittest import mock

import pytest

from agent_awstoolkit.secrets.domains.models import AWSCURRENT
from agent_awstoolkit.secrets.workflows.version_reader import SecretVersionReadError, read_secret_version

SECRET_ID = "app/db"
DELETED_MESSAGE = "You can't perform this operation on the secret because it was deleted."


def _output(version_id="v2", **extra):
    output = {
        "ARN": "arn:aws:secretsmanager:us-east-1:123456789012:secret:app/db-AbCdEf",
        "VersionId": version_id,
        "VersionStages": [AWSCURRENT],
        "SecretString": "hunter2",
    }
    output.update(extra)
    return output


@pytest.fixture
def sleeps():
    return []


@pytest.fixture
def record_sleep(sleeps):
    return sleeps.append


class TestNewResourceReads:
    """Reads of a version that was just written."""

    def test_not_found_twice_then_success(self, make_client_error, sleeps, record_sleep):
        client = mock.Mock()
        client.get_secret_value.side_effect = [
            make_client_error("ResourceNotFoundException"),
            make_client_error("ResourceNotFoundException"),
            _output(),
        ]

        version = read_secret_version(
            client, SECRET_ID, "v2", is_new_resource=True, timeout=60, sleep=record_sleep
        )

        assert version.version_id == "v2"
        assert version.secret_string == "hunter2"
        assert version.version_stages == {AWSCURRENT}
        assert client.get_secret_value.call_count == 3
        assert len(sleeps) == 2

    def test_deleted_secret_error_is_retried(self, make_client_error, record_sleep):
        client = mock.Mock()
        client.get_secret_value.side_effect = [
            make_client_error("InvalidRequestException", DELETED_MESSAGE),
            _output(),
        ]

        version = read_secret_version(
            client, SECRET_ID, "v2", is_new_resource=True, timeout=60, sleep=record_sleep
        )

        assert version is not None
        assert client.get_secret_value.call_count == 2

    def test_other_errors_are_not_retried(self, make_client_error, sleeps, record_sleep):
        client = mock.Mock()
        client.get_secret_value.side_effect = make_client_error("AccessDeniedException", "denied")

        with pytest.raises(SecretVersionReadError) as exc_info:
            read_secret_version(client, SECRET_ID, "v2", is_new_resource=True, timeout=60, sleep=record_sleep)

        assert "app/db|v2" in str(exc_info.value)
        assert client.get_secret_value.call_count == 1
        assert sleeps == []

    def test_other_invalid_request_is_not_retried(self, make_client_error, record_sleep):
        client = mock.Mock()
        client.get_secret_value.side_effect = make_client_error("InvalidRequestException", "something else")

        with pytest.raises(SecretVersionReadError):
            read_secret_version(client, SECRET_ID, "v2", is_new_resource=True, timeout=60, sleep=record_sleep)

        assert client.get_secret_value.call_count == 1

    def test_final_attempt_after_timeout_is_authoritative(self, make_client_error, record_sleep):
        client = mock.Mock()
        client.get_secret_value.side_effect = [
            make_client_error("ResourceNotFoundException"),
            _output(),
        ]

        version = read_secret_version(client, SECRET_ID, "v2", is_new_resource=True, timeout=0, sleep=record_sleep)

        assert version.version_id == "v2"
        assert client.get_secret_value.call_count == 2

    def test_final_attempt_failure_surfaces(self, make_client_error, record_sleep):
        client = mock.Mock()
        client.get_secret_value.side_effect = make_client_error("ResourceNotFoundException")

        with pytest.raises(SecretVersionReadError):
            read_secret_version(client, SECRET_ID, "v2", is_new_resource=True, timeout=0, sleep=record_sleep)

        assert client.get_secret_value.call_count == 2

    def test_backoff_stays_within_window(self, make_client_error, sleeps, record_sleep):
        client = mock.Mock()
        client.get_secret_value.side_effect = make_client_error("ResourceNotFoundException")

        with pytest.raises(SecretVersionReadError):
            read_secret_version(client, SECRET_ID, "v2", is_new_resource=True, timeout=2, sleep=record_sleep)

        assert sleeps == [0.5, 1.0]
        assert sum(sleeps) <= 2
        # Retried attempts plus the final one
        assert client.get_secret_value.call_count == len(sleeps) + 2


class TestExistingResourceReads:
    """Reads of a version that existed before this run."""

    def test_not_found_means_gone(self, make_client_error):
        client = mock.Mock()
        client.get_secret_value.side_effect = make_client_error("ResourceNotFoundException")

        assert read_secret_version(client, SECRET_ID, "v2") is None
        assert client.get_secret_value.call_count == 1

    def test_deleted_secret_means_gone(self, make_client_error):
        client = mock.Mock()
        client.get_secret_value.side_effect = make_client_error("InvalidRequestException", DELETED_MESSAGE)

        assert read_secret_version(client, SECRET_ID, "v2") is None

    def test_other_errors_surface(self, make_client_error):
        client = mock.Mock()
        client.get_secret_value.side_effect = make_client_error("DecryptionFailure", "kms")

        with pytest.raises(SecretVersionReadError):
            read_secret_version(client, SECRET_ID, "v2")

    def test_binary_payload_is_returned_as_base64(self):
        client = mock.Mock()
        client.get_secret_value.return_value = _output(SecretString=None, SecretBinary=b"\x00\xffdata")

        version = read_secret_version(client, SECRET_ID, "v2")

        assert version.secret_binary == "AP9kYXRh"
        assert version.secret_string is None
        assert version.arn.startswith("arn:aws:secretsmanager:")
        assert version.resource_id == "app/db|v2"

"""Shared fixtures: temporary home directory and an in-memory Secrets Manager."""
from pathlib import Path

import pytest
from botocore.exceptions import ClientError

from agent_awstoolkit.secrets.domains import aws_client
from agent_awstoolkit.secrets.domains import preferences
from agent_awstoolkit.secrets.domains.models import AWSCURRENT, AWSPREVIOUS


def client_error(code, message="", operation="UpdateSecretVersionStage"):
    return ClientError({"Error": {"Code": code, "Message": message}}, operation)


class FakeSecretsManager:
    """In-memory stand-in for AWSSecretClient backed by one secret.

    Enforces the store's rules for AWSCURRENT: it can only be moved, never
    detached, and moving it demotes the old holder to AWSPREVIOUS.
    """

    def __init__(self, versions=None, page_size=2, secret_id="app/db"):
        self.secret_id = secret_id
        self.versions = {vid: set(stages) for vid, stages in (versions or {}).items()}
        self.payloads = {}
        self.page_size = page_size
        self.calls = []
        self.list_tokens = []
        self.hidden_reads = 0
        self._counter = len(self.versions)

    def _check_secret(self, secret_id):
        if secret_id != self.secret_id:
            raise client_error("ResourceNotFoundException", "Secrets Manager can't find the specified secret.")

    def _holder(self, stage):
        for vid, stages in self.versions.items():
            if stage in stages:
                return vid
        return None

    def _attach_current(self, version_id):
        old = self._holder(AWSCURRENT)
        if old is not None and old != version_id:
            self.versions[old].discard(AWSCURRENT)
            for stages in self.versions.values():
                stages.discard(AWSPREVIOUS)
            self.versions[old].add(AWSPREVIOUS)
        self.versions[version_id].add(AWSCURRENT)

    def stages_of(self, version_id):
        return set(self.versions[version_id])

    def put_secret_value(self, secret_id, secret_string=None, secret_binary=None, version_stages=None):
        self._check_secret(secret_id)
        self.calls.append(("put_secret_value", secret_id, tuple(version_stages or ())))
        self._counter += 1
        version_id = f"v{self._counter}"
        self.versions[version_id] = set()
        self.payloads[version_id] = (secret_string, secret_binary)
        for stage in version_stages or [AWSCURRENT]:
            if stage == AWSCURRENT:
                self._attach_current(version_id)
            else:
                self.versions[version_id].add(stage)
        return version_id

    def get_secret_value(self, secret_id, version_id):
        self.calls.append(("get_secret_value", secret_id, version_id))
        if self.hidden_reads > 0:
            self.hidden_reads -= 1
            raise client_error("ResourceNotFoundException", "not visible yet", "GetSecretValue")
        self._check_secret(secret_id)
        if version_id not in self.versions:
            raise client_error("ResourceNotFoundException", "version not found", "GetSecretValue")
        secret_string, secret_binary = self.payloads.get(version_id, ("value", None))
        output = {
            "ARN": f"arn:aws:secretsmanager:us-east-1:123456789012:secret:{secret_id}-AbCdEf",
            "Name": secret_id,
            "VersionId": version_id,
            "VersionStages": sorted(self.versions[version_id]),
        }
        if secret_binary is not None:
            output["SecretBinary"] = secret_binary
        else:
            output["SecretString"] = secret_string
        return output

    def list_secret_version_ids(self, secret_id, next_token=None):
        self._check_secret(secret_id)
        self.list_tokens.append(next_token)
        items = list(self.versions.items())
        start = int(next_token or 0)
        end = start + self.page_size
        output = {
            "Versions": [
                {"VersionId": vid, "VersionStages": sorted(stages)} for vid, stages in items[start:end]
            ]
        }
        if end < len(items):
            output["NextToken"] = str(end)
        return output

    def update_secret_version_stage(self, secret_id, version_stage, move_to=None, remove_from=None):
        self._check_secret(secret_id)
        self.calls.append(("update_secret_version_stage", version_stage, move_to, remove_from))

        if remove_from is not None and version_stage not in self.versions.get(remove_from, set()):
            raise client_error(
                "InvalidParameterException",
                f"The staging label {version_stage} is not attached to version {remove_from}.",
            )

        if version_stage == AWSCURRENT:
            if move_to is None:
                raise client_error(
                    "InvalidParameterException",
                    "You can only move staging label AWSCURRENT to a different secret version. "
                    "It can't be completely removed.",
                )
            holder = self._holder(AWSCURRENT)
            if holder is not None and holder != move_to and holder != remove_from:
                raise client_error(
                    "InvalidParameterException",
                    "The parameter RemoveFromVersionId can't be empty. Staging label AWSCURRENT is "
                    f"currently attached to version {holder}.",
                )
            self._attach_current(move_to)
            return

        if remove_from is not None:
            self.versions[remove_from].discard(version_stage)
        if move_to is not None:
            for stages in self.versions.values():
                stages.discard(version_stage)
            self.versions[move_to].add(version_stage)

    def stage_updates(self):
        return [call[1:] for call in self.calls if call[0] == "update_secret_version_stage"]


@pytest.fixture
def make_client_error():
    """Factory for botocore ClientError instances."""
    return client_error


@pytest.fixture
def fake_store():
    """Secret with v1 as AWSCURRENT and v2 as a freshly written version."""
    return FakeSecretsManager({"v1": {AWSCURRENT}, "v2": set()})


@pytest.fixture
def temp_home(tmp_path, monkeypatch):
    """Fixture to create a temporary home directory for testing."""
    fake_home = tmp_path / "home"
    fake_home.mkdir()
    monkeypatch.setenv("HOME", str(fake_home))
    monkeypatch.setattr(Path, "home", lambda: fake_home)

    fake_config_dir = fake_home / ".config" / "agent-awstoolkit"
    monkeypatch.setattr(preferences, "PREFERENCES_DIR", fake_config_dir)
    monkeypatch.setattr(preferences, "PREFERENCES_FILE", fake_config_dir / "preferences.json")

    # Forget any config loaded lazily by an earlier test
    monkeypatch.setattr(aws_client, "_CONFIG", None)
    monkeypatch.setattr(aws_client, "_CONFIG_LOADED", False)

    return fake_home

"""Workflows for the lifecycle of a single secret version."""
import logging
from typing import Iterable, Optional

from botocore.exceptions import BotoCoreError, ClientError

from ..domains.aws_client import AWSSecretClient, configured_propagation_timeout
from ..domains.models import SecretVersion, decode_resource_id, encode_resource_id
from ..domains.payload import decode_secret_binary, validate_payload
from .stage_reconciler import reconcile_version_stages, remove_version_stages
from .version_reader import read_secret_version

logger = logging.getLogger(__name__)


class SecretVersionWriteError(Exception):
    """Raised when a new secret value cannot be stored."""
    pass


class SecretVersionNotFoundError(Exception):
    """Raised when an operation targets a version that no longer exists."""
    pass


def create_secret_version(
    secret_id: str,
    secret_string: Optional[str] = None,
    secret_binary: Optional[str] = None,
    version_stages: Optional[Iterable[str]] = None,
    client: Optional[AWSSecretClient] = None,
    timeout: Optional[float] = None,
) -> SecretVersion:
    """
    Store a new version of a secret and read it back.

    Args:
        secret_id: Secret name or ARN
        secret_string: Text payload (conflicts with secret_binary)
        secret_binary: Binary payload as base64 text (conflicts with secret_string)
        version_stages: Labels to attach on creation; Secrets Manager attaches
            AWSCURRENT when none are given
        client: Secrets Manager client (a default one is created if omitted)
        timeout: Read-after-write retry window, defaults to the configured one

    Returns:
        The stored version as read back from Secrets Manager

    Raises:
        PayloadValidationError: Before any remote call, if the payload is invalid
        SecretVersionWriteError: If the value cannot be stored
        SecretVersionReadError: If the new version never becomes readable
    """
    validate_payload(secret_string, secret_binary)
    binary = decode_secret_binary(secret_binary) if secret_binary is not None else None

    client = client or AWSSecretClient()
    stages = sorted(set(version_stages)) if version_stages else None

    try:
        version_id = client.put_secret_value(
            secret_id,
            secret_string=secret_string,
            secret_binary=binary,
            version_stages=stages,
        )
    except (ClientError, BotoCoreError) as e:
        raise SecretVersionWriteError(f"error putting Secrets Manager Secret value: {e}") from e

    logger.info(f"Created Secrets Manager Secret Version {encode_resource_id(secret_id, version_id)}")

    if timeout is None:
        timeout = configured_propagation_timeout()
    version = read_secret_version(client, secret_id, version_id, is_new_resource=True, timeout=timeout)
    if version is None:
        raise SecretVersionNotFoundError(f"Secrets Manager Secret Version ({encode_resource_id(secret_id, version_id)}) not found")
    return version


def get_secret_version(resource_id: str, client: Optional[AWSSecretClient] = None) -> Optional[SecretVersion]:
    """
    Read an existing secret version by its SecretID|VersionID identifier.

    Returns:
        The version, or None if it has been deleted
    """
    secret_id, version_id = decode_resource_id(resource_id)
    client = client or AWSSecretClient()
    return read_secret_version(client, secret_id, version_id, is_new_resource=False)


def update_secret_version_stages(
    resource_id: str,
    desired_stages: Iterable[str],
    observed_stages: Optional[Iterable[str]] = None,
    client: Optional[AWSSecretClient] = None,
) -> Optional[SecretVersion]:
    """
    Make the labels on a version match ``desired_stages``.

    Args:
        resource_id: SecretID|VersionID identifier
        desired_stages: Labels the version should end up with
        observed_stages: Labels known to be on the version; read from
            Secrets Manager when omitted
        client: Secrets Manager client

    Returns:
        The version as read back after the update, or None if it vanished

    Raises:
        SecretVersionNotFoundError: If the version is gone before the update
        StageUpdateError: If a label move fails
    """
    secret_id, version_id = decode_resource_id(resource_id)
    client = client or AWSSecretClient()

    if observed_stages is None:
        current = read_secret_version(client, secret_id, version_id)
        if current is None:
            raise SecretVersionNotFoundError(f"Secrets Manager Secret Version ({resource_id}) not found")
        observed_stages = current.version_stages

    plan = reconcile_version_stages(client, secret_id, version_id, observed_stages, desired_stages)
    logger.info(
        f"Reconciled stages of {resource_id}: added {list(plan.to_add)}, removed {list(plan.to_remove)}"
    )
    return read_secret_version(client, secret_id, version_id)


def delete_secret_version(
    resource_id: str,
    version_stages: Optional[Iterable[str]] = None,
    client: Optional[AWSSecretClient] = None,
) -> None:
    """
    Detach a version's labels so Secrets Manager can expire it.

    Versions cannot be deleted directly; a version without labels is
    deprecated and eventually removed by the service. AWSCURRENT is left in
    place.
    """
    secret_id, version_id = decode_resource_id(resource_id)
    client = client or AWSSecretClient()

    if version_stages is None:
        current = read_secret_version(client, secret_id, version_id)
        if current is None:
            return
        version_stages = current.version_stages

    remove_version_stages(client, secret_id, version_id, version_stages)

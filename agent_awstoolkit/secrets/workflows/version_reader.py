"""Read a secret version back, tolerating read-after-write propagation lag."""
import logging
from typing import Any, Callable, Dict, Optional

from botocore.exceptions import BotoCoreError, ClientError
from tenacity import (
    RetryError,
    Retrying,
    before_sleep_log,
    retry_if_exception,
    stop_before_delay,
    wait_exponential,
)

from ..domains.aws_client import AWSSecretClient, is_gone_error
from ..domains.config_loader import DEFAULT_PROPAGATION_TIMEOUT
from ..domains.models import SecretVersion, encode_resource_id
from ..domains.payload import encode_secret_binary

logger = logging.getLogger(__name__)


class SecretVersionReadError(Exception):
    """Raised when a secret version cannot be read for a non-transient reason."""
    pass


def _to_secret_version(secret_id: str, output: Dict[str, Any]) -> SecretVersion:
    return SecretVersion(
        secret_id=secret_id,
        version_id=output["VersionId"],
        arn=output.get("ARN"),
        secret_string=output.get("SecretString"),
        secret_binary=encode_secret_binary(output.get("SecretBinary")),
        version_stages=set(output.get("VersionStages") or []),
    )


def _get_with_retry(
    client: AWSSecretClient,
    secret_id: str,
    version_id: str,
    timeout: float,
    sleep: Optional[Callable[[float], None]],
) -> Dict[str, Any]:
    retry_kwargs: Dict[str, Any] = dict(
        retry=retry_if_exception(is_gone_error),
        stop=stop_before_delay(timeout),
        wait=wait_exponential(multiplier=0.5, max=10),
        before_sleep=before_sleep_log(logger, logging.DEBUG),
    )
    if sleep is not None:
        retry_kwargs["sleep"] = sleep

    try:
        for attempt in Retrying(**retry_kwargs):
            with attempt:
                return client.get_secret_value(secret_id, version_id)
    except RetryError:
        logger.debug(
            f"Secret version {encode_resource_id(secret_id, version_id)} still not visible "
            f"after {timeout}s, making a final attempt"
        )

    # Outcome of the final attempt is authoritative
    return client.get_secret_value(secret_id, version_id)


def read_secret_version(
    client: AWSSecretClient,
    secret_id: str,
    version_id: str,
    is_new_resource: bool = False,
    timeout: Optional[float] = None,
    sleep: Optional[Callable[[float], None]] = None,
) -> Optional[SecretVersion]:
    """
    Read a secret version, its labels and ARN.

    Args:
        client: Secrets Manager client
        secret_id: Secret name or ARN
        version_id: Version to read
        is_new_resource: True when the version was just written. Not-found and
            deleted-secret errors are then retried until ``timeout`` elapses,
            followed by one final unretried attempt.
        timeout: Retry window in seconds (defaults to the propagation timeout)
        sleep: Override for the backoff sleep function

    Returns:
        The version, or None when a pre-existing version no longer exists

    Raises:
        SecretVersionReadError: On any other failure, or when a new version
            is still missing after the final attempt
    """
    resource_id = encode_resource_id(secret_id, version_id)
    if timeout is None:
        timeout = DEFAULT_PROPAGATION_TIMEOUT

    try:
        if is_new_resource:
            output = _get_with_retry(client, secret_id, version_id, timeout, sleep)
        else:
            output = client.get_secret_value(secret_id, version_id)
    except (ClientError, BotoCoreError) as e:
        if not is_new_resource and is_gone_error(e):
            logger.warning(f"Secrets Manager Secret Version ({resource_id}) not found, treating it as deleted")
            return None
        raise SecretVersionReadError(f"error reading Secrets Manager Secret Version ({resource_id}): {e}") from e

    return _to_secret_version(secret_id, output)

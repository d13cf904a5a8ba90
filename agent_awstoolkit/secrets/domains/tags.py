"""Key-value tag synchronisation for a single secret."""
import logging
from typing import Dict, Optional

from botocore.exceptions import BotoCoreError, ClientError

from .aws_client import AWSSecretClient

logger = logging.getLogger(__name__)

# Keys under this prefix are managed by AWS and cannot be changed by callers
AWS_TAG_PREFIX = "aws:"


class TagUpdateError(Exception):
    """Raised when tagging or untagging a secret fails."""
    pass


def ignore_aws_tags(tags: Optional[Dict[str, str]]) -> Dict[str, str]:
    return {key: value for key, value in (tags or {}).items() if not key.startswith(AWS_TAG_PREFIX)}


def list_tags(client: AWSSecretClient, secret_id: str) -> Dict[str, str]:
    """
    Return the tags currently set on a secret.

    Secrets Manager has no dedicated list call; tags come from DescribeSecret.
    """
    output = client.describe_secret(secret_id)
    return {tag["Key"]: tag.get("Value", "") for tag in output.get("Tags") or []}


def update_tags(
    client: AWSSecretClient,
    secret_id: str,
    old_tags: Optional[Dict[str, str]],
    new_tags: Optional[Dict[str, str]],
) -> None:
    """
    Bring the tags on a secret from ``old_tags`` to ``new_tags``.

    Removed keys are untagged first, then added or changed keys are tagged.
    System-managed ``aws:`` keys are never touched.

    Raises:
        TagUpdateError: If either remote call fails
    """
    old = ignore_aws_tags(old_tags)
    new = ignore_aws_tags(new_tags)

    removed = [key for key in old if key not in new]
    if removed:
        logger.debug(f"Untagging secret {secret_id!r}: {sorted(removed)}")
        try:
            client.untag_resource(secret_id, removed)
        except (ClientError, BotoCoreError) as e:
            raise TagUpdateError(f"untagging resource ({secret_id}): {e}") from e

    updated = {key: value for key, value in new.items() if old.get(key) != value}
    if updated:
        logger.debug(f"Tagging secret {secret_id!r}: {sorted(updated)}")
        try:
            client.tag_resource(secret_id, updated)
        except (ClientError, BotoCoreError) as e:
            raise TagUpdateError(f"tagging resource ({secret_id}): {e}") from e

"""Domain models for secret versions and their stage labels."""
from dataclasses import dataclass, field
from typing import Optional, Set, Tuple

AWSCURRENT = "AWSCURRENT"
AWSPENDING = "AWSPENDING"
AWSPREVIOUS = "AWSPREVIOUS"

RESOURCE_ID_SEPARATOR = "|"


class InvalidResourceIdError(ValueError):
    """Raised when a resource ID is not in SecretID|VersionID format."""
    pass


@dataclass
class SecretVersion:
    """A single immutable secret version and the stage labels it holds."""
    secret_id: str
    version_id: str
    arn: Optional[str] = None
    secret_string: Optional[str] = None
    secret_binary: Optional[str] = None  # base64 text
    version_stages: Set[str] = field(default_factory=set)

    @property
    def resource_id(self) -> str:
        return encode_resource_id(self.secret_id, self.version_id)

    @property
    def is_current(self) -> bool:
        return AWSCURRENT in self.version_stages


@dataclass(frozen=True)
class StagePlan:
    """Labels to attach to and detach from one version, in a stable order."""
    to_add: Tuple[str, ...] = ()
    to_remove: Tuple[str, ...] = ()

    @property
    def is_empty(self) -> bool:
        return not self.to_add and not self.to_remove


def encode_resource_id(secret_id: str, version_id: str) -> str:
    """Build the external identifier of a secret version."""
    return f"{secret_id}{RESOURCE_ID_SEPARATOR}{version_id}"


def decode_resource_id(resource_id: str) -> Tuple[str, str]:
    """
    Split a resource ID into its secret ID and version ID.

    Args:
        resource_id: Identifier in SecretID|VersionID format

    Returns:
        Tuple of (secret_id, version_id)

    Raises:
        InvalidResourceIdError: Unless the ID has exactly two non-empty parts
    """
    parts = resource_id.split(RESOURCE_ID_SEPARATOR)
    if len(parts) != 2 or not all(parts):
        raise InvalidResourceIdError(
            f"expected ID in format SecretID|VersionID, received: {resource_id}"
        )
    return parts[0], parts[1]

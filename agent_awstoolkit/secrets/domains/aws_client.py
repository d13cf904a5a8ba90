"""AWS Secrets Manager client wrapper."""
import os
import logging
from typing import Optional, Dict, Any, List

import boto3
from botocore.exceptions import ClientError

from .config_loader import load_config, ConfigError, DEFAULT_PROPAGATION_TIMEOUT, get_propagation_timeout
from .preferences import get_preference

logger = logging.getLogger(__name__)

RESOURCE_NOT_FOUND = "ResourceNotFoundException"
INVALID_REQUEST = "InvalidRequestException"
# Message fragment Secrets Manager returns for secrets scheduled for deletion
SECRET_DELETED_MESSAGE = "because it was deleted"

# Lazy loading: defer config loading until a remote call actually needs it
# so commands like 'awstoolkit --help' run without a config file.
_CONFIG: Optional[Dict[str, Any]] = None
_CONFIG_LOADED = False


def _get_config() -> Dict[str, Any]:
    """
    Lazy load configuration on first use.

    Exports AWS_SHARED_CREDENTIALS_FILE (and AWS_PROFILE when configured) so
    boto3 picks up the credentials named in the config file.

    Returns:
        Configuration dictionary

    Raises:
        ConfigError: If config file is invalid
        FileNotFoundError: If no config file can be located
    """
    global _CONFIG, _CONFIG_LOADED

    if not _CONFIG_LOADED:
        _CONFIG = load_config()
        _CONFIG_LOADED = True

        auth = _CONFIG['authentication']
        os.environ['AWS_SHARED_CREDENTIALS_FILE'] = auth['credentials_path']
        logger.info(f"Set AWS_SHARED_CREDENTIALS_FILE from config: {auth['credentials_path']}")
        if auth.get('profile'):
            os.environ.setdefault('AWS_PROFILE', auth['profile'])

    return _CONFIG


def get_error_code(err: Exception) -> Optional[str]:
    if isinstance(err, ClientError):
        return err.response.get("Error", {}).get("Code")
    return None


def is_not_found_error(err: Exception) -> bool:
    """True for ResourceNotFoundException responses."""
    return get_error_code(err) == RESOURCE_NOT_FOUND


def is_deleted_error(err: Exception) -> bool:
    """True when the secret is scheduled for deletion."""
    if get_error_code(err) != INVALID_REQUEST:
        return False
    message = err.response.get("Error", {}).get("Message", "")
    return SECRET_DELETED_MESSAGE in message


def is_gone_error(err: Exception) -> bool:
    return is_not_found_error(err) or is_deleted_error(err)


class AWSSecretClient:
    """Wrapper around the boto3 Secrets Manager client."""

    def __init__(self, region: Optional[str] = None, client=None):
        self._region = region
        self._client = client

    @property
    def client(self):
        """Lazy-initialize client."""
        if self._client is None:
            # Export the configured credentials before boto3 resolves them
            try:
                _get_config()
            except (ConfigError, FileNotFoundError) as e:
                logger.debug(f"No config loaded, using the default AWS credential chain: {e}")
            self._client = boto3.client("secretsmanager", region_name=self.get_region())
        return self._client

    def get_region(self) -> Optional[str]:
        """
        Resolve the AWS region.

        Priority order:
        1. Region passed to the constructor
        2. AWS_REGION / AWS_DEFAULT_REGION environment variables
        3. 'region' user preference
        4. Config file

        Returns:
            Region name, or None if not found (boto3 then applies its own lookup)
        """
        if self._region:
            return self._region

        for env_var in ("AWS_REGION", "AWS_DEFAULT_REGION"):
            region = os.getenv(env_var)
            if region:
                logger.debug(f"Using {env_var} from environment: {region}")
                return region

        region = get_preference("region")
        if region:
            logger.debug(f"Using region from preferences: {region}")
            return region

        try:
            config = _get_config()
        except (ConfigError, FileNotFoundError) as e:
            logger.debug(f"Failed to load config: {e}")
            return None

        region = config['aws']['region']
        logger.debug(f"Using region from config: {region}")
        return region

    def put_secret_value(
        self,
        secret_id: str,
        secret_string: Optional[str] = None,
        secret_binary: Optional[bytes] = None,
        version_stages: Optional[List[str]] = None,
    ) -> str:
        """
        Store a new immutable version of a secret.

        Returns:
            The new version ID
        """
        params: Dict[str, Any] = {"SecretId": secret_id}
        if secret_string is not None:
            params["SecretString"] = secret_string
        if secret_binary is not None:
            params["SecretBinary"] = secret_binary
        if version_stages:
            params["VersionStages"] = list(version_stages)

        logger.debug(f"Putting Secrets Manager Secret {secret_id!r} value")
        response = self.client.put_secret_value(**params)
        return response["VersionId"]

    def get_secret_value(self, secret_id: str, version_id: str) -> Dict[str, Any]:
        return self.client.get_secret_value(SecretId=secret_id, VersionId=version_id)

    def list_secret_version_ids(self, secret_id: str, next_token: Optional[str] = None) -> Dict[str, Any]:
        """Fetch one page of the version history; 'NextToken' is absent on the last page."""
        params: Dict[str, Any] = {"SecretId": secret_id}
        if next_token:
            params["NextToken"] = next_token
        return self.client.list_secret_version_ids(**params)

    def update_secret_version_stage(
        self,
        secret_id: str,
        version_stage: str,
        move_to: Optional[str] = None,
        remove_from: Optional[str] = None,
    ) -> None:
        """
        Move a stage label between versions in a single call.

        With only move_to the label is attached, with only remove_from it is
        detached, and with both the store moves it atomically.
        """
        params: Dict[str, Any] = {"SecretId": secret_id, "VersionStage": version_stage}
        if move_to:
            params["MoveToVersionId"] = move_to
        if remove_from:
            params["RemoveFromVersionId"] = remove_from

        logger.debug(
            f"Updating Secrets Manager Secret Version Stage: secret={secret_id!r} stage={version_stage!r} "
            f"move_to={move_to!r} remove_from={remove_from!r}"
        )
        self.client.update_secret_version_stage(**params)

    def describe_secret(self, secret_id: str) -> Dict[str, Any]:
        return self.client.describe_secret(SecretId=secret_id)

    def tag_resource(self, secret_id: str, tags: Dict[str, str]) -> None:
        self.client.tag_resource(
            SecretId=secret_id,
            Tags=[{"Key": key, "Value": value} for key, value in sorted(tags.items())],
        )

    def untag_resource(self, secret_id: str, tag_keys: List[str]) -> None:
        self.client.untag_resource(SecretId=secret_id, TagKeys=sorted(tag_keys))


def configured_propagation_timeout() -> float:
    """Configured read-after-write window, falling back to the default."""
    try:
        return get_propagation_timeout(_get_config())
    except (ConfigError, FileNotFoundError) as e:
        logger.debug(f"Using default propagation timeout: {e}")
        return DEFAULT_PROPAGATION_TIMEOUT

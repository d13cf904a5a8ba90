"""Input validation for CLI arguments."""
import re
import sys

from agent_awstoolkit.secrets.domains.models import InvalidResourceIdError, decode_resource_id

# Secrets Manager secret names: letters, digits and /_+=.@- ; ARNs add ':'
SECRET_ID_PATTERN = re.compile(r'^[A-Za-z0-9/_+=.@:-]{1,2048}$')
# Staging labels: 1-256 characters, no whitespace
STAGE_LABEL_PATTERN = re.compile(r'^\S{1,256}$')


def validate_secret_id(secret_id: str) -> None:
    """
    Validate a secret name or ARN.

    Raises:
        SystemExit with code 2 if validation fails
    """
    if not secret_id:
        print("Error: Secret ID cannot be empty", file=sys.stderr)
        sys.exit(2)

    if not SECRET_ID_PATTERN.match(secret_id):
        print(f"Error: Invalid secret ID '{secret_id}'", file=sys.stderr)
        print("\nAllowed characters: letters, numbers and / _ + = . @ - (plus ':' in ARNs)", file=sys.stderr)
        print("Not allowed: spaces, '|', other special characters", file=sys.stderr)
        sys.exit(2)


def validate_resource_id(resource_id: str) -> None:
    """
    Validate a SecretID|VersionID identifier.

    Raises:
        SystemExit with code 2 if validation fails
    """
    try:
        secret_id, _version_id = decode_resource_id(resource_id)
    except InvalidResourceIdError as e:
        print(f"Error: {e}", file=sys.stderr)
        print("\nExample: my-app/db-password|3f2a5c1e-9b4d-4a7e-8c6f-0d1e2f3a4b5c", file=sys.stderr)
        sys.exit(2)
    validate_secret_id(secret_id)


def validate_stage_label(stage: str) -> None:
    """
    Validate a staging label such as AWSCURRENT or a custom label.

    Raises:
        SystemExit with code 2 if validation fails
    """
    if not STAGE_LABEL_PATTERN.match(stage or ""):
        print(f"Error: Invalid staging label '{stage}'", file=sys.stderr)
        print("\nStaging labels are 1-256 characters with no whitespace.", file=sys.stderr)
        sys.exit(2)

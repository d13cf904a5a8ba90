"""Validation and base64 handling for secret payloads."""
import base64
import binascii
from typing import Optional


class PayloadValidationError(ValueError):
    """Raised when a secret payload is rejected before any remote call."""
    pass


def validate_payload(secret_string: Optional[str], secret_binary: Optional[str]) -> None:
    """
    Check that exactly one payload field is set.

    Raises:
        PayloadValidationError: If both or neither of the fields are set
    """
    if secret_string is not None and secret_binary is not None:
        raise PayloadValidationError("secret_string conflicts with secret_binary: set only one of them")
    if secret_string is None and secret_binary is None:
        raise PayloadValidationError("one of secret_string or secret_binary must be set")


def decode_secret_binary(value: str) -> bytes:
    """
    Decode base64 text into the raw bytes stored in the secret.

    Raises:
        PayloadValidationError: If the value is not valid standard base64
    """
    try:
        return base64.b64decode(value.encode("ascii"), validate=True)
    except (binascii.Error, UnicodeEncodeError) as e:
        raise PayloadValidationError("expected base64 in secret_binary") from e


def encode_secret_binary(data: Optional[bytes]) -> Optional[str]:
    if data is None:
        return None
    return base64.b64encode(data).decode("ascii")

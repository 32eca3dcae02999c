"""Base64 transport encoding for key material and ciphertext."""

import base64
import binascii

from .types import MalformedEncodingError


def encode(data: bytes) -> str:
    """Encode bytes as standard, padded base64 text."""
    return base64.b64encode(data).decode("ascii")


def decode(text: str) -> bytes:
    """
    Decode standard, padded base64 text.

    Args:
        text: Base64 text

    Returns:
        The decoded bytes

    Raises:
        MalformedEncodingError: On characters outside the alphabet or bad padding
    """
    if not isinstance(text, str):
        raise MalformedEncodingError(f"Expected base64 text, got {type(text).__name__}")
    try:
        return base64.b64decode(text, validate=True)
    except (binascii.Error, ValueError) as e:
        raise MalformedEncodingError(f"Malformed base64: {e}") from e

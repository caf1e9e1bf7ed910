"""SHA-256 file identity hash over a base64 payload."""

import base64
import binascii
import hashlib

from common.exceptions import DecodeError


def decode_payload(payload: str) -> bytes:
    """
    Decode a base64 payload using the strict alphabet.

    Raises:
        DecodeError: If the payload is not valid base64
    """
    try:
        return base64.b64decode(payload, validate=True)
    except (binascii.Error, ValueError) as e:
        raise DecodeError(f"Malformed base64 payload: {e}") from e


def compute_file_hash(payload: str) -> str:
    """
    Compute the identity hash of a whole file from its base64 form.

    Each decoded byte is taken as one code point and the resulting text
    is hashed as UTF-8. For ASCII content this is plain SHA-256 of the bytes.

    Args:
        payload: Base64 of the complete file

    Returns:
        Lowercase hex SHA-256 digest
    """
    raw = decode_payload(payload)
    return hashlib.sha256(raw.decode("latin-1").encode("utf-8")).hexdigest()


def hash_content(content: bytes) -> str:
    """Identity hash of already decoded file content."""
    return hashlib.sha256(content.decode("latin-1").encode("utf-8")).hexdigest()


def verify_file_hash(content: bytes, expected: str) -> bool:
    """
    Verify that reassembled content matches the hash it was published under.
    """
    return hash_content(content) == expected.lower()

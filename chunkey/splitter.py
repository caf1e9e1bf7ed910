"""Deterministic splitting of an encoded payload into bounded chunks."""

from typing import List

from common.constants import CHUNK_SIZE_BYTES
from common.exceptions import ConfigError
from common.types import Chunk


def validate_chunk_size(chunk_size) -> int:
    """
    Raises:
        ConfigError: If chunk_size is not a positive integer
    """
    if isinstance(chunk_size, bool) or not isinstance(chunk_size, int):
        raise ConfigError(f"Chunk size must be an integer, got {chunk_size!r}")
    if chunk_size <= 0:
        raise ConfigError(f"Chunk size must be positive, got {chunk_size}")
    return chunk_size


def split_payload(payload: str, chunk_size: int = CHUNK_SIZE_BYTES) -> List[Chunk]:
    """
    Split a payload into consecutive windows of chunk_size characters.

    The last chunk may be shorter. An empty payload yields no chunks.

    Args:
        payload: Base64 text of the whole file
        chunk_size: Maximum characters per chunk

    Returns:
        Chunks in order, indexed from 0
    """
    validate_chunk_size(chunk_size)
    return [
        Chunk(index=index, data=payload[offset:offset + chunk_size])
        for index, offset in enumerate(range(0, len(payload), chunk_size))
    ]

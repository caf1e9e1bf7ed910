"""Relay information document (NIP-11) lookup and chunk size derivation."""

from typing import List, Optional

import httpx
from pydantic import BaseModel, ConfigDict, ValidationError

from common.constants import CHUNK_SIZE_BYTES, EVENT_ENVELOPE_ALLOWANCE_BYTES
from common.exceptions import ConfigError, RelayError
from common.logging_config import get_logger

logger = get_logger(__name__)


class RelayLimitation(BaseModel):
    """Subset of the limitation object relevant to chunk sizing."""
    model_config = ConfigDict(extra="ignore")

    max_message_length: Optional[int] = None
    max_content_length: Optional[int] = None
    max_event_tags: Optional[int] = None


class RelayInformation(BaseModel):
    """Relay information document."""
    model_config = ConfigDict(extra="ignore")

    name: Optional[str] = None
    description: Optional[str] = None
    software: Optional[str] = None
    supported_nips: List[int] = []
    limitation: Optional[RelayLimitation] = None


def relay_http_url(url: str) -> str:
    """
    Map a websocket relay URL to the HTTP URL serving its information document.
    """
    if url.startswith("wss://"):
        return "https://" + url[len("wss://"):]
    if url.startswith("ws://"):
        return "http://" + url[len("ws://"):]
    return url


def fetch_relay_information(
    url: str,
    client: Optional[httpx.Client] = None,
    timeout: float = 10.0,
) -> RelayInformation:
    """
    GET the information document of a relay.

    Args:
        url: Relay URL (ws://, wss://, http:// or https://)
        client: Optional httpx client (injected in tests)
        timeout: Request timeout in seconds

    Raises:
        RelayError: If the request fails or the document is invalid
    """
    http_url = relay_http_url(url)
    headers = {"Accept": "application/nostr+json"}

    try:
        if client is None:
            with httpx.Client(timeout=timeout) as own_client:
                response = own_client.get(http_url, headers=headers)
        else:
            response = client.get(http_url, headers=headers)
        response.raise_for_status()
    except httpx.HTTPError as e:
        raise RelayError(f"Could not fetch relay information from {http_url}: {e}") from e

    try:
        info = RelayInformation.model_validate_json(response.content)
    except ValidationError as e:
        raise RelayError(f"Invalid relay information from {http_url}: {e.errors()[0]['msg']}") from e

    logger.debug(f"Relay {url} information: {info.name} limitation={info.limitation}")
    return info


def chunk_size_for_limit(
    max_message_length: Optional[int],
    max_content_length: Optional[int] = None,
    allowance: int = EVENT_ENVELOPE_ALLOWANCE_BYTES,
) -> int:
    """
    Largest chunk size that fits a relay's advertised limits.

    The size is capped at the default, floored to a multiple of 4 so
    chunks stay aligned to whole base64 quanta.

    Raises:
        ConfigError: If the limits leave no room for content
    """
    size = CHUNK_SIZE_BYTES
    if max_message_length is not None:
        size = min(size, max_message_length - allowance)
    if max_content_length is not None:
        size = min(size, max_content_length)
    size -= size % 4
    if size <= 0:
        raise ConfigError(
            f"Relay limits (message={max_message_length}, content={max_content_length}) "
            f"leave no room for chunk content"
        )
    return size


def recommended_chunk_size(url: str, client: Optional[httpx.Client] = None) -> int:
    """Chunk size for a relay, falling back to the default when it advertises no limits."""
    info = fetch_relay_information(url, client=client)
    if info.limitation is None:
        return CHUNK_SIZE_BYTES
    return chunk_size_for_limit(
        info.limitation.max_message_length,
        info.limitation.max_content_length,
    )

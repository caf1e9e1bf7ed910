"""Relay adapters: websocket client and relay information lookup."""

from relay.relay_client import RelayClient
from relay.relay_info import (
    RelayInformation,
    chunk_size_for_limit,
    fetch_relay_information,
    recommended_chunk_size,
)

__all__ = [
    "RelayClient",
    "RelayInformation",
    "chunk_size_for_limit",
    "fetch_relay_information",
    "recommended_chunk_size",
]

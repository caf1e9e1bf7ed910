"""Shared pytest fixtures for all tests."""

import asyncio
import base64

import pytest

from cli.config import Config
from common.types import EncodedPayload


class RecordingSink:
    """
    Publish sink that records messages and can fail selected chunks.

    Args:
        fail_indices: Chunk indices whose publish raises ConnectionError
        delays: Optional per-index sleep in seconds, to shuffle completion order
    """

    def __init__(self, fail_indices=(), delays=None, relay_url="wss://relay.test"):
        self.fail_indices = set(fail_indices)
        self.delays = delays or {}
        self.relay_url = relay_url
        self.published = []
        self.in_flight = 0
        self.max_in_flight = 0

    async def publish(self, message):
        index = int(dict((t[0], t[1]) for t in message.tags)["index"])
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            await asyncio.sleep(self.delays.get(index, 0))
            if index in self.fail_indices:
                raise ConnectionError(f"relay dropped chunk {index}")
            self.published.append(message)
            return f"id-{index}"
        finally:
            self.in_flight -= 1


class StaticDecoder:
    """Decoder returning a fixed payload, counting calls."""

    def __init__(self, content: bytes, mime_type: str = "text/plain"):
        self.payload = EncodedPayload(mime_type, base64.b64encode(content).decode("ascii"))
        self.calls = 0

    async def decode(self, source):
        self.calls += 1
        return self.payload


@pytest.fixture
def recording_sink():
    return RecordingSink()


@pytest.fixture
def temp_config_dir(tmp_path):
    """
    Create temporary config directory.

    Returns:
        Path to temporary .chunkey directory
    """
    config_dir = tmp_path / '.chunkey'
    config_dir.mkdir()
    return config_dir


@pytest.fixture
def temp_config(temp_config_dir, monkeypatch):
    """
    Create temporary config instance with no environment overrides.
    """
    for name in ("CHUNKEY_RELAYS", "CHUNKEY_CHUNK_SIZE", "CHUNKEY_TIMEOUT"):
        monkeypatch.delenv(name, raising=False)
    return Config(temp_config_dir / 'config.json')


@pytest.fixture
def sample_file(tmp_path):
    """
    Create a sample text file.

    Returns:
        Path to sample text file
    """
    file_path = tmp_path / 'test.txt'
    file_path.write_text('Sample content for testing')
    return file_path


@pytest.fixture
def binary_file(tmp_path):
    """
    Create a binary file covering every byte value.

    Returns:
        Path to sample binary file
    """
    file_path = tmp_path / 'blob.bin'
    file_path.write_bytes(bytes(range(256)) * 8)
    return file_path

"""Command handler functions for CLI operations."""

import asyncio
import mimetypes
from pathlib import Path
from typing import Callable, List, Optional

import httpx

from chunkey.publisher import Publisher
from chunkey.reassembler import reassemble
from chunkey.sinks import JsonLinesSink, read_messages
from cli.models import LimitsCommand, PublishCommand, ReassembleCommand
from common.constants import BLOB
from common.logging_config import get_logger
from common.protocol import chunk_filter
from common.types import Attachment, ReassembledFile, TaggedMessage
from relay.relay_client import RelayClient
from relay.relay_info import chunk_size_for_limit, fetch_relay_information, recommended_chunk_size

logger = get_logger(__name__)

RelayFactory = Callable[..., RelayClient]


async def handle_publish(cmd: PublishCommand, http_client: Optional[httpx.Client] = None) -> str:
    """
    Handle 'publish': write one unsigned event per chunk to a JSON-lines file.

    Args:
        cmd: PublishCommand
        http_client: Optional httpx client for the relay information lookup (testing)

    Returns:
        Summary message
    """
    chunk_size = cmd.chunk_size
    if cmd.relay_info_url:
        chunk_size = await asyncio.to_thread(recommended_chunk_size, cmd.relay_info_url, http_client)
        logger.info(f"Using chunk size {chunk_size} from {cmd.relay_info_url}")

    attachment = Attachment(event_id=cmd.attach, relay_hint=cmd.relay_hint) if cmd.attach else None
    publisher = Publisher(JsonLinesSink(cmd.output_path), kind=cmd.kind)
    result = await publisher.publish(
        cmd.file_path,
        tags=cmd.tags,
        description=cmd.description,
        attach=attachment,
        chunk_size=chunk_size,
    )

    lines = [
        f"File: {cmd.file_path}",
        f"Mime: {result.mime_type}",
        f"Hash: {result.file_hash}",
        f"Chunks: {len(result.succeeded)}/{result.total} written to {cmd.output_path}",
    ]
    for outcome in result.failed:
        lines.append(f"  chunk {outcome.index} failed: {outcome.error.cause}")
    return "\n".join(lines)


def output_filename(entry: ReassembledFile) -> str:
    extension = mimetypes.guess_extension(entry.mime_type) or ".bin"
    return f"{entry.file_hash}{extension}"


async def _fetch_from_relays(cmd: ReassembleCommand, relay_factory: RelayFactory) -> List[TaggedMessage]:
    flt = chunk_filter(
        kind=cmd.kind if cmd.kind is not None else BLOB,
        attach=cmd.attach,
        file_hash=cmd.file_hash,
    )

    async def fetch_one(url: str) -> List[TaggedMessage]:
        async with relay_factory(url, timeout=cmd.timeout) as client:
            return await client.fetch(flt)

    results = await asyncio.gather(*(fetch_one(url) for url in cmd.relays), return_exceptions=True)

    messages: List[TaggedMessage] = []
    for url, result in zip(cmd.relays, results):
        if isinstance(result, BaseException):
            logger.warning(f"Fetching from {url} failed: {result}")
            continue
        messages.extend(result)
    return messages


async def handle_reassemble(cmd: ReassembleCommand, relay_factory: Optional[RelayFactory] = None) -> str:
    """
    Handle 'reassemble': gather events, rebuild files and write the valid ones.

    Args:
        cmd: ReassembleCommand
        relay_factory: Builds a RelayClient from a URL and timeout (injected in tests)

    Returns:
        Summary message listing written files, invalid groups and excluded events
    """
    messages: List[TaggedMessage] = []
    for path in cmd.inputs:
        messages.extend(read_messages(path))
    if cmd.relays:
        messages.extend(await _fetch_from_relays(cmd, relay_factory or RelayClient))

    result = reassemble(messages)

    output_dir = Path(cmd.output_dir)
    output_dir.mkdir(parents=True, exist_ok=True)

    lines = [f"Events: {len(messages)}, files: {len(result.files)}"]
    for key, entry in sorted(result.files.items()):
        if entry.valid:
            target = output_dir / output_filename(entry)
            target.write_bytes(entry.content)
            note = "" if entry.hash_matches else " (hash mismatch)"
            lines.append(f"  wrote {target} [{entry.mime_type}, {len(entry.content)} bytes]{note}")
        else:
            lines.append(f"  invalid {key}: {entry.error}")
    for error in result.errors:
        lines.append(f"  excluded: {error}")
    return "\n".join(lines)


def handle_limits(cmd: LimitsCommand, http_client: Optional[httpx.Client] = None) -> str:
    """
    Handle 'limits': show a relay's limitation block and the derived chunk size.
    """
    info = fetch_relay_information(cmd.relay_url, client=http_client)
    lines = [f"Relay: {info.name or cmd.relay_url}"]
    limitation = info.limitation
    if limitation is None:
        lines.append("No limits advertised")
        lines.append(f"Chunk size: {chunk_size_for_limit(None)}")
        return "\n".join(lines)

    lines.append(f"Max message length: {limitation.max_message_length}")
    lines.append(f"Max content length: {limitation.max_content_length}")
    lines.append(
        f"Chunk size: {chunk_size_for_limit(limitation.max_message_length, limitation.max_content_length)}"
    )
    return "\n".join(lines)

"""Publish orchestration: decode, hash, split, tag and submit every chunk."""

import asyncio
from typing import Any, Iterable, List, Optional, Protocol, Sequence, Union

from chunkey.file_loader import FileDecoder
from chunkey.hasher import compute_file_hash
from chunkey.splitter import split_payload, validate_chunk_size
from chunkey.tags import build_message, normalize_tags
from common.constants import BLOB, CHUNK_SIZE_BYTES
from common.exceptions import ChunkeyError, ConfigError, FileReadError, PublishError
from common.logging_config import get_logger
from common.types import (
    Attachment,
    ChunkOutcome,
    EncodedPayload,
    PublishResult,
    TaggedMessage,
)

logger = get_logger(__name__)


class PublishSink(Protocol):
    async def publish(self, message: TaggedMessage) -> Any:
        ...


class Decoder(Protocol):
    async def decode(self, source: Any) -> EncodedPayload:
        ...


def validate_kind(kind) -> int:
    if isinstance(kind, bool) or not isinstance(kind, int) or kind < 0:
        raise ConfigError(f"Kind must be a non-negative integer, got {kind!r}")
    return kind


class Publisher:
    """
    Publishes files as chunk messages through a sink.

    Each call to publish() is independent; results are built per call.
    """

    def __init__(
        self,
        sink: PublishSink,
        decoder: Optional[Decoder] = None,
        chunk_size: int = CHUNK_SIZE_BYTES,
        kind: int = BLOB,
    ):
        self.sink = sink
        self.decoder = decoder or FileDecoder()
        self.chunk_size = validate_chunk_size(chunk_size)
        self.kind = validate_kind(kind)

    def _resolve_attachment(self, attach: Union[Attachment, str, None]) -> Optional[Attachment]:
        if attach is None or isinstance(attach, Attachment):
            return attach
        if not isinstance(attach, str) or not attach:
            raise ConfigError(f"Attachment must be an event id or Attachment, got {attach!r}")
        relay_hint = getattr(self.sink, "relay_url", "")
        if not isinstance(relay_hint, str):
            relay_hint = ""
        return Attachment(event_id=attach, relay_hint=relay_hint)

    async def publish(
        self,
        source: Any,
        kind: Optional[int] = None,
        tags: Optional[Iterable[Sequence[str]]] = None,
        description: Optional[str] = None,
        attach: Union[Attachment, str, None] = None,
        chunk_size: Optional[int] = None,
    ) -> PublishResult:
        """
        Publish one file as a sequence of chunk messages.

        Args:
            source: Anything the decoder accepts (path, bytes, data URL)
            kind: Classification code applied to every chunk
            tags: Extra tags added to every chunk
            description: Human readable description (alt tag)
            attach: Parent event the chunks belong to
            chunk_size: Override of the publisher's chunk size

        Returns:
            PublishResult with one outcome per chunk, in index order

        Raises:
            ConfigError: If any parameter is invalid (before any work)
            FileReadError: If the source cannot be loaded
            DecodeError: If the payload is not valid base64
        """
        kind = validate_kind(self.kind if kind is None else kind)
        size = validate_chunk_size(self.chunk_size if chunk_size is None else chunk_size)
        extra_tags = normalize_tags(tags)
        attachment = self._resolve_attachment(attach)

        try:
            payload = await self.decoder.decode(source)
        except ChunkeyError:
            raise
        except Exception as e:
            raise FileReadError(f"Could not load {source!r}: {e}") from e

        file_hash = compute_file_hash(payload.base64)
        chunks = split_payload(payload.base64, size)
        messages = [
            build_message(
                chunk,
                kind=kind,
                mime_type=payload.mime_type,
                file_hash=file_hash,
                tags=extra_tags,
                description=description,
                attachment=attachment,
            )
            for chunk in chunks
        ]

        logger.info(f"Publishing {payload.mime_type} file {file_hash[:12]} as {len(messages)} chunks (kind {kind})")
        outcomes = await self._submit_all(list(enumerate(messages)))

        result = PublishResult(
            mime_type=payload.mime_type,
            file_hash=file_hash,
            kind=kind,
            outcomes=tuple(outcomes),
        )
        self._log_result(result)
        return result

    async def retry_failed(self, result: PublishResult) -> PublishResult:
        """
        Resubmit only the failed chunks of a previous result.

        Returns:
            A new PublishResult where retried outcomes replace the failed ones
        """
        failed = [(o.index, o.message) for o in result.failed]
        if not failed:
            return result

        logger.info(f"Retrying {len(failed)} failed chunks of {result.file_hash[:12]}")
        retried = {o.index: o for o in await self._submit_all(failed)}
        merged = PublishResult(
            mime_type=result.mime_type,
            file_hash=result.file_hash,
            kind=result.kind,
            outcomes=tuple(retried.get(o.index, o) for o in result.outcomes),
        )
        self._log_result(merged)
        return merged

    async def _submit_all(self, indexed: List[tuple]) -> List[ChunkOutcome]:
        return list(await asyncio.gather(*(self._submit(index, message) for index, message in indexed)))

    async def _submit(self, index: int, message: TaggedMessage) -> ChunkOutcome:
        try:
            result = await self.sink.publish(message)
        except Exception as e:
            error = PublishError(index, e)
            logger.warning(str(error))
            return ChunkOutcome(index=index, message=message, error=error)
        logger.debug(f"Published chunk {index}")
        return ChunkOutcome(index=index, message=message, result=result)

    def _log_result(self, result: PublishResult) -> None:
        if result.complete:
            logger.info(f"Published all {result.total} chunks of {result.file_hash[:12]}")
        else:
            logger.warning(
                f"Published {len(result.succeeded)}/{result.total} chunks of {result.file_hash[:12]}, "
                f"failed indices: {result.failed_indices}"
            )


async def publish_file(
    sink: PublishSink,
    source: Any,
    kind: int = BLOB,
    tags: Optional[Iterable[Sequence[str]]] = None,
    description: Optional[str] = None,
    attach: Union[Attachment, str, None] = None,
    chunk_size: int = CHUNK_SIZE_BYTES,
    decoder: Optional[Decoder] = None,
) -> PublishResult:
    """Convenience wrapper around Publisher.publish()."""
    publisher = Publisher(sink, decoder=decoder, chunk_size=chunk_size, kind=kind)
    return await publisher.publish(source, tags=tags, description=description, attach=attach)

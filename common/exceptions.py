"""Exception classes shared by the publisher, reassembler and relay adapters."""

from typing import Any, List, Optional, Sequence


class ChunkeyError(Exception):
    """
    Base exception class for all chunking and reassembly errors.
    """
    pass


class ConfigError(ChunkeyError):
    """
    Raised when a chunk size, kind or tag list is invalid.
    """
    pass


class FileReadError(ChunkeyError):
    """
    Raised when the source file cannot be loaded.
    """
    pass


class DecodeError(ChunkeyError):
    """
    Raised when an encoded payload is not valid base64.
    """
    pass


class MalformedTagError(ChunkeyError):
    """
    Raised when a tag entry is not a sequence of at least two strings.
    """
    pass


class RelayError(ChunkeyError):
    """
    Raised when a relay rejects a message or the connection fails.
    """
    pass


class PublishError(ChunkeyError):
    """
    Raised (and collected) when a single chunk could not be submitted.
    """

    def __init__(self, index: int, cause: BaseException):
        super().__init__(f"Failed to publish chunk {index}: {cause}")
        self.index = index
        self.cause = cause


class UntaggedMessageError(ChunkeyError):
    """
    A retrieved message has no usable mime or hash tag.
    """

    def __init__(self, message: Any, reason: str):
        super().__init__(f"Message {_describe(message)} excluded: {reason}")
        self.message = message
        self.reason = reason


class InvalidIndexError(ChunkeyError):
    """
    A retrieved message has a missing or non-numeric index tag.
    """

    def __init__(self, message: Any, raw_index: Optional[str], reason: str = ""):
        detail = reason or f"invalid index {raw_index!r}"
        super().__init__(f"Message {_describe(message)} excluded: {detail}")
        self.message = message
        self.raw_index = raw_index


class IncompleteGroupError(ChunkeyError):
    """
    A group's indices are not exactly 0..K-1 without duplicates.

    K is the number of distinct indices in the group. Indices at or above
    K are reported as out of range.
    """

    def __init__(
        self,
        key: str,
        missing: Sequence[int],
        duplicates: Sequence[int],
        out_of_range: Sequence[int] = (),
    ):
        parts = []
        if missing:
            parts.append(f"missing indices {list(missing)}")
        if duplicates:
            parts.append(f"duplicate indices {list(duplicates)}")
        if out_of_range:
            parts.append(f"out-of-range indices {list(out_of_range)}")
        super().__init__(f"Group {key} is incomplete: {', '.join(parts)}")
        self.key = key
        self.missing: List[int] = list(missing)
        self.duplicates: List[int] = list(duplicates)
        self.out_of_range: List[int] = list(out_of_range)


def _describe(message: Any) -> str:
    event_id = getattr(message, "event_id", None)
    return event_id[:12] if event_id else "<unsigned>"

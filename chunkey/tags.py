"""Tag construction for chunk messages and validated tag lookup."""

from typing import Iterable, List, Optional, Sequence, Tuple

from common.constants import (
    TAG_DESCRIPTION,
    TAG_HASH,
    TAG_INDEX,
    TAG_MIME,
)
from common.exceptions import ConfigError, MalformedTagError
from common.types import Attachment, Chunk, Tag, TaggedMessage


def normalize_tags(tags: Optional[Iterable[Sequence[str]]]) -> Tuple[Tag, ...]:
    """
    Validate caller-supplied tags and freeze them.

    Raises:
        ConfigError: If an entry is empty or contains non-string values
    """
    if tags is None:
        return ()
    normalized = []
    for entry in tags:
        if isinstance(entry, str) or not isinstance(entry, Sequence) or not entry:
            raise ConfigError(f"Tag entries must be non-empty lists of strings, got {entry!r}")
        if not all(isinstance(value, str) for value in entry):
            raise ConfigError(f"Tag values must be strings, got {entry!r}")
        normalized.append(tuple(entry))
    return tuple(normalized)


def build_tags(
    index: int,
    mime_type: str,
    file_hash: str,
    tags: Optional[Iterable[Sequence[str]]] = None,
    description: Optional[str] = None,
    attachment: Optional[Attachment] = None,
) -> Tuple[Tag, ...]:
    """
    Assemble the tag list of one chunk.

    Order: attachment, caller tags, mime, description, index, hash.
    """
    result: List[Tag] = []
    if attachment is not None:
        result.append(attachment.to_tag())
    result.extend(normalize_tags(tags))
    result.append((TAG_MIME, mime_type))
    if description:
        result.append((TAG_DESCRIPTION, description))
    result.append((TAG_INDEX, str(index)))
    result.append((TAG_HASH, file_hash))
    return tuple(result)


def build_message(
    chunk: Chunk,
    kind: int,
    mime_type: str,
    file_hash: str,
    tags: Optional[Iterable[Sequence[str]]] = None,
    description: Optional[str] = None,
    attachment: Optional[Attachment] = None,
) -> TaggedMessage:
    return TaggedMessage(
        kind=kind,
        content=chunk.data,
        tags=build_tags(chunk.index, mime_type, file_hash, tags, description, attachment),
    )


def _matching_entry(tags: Iterable, key: str) -> Optional[Tuple[str, ...]]:
    for entry in tags:
        if isinstance(entry, (str, bytes)) or not isinstance(entry, Sequence) or not entry:
            continue
        if entry[0] != key:
            continue
        if len(entry) < 2 or not all(isinstance(value, str) for value in entry):
            raise MalformedTagError(f"Malformed {key!r} tag: {list(entry)!r}")
        return tuple(entry)
    return None


def get_tag_value(tags: Iterable, key: str) -> Optional[str]:
    """
    Return the first value of the first tag named key.

    Entries that are not tags at all are skipped. An entry named key that
    has no value or non-string values is rejected.

    Returns:
        The value, or None if no tag has that name

    Raises:
        MalformedTagError: If the matching entry is malformed
    """
    entry = _matching_entry(tags, key)
    return entry[1] if entry is not None else None


def get_tag_values(tags: Iterable, key: str) -> List[str]:
    """All values of the first tag named key (empty if absent)."""
    entry = _matching_entry(tags, key)
    return list(entry[1:]) if entry is not None else []


def has_tag(tags: Iterable, key: str, value: str) -> bool:
    """True if any well-formed tag has both this key and this first value."""
    for entry in tags:
        if (
            isinstance(entry, Sequence)
            and not isinstance(entry, (str, bytes))
            and len(entry) >= 2
            and entry[0] == key
            and entry[1] == value
        ):
            return True
    return False

"""Reassembly of files from an unordered collection of chunk messages."""

import re
from collections import Counter
from typing import Dict, Iterable, List, Tuple

from chunkey.hasher import decode_payload, verify_file_hash
from chunkey.tags import get_tag_value
from common.constants import TAG_HASH, TAG_INDEX, TAG_MIME
from common.exceptions import (
    DecodeError,
    IncompleteGroupError,
    InvalidIndexError,
    MalformedTagError,
    UntaggedMessageError,
)
from common.logging_config import get_logger
from common.types import ReassembledFile, ReassemblyResult, TaggedMessage

logger = get_logger(__name__)

INDEX_PATTERN = re.compile(r'^[0-9]+$')


def group_key(mime_type: str, file_hash: str) -> str:
    return f"{mime_type}:{file_hash}"


def parse_index(message: TaggedMessage) -> int:
    """
    Read the index tag of a message as a non-negative base-10 integer.

    Raises:
        InvalidIndexError: If the tag is missing, malformed or not numeric
    """
    try:
        raw = get_tag_value(message.tags, TAG_INDEX)
    except MalformedTagError as e:
        raise InvalidIndexError(message, None, str(e)) from e
    if raw is None:
        raise InvalidIndexError(message, None, "missing index tag")
    if not INDEX_PATTERN.match(raw):
        raise InvalidIndexError(message, raw)
    return int(raw)


def _identity(message: TaggedMessage) -> Tuple[str, str]:
    """
    Raises:
        UntaggedMessageError: If the mime or hash tag is missing or malformed
    """
    try:
        mime = get_tag_value(message.tags, TAG_MIME)
        file_hash = get_tag_value(message.tags, TAG_HASH)
    except MalformedTagError as e:
        raise UntaggedMessageError(message, str(e)) from e
    if mime is None:
        raise UntaggedMessageError(message, "missing mime tag")
    if file_hash is None:
        raise UntaggedMessageError(message, "missing hash tag")
    return mime, file_hash


def _stitch(key: str, mime: str, file_hash: str, entries: List[Tuple[int, TaggedMessage]]) -> ReassembledFile:
    entries.sort(key=lambda entry: entry[0])
    indices = tuple(index for index, _ in entries)

    counts = Counter(indices)
    expected = len(counts)
    duplicates = sorted(index for index, count in counts.items() if count > 1)
    missing = [index for index in range(expected) if index not in counts]
    out_of_range = sorted(index for index in counts if index >= expected)

    if missing or duplicates or out_of_range:
        error = IncompleteGroupError(key, missing, duplicates, out_of_range)
        logger.warning(str(error))
        return ReassembledFile(
            mime_type=mime,
            file_hash=file_hash,
            content=None,
            valid=False,
            indices=indices,
            error=error,
        )

    try:
        content = decode_payload("".join(message.content for _, message in entries))
    except DecodeError as e:
        logger.warning(f"Group {key} could not be decoded: {e}")
        return ReassembledFile(
            mime_type=mime,
            file_hash=file_hash,
            content=None,
            valid=False,
            indices=indices,
            error=e,
        )

    matches = verify_file_hash(content, file_hash)
    if not matches:
        logger.warning(f"Group {key} reassembled but content does not match its hash")

    return ReassembledFile(
        mime_type=mime,
        file_hash=file_hash,
        content=content,
        valid=True,
        indices=indices,
        hash_matches=matches,
    )


def reassemble(messages: Iterable[TaggedMessage]) -> ReassemblyResult:
    """
    Group, validate, order and stitch chunk messages back into files.

    Messages of several files may be mixed in any order. Identical
    messages appearing more than once are counted once. Messages without
    identity or index tags are excluded and reported in result.errors.
    A group whose indices are not exactly 0..K-1 is returned invalid,
    without content.

    Args:
        messages: Any iterable of TaggedMessage; it is not modified

    Returns:
        ReassemblyResult keyed by "mime:hash"
    """
    result = ReassemblyResult()
    groups: Dict[Tuple[str, str], List[Tuple[int, TaggedMessage]]] = {}
    seen = set()

    for message in messages:
        if message is None:
            continue
        try:
            if message in seen:
                continue
            seen.add(message)
        except TypeError:
            # unhashable tag values; let tag validation reject it
            pass

        try:
            identity = _identity(message)
            index = parse_index(message)
        except (UntaggedMessageError, InvalidIndexError) as e:
            logger.warning(str(e))
            result.errors.append(e)
            continue

        groups.setdefault(identity, []).append((index, message))

    for (mime, file_hash), entries in groups.items():
        key = group_key(mime, file_hash)
        result.files[key] = _stitch(key, mime, file_hash, entries)

    logger.debug(
        f"Reassembled {len(result.contents)}/{len(result.files)} groups, "
        f"{len(result.errors)} messages excluded"
    )
    return result

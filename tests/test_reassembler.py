"""Tests for reassembly of chunk messages."""

import base64
import itertools
import random

import pytest

from chunkey.hasher import compute_file_hash
from chunkey.reassembler import parse_index, reassemble
from chunkey.splitter import split_payload
from chunkey.tags import build_message
from common.constants import BLOB
from common.exceptions import (
    DecodeError,
    IncompleteGroupError,
    InvalidIndexError,
    UntaggedMessageError,
)
from common.types import TaggedMessage


def make_messages(content: bytes, chunk_size: int, mime: str = "text/plain"):
    payload = base64.b64encode(content).decode("ascii")
    file_hash = compute_file_hash(payload)
    messages = [
        build_message(chunk, kind=BLOB, mime_type=mime, file_hash=file_hash)
        for chunk in split_payload(payload, chunk_size)
    ]
    return f"{mime}:{file_hash}", messages


def test_concrete_example_reassembles():
    key, messages = make_messages(b"abcdef", 3)
    result = reassemble(messages)

    assert result.contents == {key: b"abcdef"}
    assert result.validity == {key: True}
    assert result.files[key].text() == "abcdef"
    assert result.files[key].indices == (0, 1, 2)
    assert result.errors == []


def test_single_chunk_group():
    key, messages = make_messages(b"abcdef", 100)
    assert len(messages) == 1
    assert reassemble(messages).contents[key] == b"abcdef"


def test_empty_input_and_absent_key():
    result = reassemble([])
    assert result.files == {}
    assert result.content_for("text/plain", "nohash") == b""


def test_every_permutation_gives_same_output():
    key, messages = make_messages(b"permutation test", 5)
    outputs = {reassemble(list(order)).contents[key] for order in itertools.permutations(messages)}
    assert outputs == {b"permutation test"}


def test_interleaved_files_are_kept_apart():
    key_a, file_a = make_messages(b"first file content", 4)
    key_b, file_b = make_messages(b"second file, longer content", 4)
    key_c, file_c = make_messages(b"first file content", 4, mime="text/markdown")
    mixed = file_a + file_b + file_c
    random.Random(7).shuffle(mixed)

    result = reassemble(mixed)

    assert result.contents == {
        key_a: b"first file content",
        key_b: b"second file, longer content",
        key_c: b"first file content",
    }


def test_missing_index_marks_group_invalid():
    """A group with indices {0, 2} is never stitched as if complete."""
    key, messages = make_messages(b"abcdef", 3)
    result = reassemble([messages[0], messages[2]])

    entry = result.files[key]
    assert not entry.valid
    assert entry.content is None
    assert isinstance(entry.error, IncompleteGroupError)
    assert entry.error.missing == [1]
    assert entry.error.duplicates == []
    assert result.validity == {key: False}
    assert key not in result.contents
    assert result.content_for(*key.split(":", 1)) is None
    with pytest.raises(ValueError):
        entry.text()


def test_missing_first_index():
    key, messages = make_messages(b"abcdef", 3)
    entry = reassemble(messages[1:]).files[key]
    assert not entry.valid
    assert entry.error.missing == [0]
    assert entry.error.out_of_range == [2]


def test_huge_index_is_out_of_range():
    """A single chunk claiming index 1000000000 does not expand into a billion missing slots."""
    key, messages = make_messages(b"abcdef", 3)
    tags = tuple(("index", "1000000000") if tag[0] == "index" else tag for tag in messages[1].tags)
    far = TaggedMessage(kind=BLOB, content=messages[1].content, tags=tags)

    entry = reassemble([messages[0], far]).files[key]

    assert entry.valid is False
    assert entry.content is None
    assert entry.error.missing == [1]
    assert entry.error.out_of_range == [1000000000]
    assert "out-of-range indices [1000000000]" in str(entry.error)


def test_conflicting_duplicate_index_marks_group_invalid():
    key, messages = make_messages(b"abcdef", 3)
    forged = TaggedMessage(kind=BLOB, content="AAA", tags=messages[1].tags)
    entry = reassemble(messages + [forged]).files[key]

    assert not entry.valid
    assert entry.error.duplicates == [1]
    assert entry.error.missing == []


def test_identical_duplicates_are_collapsed():
    key, messages = make_messages(b"abcdef", 3)
    result = reassemble(messages + messages[:2])
    assert result.contents[key] == b"abcdef"


def test_untagged_messages_are_reported():
    key, messages = make_messages(b"abcdef", 3)
    no_mime = TaggedMessage(kind=BLOB, content="YWJ", tags=(("index", "0"), ("x", "h")))
    no_hash = TaggedMessage(kind=BLOB, content="YWJ", tags=(("m", "text/plain"), ("index", "0")))
    malformed = TaggedMessage(kind=BLOB, content="YWJ", tags=(("m",), ("x", "h"), ("index", "0")))

    result = reassemble(messages + [no_mime, no_hash, malformed])

    assert result.contents == {key: b"abcdef"}
    assert len(result.errors) == 3
    assert all(isinstance(e, UntaggedMessageError) for e in result.errors)
    assert {e.message for e in result.errors} == {no_mime, no_hash, malformed}


@pytest.mark.parametrize("raw", ["-1", "1.0", "one", "", " 1", "+1", "٣"])
def test_invalid_index_excludes_only_that_message(raw):
    key, messages = make_messages(b"abcdef", 3)
    bad = TaggedMessage(kind=BLOB, content="Vm", tags=(("m", "text/plain"), ("index", raw), ("x", "h")))

    result = reassemble(messages + [bad])

    assert result.contents[key] == b"abcdef"
    assert len(result.errors) == 1
    assert isinstance(result.errors[0], InvalidIndexError)
    assert result.errors[0].raw_index == raw


def test_missing_index_tag():
    message = TaggedMessage(kind=BLOB, content="Vm", tags=(("m", "text/plain"), ("x", "h")))
    with pytest.raises(InvalidIndexError):
        parse_index(message)


def test_index_parsing_accepts_leading_zeros():
    message = TaggedMessage(kind=BLOB, content="Vm", tags=(("index", "007"),))
    assert parse_index(message) == 7


def test_undecodable_group_is_invalid():
    messages = [
        TaggedMessage(kind=BLOB, content="YW!", tags=(("m", "text/plain"), ("index", "0"), ("x", "h"))),
    ]
    entry = reassemble(messages).files["text/plain:h"]
    assert not entry.valid
    assert isinstance(entry.error, DecodeError)


def test_hash_mismatch_is_flagged_but_content_kept():
    messages = [
        TaggedMessage(kind=BLOB, content="YWJjZGVm", tags=(("m", "text/plain"), ("index", "0"), ("x", "0" * 64))),
    ]
    entry = reassemble(messages).files[f"text/plain:{'0' * 64}"]
    assert entry.valid
    assert entry.content == b"abcdef"
    assert entry.hash_matches is False


def test_input_is_not_mutated():
    key, messages = make_messages(b"abcdef", 3)
    shuffled = [messages[2], messages[0], messages[1]]
    snapshot = list(shuffled)
    reassemble(shuffled)
    assert shuffled == snapshot


def test_accepts_generators_and_sets():
    key, messages = make_messages(b"a set of chunks", 4)
    assert reassemble(set(messages)).contents[key] == b"a set of chunks"
    assert reassemble(m for m in messages).contents[key] == b"a set of chunks"


def test_list_tags_from_the_wire_are_accepted():
    message = TaggedMessage(kind=BLOB, content="YWJjZGVm", tags=(["m", "text/plain"], ["index", "0"], ["x", "h"]))
    assert reassemble([message]).contents == {"text/plain:h": b"abcdef"}

"""Chunked file publishing and reassembly."""

from chunkey.file_loader import FileDecoder, load_file, parse_data_url
from chunkey.hasher import compute_file_hash, verify_file_hash
from chunkey.publisher import Publisher, publish_file
from chunkey.reassembler import reassemble
from chunkey.splitter import split_payload
from chunkey.tags import build_message, build_tags, get_tag_value, get_tag_values, has_tag

__all__ = [
    "FileDecoder",
    "Publisher",
    "build_message",
    "build_tags",
    "compute_file_hash",
    "get_tag_value",
    "get_tag_values",
    "has_tag",
    "load_file",
    "parse_data_url",
    "publish_file",
    "reassemble",
    "split_payload",
    "verify_file_hash",
]

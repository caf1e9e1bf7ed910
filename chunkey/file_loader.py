"""Default decode capability: file path or data URL to (mime, base64)."""

import asyncio
import base64
import mimetypes
import re
from pathlib import Path
from typing import Union
from urllib.parse import unquote_to_bytes

from common.constants import DEFAULT_MIME_TYPE
from common.exceptions import DecodeError, FileReadError
from common.logging_config import get_logger
from common.types import EncodedPayload

logger = get_logger(__name__)

DATA_URL_PATTERN = re.compile(r'^data:(?P<mime>[^;,]*)(?P<params>(?:;[^;,]*)*),(?P<data>.*)$', re.DOTALL)


def parse_data_url(url: str) -> EncodedPayload:
    """
    Split a data URL into mime type and base64 payload.

    Non-base64 data URLs are percent-decoded and re-encoded.

    Raises:
        DecodeError: If the string is not a data URL
    """
    match = DATA_URL_PATTERN.match(url)
    if not match:
        raise DecodeError("Not a data URL")

    mime = match.group("mime") or DEFAULT_MIME_TYPE
    params = [p for p in match.group("params").split(";") if p]
    data = match.group("data")

    if "base64" in params:
        return EncodedPayload(mime_type=mime, base64=data)

    return EncodedPayload(mime_type=mime, base64=base64.b64encode(unquote_to_bytes(data)).decode("ascii"))


def guess_mime_type(path: Path) -> str:
    mime, _ = mimetypes.guess_type(path.name)
    return mime or DEFAULT_MIME_TYPE


def _read_file(path: Path) -> EncodedPayload:
    data = path.read_bytes()
    return EncodedPayload(
        mime_type=guess_mime_type(path),
        base64=base64.b64encode(data).decode("ascii"),
    )


class FileDecoder:
    """
    Loads a whole file and base64-encodes it off the event loop.

    Accepts a filesystem path, raw bytes (with an explicit mime type
    set on the decoder) or a data URL string.
    """

    def __init__(self, default_mime_type: str = DEFAULT_MIME_TYPE):
        self.default_mime_type = default_mime_type

    async def decode(self, source: Union[str, Path, bytes]) -> EncodedPayload:
        """
        Raises:
            FileReadError: If the file cannot be read
            DecodeError: If a data URL is malformed
        """
        if isinstance(source, bytes):
            return EncodedPayload(
                mime_type=self.default_mime_type,
                base64=base64.b64encode(source).decode("ascii"),
            )

        if isinstance(source, str) and source.startswith("data:"):
            return parse_data_url(source)

        path = Path(source)
        try:
            payload = await asyncio.to_thread(_read_file, path)
        except OSError as e:
            raise FileReadError(f"Could not read file {path}: {e}") from e

        logger.debug(f"Loaded {path} as {payload.mime_type} ({len(payload.base64)} base64 chars)")
        return payload


async def load_file(source: Union[str, Path, bytes]) -> EncodedPayload:
    return await FileDecoder().decode(source)

"""File-backed publish sink and loader for offline signing workflows."""

import asyncio
import json
from pathlib import Path
from typing import List, Union

from common.exceptions import FileReadError, RelayError
from common.logging_config import get_logger
from common.protocol import event_to_message, message_to_event
from common.types import TaggedMessage

logger = get_logger(__name__)


class JsonLinesSink:
    """
    Appends each published message as one JSON event per line.

    Writes are serialized with a lock, so concurrent publishes never
    interleave partial lines.
    """

    def __init__(self, path: Union[str, Path]):
        self.path = Path(path)
        self._lock = asyncio.Lock()

    async def publish(self, message: TaggedMessage) -> int:
        line = json.dumps(message_to_event(message), ensure_ascii=False) + "\n"
        async with self._lock:
            await asyncio.to_thread(self._append, line)
        return len(line)

    def _append(self, line: str) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        with open(self.path, "a", encoding="utf-8") as f:
            f.write(line)


def read_messages(path: Union[str, Path]) -> List[TaggedMessage]:
    """
    Load events from a JSON-lines file or a JSON array file.

    Lines that are not valid events are logged and skipped.

    Raises:
        FileReadError: If the file cannot be read
    """
    path = Path(path)
    try:
        text = path.read_text(encoding="utf-8")
    except OSError as e:
        raise FileReadError(f"Could not read events from {path}: {e}") from e

    stripped = text.lstrip()
    if stripped.startswith("["):
        try:
            raw_events = json.loads(stripped)
        except json.JSONDecodeError as e:
            raise FileReadError(f"Invalid JSON in {path}: {e}") from e
    else:
        raw_events = [line for line in text.splitlines() if line.strip()]

    messages = []
    for number, raw in enumerate(raw_events, start=1):
        try:
            messages.append(event_to_message(raw))
        except RelayError as e:
            logger.warning(f"Skipping event {number} in {path}: {e}")
    return messages

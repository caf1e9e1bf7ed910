"""Wire format: NIP-01 event JSON and relay frames."""

import json
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ValidationError

from common.constants import BLOB, TAG_ATTACHMENT, TAG_HASH
from common.exceptions import RelayError
from common.types import TaggedMessage


class WireEvent(BaseModel):
    """Event as it travels over the wire. Tag entries are validated later."""
    id: Optional[str] = None
    pubkey: Optional[str] = None
    created_at: Optional[int] = None
    kind: int
    tags: List[Any] = []
    content: str
    sig: Optional[str] = None

    def to_message(self) -> TaggedMessage:
        """Convert to a TaggedMessage, keeping malformed tags as-is for the reassembler to reject."""
        return TaggedMessage(
            kind=self.kind,
            content=self.content,
            tags=tuple(tuple(t) if isinstance(t, list) else t for t in self.tags),
            event_id=self.id,
            pubkey=self.pubkey,
            created_at=self.created_at,
            sig=self.sig,
        )


def message_to_event(message: TaggedMessage) -> Dict[str, Any]:
    """
    Serialize a message into an event dict.

    Unsigned messages only carry kind, content and tags; signing adds
    id, pubkey, created_at and sig.
    """
    event: Dict[str, Any] = {
        "kind": message.kind,
        "content": message.content,
        "tags": [list(tag) for tag in message.tags],
    }
    for name, value in (
        ("id", message.event_id),
        ("pubkey", message.pubkey),
        ("created_at", message.created_at),
        ("sig", message.sig),
    ):
        if value is not None:
            event[name] = value
    return event


def event_to_message(event: Any) -> TaggedMessage:
    """
    Parse an event dict (or JSON text) into a TaggedMessage.

    Raises:
        RelayError: If the event does not have the NIP-01 shape
    """
    try:
        if isinstance(event, (str, bytes)):
            return WireEvent.model_validate_json(event).to_message()
        return WireEvent.model_validate(event).to_message()
    except ValidationError as e:
        raise RelayError(f"Invalid event: {e.errors()[0]['msg']}") from e


def event_frame(event: Dict[str, Any]) -> str:
    return json.dumps(["EVENT", event], separators=(",", ":"), ensure_ascii=False)


def req_frame(subscription_id: str, filters: List[Dict[str, Any]]) -> str:
    return json.dumps(["REQ", subscription_id, *filters], separators=(",", ":"))


def close_frame(subscription_id: str) -> str:
    return json.dumps(["CLOSE", subscription_id], separators=(",", ":"))


def parse_frame(data: str) -> List[Any]:
    """
    Decode a relay-to-client frame.

    Raises:
        RelayError: If the frame is not a JSON array starting with a string
    """
    try:
        frame = json.loads(data)
    except json.JSONDecodeError as e:
        raise RelayError(f"Relay sent invalid JSON: {e}") from e
    if not isinstance(frame, list) or not frame or not isinstance(frame[0], str):
        raise RelayError(f"Relay sent malformed frame: {data[:80]}")
    return frame


def chunk_filter(
    kind: int = BLOB,
    attach: Optional[str] = None,
    file_hash: Optional[str] = None,
    limit: Optional[int] = None,
) -> Dict[str, Any]:
    """
    Build a REQ filter for chunk events.

    Args:
        kind: Classification code of the chunks
        attach: Parent event id the chunks were attached to
        file_hash: Restrict to the chunks of one file
        limit: Maximum number of events the relay should return

    Returns:
        Filter dict, e.g. {"kinds": [5391], "#e": ["<id>"]}
    """
    flt: Dict[str, Any] = {"kinds": [kind]}
    if attach:
        flt[f"#{TAG_ATTACHMENT}"] = [attach]
    if file_hash:
        flt[f"#{TAG_HASH}"] = [file_hash]
    if limit is not None:
        flt["limit"] = limit
    return flt

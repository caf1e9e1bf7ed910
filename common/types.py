"""Shared data type definitions (Chunk, TaggedMessage, PublishResult, etc.)."""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple

from common.constants import DEFAULT_RELATION_ROLE, TAG_ATTACHMENT
from common.exceptions import ChunkeyError, PublishError

Tag = Tuple[str, ...]


@dataclass(frozen=True)
class EncodedPayload:
    """
    A whole file as produced by the decode step.
    """
    mime_type: str
    base64: str


@dataclass(frozen=True)
class Chunk:
    """
    A contiguous slice of an encoded payload.
    """
    index: int
    data: str


@dataclass(frozen=True)
class Attachment:
    """
    Reference to a parent event the chunks are attached to.
    """
    event_id: str
    relay_hint: str = ""
    role: str = DEFAULT_RELATION_ROLE

    def to_tag(self) -> Tag:
        return (TAG_ATTACHMENT, self.event_id, self.relay_hint, self.role)


@dataclass(frozen=True)
class TaggedMessage:
    """
    The publishable unit: one chunk plus its identity and ordering tags.

    Transport fields are only set on messages retrieved from a relay.
    """
    kind: int
    content: str
    tags: Tuple[Tag, ...]
    event_id: Optional[str] = None
    pubkey: Optional[str] = None
    created_at: Optional[int] = None
    sig: Optional[str] = None


@dataclass(frozen=True)
class ChunkOutcome:
    """
    Result of submitting one chunk to a publish sink.
    """
    index: int
    message: TaggedMessage
    result: Any = None
    error: Optional[PublishError] = None

    @property
    def ok(self) -> bool:
        return self.error is None


@dataclass(frozen=True)
class PublishResult:
    """
    Aggregated outcome of one publish call, ordered by chunk index.
    """
    mime_type: str
    file_hash: str
    kind: int
    outcomes: Tuple[ChunkOutcome, ...]

    @property
    def key(self) -> str:
        return f"{self.mime_type}:{self.file_hash}"

    @property
    def total(self) -> int:
        return len(self.outcomes)

    @property
    def succeeded(self) -> List[ChunkOutcome]:
        return [o for o in self.outcomes if o.ok]

    @property
    def failed(self) -> List[ChunkOutcome]:
        return [o for o in self.outcomes if not o.ok]

    @property
    def failed_indices(self) -> List[int]:
        return [o.index for o in self.failed]

    @property
    def messages(self) -> List[TaggedMessage]:
        return [o.message for o in self.outcomes]

    @property
    def complete(self) -> bool:
        return not self.failed


@dataclass(frozen=True)
class ReassembledFile:
    """
    One reassembly group and its reconstructed content.

    content is None when the group is invalid.
    """
    mime_type: str
    file_hash: str
    content: Optional[bytes]
    valid: bool
    indices: Tuple[int, ...]
    error: Optional[ChunkeyError] = None
    hash_matches: Optional[bool] = None

    @property
    def key(self) -> str:
        return f"{self.mime_type}:{self.file_hash}"

    def text(self, encoding: str = "utf-8") -> str:
        if self.content is None:
            raise ValueError(f"Group {self.key} is invalid and has no content")
        return self.content.decode(encoding)


@dataclass
class ReassemblyResult:
    """
    Output of one reassemble call: files keyed by "mime:hash" plus
    the message-level errors that excluded messages from any group.
    """
    files: Dict[str, ReassembledFile] = field(default_factory=dict)
    errors: List[ChunkeyError] = field(default_factory=list)

    @property
    def contents(self) -> Dict[str, bytes]:
        return {key: f.content for key, f in self.files.items() if f.valid}

    @property
    def validity(self) -> Dict[str, bool]:
        return {key: f.valid for key, f in self.files.items()}

    @property
    def invalid(self) -> List[ReassembledFile]:
        return [f for f in self.files.values() if not f.valid]

    def content_for(self, mime_type: str, file_hash: str) -> Optional[bytes]:
        """
        Content for a key. An absent key yields b"", an invalid group None.
        """
        entry = self.files.get(f"{mime_type}:{file_hash}")
        if entry is None:
            return b""
        return entry.content

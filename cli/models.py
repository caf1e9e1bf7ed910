"""Command request data types for CLI."""

from dataclasses import dataclass
from typing import Literal, Optional, Union

from common.constants import RELAY_TIMEOUT_SECONDS


@dataclass(frozen=True)
class PublishCommand:
    """Split a file into chunk events written to a JSON-lines file."""

    file_path: str
    output_path: str
    kind: int
    tags: tuple[tuple[str, ...], ...] = ()
    description: Optional[str] = None
    attach: Optional[str] = None
    relay_hint: str = ""
    chunk_size: Optional[int] = None
    relay_info_url: Optional[str] = None
    command: Literal["publish"] = "publish"


@dataclass(frozen=True)
class ReassembleCommand:
    """Rebuild files from chunk events read from files and/or relays."""

    output_dir: str
    inputs: tuple[str, ...] = ()
    relays: tuple[str, ...] = ()
    kind: Optional[int] = None
    attach: Optional[str] = None
    file_hash: Optional[str] = None
    timeout: float = RELAY_TIMEOUT_SECONDS
    command: Literal["reassemble"] = "reassemble"


@dataclass(frozen=True)
class LimitsCommand:
    """Show a relay's advertised limits and the chunk size they allow."""

    relay_url: str
    command: Literal["limits"] = "limits"


CommandRequest = Union[PublishCommand, ReassembleCommand, LimitsCommand]

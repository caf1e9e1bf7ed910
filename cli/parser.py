"""Command line parser."""

import argparse
from typing import List, Optional

from cli.config import Config
from cli.models import CommandRequest, LimitsCommand, PublishCommand, ReassembleCommand
from common.constants import KINDS, RELAY_TIMEOUT_SECONDS


class ParseError(Exception):
    """Raised when command parsing fails."""

    pass


def parse_kind(value: str) -> int:
    """
    Accept a kind name (blob, html, css, js) or a number.

    Raises:
        ParseError: If the value is neither
    """
    name = value.strip().lower()
    if name in KINDS:
        return KINDS[name]
    if name.isascii() and name.isdigit():
        return int(name)
    raise ParseError(f"Unknown kind '{value}' (expected one of {', '.join(KINDS)} or a number)")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="chunkey", description="Publish files as chunked events and reassemble them.")
    parser.add_argument("--debug", action="store_true", help="Enable debug logging")
    parser.add_argument("--config", help="Path to config file (default ~/.chunkey/config.json)")
    sub = parser.add_subparsers(dest="command", required=True)

    publish = sub.add_parser("publish", help="Split a file into unsigned chunk events")
    publish.add_argument("file", help="File to publish")
    publish.add_argument("-o", "--output", required=True, help="JSON-lines file to append events to")
    publish.add_argument("--kind", help="blob, html, css, js or a numeric kind")
    publish.add_argument("--tag", action="append", nargs="+", default=[], metavar="VALUE",
                         help="Extra tag, e.g. --tag t nostr (repeatable)")
    publish.add_argument("--description", help="Description stored in the alt tag")
    publish.add_argument("--attach", help="Event id to attach the chunks to")
    publish.add_argument("--relay-hint", default="", help="Relay hint for the attachment reference")
    size = publish.add_mutually_exclusive_group()
    size.add_argument("--chunk-size", type=int, help="Chunk size in characters")
    size.add_argument("--relay-info", help="Derive the chunk size from this relay's limits")

    reassemble = sub.add_parser("reassemble", help="Rebuild files from chunk events")
    reassemble.add_argument("-o", "--output-dir", required=True, help="Directory for reassembled files")
    reassemble.add_argument("-i", "--input", action="append", default=[], help="Events file (repeatable)")
    reassemble.add_argument("--relay", action="append", default=[], help="Relay to fetch from (repeatable)")
    reassemble.add_argument("--kind", help="Kind to fetch from relays")
    reassemble.add_argument("--attach", help="Only fetch chunks attached to this event id")
    reassemble.add_argument("--hash", dest="file_hash", help="Only fetch chunks of this file hash")

    limits = sub.add_parser("limits", help="Show a relay's limits")
    limits.add_argument("relay", help="Relay URL")

    return parser


def parse_args(argv: List[str], config: Optional[Config] = None) -> CommandRequest:
    """
    Parse command line arguments into a command object.

    Args:
        argv: Arguments without the program name (global flags already removed)
        config: Config providing defaults for kind, chunk size, relays and timeout

    Raises:
        ParseError: If the arguments are invalid
    """
    parser = build_parser()
    try:
        args = parser.parse_args(argv)
    except SystemExit as e:
        if e.code == 0:
            raise
        raise ParseError(f"Invalid arguments: {' '.join(argv)}") from e

    if args.command == "publish":
        kind_name = args.kind or (config.get_kind() if config else "blob")
        chunk_size = args.chunk_size
        if chunk_size is None and args.relay_info is None and config is not None:
            chunk_size = config.get_chunk_size()
        return PublishCommand(
            file_path=args.file,
            output_path=args.output,
            kind=parse_kind(kind_name),
            tags=tuple(tuple(tag) for tag in args.tag),
            description=args.description,
            attach=args.attach,
            relay_hint=args.relay_hint,
            chunk_size=chunk_size,
            relay_info_url=args.relay_info,
        )

    if args.command == "reassemble":
        relays = tuple(args.relay)
        if not args.input and not relays and config is not None:
            relays = tuple(config.get_relays())
        if not args.input and not relays:
            raise ParseError("reassemble needs at least one --input or --relay")
        return ReassembleCommand(
            output_dir=args.output_dir,
            inputs=tuple(args.input),
            relays=relays,
            kind=parse_kind(args.kind) if args.kind else None,
            attach=args.attach,
            file_hash=args.file_hash,
            timeout=config.get_timeout() if config is not None else RELAY_TIMEOUT_SECONDS,
        )

    return LimitsCommand(relay_url=args.relay)

"""CLI entry point."""

import asyncio
import os
import sys
from pathlib import Path
from typing import List, Optional

from cli.commands import handle_limits, handle_publish, handle_reassemble
from cli.config import DEFAULT_CONFIG_PATH, Config
from cli.models import LimitsCommand, PublishCommand
from cli.parser import ParseError, parse_args
from common.exceptions import ChunkeyError
from common.logging_config import setup_logging


def _config_path(argv: List[str]) -> Path:
    if "--config" in argv:
        position = argv.index("--config")
        if position + 1 < len(argv):
            return Path(argv[position + 1])
    return DEFAULT_CONFIG_PATH


def main(argv: Optional[List[str]] = None) -> int:
    """Entry point for CLI."""
    argv = list(sys.argv[1:] if argv is None else argv)
    log_level = 'DEBUG' if '--debug' in argv else os.getenv('LOG_LEVEL', 'INFO')

    logger = setup_logging('cli', log_level=log_level)
    for component in ('chunkey', 'relay', 'common'):
        setup_logging(component, log_level=log_level)

    try:
        config = Config(_config_path(argv))
        cmd = parse_args(argv, config)
    except (ParseError, ChunkeyError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 2

    logger.debug(f"Running {cmd.command}")
    try:
        if isinstance(cmd, PublishCommand):
            output = asyncio.run(handle_publish(cmd))
        elif isinstance(cmd, LimitsCommand):
            output = handle_limits(cmd)
        else:
            output = asyncio.run(handle_reassemble(cmd))
    except ChunkeyError as e:
        logger.error(f"{cmd.command} failed: {e}")
        print(f"Error: {e}", file=sys.stderr)
        return 1

    print(output)
    return 0


if __name__ == "__main__":
    sys.exit(main())

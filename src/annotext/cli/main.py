from __future__ import annotations

import argparse
import logging

from rich.console import Console

from annotext.cli.commands import annotate_cmd, search_cmd, suggest_cmd, web_cmd
from annotext.cli.context import CLIContext
from annotext.core.config import load_config
from annotext.core.errors import AnnotextError
from annotext.core.logging import configure_logging

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="annotext",
        description="Browse and create span annotations on text windows",
    )
    parser.add_argument("-v", "--verbose", action="count", default=0)

    subparsers = parser.add_subparsers(dest="command", required=True)
    search_cmd.register(subparsers)
    suggest_cmd.register(subparsers)
    annotate_cmd.register(subparsers)
    web_cmd.register(subparsers)

    return parser


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    configure_logging(args.verbose)
    console = Console()

    handler = getattr(args, "handler", None)
    if handler is None:
        parser.print_help()
        return 2

    try:
        ctx = CLIContext(config=load_config(), console=console)
        return handler(args, ctx)
    except AnnotextError as exc:
        logger.error(str(exc))
        return 1


if __name__ == "__main__":
    raise SystemExit(main())

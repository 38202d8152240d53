from __future__ import annotations

import argparse

from annotext.cli.context import CLIContext
from annotext.cli.render import print_state
from annotext.cli.session import open_synchronizer
from annotext.domain.models.window import ViewMode


def register(subparsers: argparse._SubParsersAction[argparse.ArgumentParser]) -> None:
    parser = subparsers.add_parser("search", help="Load the text linked to an annotation body id")
    parser.add_argument("body_id", nargs="?", default=None)
    parser.add_argument("--mode", choices=[m.value for m in ViewMode], default=ViewMode.MINE.value)
    parser.add_argument("--creator", default=None, help="Creator whose annotations are listed in 'mine' mode")
    parser.add_argument("--no-text", action="store_true", help="Do not print the window text")
    parser.set_defaults(handler=run)


def run(args: argparse.Namespace, ctx: CLIContext) -> int:
    body_id = args.body_id or ctx.config.search_id
    sync = open_synchronizer(ctx, creator=args.creator, mode=args.mode)
    state = sync.search(body_id)
    print_state(ctx.console, state, show_text=not args.no_text)
    return 1 if state.error else 0

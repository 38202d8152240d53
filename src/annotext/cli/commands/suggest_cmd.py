from __future__ import annotations

import argparse

from rich.table import Table

from annotext.application.services.suggestion_service import SuggestionService
from annotext.cli.context import CLIContext
from annotext.infrastructure.stores import build_stores


def register(subparsers: argparse._SubParsersAction[argparse.ArgumentParser]) -> None:
    parser = subparsers.add_parser("suggest", help="List body ids starting with a prefix")
    parser.add_argument("prefix")
    parser.add_argument("--limit", type=int, default=None)
    parser.set_defaults(handler=run)


def run(args: argparse.Namespace, ctx: CLIContext) -> int:
    elucidate, _ = build_stores(ctx.config)
    service = SuggestionService(elucidate, limit=args.limit or ctx.config.suggestion_limit)
    ids = service.suggest(args.prefix)

    table = Table(title=f"Body ids matching {args.prefix!r} ({len(ids)})")
    table.add_column("Body ID", overflow="fold")
    for body_id in ids:
        table.add_row(body_id)
    ctx.console.print(table)
    return 0

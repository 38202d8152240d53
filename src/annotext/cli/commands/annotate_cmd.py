from __future__ import annotations

import argparse

from annotext.cli.context import CLIContext
from annotext.cli.render import print_state
from annotext.cli.session import open_synchronizer
from annotext.domain.models.annotation import AnnRange, Annotation, Body


def register(subparsers: argparse._SubParsersAction[argparse.ArgumentParser]) -> None:
    parser = subparsers.add_parser("annotate", help="Annotate a span of the text linked to a body id")
    parser.add_argument("body_id")
    parser.add_argument("--start", type=int, required=True, help="Start offset within the loaded text")
    parser.add_argument("--end", type=int, required=True, help="End offset within the loaded text")
    parser.add_argument("--entity-type", required=True)
    parser.add_argument("--comment", default=None, help="Optional commenting body")
    parser.add_argument("--creator", default=None)
    parser.set_defaults(handler=run)


def run(args: argparse.Namespace, ctx: CLIContext) -> int:
    sync = open_synchronizer(ctx, creator=args.creator, mode="mine")
    state = sync.search(args.body_id)
    if state.window is None:
        print_state(ctx.console, state, show_text=False)
        return 1

    selection = AnnRange(args.start, args.end)
    sync.set_selection(selection)
    body = Body(type="TextualBody", value=args.comment, purpose="commenting") if args.comment else None
    draft = Annotation(
        id=None,
        creator=sync.state.creator or None,
        entity_type=args.entity_type,
        span=selection.to_span(),
        body=body,
    )
    state = sync.add_annotation(draft)
    print_state(ctx.console, state, show_text=False)
    return 1 if state.error else 0

from __future__ import annotations

from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from annotext.application.services.annotation_sync_service import SyncState


def snippet(text: str, begin: int, end: int, limit: int = 60) -> str:
    fragment = text[max(0, begin) : max(0, end)].replace("\n", " ")
    if len(fragment) > limit:
        return fragment[: limit - 3] + "..."
    return fragment


def print_state(console: Console, state: SyncState, *, show_text: bool = True) -> None:
    if state.error:
        console.print(f"[red]ERROR:[/red] {state.error}")

    window = state.window
    if window is None:
        console.print("No text loaded. Search for an annotation by its body id.")
        return

    console.print(
        Panel.fit(
            f"Version ID: {window.version_id}\n"
            f"Target: {window.target_id}\n"
            f"Range: {window.begin_range}-{window.end_range}\n"
            f"Lines: {len(window.lines)}\n"
            f"Images: {', '.join(state.image_links) or '-'}\n"
            f"View: {state.mode.value} (creator: {state.creator or '-'})",
            title="Window",
        )
    )
    if show_text:
        console.print(window.text, markup=False, highlight=False)

    text = window.text
    table = Table(title=f"Annotations ({len(state.annotations)})")
    table.add_column("ID", overflow="fold")
    table.add_column("Type")
    table.add_column("Creator")
    table.add_column("Begin", justify="right")
    table.add_column("End", justify="right")
    table.add_column("Text")
    for a in state.annotations:
        table.add_row(
            a.id or "",
            a.entity_type or "",
            a.creator or "",
            str(a.begin_anchor),
            str(a.end_anchor),
            snippet(text, a.begin_anchor, a.end_anchor),
        )
    console.print(table)

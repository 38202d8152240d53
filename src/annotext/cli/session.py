from __future__ import annotations

from annotext.application.services.annotation_sync_service import AnnotationSynchronizer
from annotext.cli.context import CLIContext
from annotext.domain.models.window import ViewMode
from annotext.infrastructure.stores import build_stores


def open_synchronizer(ctx: CLIContext, *, creator: str | None, mode: str) -> AnnotationSynchronizer:
    elucidate, textrepo = build_stores(ctx.config)
    return AnnotationSynchronizer(
        elucidate,
        textrepo,
        creator=creator if creator is not None else ctx.config.creator,
        mode=ViewMode(mode),
    )

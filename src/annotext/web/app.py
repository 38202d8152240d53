from __future__ import annotations

import threading
from dataclasses import asdict, is_dataclass
from enum import Enum
from typing import Any

from fastapi import FastAPI, HTTPException, Query
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel

from annotext.application.ports import AnnotationStore, TextRangeStore
from annotext.application.runners import Runner, ThreadedRunner
from annotext.application.services.annotation_sync_service import AnnotationSynchronizer, SyncState
from annotext.application.services.suggestion_service import SuggestionService
from annotext.core.config import AppConfig
from annotext.core.errors import TransportError
from annotext.domain.models.annotation import AnnRange, Annotation, Body
from annotext.domain.models.window import ViewMode
from annotext.infrastructure.stores import build_stores


class SearchRequest(BaseModel):
    body_id: str


class ModeRequest(BaseModel):
    mode: ViewMode


class CreatorRequest(BaseModel):
    creator: str


class SelectionRequest(BaseModel):
    start: int | None = None
    end: int | None = None


class SelectRequest(BaseModel):
    annotation_id: str | None = None


class AddAnnotationRequest(BaseModel):
    start: int
    end: int
    entity_type: str
    body_id: str | None = None
    comment: str | None = None
    creator: str | None = None


def _jsonable(value: Any) -> Any:
    if is_dataclass(value) and not isinstance(value, type):
        return _jsonable(asdict(value))
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, (list, tuple)):
        return [_jsonable(v) for v in value]
    if isinstance(value, dict):
        return {str(k): _jsonable(v) for k, v in value.items()}
    return value


def _state_payload(state: SyncState) -> dict[str, Any]:
    window = state.window
    return {
        "status": state.status.value,
        "mode": state.mode.value,
        "creator": state.creator,
        "error": state.error,
        "window": None
        if window is None
        else {
            "version_id": window.version_id,
            "target_id": window.target_id,
            "begin_range": window.begin_range,
            "end_range": window.end_range,
            "lines": list(window.lines),
        },
        "image_links": list(state.image_links),
        "selection": _jsonable(state.selection),
        "selected_id": state.selected_id,
        "annotations": [
            {
                "id": a.id,
                "creator": a.creator,
                "entity_type": a.entity_type,
                "begin_anchor": a.begin_anchor,
                "end_anchor": a.end_anchor,
                "body": _jsonable(a.body),
                "selected": a.selected,
            }
            for a in state.annotations
        ],
    }


def create_app(
    config: AppConfig,
    *,
    store: AnnotationStore | None = None,
    text_store: TextRangeStore | None = None,
    runner: Runner | None = None,
) -> FastAPI:
    app = FastAPI(title="annotext", version="0.1.0")
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    if store is None or text_store is None:
        elucidate, textrepo = build_stores(config)
        store = store or elucidate
        text_store = text_store or textrepo

    runner = runner or ThreadedRunner()
    sync = AnnotationSynchronizer(store, text_store, runner=runner, creator=config.creator)
    suggestions = SuggestionService(
        store,
        search_id=config.search_id,
        debounce_seconds=config.suggestion_debounce_seconds,
        limit=config.suggestion_limit,
    )
    # Requests arrive on worker threads; the lock keeps every state transition serial.
    lock = threading.Lock()

    def _respond(wait: bool) -> dict[str, Any]:
        if wait:
            runner.wait_idle(timeout=config.http_timeout_seconds * 3)
        else:
            runner.pump()
        return _state_payload(sync.state)

    @app.on_event("shutdown")
    def _shutdown_runner() -> None:
        if isinstance(runner, ThreadedRunner):
            runner.shutdown()

    @app.get("/api/state")
    def api_state(wait: bool = Query(False)) -> dict[str, Any]:
        with lock:
            return _respond(wait)

    @app.post("/api/search")
    def api_search(req: SearchRequest, wait: bool = Query(True)) -> dict[str, Any]:
        with lock:
            sync.search(req.body_id)
            return _respond(wait)

    @app.post("/api/mode")
    def api_mode(req: ModeRequest, wait: bool = Query(True)) -> dict[str, Any]:
        with lock:
            sync.set_mode(req.mode)
            return _respond(wait)

    @app.post("/api/creator")
    def api_creator(req: CreatorRequest, wait: bool = Query(True)) -> dict[str, Any]:
        with lock:
            sync.set_creator(req.creator)
            return _respond(wait)

    @app.post("/api/selection")
    def api_selection(req: SelectionRequest) -> dict[str, Any]:
        selection = None
        if req.start is not None and req.end is not None:
            selection = AnnRange(req.start, req.end)
        with lock:
            sync.set_selection(selection)
            return _respond(False)

    @app.post("/api/annotations")
    def api_add_annotation(req: AddAnnotationRequest, wait: bool = Query(True)) -> dict[str, Any]:
        body = None
        if req.comment:
            body = Body(type="TextualBody", value=req.comment, purpose="commenting")
        elif req.body_id:
            body = Body(id=req.body_id, type="TextualBody", value=req.entity_type, purpose="classifying")
        draft = Annotation(
            id=None,
            creator=req.creator,
            entity_type=req.entity_type,
            span=AnnRange(req.start, req.end).to_span(),
            body=body,
        )
        with lock:
            sync.add_annotation(draft)
            return _respond(wait)

    @app.post("/api/annotations/select")
    def api_select_annotation(req: SelectRequest) -> dict[str, Any]:
        with lock:
            sync.select_annotation(req.annotation_id)
            return _respond(False)

    @app.post("/api/annotations/{annotation_index}/jump")
    def api_jump_to_annotation(annotation_index: int, wait: bool = Query(True)) -> dict[str, Any]:
        with lock:
            annotations = sync.state.annotations
            if annotation_index < 0 or annotation_index >= len(annotations):
                raise HTTPException(status_code=404, detail=f"No annotation at index {annotation_index}")
            sync.jump_to_annotation(annotations[annotation_index])
            return _respond(wait)

    @app.delete("/api/error")
    def api_clear_error() -> dict[str, Any]:
        with lock:
            sync.clear_error()
            return _respond(False)

    @app.get("/api/suggestions")
    def api_suggestions(prefix: str = Query(..., min_length=1)) -> dict[str, Any]:
        try:
            ids = suggestions.suggest(prefix)
        except TransportError as exc:
            raise HTTPException(status_code=502, detail=str(exc)) from exc
        return {"prefix": prefix, "count": len(ids), "items": ids}

    return app

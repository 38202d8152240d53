from __future__ import annotations

import logging
from collections import deque
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Callable, Union

from annotext.application.ports import AnnotationStore, TextRangeStore
from annotext.application.runners import InlineRunner, Runner
from annotext.application.services.target_resolver import TargetResolver
from annotext.core.errors import AnnotextError, PreconditionError, ResolutionError
from annotext.core.offsets import to_absolute, to_relative
from annotext.domain.models.annotation import AnnRange, Annotation, SpanSpace
from annotext.domain.models.external import ExternalAnnotation
from annotext.domain.models.window import ViewMode, Window
from annotext.infrastructure.elucidate.mapper import keep, to_annotation

logger = logging.getLogger(__name__)


class SyncStatus(str, Enum):
    IDLE = "idle"
    WINDOW_LOADED = "window-loaded"
    FETCHING = "fetching"
    ERROR = "error"


# Commands


@dataclass(frozen=True, slots=True)
class Search:
    body_id: str


@dataclass(frozen=True, slots=True)
class SetMode:
    mode: ViewMode


@dataclass(frozen=True, slots=True)
class SetCreator:
    creator: str


@dataclass(frozen=True, slots=True)
class SetSelection:
    selection: AnnRange | None


@dataclass(frozen=True, slots=True)
class SelectAnnotation:
    annotation_id: str | None


@dataclass(frozen=True, slots=True)
class AddAnnotation:
    draft: Annotation


@dataclass(frozen=True, slots=True)
class ClearError:
    pass


@dataclass(frozen=True, slots=True)
class WindowLoaded:
    token: int
    window: Window
    image_links: tuple[str, ...]


@dataclass(frozen=True, slots=True)
class WindowLoadFailed:
    token: int
    message: str


@dataclass(frozen=True, slots=True)
class FetchResolved:
    token: int
    found: tuple[ExternalAnnotation, ...]


@dataclass(frozen=True, slots=True)
class FetchFailed:
    token: int
    message: str


@dataclass(frozen=True, slots=True)
class AnnotationCreated:
    token: int
    created: ExternalAnnotation


@dataclass(frozen=True, slots=True)
class CreateFailed:
    token: int
    message: str


Command = Union[
    Search,
    SetMode,
    SetCreator,
    SetSelection,
    SelectAnnotation,
    AddAnnotation,
    ClearError,
    WindowLoaded,
    WindowLoadFailed,
    FetchResolved,
    FetchFailed,
    AnnotationCreated,
    CreateFailed,
]


# Effects


@dataclass(frozen=True, slots=True)
class FetchKey:
    version_id: str
    target_id: str
    creator: str
    begin_range: int
    end_range: int
    mode: ViewMode


@dataclass(frozen=True, slots=True)
class ResolveWindow:
    token: int
    body_id: str


@dataclass(frozen=True, slots=True)
class FetchAnnotations:
    token: int
    key: FetchKey


@dataclass(frozen=True, slots=True)
class CreateAnnotation:
    token: int
    version_id: str
    target_id: str
    draft: Annotation


Effect = Union[ResolveWindow, FetchAnnotations, CreateAnnotation]


@dataclass(slots=True)
class SyncState:
    status: SyncStatus = SyncStatus.IDLE
    mode: ViewMode = ViewMode.MINE
    creator: str = ""
    window: Window | None = None
    image_links: tuple[str, ...] = ()
    annotations: list[Annotation] = field(default_factory=list)
    selection: AnnRange | None = None
    selected_id: str | None = None
    error: str | None = None
    search_token: int = 0
    fetch_token: int = 0
    window_token: int = 0
    pending_search: int | None = None
    pending_fetch: int | None = None
    pending_creates: int = 0


class AnnotationSynchronizer:
    """Keeps the displayed window and its annotations in step with the remote stores.

    Every change goes through :meth:`dispatch`, which feeds one command at a
    time to a single reducer. The reducer updates :attr:`state` and returns
    effects (remote calls) that the runner executes; each effect's result
    comes back as another command carrying the token of the request it
    answers. A result whose token is no longer current is dropped, so a
    late response from an abandoned search or view can never overwrite
    newer state.

    Annotations in :attr:`state` are always window-relative. Drafts passed
    to :meth:`add_annotation` are relative too and are moved to absolute
    offsets before they are sent to the store.
    """

    def __init__(
        self,
        store: AnnotationStore,
        text_store: TextRangeStore,
        *,
        resolver: TargetResolver | None = None,
        runner: Runner | None = None,
        creator: str = "",
        mode: ViewMode = ViewMode.MINE,
    ) -> None:
        self.store = store
        self.text_store = text_store
        self.resolver = resolver or TargetResolver(store)
        self.runner = runner or InlineRunner()
        self.state = SyncState(creator=creator.strip(), mode=mode)
        self._inbox: deque[Command] = deque()
        self._dispatching = False
        self._handlers: dict[type, Callable[..., list[Effect]]] = {
            Search: self._on_search,
            SetMode: self._on_set_mode,
            SetCreator: self._on_set_creator,
            SetSelection: self._on_set_selection,
            SelectAnnotation: self._on_select_annotation,
            AddAnnotation: self._on_add_annotation,
            ClearError: self._on_clear_error,
            WindowLoaded: self._on_window_loaded,
            WindowLoadFailed: self._on_window_load_failed,
            FetchResolved: self._on_fetch_resolved,
            FetchFailed: self._on_fetch_failed,
            AnnotationCreated: self._on_annotation_created,
            CreateFailed: self._on_create_failed,
        }

    # Public commands

    def search(self, body_id: str) -> SyncState:
        return self.dispatch(Search(body_id))

    def jump_to_annotation(self, annotation: Annotation) -> SyncState:
        body_id = annotation.body.id if annotation.body is not None else None
        return self.dispatch(Search(body_id or ""))

    def set_mode(self, mode: ViewMode) -> SyncState:
        return self.dispatch(SetMode(mode))

    def set_creator(self, creator: str) -> SyncState:
        return self.dispatch(SetCreator(creator))

    def set_selection(self, selection: AnnRange | None) -> SyncState:
        return self.dispatch(SetSelection(selection))

    def select_annotation(self, annotation_id: str | None) -> SyncState:
        return self.dispatch(SelectAnnotation(annotation_id))

    def add_annotation(self, draft: Annotation) -> SyncState:
        return self.dispatch(AddAnnotation(draft))

    def clear_error(self) -> SyncState:
        return self.dispatch(ClearError())

    def dispatch(self, command: Command) -> SyncState:
        self._inbox.append(command)
        if self._dispatching:
            return self.state
        self._dispatching = True
        try:
            while self._inbox:
                for effect in self._reduce(self._inbox.popleft()):
                    self.runner.submit(effect, self._perform, self.dispatch)
        finally:
            self._dispatching = False
        return self.state

    # Reducer

    def _reduce(self, command: Command) -> list[Effect]:
        handler = self._handlers.get(type(command))
        if handler is None:
            raise TypeError(f"Unsupported command: {command!r}")
        try:
            return handler(command)
        except AnnotextError as exc:
            self._fail(str(exc))
            return []

    def _on_search(self, command: Search) -> list[Effect]:
        body_id = command.body_id.strip()
        if not body_id:
            raise PreconditionError("Cannot search without an annotation body id")
        self.state.search_token += 1
        self.state.pending_search = self.state.search_token
        self._settle()
        return [ResolveWindow(token=self.state.search_token, body_id=body_id)]

    def _on_window_loaded(self, command: WindowLoaded) -> list[Effect]:
        if command.token != self.state.search_token:
            logger.debug("Dropping stale window load (token %s)", command.token)
            return []
        self.state.pending_search = None
        self.state.window = command.window
        self.state.image_links = command.image_links
        self.state.window_token += 1
        self.state.selection = None
        self.state.selected_id = None
        self.state.error = None
        logger.info(
            "Loaded window %s [%s, %s] with %s lines",
            command.window.version_id,
            command.window.begin_range,
            command.window.end_range,
            len(command.window.lines),
        )
        return self._refetch()

    def _on_window_load_failed(self, command: WindowLoadFailed) -> list[Effect]:
        if command.token != self.state.search_token:
            logger.debug("Dropping stale search failure (token %s)", command.token)
            return []
        self.state.pending_search = None
        self._fail(command.message)
        return []

    def _on_set_mode(self, command: SetMode) -> list[Effect]:
        mode = ViewMode(command.mode)
        if mode == self.state.mode:
            return []
        self.state.mode = mode
        return self._refetch()

    def _on_set_creator(self, command: SetCreator) -> list[Effect]:
        creator = command.creator.strip()
        if creator == self.state.creator:
            return []
        self.state.creator = creator
        return self._refetch()

    def _refetch(self) -> list[Effect]:
        self.state.fetch_token += 1
        self.state.annotations = []
        window = self.state.window
        if window is None or (self.state.mode == ViewMode.MINE and not self.state.creator):
            self.state.pending_fetch = None
            self._settle()
            return []

        key = FetchKey(
            version_id=window.version_id,
            target_id=window.target_id,
            creator=self.state.creator,
            begin_range=window.begin_range,
            end_range=window.end_range,
            mode=self.state.mode,
        )
        self.state.pending_fetch = self.state.fetch_token
        self._settle()
        return [FetchAnnotations(token=self.state.fetch_token, key=key)]

    def _on_fetch_resolved(self, command: FetchResolved) -> list[Effect]:
        if command.token != self.state.fetch_token:
            logger.debug("Dropping stale annotation list (token %s)", command.token)
            return []
        self.state.pending_fetch = None
        window = self.state.window
        if window is None:
            self._settle()
            return []

        converted: list[Annotation] = []
        for raw in command.found:
            try:
                annotation = to_annotation(raw)
            except ResolutionError as exc:
                logger.debug("Skipping annotation without text anchor: %s", exc)
                continue
            if not keep(annotation, window):
                continue
            relative = to_relative(annotation, window.begin_range)
            converted.append(replace(relative, selected=relative.id == self.state.selected_id))

        self.state.annotations = converted
        self._settle()
        return []

    def _on_fetch_failed(self, command: FetchFailed) -> list[Effect]:
        if command.token != self.state.fetch_token:
            logger.debug("Dropping stale fetch failure (token %s)", command.token)
            return []
        self.state.pending_fetch = None
        self._fail(command.message)
        return []

    def _on_add_annotation(self, command: AddAnnotation) -> list[Effect]:
        window = self.state.window
        if window is None:
            raise PreconditionError("Cannot save annotation when version id is not set")

        draft = command.draft
        if draft.span.space is not SpanSpace.RELATIVE:
            raise PreconditionError("New annotations must be anchored relative to the window")
        if not draft.span.is_valid() or draft.end_anchor > window.end_range - window.begin_range:
            raise PreconditionError(
                f"Selection [{draft.begin_anchor}, {draft.end_anchor}] is outside the loaded text"
            )
        if not draft.creator:
            draft = replace(draft, creator=self.state.creator or None)

        self.state.pending_creates += 1
        self._settle()
        return [
            CreateAnnotation(
                token=self.state.window_token,
                version_id=window.version_id,
                target_id=window.target_id,
                draft=to_absolute(draft, window.begin_range),
            )
        ]

    def _on_annotation_created(self, command: AnnotationCreated) -> list[Effect]:
        self.state.pending_creates = max(0, self.state.pending_creates - 1)
        window = self.state.window
        if command.token != self.state.window_token or window is None:
            logger.debug("Created annotation %s belongs to a replaced window", command.created.id)
            self._settle()
            return []

        created = to_relative(to_annotation(command.created), window.begin_range)
        self.state.annotations = [*self.state.annotations, created]
        self.state.selection = None
        self.state.error = None
        self._settle()
        return []

    def _on_create_failed(self, command: CreateFailed) -> list[Effect]:
        self.state.pending_creates = max(0, self.state.pending_creates - 1)
        self._fail(command.message)
        return []

    def _on_set_selection(self, command: SetSelection) -> list[Effect]:
        self.state.selection = command.selection
        return []

    def _on_select_annotation(self, command: SelectAnnotation) -> list[Effect]:
        self.state.selected_id = command.annotation_id
        self.state.annotations = [
            replace(a, selected=a.id is not None and a.id == command.annotation_id)
            for a in self.state.annotations
        ]
        return []

    def _on_clear_error(self, command: ClearError) -> list[Effect]:
        self.state.error = None
        return []

    def _fail(self, message: str) -> None:
        logger.warning("%s -> %s: %s", self.state.status.value, SyncStatus.ERROR.value, message)
        self.state.error = message
        self._settle()

    def _settle(self) -> None:
        state = self.state
        if state.pending_search is not None or state.pending_fetch is not None or state.pending_creates:
            state.status = SyncStatus.FETCHING
        elif state.window is not None:
            state.status = SyncStatus.WINDOW_LOADED
        else:
            state.status = SyncStatus.IDLE

    # Effects

    def _perform(self, effect: Effect) -> Command:
        if isinstance(effect, ResolveWindow):
            return self._load_window(effect)
        if isinstance(effect, FetchAnnotations):
            return self._fetch_annotations(effect)
        if isinstance(effect, CreateAnnotation):
            return self._create_annotation(effect)
        raise TypeError(f"Unsupported effect: {effect!r}")

    def _load_window(self, effect: ResolveWindow) -> Command:
        try:
            resolved = self.resolver.resolve_body_id(effect.body_id)
            selector = resolved.selector_target.selector
            lines = self.text_store.get_by_version_id_and_range(
                resolved.version_id, selector.start, selector.end
            )
        except AnnotextError as exc:
            return WindowLoadFailed(token=effect.token, message=str(exc))

        window = Window(
            version_id=resolved.version_id,
            target_id=resolved.selector_target.source,
            begin_range=selector.start,
            end_range=selector.end,
            lines=tuple(lines),
        )
        return WindowLoaded(token=effect.token, window=window, image_links=resolved.image_links)

    def _fetch_annotations(self, effect: FetchAnnotations) -> Command:
        key = effect.key
        try:
            if key.mode == ViewMode.MINE:
                found = self.store.get_by_creator(key.creator)
            else:
                found = self.store.get_by_range(key.target_id, key.begin_range, key.end_range)
        except AnnotextError as exc:
            return FetchFailed(token=effect.token, message=str(exc))
        return FetchResolved(token=effect.token, found=tuple(found))

    def _create_annotation(self, effect: CreateAnnotation) -> Command:
        try:
            created = self.store.create(effect.version_id, effect.draft, effect.target_id)
        except AnnotextError as exc:
            return CreateFailed(token=effect.token, message=str(exc))
        return AnnotationCreated(token=effect.token, created=created)

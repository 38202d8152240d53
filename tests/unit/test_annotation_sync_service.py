from typing import Any, Callable

from annotext.application.services.annotation_sync_service import (
    AnnotationSynchronizer,
    FetchAnnotations,
    SyncStatus,
)
from annotext.core.errors import TransportError
from annotext.domain.models.annotation import AnnRange, Annotation, Body, Span, SpanSpace
from annotext.domain.models.external import ExternalAnnotation
from annotext.domain.models.window import ViewMode
from annotext.infrastructure.elucidate.mapper import parse_external_annotation

VERSION_ID = "11111111-1111-1111-1111-111111111111"
OTHER_VERSION_ID = "33333333-3333-3333-3333-333333333333"


def _ann_id(version_id: str, n: int) -> str:
    return f"http://localhost/annotation/w3c/{version_id}/{n:08d}-2222-2222-2222-222222222222"


def _stored(
    n: int,
    start: int,
    end: int,
    entity_type: str = "person",
    creator: str = "alice",
    version_id: str = VERSION_ID,
) -> ExternalAnnotation:
    return parse_external_annotation(
        {
            "id": _ann_id(version_id, n),
            "creator": creator,
            "body": {"id": f"urn:body:{n}", "purpose": "classifying", "value": entity_type},
            "target": [{"source": "T1", "type": "Text", "selector": {"start": start, "end": end}}],
        }
    )


def _search_hit(version_id: str = VERSION_ID, start: int = 100, end: int = 200, source: str = "T1") -> ExternalAnnotation:
    return parse_external_annotation(
        {
            "id": _ann_id(version_id, 1),
            "body": {"id": "X", "purpose": "classifying", "value": "resolution"},
            "target": [
                {"source": source, "selector": {"start": start, "end": end}},
                {"source": "img1", "type": "Image"},
            ],
        }
    )


class _FakeStore:
    def __init__(self) -> None:
        self.by_body_id: dict[str, ExternalAnnotation] = {}
        self.by_creator: dict[str, list[ExternalAnnotation]] = {}
        self.by_range: list[ExternalAnnotation] = []
        self.calls: list[tuple[Any, ...]] = []
        self.created: list[tuple[str, Annotation, str]] = []
        self.fail_next: str | None = None

    def _maybe_fail(self, name: str) -> None:
        if self.fail_next == name:
            self.fail_next = None
            raise TransportError(f"{name} failed with HTTP 500", status=500)

    def get_by_creator(self, creator: str) -> list[ExternalAnnotation]:
        self.calls.append(("creator", creator))
        self._maybe_fail("creator")
        return list(self.by_creator.get(creator, []))

    def get_by_range(self, target_id: str, start: int, end: int) -> list[ExternalAnnotation]:
        self.calls.append(("range", target_id, start, end))
        self._maybe_fail("range")
        return list(self.by_range)

    def get_by_body_id(self, body_id: str) -> ExternalAnnotation | None:
        self.calls.append(("body", body_id))
        self._maybe_fail("body")
        return self.by_body_id.get(body_id)

    def get_by_body_id_prefix(self, prefix: str) -> list[ExternalAnnotation]:
        return []

    def create(self, version_id: str, draft: Annotation, target_id: str) -> ExternalAnnotation:
        self.created.append((version_id, draft, target_id))
        self._maybe_fail("create")
        return parse_external_annotation(
            {
                "id": _ann_id(version_id, 900 + len(self.created)),
                "creator": "server-normalized",
                "body": {"id": "urn:body:new", "purpose": "classifying", "value": draft.entity_type},
                "target": [
                    {
                        "source": target_id,
                        "type": "Text",
                        "selector": {"start": draft.begin_anchor, "end": draft.end_anchor},
                    }
                ],
            }
        )


class _FakeTextRepo:
    def __init__(self) -> None:
        self.calls: list[tuple[str, int, int]] = []

    def get_by_version_id_and_range(self, version_id: str, start: int, end: int) -> list[str]:
        self.calls.append((version_id, start, end))
        return [f"line {i}" for i in range(5)]


class _ManualRunner:
    """Holds remote calls until the test releases them, in any order."""

    def __init__(self) -> None:
        self.held: list[tuple[Any, Callable[[Any], Any], Callable[[Any], Any]]] = []

    def submit(self, effect: Any, perform: Callable[[Any], Any], deliver: Callable[[Any], Any]) -> None:
        self.held.append((effect, perform, deliver))

    def pump(self, *, block: bool = False, timeout: float | None = None) -> int:
        return 0

    def wait_idle(self, timeout: float = 30.0) -> None:
        return None

    def release(self, index: int = 0) -> None:
        effect, perform, deliver = self.held.pop(index)
        deliver(perform(effect))


def _sync(store: _FakeStore, **kwargs: Any) -> AnnotationSynchronizer:
    store.by_body_id.setdefault("X", _search_hit())
    return AnnotationSynchronizer(store, _FakeTextRepo(), **kwargs)


def _spans(sync: AnnotationSynchronizer) -> list[tuple[int, int]]:
    return [(a.begin_anchor, a.end_anchor) for a in sync.state.annotations]


def test_search_loads_window_and_renders_range_annotations() -> None:
    store = _FakeStore()
    store.by_range = [_stored(2, 110, 120)]
    text_repo = _FakeTextRepo()
    store.by_body_id["X"] = _search_hit()
    sync = AnnotationSynchronizer(store, text_repo, creator="alice", mode=ViewMode.RANGE)

    state = sync.search("X")

    assert state.status == SyncStatus.WINDOW_LOADED
    assert state.error is None
    assert state.window is not None
    assert state.window.version_id == VERSION_ID
    assert state.window.begin_range == 100
    assert state.window.end_range == 200
    assert len(state.window.lines) == 5
    assert state.image_links == ("img1",)
    assert text_repo.calls == [(VERSION_ID, 100, 200)]
    assert ("range", "T1", 100, 200) in store.calls
    assert _spans(sync) == [(10, 20)]
    assert state.annotations[0].span.space is SpanSpace.RELATIVE


def test_fetch_filters_bounds_and_structural_types() -> None:
    store = _FakeStore()
    store.by_body_id["X"] = _search_hit(start=10, end=50)
    store.by_range = [
        _stored(1, 5, 9),
        _stored(2, 12, 40),
        _stored(3, 45, 55),
        _stored(4, 20, 30, entity_type="line"),
    ]
    sync = _sync(store, creator="alice", mode=ViewMode.RANGE)

    sync.search("X")

    assert _spans(sync) == [(2, 30)]
    assert sync.state.annotations[0].entity_type == "person"


def test_annotations_without_text_selector_are_skipped() -> None:
    store = _FakeStore()
    image_only = parse_external_annotation(
        {"id": _ann_id(VERSION_ID, 5), "target": [{"source": "img", "type": "Image"}]}
    )
    store.by_creator["alice"] = [image_only, _stored(2, 110, 120)]
    sync = _sync(store, creator="alice")

    sync.search("X")

    assert _spans(sync) == [(10, 20)]


def test_mode_switch_replaces_the_list() -> None:
    store = _FakeStore()
    store.by_creator["alice"] = [_stored(1, 110, 120), _stored(2, 130, 140)]
    store.by_range = [_stored(3, 150, 160, creator="bob")]
    sync = _sync(store, creator="alice", mode=ViewMode.MINE)

    sync.search("X")
    assert _spans(sync) == [(10, 20), (30, 40)]

    sync.set_mode(ViewMode.RANGE)
    assert _spans(sync) == [(50, 60)]
    assert [a.creator for a in sync.state.annotations] == ["bob"]


def test_creator_change_refetches_for_new_creator() -> None:
    store = _FakeStore()
    store.by_creator["alice"] = [_stored(1, 110, 120)]
    store.by_creator["bob"] = [_stored(2, 150, 160, creator="bob")]
    sync = _sync(store, creator="alice")

    sync.search("X")
    sync.set_creator("bob")

    assert store.calls[-1] == ("creator", "bob")
    assert _spans(sync) == [(50, 60)]


def test_empty_creator_in_mine_mode_clears_without_fetching() -> None:
    store = _FakeStore()
    store.by_creator["alice"] = [_stored(1, 110, 120)]
    sync = _sync(store, creator="alice")
    sync.search("X")
    calls_before = len(store.calls)

    sync.set_creator("  ")

    assert sync.state.annotations == []
    assert len(store.calls) == calls_before
    assert sync.state.status == SyncStatus.WINDOW_LOADED


def test_unchanged_mode_does_not_refetch() -> None:
    store = _FakeStore()
    sync = _sync(store, creator="alice")
    sync.search("X")
    calls_before = len(store.calls)

    sync.set_mode(ViewMode.MINE)
    sync.set_creator("alice")

    assert len(store.calls) == calls_before


def test_bare_string_target_reports_error_and_loads_no_window() -> None:
    store = _FakeStore()
    store.by_body_id["X"] = parse_external_annotation(
        {"id": _ann_id(VERSION_ID, 1), "body": {"id": "X"}, "target": "some-string"}
    )
    text_repo = _FakeTextRepo()
    sync = AnnotationSynchronizer(store, text_repo, creator="alice")

    state = sync.search("X")

    assert state.window is None
    assert state.status == SyncStatus.IDLE
    assert state.error is not None and "Targets unresolved" in state.error
    assert text_repo.calls == []


def test_failed_search_keeps_previous_window() -> None:
    store = _FakeStore()
    store.by_creator["alice"] = [_stored(1, 110, 120)]
    sync = _sync(store, creator="alice")
    sync.search("X")

    state = sync.search("unknown-body")

    assert state.error is not None and "No annotation found" in state.error
    assert state.window is not None and state.window.version_id == VERSION_ID
    assert state.status == SyncStatus.WINDOW_LOADED
    assert _spans(sync) == [(10, 20)]


def test_transport_errors_become_messages() -> None:
    store = _FakeStore()
    store.fail_next = "creator"
    sync = _sync(store, creator="alice")

    state = sync.search("X")

    assert state.window is not None
    assert state.error == "creator failed with HTTP 500"
    assert state.status == SyncStatus.WINDOW_LOADED


def test_empty_search_is_a_precondition_error() -> None:
    sync = _sync(_FakeStore(), creator="alice")
    state = sync.search("   ")
    assert state.error == "Cannot search without an annotation body id"
    assert state.status == SyncStatus.IDLE


def test_error_policy_new_error_overwrites_and_success_clears() -> None:
    store = _FakeStore()
    sync = _sync(store, creator="alice")

    sync.search("missing-1")
    assert sync.state.error is not None and "missing-1" in sync.state.error
    sync.search("missing-2")
    assert sync.state.error is not None and "missing-2" in sync.state.error

    sync.search("X")
    assert sync.state.error is None


def test_fetch_success_does_not_clear_a_stale_error() -> None:
    store = _FakeStore()
    sync = _sync(store, creator="alice")
    sync.search("X")
    sync.add_annotation(
        Annotation(id=None, creator=None, entity_type="x", span=Span(SpanSpace.RELATIVE, 50, 500))
    )
    assert sync.state.error is not None

    sync.set_mode(ViewMode.RANGE)
    assert sync.state.error is not None

    sync.clear_error()
    assert sync.state.error is None


def test_add_annotation_requires_a_window() -> None:
    store = _FakeStore()
    sync = _sync(store, creator="alice")
    draft = Annotation(id=None, creator="alice", entity_type="person", span=Span(SpanSpace.RELATIVE, 1, 2))

    state = sync.add_annotation(draft)

    assert state.error == "Cannot save annotation when version id is not set"
    assert store.created == []
    assert state.status == SyncStatus.IDLE


def test_add_annotation_submits_absolute_and_appends_relative_server_record() -> None:
    store = _FakeStore()
    store.by_creator["alice"] = [_stored(1, 110, 120)]
    sync = _sync(store, creator="alice")
    sync.search("X")
    sync.set_selection(AnnRange(30, 42))
    calls_before = len(store.calls)

    draft = Annotation(
        id=None,
        creator=None,
        entity_type="place",
        span=AnnRange(30, 42).to_span(),
        body=Body(type="TextualBody", value="city", purpose="commenting"),
    )
    state = sync.add_annotation(draft)

    version_id, submitted, target_id = store.created[0]
    assert version_id == VERSION_ID
    assert target_id == "T1"
    assert submitted.span == Span(SpanSpace.ABSOLUTE, 130, 142)
    assert submitted.creator == "alice"

    assert len(store.calls) == calls_before
    assert _spans(sync) == [(10, 20), (30, 42)]
    created = state.annotations[-1]
    assert created.entity_type == "place"
    assert created.creator == "server-normalized"
    assert state.creator == "alice"
    assert state.selection is None
    assert state.status == SyncStatus.WINDOW_LOADED


def test_add_annotation_outside_window_is_rejected() -> None:
    store = _FakeStore()
    sync = _sync(store, creator="alice")
    sync.search("X")

    state = sync.add_annotation(
        Annotation(id=None, creator=None, entity_type="x", span=Span(SpanSpace.RELATIVE, 90, 101))
    )

    assert state.error is not None and "outside the loaded text" in state.error
    assert store.created == []


def test_failed_create_reports_and_keeps_list() -> None:
    store = _FakeStore()
    store.by_creator["alice"] = [_stored(1, 110, 120)]
    sync = _sync(store, creator="alice")
    sync.search("X")
    store.fail_next = "create"

    state = sync.add_annotation(
        Annotation(id=None, creator=None, entity_type="x", span=Span(SpanSpace.RELATIVE, 1, 2))
    )

    assert state.error == "create failed with HTTP 500"
    assert _spans(sync) == [(10, 20)]
    assert state.status == SyncStatus.WINDOW_LOADED


def test_select_annotation_marks_one_item() -> None:
    store = _FakeStore()
    store.by_creator["alice"] = [_stored(1, 110, 120), _stored(2, 130, 140)]
    sync = _sync(store, creator="alice")
    sync.search("X")

    sync.select_annotation(_ann_id(VERSION_ID, 2))

    assert [a.selected for a in sync.state.annotations] == [False, True]


def test_jump_to_annotation_uses_the_same_resolution_path() -> None:
    store = _FakeStore()
    store.by_body_id["urn:body:2"] = _search_hit(version_id=OTHER_VERSION_ID, start=300, end=400, source="T2")
    store.by_creator["alice"] = [_stored(2, 110, 120)]
    sync = _sync(store, creator="alice")
    sync.search("X")

    state = sync.jump_to_annotation(sync.state.annotations[0])

    assert ("body", "urn:body:2") in store.calls
    assert state.window is not None
    assert state.window.version_id == OTHER_VERSION_ID
    assert state.window.target_id == "T2"
    assert state.window.begin_range == 300
    assert _spans(sync) == []


def test_late_fetch_from_previous_mode_is_discarded() -> None:
    store = _FakeStore()
    store.by_creator["alice"] = [_stored(1, 110, 120)]
    store.by_range = [_stored(3, 150, 160, creator="bob")]
    runner = _ManualRunner()
    sync = _sync(store, creator="alice", runner=runner)

    sync.search("X")
    runner.release()
    assert sync.state.status == SyncStatus.FETCHING
    assert isinstance(runner.held[0][0], FetchAnnotations)

    sync.set_mode(ViewMode.RANGE)
    assert len(runner.held) == 2

    runner.release(1)
    assert _spans(sync) == [(50, 60)]
    assert sync.state.status == SyncStatus.WINDOW_LOADED

    runner.release(0)
    assert _spans(sync) == [(50, 60)]
    assert [a.creator for a in sync.state.annotations] == ["bob"]


def test_late_window_from_abandoned_search_is_discarded() -> None:
    store = _FakeStore()
    store.by_body_id["Y"] = _search_hit(version_id=OTHER_VERSION_ID, start=300, end=400, source="T2")
    runner = _ManualRunner()
    sync = _sync(store, creator="alice", runner=runner)

    sync.search("X")
    sync.search("Y")
    runner.release(1)
    assert sync.state.window is not None
    assert sync.state.window.version_id == OTHER_VERSION_ID

    runner.release(0)
    assert sync.state.window.version_id == OTHER_VERSION_ID
    assert sync.state.error is None


def test_creation_for_a_replaced_window_is_not_appended() -> None:
    store = _FakeStore()
    store.by_body_id["Y"] = _search_hit(version_id=OTHER_VERSION_ID, start=300, end=400, source="T2")
    runner = _ManualRunner()
    sync = _sync(store, creator="alice", runner=runner)
    sync.search("X")
    runner.release()
    runner.release()

    sync.add_annotation(
        Annotation(id=None, creator=None, entity_type="x", span=Span(SpanSpace.RELATIVE, 1, 2))
    )
    sync.search("Y")
    runner.release(1)
    runner.release()

    runner.release()

    assert sync.state.window is not None and sync.state.window.version_id == OTHER_VERSION_ID
    assert sync.state.annotations == []
    assert sync.state.status == SyncStatus.WINDOW_LOADED

from __future__ import annotations

from typing import Any

from annotext.core.errors import ResolutionError
from annotext.domain.models.annotation import Annotation, Body, Span, SpanSpace
from annotext.domain.models.external import (
    ExternalAnnotation,
    ImageTarget,
    OtherTarget,
    SelectorTarget,
    Target,
    TextSelector,
)
from annotext.domain.models.window import Window

W3C_CONTEXT = "http://www.w3.org/ns/anno.jsonld"
TEXT_ANCHOR_SELECTOR = "urn:republic:TextAnchorSelector"

# Layout annotations produced by OCR and page analysis.
STRUCTURAL_ENTITY_TYPES = frozenset({"line", "textregion", "column", "scanpage"})

SELECTOR_TARGET_TYPES = (None, "Text")


def parse_external_annotation(payload: dict[str, Any]) -> ExternalAnnotation:
    if not isinstance(payload, dict):
        raise ResolutionError("Annotation payload must be a JSON object")
    annotation_id = payload.get("id")
    if not isinstance(annotation_id, str) or not annotation_id:
        raise ResolutionError("Annotation payload has no id")

    raw_body = payload.get("body")
    body: Body | list[Body] | None
    if isinstance(raw_body, list):
        body = [_parse_body(item) for item in raw_body]
    elif raw_body is None:
        body = None
    else:
        body = _parse_body(raw_body)

    raw_target = payload.get("target")
    target: str | list[Target]
    if isinstance(raw_target, list):
        target = [_parse_target(item) for item in raw_target]
    elif isinstance(raw_target, dict):
        target = [_parse_target(raw_target)]
    else:
        target = str(raw_target or "")

    return ExternalAnnotation(
        id=annotation_id,
        creator=_parse_creator(payload.get("creator")),
        body=body,
        target=target,
        raw=payload,
    )


def find_selector_target(raw: ExternalAnnotation) -> SelectorTarget | None:
    if isinstance(raw.target, str):
        return None
    for target in raw.target:
        if isinstance(target, SelectorTarget) and target.type in SELECTOR_TARGET_TYPES:
            return target
    return None


def image_targets(raw: ExternalAnnotation) -> list[ImageTarget]:
    if isinstance(raw.target, str):
        return []
    return [t for t in raw.target if isinstance(t, ImageTarget)]


def classifying_body(raw: ExternalAnnotation) -> Body | None:
    bodies = raw.bodies
    for body in bodies:
        if body.purpose == "classifying":
            return body
    return bodies[0] if bodies else None


def to_annotation(raw: ExternalAnnotation) -> Annotation:
    """Adapt a stored annotation; anchors stay in resource-absolute space."""
    selector_target = find_selector_target(raw)
    if selector_target is None:
        raise ResolutionError(f"No text selector found in annotation: {raw.id}")

    body = classifying_body(raw)
    return Annotation(
        id=raw.id,
        creator=raw.creator,
        entity_type=body.value if body is not None else None,
        span=Span(
            SpanSpace.ABSOLUTE,
            selector_target.selector.start,
            selector_target.selector.end,
        ),
        body=body,
    )


def is_structural(annotation: Annotation) -> bool:
    return annotation.entity_type in STRUCTURAL_ENTITY_TYPES


def in_window(annotation: Annotation, window: Window) -> bool:
    return window.contains(annotation.begin_anchor, annotation.end_anchor)


def keep(annotation: Annotation, window: Window) -> bool:
    return not is_structural(annotation) and in_window(annotation, window)


def to_w3c(draft: Annotation, target_source: str) -> dict[str, Any]:
    if draft.span.space is not SpanSpace.ABSOLUTE:
        raise ValueError("Only absolute drafts can be sent to the annotation store")

    classifying: dict[str, Any] = {
        "type": "TextualBody",
        "purpose": "classifying",
        "value": draft.entity_type,
    }
    bodies: list[dict[str, Any]] = [classifying]
    if draft.body is not None:
        if draft.body.purpose in (None, "classifying"):
            if draft.body.id:
                classifying["id"] = draft.body.id
        elif draft.body.value:
            bodies.append(
                {
                    "type": draft.body.type or "TextualBody",
                    "purpose": draft.body.purpose,
                    "value": draft.body.value,
                }
            )

    payload: dict[str, Any] = {
        "@context": W3C_CONTEXT,
        "type": "Annotation",
        "body": bodies[0] if len(bodies) == 1 else bodies,
        "target": [
            {
                "source": target_source,
                "type": "Text",
                "selector": {
                    "type": TEXT_ANCHOR_SELECTOR,
                    "start": draft.begin_anchor,
                    "end": draft.end_anchor,
                },
            }
        ],
    }
    if draft.creator:
        payload["creator"] = draft.creator
    return payload


def _parse_creator(value: object) -> str | None:
    if isinstance(value, str):
        return value
    if isinstance(value, dict):
        for key in ("id", "nickname", "name"):
            found = value.get(key)
            if isinstance(found, str) and found:
                return found
    return None


def _parse_body(value: object) -> Body:
    if isinstance(value, str):
        return Body(id=value)
    if not isinstance(value, dict):
        raise ResolutionError(f"Unsupported annotation body: {value!r}")
    return Body(
        id=_opt_str(value.get("id")),
        type=_opt_str(value.get("type")),
        value=_opt_str(value.get("value")),
        purpose=_opt_str(value.get("purpose")),
    )


def _parse_target(value: object) -> Target:
    if isinstance(value, str):
        return OtherTarget(source=value)
    if not isinstance(value, dict):
        raise ResolutionError(f"Unsupported annotation target: {value!r}")

    source = _opt_str(value.get("source")) or _opt_str(value.get("id"))
    target_type = _opt_str(value.get("type"))
    selector = _parse_text_selector(value.get("selector"))

    if selector is not None and source is not None:
        return SelectorTarget(source=source, selector=selector, type=target_type)
    if value.get("selector") is None and target_type == "Image" and source is not None:
        return ImageTarget(source=source)
    return OtherTarget(source=source, type=target_type)


def _parse_text_selector(value: object) -> TextSelector | None:
    candidates = value if isinstance(value, list) else [value]
    for candidate in candidates:
        if not isinstance(candidate, dict):
            continue
        start = candidate.get("start")
        end = candidate.get("end")
        if _is_int(start) and _is_int(end):
            return TextSelector(start=int(start), end=int(end), type=_opt_str(candidate.get("type")))
    return None


def _is_int(value: object) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def _opt_str(value: object) -> str | None:
    if value is None:
        return None
    return str(value)

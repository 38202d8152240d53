from __future__ import annotations

from dataclasses import replace
from typing import TypeVar, Union

from annotext.core.errors import CoordinateSpaceError
from annotext.domain.models.annotation import Annotation, Span, SpanSpace

Anchored = TypeVar("Anchored", bound=Union[Span, Annotation])


def to_relative(item: Anchored, offset: int) -> Anchored:
    """Move anchors from resource-absolute to window-relative offsets."""
    return _shift(item, -offset, expected=SpanSpace.ABSOLUTE, target=SpanSpace.RELATIVE)


def to_absolute(item: Anchored, offset: int) -> Anchored:
    """Move anchors from window-relative to resource-absolute offsets."""
    return _shift(item, offset, expected=SpanSpace.RELATIVE, target=SpanSpace.ABSOLUTE)


def _shift(item: Anchored, delta: int, *, expected: SpanSpace, target: SpanSpace) -> Anchored:
    span = item.span if isinstance(item, Annotation) else item
    if span.space is not expected:
        raise CoordinateSpaceError(
            f"Cannot convert a {span.space.value} span to {target.value} coordinates"
        )
    shifted = Span(target, span.begin + delta, span.end + delta)
    if isinstance(item, Annotation):
        return replace(item, span=shifted)
    return shifted

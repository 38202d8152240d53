from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class SpanSpace(str, Enum):
    RELATIVE = "relative"
    ABSOLUTE = "absolute"


@dataclass(frozen=True, slots=True)
class Span:
    """Begin/end anchors tagged with the coordinate space they are measured in."""

    space: SpanSpace
    begin: int
    end: int

    def is_valid(self) -> bool:
        return 0 <= self.begin <= self.end

    def validate(self) -> Span:
        if not self.is_valid():
            raise ValueError(f"Invalid span: begin={self.begin} end={self.end}")
        return self


@dataclass(frozen=True, slots=True)
class Body:
    id: str | None = None
    type: str | None = None
    value: str | None = None
    purpose: str | None = None


@dataclass(frozen=True, slots=True)
class Annotation:
    id: str | None
    creator: str | None
    entity_type: str | None
    span: Span
    body: Body | None = None
    selected: bool = False

    @property
    def begin_anchor(self) -> int:
        return self.span.begin

    @property
    def end_anchor(self) -> int:
        return self.span.end


@dataclass(frozen=True, slots=True)
class AnnRange:
    """A selection on screen, in window-relative offsets."""

    start: int
    end: int

    def to_span(self) -> Span:
        return Span(SpanSpace.RELATIVE, self.start, self.end)

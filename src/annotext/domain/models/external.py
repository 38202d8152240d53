from __future__ import annotations

from dataclasses import dataclass, field
from typing import Union

from annotext.domain.models.annotation import Body


@dataclass(frozen=True, slots=True)
class TextSelector:
    start: int
    end: int
    type: str | None = None


@dataclass(frozen=True, slots=True)
class ImageTarget:
    source: str
    type: str = "Image"


@dataclass(frozen=True, slots=True)
class SelectorTarget:
    source: str
    selector: TextSelector
    type: str | None = None


@dataclass(frozen=True, slots=True)
class OtherTarget:
    """A target that is neither an image region nor a text selector."""

    source: str | None
    type: str | None = None


Target = Union[ImageTarget, SelectorTarget, OtherTarget]


@dataclass(frozen=True, slots=True)
class ExternalAnnotation:
    id: str
    creator: str | None
    body: Body | list[Body] | None
    target: str | list[Target]
    raw: dict[str, object] = field(default_factory=dict, compare=False, repr=False)

    @property
    def bodies(self) -> list[Body]:
        if self.body is None:
            return []
        if isinstance(self.body, list):
            return list(self.body)
        return [self.body]

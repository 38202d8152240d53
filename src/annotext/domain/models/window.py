from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum


class ViewMode(str, Enum):
    MINE = "mine"
    RANGE = "range"


@dataclass(frozen=True, slots=True)
class Window:
    version_id: str
    target_id: str
    begin_range: int
    end_range: int
    lines: tuple[str, ...] = field(default_factory=tuple)

    @property
    def text(self) -> str:
        return "\n".join(self.lines)

    def contains(self, begin: int, end: int) -> bool:
        return begin >= self.begin_range and end <= self.end_range

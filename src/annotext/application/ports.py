from __future__ import annotations

from typing import Protocol

from annotext.domain.models.annotation import Annotation
from annotext.domain.models.external import ExternalAnnotation


class AnnotationStore(Protocol):
    def get_by_creator(self, creator: str) -> list[ExternalAnnotation]: ...

    def get_by_range(self, target_id: str, start: int, end: int) -> list[ExternalAnnotation]: ...

    def get_by_body_id(self, body_id: str) -> ExternalAnnotation | None: ...

    def get_by_body_id_prefix(self, prefix: str) -> list[ExternalAnnotation]: ...

    def create(self, version_id: str, draft: Annotation, target_id: str) -> ExternalAnnotation: ...


class TextRangeStore(Protocol):
    def get_by_version_id_and_range(self, version_id: str, start: int, end: int) -> list[str]: ...

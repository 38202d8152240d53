from __future__ import annotations

from dataclasses import dataclass

from annotext.application.ports import AnnotationStore
from annotext.core.errors import ResolutionError
from annotext.core.ids import parse_version_id
from annotext.domain.models.external import ExternalAnnotation, SelectorTarget
from annotext.infrastructure.elucidate.mapper import find_selector_target, image_targets


@dataclass(frozen=True, slots=True)
class ResolvedTarget:
    version_id: str
    image_links: tuple[str, ...]
    selector_target: SelectorTarget


class TargetResolver:
    """Turns a stored annotation into the text range and image regions it links."""

    def __init__(self, store: AnnotationStore) -> None:
        self.store = store

    def resolve_body_id(self, body_id: str) -> ResolvedTarget:
        found = self.store.get_by_body_id(body_id)
        if found is None:
            raise ResolutionError(f"No annotation found with body id: {body_id}")
        return self.resolve(found)

    def resolve(self, raw: ExternalAnnotation) -> ResolvedTarget:
        if isinstance(raw.target, str):
            raise ResolutionError(f"Targets unresolved: annotation {raw.id} has no image or text targets")

        selector_target = find_selector_target(raw)
        if selector_target is None:
            raise ResolutionError(f"No text selector found in annotation: {raw.id}")

        version_id = parse_version_id(raw.id)
        if version_id is None:
            raise ResolutionError(f"No version id found in {raw.id}")

        return ResolvedTarget(
            version_id=version_id,
            image_links=tuple(t.source for t in image_targets(raw)),
            selector_target=selector_target,
        )

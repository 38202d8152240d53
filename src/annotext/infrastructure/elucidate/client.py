from __future__ import annotations

import logging
from typing import Any

from annotext.core.errors import ResolutionError, TransportError
from annotext.domain.models.annotation import Annotation
from annotext.domain.models.external import ExternalAnnotation
from annotext.infrastructure.elucidate.mapper import W3C_CONTEXT, parse_external_annotation, to_w3c
from annotext.infrastructure.http import JSON_LD, JsonHttpClient

logger = logging.getLogger(__name__)


class ElucidateClient:
    """Annotation store backed by an Elucidate W3C annotation server."""

    def __init__(self, http: JsonHttpClient, *, max_pages: int = 20) -> None:
        self.http = http
        self.max_pages = max_pages

    def get_by_creator(self, creator: str) -> list[ExternalAnnotation]:
        return self._search(
            "w3c/services/search/creator",
            {"type": "id", "levels": "annotation", "value": creator},
        )

    def get_by_range(self, target_id: str, start: int, end: int) -> list[ExternalAnnotation]:
        return self._search(
            "w3c/services/search/overlap",
            {"target_id": target_id, "range_start": start, "range_end": end},
        )

    def get_by_body_id(self, body_id: str) -> ExternalAnnotation | None:
        found = self._search(
            "w3c/services/search/body",
            {"fields": "id", "value": body_id, "strict": "true"},
            max_pages=1,
        )
        return found[0] if found else None

    def get_by_body_id_prefix(self, prefix: str) -> list[ExternalAnnotation]:
        return self._search(
            "w3c/services/search/body",
            {"fields": "id", "value": prefix, "strict": "false"},
            max_pages=1,
        )

    def create(self, version_id: str, draft: Annotation, target_id: str) -> ExternalAnnotation:
        payload = to_w3c(draft, target_id)
        path = f"w3c/{version_id}/"
        try:
            created = self.http.post_json(path, payload, content_type=JSON_LD)
        except TransportError as exc:
            if exc.status != 404:
                raise
            logger.info("Annotation container %s is missing; creating it", version_id)
            self._create_container(version_id)
            created = self.http.post_json(path, payload, content_type=JSON_LD)

        if not isinstance(created, dict):
            raise TransportError(f"Annotation store returned no annotation for {path}")
        return parse_external_annotation(created)

    def _create_container(self, version_id: str) -> None:
        self.http.post_json(
            "w3c/",
            {"@context": W3C_CONTEXT, "type": "AnnotationCollection", "label": version_id},
            content_type=JSON_LD,
            headers={"Slug": version_id},
        )

    def _search(
        self,
        path: str,
        params: dict[str, object],
        *,
        max_pages: int | None = None,
    ) -> list[ExternalAnnotation]:
        page_limit = max_pages or self.max_pages
        collection = self.http.get_json(path, params)
        if not isinstance(collection, dict):
            return []

        page = collection.get("first")
        if isinstance(page, str):
            page = self.http.get_json(page)

        found: list[ExternalAnnotation] = []
        pages_read = 0
        while isinstance(page, dict) and pages_read < page_limit:
            pages_read += 1
            for item in page.get("items") or []:
                parsed = self._parse_item(item)
                if parsed is not None:
                    found.append(parsed)
            next_url = page.get("next")
            if not isinstance(next_url, str) or pages_read >= page_limit:
                break
            page = self.http.get_json(next_url)

        return found

    @staticmethod
    def _parse_item(item: Any) -> ExternalAnnotation | None:
        try:
            return parse_external_annotation(item)
        except ResolutionError as exc:
            logger.debug("Skipping unreadable annotation in search results: %s", exc)
            return None

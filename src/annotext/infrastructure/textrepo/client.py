from __future__ import annotations

from annotext.core.errors import TransportError
from annotext.infrastructure.http import JsonHttpClient


class TextRepoClient:
    """Text-range store backed by a TextRepo segments view."""

    def __init__(self, http: JsonHttpClient) -> None:
        self.http = http

    def get_by_version_id_and_range(self, version_id: str, start: int, end: int) -> list[str]:
        path = f"view/versions/{version_id}/segments/index/{start}/{end}"
        payload = self.http.get_json(path)
        segments = payload.get("segments") if isinstance(payload, dict) else payload
        if not isinstance(segments, list):
            raise TransportError(f"Text repository returned no segments for {path}")
        return [str(segment) for segment in segments]

from __future__ import annotations

import json
import logging
import urllib.error
import urllib.parse
import urllib.request
from typing import Any

from annotext.core.errors import TransportError

logger = logging.getLogger(__name__)

JSON_LD = 'application/ld+json; profile="http://www.w3.org/ns/anno.jsonld"'


class JsonHttpClient:
    """Minimal JSON-over-HTTP transport shared by the remote store clients."""

    def __init__(self, base_url: str, *, timeout_seconds: float = 10.0) -> None:
        self.base_url = base_url.rstrip("/")
        self.timeout_seconds = timeout_seconds

    def url(self, path: str, params: dict[str, object] | None = None) -> str:
        if path.startswith(("http://", "https://")):
            url = path
        else:
            url = f"{self.base_url}/{path.lstrip('/')}"
        if params:
            query = urllib.parse.urlencode({k: v for k, v in params.items() if v is not None})
            url = f"{url}{'&' if '?' in url else '?'}{query}"
        return url

    def get_json(self, path: str, params: dict[str, object] | None = None) -> Any:
        return self._send("GET", self.url(path, params), headers={"Accept": "application/json"})

    def post_json(
        self,
        path: str,
        payload: dict[str, Any],
        *,
        content_type: str = "application/json",
        headers: dict[str, str] | None = None,
    ) -> Any:
        all_headers = {"Accept": "application/json", "Content-Type": content_type}
        all_headers.update(headers or {})
        data = json.dumps(payload, ensure_ascii=True).encode("utf-8")
        return self._send("POST", self.url(path), headers=all_headers, data=data)

    def _send(
        self,
        method: str,
        url: str,
        *,
        headers: dict[str, str],
        data: bytes | None = None,
    ) -> Any:
        logger.debug("%s %s", method, url)
        request = urllib.request.Request(url, data=data, headers=headers, method=method)
        try:
            with urllib.request.urlopen(request, timeout=self.timeout_seconds) as response:
                raw = response.read()
        except urllib.error.HTTPError as exc:
            raise TransportError(
                f"{method} {url} failed with HTTP {exc.code}",
                url=url,
                status=exc.code,
            ) from exc
        except (urllib.error.URLError, TimeoutError, OSError) as exc:
            raise TransportError(f"{method} {url} failed: {exc}", url=url) from exc

        if not raw:
            return None
        try:
            return json.loads(raw.decode("utf-8"))
        except (UnicodeDecodeError, json.JSONDecodeError) as exc:
            raise TransportError(f"{method} {url} returned invalid JSON", url=url) from exc

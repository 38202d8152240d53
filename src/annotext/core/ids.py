from __future__ import annotations

import re

_UUID = r"[0-9a-f]{8}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{12}"
_W3C_ANNOTATION_ID = re.compile(rf".*/w3c/({_UUID})/({_UUID})", re.IGNORECASE)


def parse_version_id(annotation_id: str) -> str | None:
    """Return the version UUID embedded in an Elucidate annotation id.

    Annotation ids look like ``{base}/w3c/{version_id}/{annotation_id}``; the
    first UUID names the annotation container, which is the text version.
    """
    match = _W3C_ANNOTATION_ID.match(annotation_id or "")
    if match is None:
        return None
    return match.group(1)

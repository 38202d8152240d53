from __future__ import annotations

import os
from collections.abc import Mapping
from dataclasses import dataclass

from annotext.core.errors import ConfigurationError


@dataclass(frozen=True)
class AppConfig:
    elucidate_url: str
    textrepo_url: str
    creator: str
    search_id: str
    http_timeout_seconds: float
    max_pages: int
    suggestion_debounce_seconds: float
    suggestion_limit: int


DEFAULT_ELUCIDATE_URL = "http://localhost:18080/annotation"
DEFAULT_TEXTREPO_URL = "http://localhost:8080/textrepo"
DEFAULT_CREATOR = "anonymous"


def load_config(environ: Mapping[str, str] | None = None) -> AppConfig:
    env = os.environ if environ is None else environ

    return AppConfig(
        elucidate_url=_read_url(env, "ANNOTEXT_ELUCIDATE_URL", DEFAULT_ELUCIDATE_URL),
        textrepo_url=_read_url(env, "ANNOTEXT_TEXTREPO_URL", DEFAULT_TEXTREPO_URL),
        creator=(env.get("ANNOTEXT_CREATOR") or DEFAULT_CREATOR).strip(),
        search_id=(env.get("ANNOTEXT_SEARCH_ID") or "").strip(),
        http_timeout_seconds=_read_float(env, "ANNOTEXT_HTTP_TIMEOUT_SECONDS", 10.0),
        max_pages=_read_int(env, "ANNOTEXT_MAX_PAGES", 20),
        suggestion_debounce_seconds=_read_float(env, "ANNOTEXT_SUGGESTION_DEBOUNCE_SECONDS", 0.25),
        suggestion_limit=_read_int(env, "ANNOTEXT_SUGGESTION_LIMIT", 10),
    )


def _read_url(env: Mapping[str, str], name: str, default: str) -> str:
    raw = (env.get(name) or default).strip()
    if not raw.startswith(("http://", "https://")):
        raise ConfigurationError(f"{name} must be an http(s) URL, got: {raw!r}")
    return raw.rstrip("/")


def _read_float(env: Mapping[str, str], name: str, default: float) -> float:
    raw = env.get(name)
    if raw is None or not raw.strip():
        return default
    try:
        value = float(raw)
    except ValueError as exc:
        raise ConfigurationError(f"{name} must be a number, got: {raw!r}") from exc
    if value < 0:
        raise ConfigurationError(f"{name} must not be negative, got: {raw!r}")
    return value


def _read_int(env: Mapping[str, str], name: str, default: int) -> int:
    raw = env.get(name)
    if raw is None or not raw.strip():
        return default
    try:
        value = int(raw)
    except ValueError as exc:
        raise ConfigurationError(f"{name} must be an integer, got: {raw!r}") from exc
    if value < 1:
        raise ConfigurationError(f"{name} must be at least 1, got: {raw!r}")
    return value

from __future__ import annotations

from annotext.core.config import AppConfig
from annotext.infrastructure.elucidate.client import ElucidateClient
from annotext.infrastructure.http import JsonHttpClient
from annotext.infrastructure.textrepo.client import TextRepoClient


def build_stores(config: AppConfig) -> tuple[ElucidateClient, TextRepoClient]:
    elucidate = ElucidateClient(
        JsonHttpClient(config.elucidate_url, timeout_seconds=config.http_timeout_seconds),
        max_pages=config.max_pages,
    )
    textrepo = TextRepoClient(
        JsonHttpClient(config.textrepo_url, timeout_seconds=config.http_timeout_seconds),
    )
    return elucidate, textrepo

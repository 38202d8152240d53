from __future__ import annotations

import logging
import time
from typing import Callable

from annotext.application.ports import AnnotationStore
from annotext.core.errors import PreconditionError, TransportError
from annotext.domain.models.external import ExternalAnnotation

logger = logging.getLogger(__name__)


class SuggestionService:
    """Body-id typeahead that queries the store at most once per quiet interval."""

    def __init__(
        self,
        store: AnnotationStore,
        *,
        search_id: str = "",
        debounce_seconds: float = 0.25,
        limit: int = 10,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.store = store
        self.debounce_seconds = debounce_seconds
        self.limit = limit
        self._clock = clock
        self.selected = search_id
        self.input = search_id
        self.items: list[str] = []
        self._debounced = search_id
        self._typed_at: float | None = None

    @property
    def can_submit(self) -> bool:
        return bool(self.selected) and self.selected == self.input

    def type(self, text: str, now: float | None = None) -> None:
        self.input = text
        self._typed_at = self._clock() if now is None else now

    def tick(self, now: float | None = None) -> bool:
        """Settle the input once it has been quiet long enough.

        Returns True when a lookup was sent to the store.
        """
        if self._typed_at is None:
            return False
        current = self._clock() if now is None else now
        if current - self._typed_at < self.debounce_seconds:
            return False

        self._typed_at = None
        previous, self._debounced = self._debounced, self.input
        if self._debounced == previous:
            return False
        if self._debounced == self.selected:
            self.items = []
            return False

        try:
            self.items = self.suggest(self._debounced)
        except TransportError as exc:
            logger.warning("Suggestion lookup failed for %r: %s", self._debounced, exc)
            self.items = []
        return True

    def suggest(self, prefix: str) -> list[str]:
        found = self.store.get_by_body_id_prefix(prefix)
        ids = [_first_body_id(annotation) for annotation in found]
        unique = [i for i in dict.fromkeys(ids) if i]
        return sorted(unique[: self.limit])

    def select(self, value: str) -> None:
        if value == self.selected:
            return
        self.selected = value
        self.input = value
        self._debounced = value
        self._typed_at = None
        self.items = []

    def submit(self) -> str:
        if not self.can_submit:
            raise PreconditionError("Pick a body id from the suggestions before searching")
        return self.selected


def _first_body_id(annotation: ExternalAnnotation) -> str | None:
    for body in annotation.bodies:
        if body.id:
            return body.id
    return None

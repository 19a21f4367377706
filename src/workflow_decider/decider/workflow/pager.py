"""Lazy, restartable access to the history of one decision task.

The service delivers history in pages. The first page arrives with the
decision task; further pages are fetched through a `HistoryPageSource` only
when iteration or lookup runs past what is already loaded.

Known limitation: when every attempt to fetch a page fails, the pager stops
paging and serves the events it already has. Callers see a shorter history,
not an exception. `EventPager.truncated` records that this happened.
"""

from __future__ import annotations

import logging
from collections.abc import Iterator
from typing import Protocol

from .events import HistoryEvent, HistoryPage

logger = logging.getLogger(__name__)

DEFAULT_MAX_FETCH_ATTEMPTS = 10


class HistoryFetchError(RuntimeError):
    """Raised by a page source when a page could not be retrieved."""


class HistoryPageSource(Protocol):
    """Fetches the page of history that follows `next_page_token`."""

    def fetch_page(self, next_page_token: str) -> HistoryPage: ...


class EventPager:
    """Iterates the full history of a decision task, page by page.

    Events are yielded in the order the service returned them; they are never
    reordered or de-duplicated. Pages fetched by one iteration are kept, so a
    second iteration replays the same events without calling the source again.
    """

    def __init__(
        self,
        events: list[HistoryEvent],
        next_page_token: str | None = None,
        source: HistoryPageSource | None = None,
        *,
        max_fetch_attempts: int = DEFAULT_MAX_FETCH_ATTEMPTS,
    ) -> None:
        if max_fetch_attempts < 1:
            raise ValueError("max_fetch_attempts must be at least 1")

        self._events: list[HistoryEvent] = list(events)
        self._by_id: dict[int, HistoryEvent] = {e.event_id: e for e in self._events}
        self._next_page_token = next_page_token or None
        self._source = source
        self._max_fetch_attempts = max_fetch_attempts
        self._truncated = False

    @property
    def truncated(self) -> bool:
        """True when paging gave up after exhausting its fetch attempts."""

        return self._truncated

    @property
    def has_more(self) -> bool:
        return self._next_page_token is not None and self._source is not None

    @property
    def loaded_count(self) -> int:
        return len(self._events)

    def __iter__(self) -> Iterator[HistoryEvent]:
        index = 0
        while True:
            while index < len(self._events):
                yield self._events[index]
                index += 1
            if not self._load_next_page():
                return

    def __getitem__(self, event_id: int) -> HistoryEvent:
        while event_id not in self._by_id:
            if not self._load_next_page():
                raise KeyError(event_id)
        return self._by_id[event_id]

    def __contains__(self, event_id: object) -> bool:
        if not isinstance(event_id, int):
            return False
        try:
            self[event_id]
        except KeyError:
            return False
        return True

    def _load_next_page(self) -> bool:
        """Fetch and append the next page. Returns False when nothing more can be loaded."""

        source, token = self._source, self._next_page_token
        if source is None or token is None:
            return False

        for attempt in range(1, self._max_fetch_attempts + 1):
            try:
                page = source.fetch_page(token)
            except HistoryFetchError as e:
                logger.debug(
                    "History page fetch failed",
                    extra={"attempt": attempt, "error": str(e)},
                )
                continue

            self._events.extend(page.events)
            for event in page.events:
                self._by_id[event.event_id] = event
            self._next_page_token = page.next_page_token or None
            logger.debug(
                "Loaded history page",
                extra={"events": len(page.events), "total": len(self._events)},
            )
            return True

        logger.warning(
            "Giving up on history paging; deciding on a partial history",
            extra={"attempts": self._max_fetch_attempts, "loaded_events": len(self._events)},
        )
        self._next_page_token = None
        self._truncated = True
        return False

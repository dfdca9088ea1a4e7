"""
Interactive catalog search state, as driven by a browsing client.

One SearchSession holds the current QueryState and the last applied result.
Text typed into the search box is debounced; every other change fetches right
away. Each fetch carries a generation number and its outcome is applied only
if no newer fetch has started since, so a slow early response can never
overwrite a later one.
"""
import asyncio
import logging
from typing import Any, Awaitable, Callable, Optional

from swatch_catalog.config import settings
from swatch_catalog.core.query import CatalogPage, QueryState

logger = logging.getLogger(__name__)

Fetcher = Callable[[QueryState], Awaitable[CatalogPage]]
Listener = Callable[["SearchSession"], None]


class SearchSession:
    def __init__(self, fetcher: Fetcher, state: Optional[QueryState] = None,
                 debounce_ms: Optional[int] = None, on_change: Optional[Listener] = None):
        self.fetcher = fetcher
        self.state = state or QueryState()
        self.debounce = (settings.SEARCH_DEBOUNCE_MS if debounce_ms is None else debounce_ms) / 1000.0
        self.on_change = on_change
        self.result: Optional[CatalogPage] = None
        self.error: Optional[BaseException] = None
        self.loading = False
        self._generation = 0
        self._pending: Optional[asyncio.Task] = None
        self._inflight: Optional[asyncio.Task] = None

    @classmethod
    def from_url(cls, fetcher: Fetcher, query_string: str, **kwargs: Any) -> "SearchSession":
        return cls(fetcher, QueryState.from_query_string(query_string), **kwargs)

    @property
    def generation(self) -> int:
        return self._generation

    @property
    def url_query(self) -> str:
        return self.state.to_query_string()

    def set_text(self, q: str) -> None:
        """Search box keystroke: update state now, fetch after the debounce delay."""
        self.state = self.state.with_changes(q=q)
        self._cancel_pending()
        self._pending = asyncio.get_running_loop().create_task(self._debounced())

    def update(self, **changes: Any) -> "asyncio.Task":
        """Filter / sort / page change: fetch immediately."""
        self.state = self.state.with_changes(**changes)
        self._cancel_pending()
        return self._start_fetch()

    def refresh(self) -> "asyncio.Task":
        self._cancel_pending()
        return self._start_fetch()

    async def wait(self) -> None:
        """Wait for the pending debounce (if any) and the latest fetch."""
        if self._pending is not None:
            try:
                await self._pending
            except asyncio.CancelledError:
                pass
        if self._inflight is not None:
            await asyncio.shield(self._inflight)

    def close(self) -> None:
        self._cancel_pending()

    def _cancel_pending(self) -> None:
        if self._pending is not None and not self._pending.done():
            self._pending.cancel()
        self._pending = None

    async def _debounced(self) -> None:
        await asyncio.sleep(self.debounce)
        task = self._start_fetch()
        await asyncio.shield(task)

    def _start_fetch(self) -> "asyncio.Task":
        self._generation += 1
        self.loading = True
        task = asyncio.get_running_loop().create_task(self._run(self._generation, self.state))
        self._inflight = task
        return task

    async def _run(self, generation: int, state: QueryState) -> None:
        try:
            page = await self.fetcher(state)
        except Exception as e:  # surfaced on the session, not retried
            if generation != self._generation:
                logger.debug("Discarding stale error for generation %d: %s", generation, e)
                return
            logger.warning("Catalog fetch failed: %s", e)
            self.error = e
            self.loading = False
            self._notify()
            return
        if generation != self._generation:
            logger.debug("Discarding stale result for generation %d (current %d)", generation, self._generation)
            return
        self.result = page
        self.error = None
        self.loading = False
        self._notify()

    def _notify(self) -> None:
        if self.on_change is not None:
            self.on_change(self)

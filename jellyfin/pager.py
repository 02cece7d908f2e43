"""
Paginated, cancellable item stream for a single library.

A background task pages through GET /Items and hands items to the consumer
through a bounded asyncio.Queue, so network latency for page k+1 overlaps
with matching the items of page k.

Termination: a page shorter than page_size is the last one. A library whose
item count is an exact multiple of page_size therefore needs one extra,
empty page before the stream ends.

Cancellation: aclose() stops the producer. If the producer is blocked on a
full queue or waiting for a page, it is cancelled there; otherwise it sees
the stop flag before requesting the next page. The task is always awaited
so nothing keeps paginating after the consumer is gone.

Usage:
    async with ItemStream(client, library) as items:
        async for item in items:
            if item.path in wanted:
                ...
                break
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import Optional, TYPE_CHECKING

from jellyfin.models import Item, Library
from shared.log import create_logger

if TYPE_CHECKING:
    from jellyfin.client import JellyfinClient

log_trace, log_debug, log_info, log_warn, log_error = create_logger("Pager")

DEFAULT_PAGE_SIZE = 1000


@dataclass(frozen=True)
class _EndOfStream:
    error: Optional[BaseException] = None


class ItemStream:
    """
    Async iterator over every item of a library, fetched page by page.

    Args:
        client: JellyfinClient used for page requests
        library: Library to enumerate
        page_size: Items requested per page (default 1000)
        queue_size: Maximum items buffered ahead of the consumer
                    (default: one page)

    Not restartable: once exhausted or closed it yields nothing more.
    """

    def __init__(
        self,
        client: "JellyfinClient",
        library: Library,
        page_size: int = DEFAULT_PAGE_SIZE,
        queue_size: Optional[int] = None,
    ):
        if page_size < 1:
            raise ValueError(f"page_size must be >= 1, got {page_size}")
        self._client = client
        self._library = library
        self._page_size = page_size
        self._queue: asyncio.Queue = asyncio.Queue(maxsize=queue_size or page_size)
        self._stopped = asyncio.Event()
        self._task: Optional[asyncio.Task] = None
        self._finished = False
        self.pages_fetched = 0
        self.items_yielded = 0

    @property
    def library(self) -> Library:
        return self._library

    @property
    def producer_done(self) -> bool:
        """True once the background task has finished (or was never started)."""
        return self._task is None or self._task.done()

    def _start(self) -> None:
        if self._task is None and not self._finished:
            self._task = asyncio.create_task(
                self._produce(), name=f"item-stream:{self._library.item_id}"
            )

    async def _produce(self) -> None:
        page = 0
        try:
            while not self._stopped.is_set():
                items = await self._client.get_items_page(
                    self._library,
                    start_index=page * self._page_size,
                    limit=self._page_size,
                )
                self.pages_fetched += 1
                log_trace(
                    f"Library '{self._library.name}' page {page}: {len(items)} items",
                    library=self._library.name,
                )

                for item in items:
                    if self._stopped.is_set():
                        return
                    await self._queue.put(item)

                if len(items) < self._page_size:
                    break
                page += 1
            await self._queue.put(_EndOfStream())
        except Exception as exc:
            await self._queue.put(_EndOfStream(error=exc))

    def __aiter__(self) -> "ItemStream":
        return self

    async def __anext__(self) -> Item:
        if self._finished:
            raise StopAsyncIteration
        self._start()

        entry = await self._queue.get()
        if isinstance(entry, _EndOfStream):
            self._finished = True
            await self._reap()
            if entry.error is not None:
                raise entry.error
            raise StopAsyncIteration
        self.items_yielded += 1
        return entry

    async def _reap(self) -> None:
        if self._task is None:
            return
        if not self._task.done():
            self._task.cancel()
        await asyncio.gather(self._task, return_exceptions=True)

    async def aclose(self) -> None:
        """Stop paginating and release the producer task."""
        if self._stopped.is_set() and self.producer_done:
            return
        self._stopped.set()
        self._finished = True
        await self._reap()
        log_debug(
            f"Stopped item stream for library '{self._library.name}' "
            f"after {self.pages_fetched} pages, {self.items_yielded} items",
            library=self._library.name,
        )

    async def __aenter__(self) -> "ItemStream":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

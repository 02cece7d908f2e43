"""
Tier 3: find items by enumerating whole libraries, then refresh them.

Used when the targeted-scan plugin is missing or kept failing. Leftover
events are grouped under every library that claims their path, and the
libraries are searched in catalog order. Each library's items are streamed
and compared by exact path; the first library that yields a match claims
the event, and the stream for a library is closed as soon as nothing is
left to look for in it.
"""

from dataclasses import dataclass, field
from typing import Optional, Sequence, TYPE_CHECKING

from jellyfin.exceptions import JellyfinError
from jellyfin.models import Item, Library, RefreshMode
from jellyfin.pager import DEFAULT_PAGE_SIZE, ItemStream
from reconciliation.errors import EnumerationFetchError
from reconciliation.models import Disposition, EventOutcome, PendingEvent, Tier
from shared.log import create_logger

if TYPE_CHECKING:
    from jellyfin.client import JellyfinClient

log_trace, log_debug, log_info, log_warn, log_error = create_logger("Enumeration")


@dataclass
class LibrarySearch:
    """Result of scanning one library for a set of wanted paths."""
    library: Library
    found: list[tuple[PendingEvent, Item]] = field(default_factory=list)
    not_found: list[PendingEvent] = field(default_factory=list)


def group_by_library(
    pending: list[PendingEvent],
    catalog_order: Optional[Sequence[Library]] = None,
) -> dict[Library, list[PendingEvent]]:
    """Map each candidate library to the events it may contain.

    Libraries follow *catalog_order* when given; libraries missing from it,
    or all of them without it, follow the order events first mention them.
    """
    groups: dict[Library, list[PendingEvent]] = {}
    for item in pending:
        for library in item.libraries:
            groups.setdefault(library, []).append(item)
    if catalog_order is None:
        return groups
    rank = {library: index for index, library in enumerate(catalog_order)}
    return dict(sorted(groups.items(), key=lambda entry: rank.get(entry[0], len(rank))))


async def find_items(
    client: "JellyfinClient",
    library: Library,
    wanted: list[PendingEvent],
    page_size: int = DEFAULT_PAGE_SIZE,
    queue_size: Optional[int] = None,
) -> LibrarySearch:
    """Stream a library's items until every wanted path is found or the library is exhausted.

    Raises:
        EnumerationFetchError: if any page of the listing fails.
    """
    search = LibrarySearch(library=library)
    by_path: dict[str, list[PendingEvent]] = {}
    for item in wanted:
        by_path.setdefault(item.path, []).append(item)
    if not by_path:
        return search

    try:
        async with ItemStream(client, library, page_size=page_size, queue_size=queue_size) as stream:
            async for server_item in stream:
                if server_item.path is None:
                    continue
                matched = by_path.pop(server_item.path, None)
                if matched is None:
                    continue
                for event in matched:
                    search.found.append((event, server_item))
                if not by_path:
                    log_debug(
                        f"all wanted paths found in library '{library.name}' "
                        f"after {stream.items_yielded} items, stopping enumeration",
                        library=library.name,
                    )
                    break
    except JellyfinError as e:
        raise EnumerationFetchError(library.name, e) from e

    for events in by_path.values():
        search.not_found.extend(events)
    return search


async def run_enumeration_fallback(
    client: "JellyfinClient",
    pending: list[PendingEvent],
    refresh_mode: RefreshMode = RefreshMode.FULL_REFRESH,
    page_size: int = DEFAULT_PAGE_SIZE,
    queue_size: Optional[int] = None,
    catalog_order: Optional[Sequence[Library]] = None,
) -> tuple[list[EventOutcome], list[str]]:
    """Enumerate candidate libraries, refresh matched items and fail the rest.

    Args:
        client: JellyfinClient to call
        pending: Events left unresolved by the targeted scans
        refresh_mode: Metadata/image refresh mode for matched items
        page_size: Items per listing page
        queue_size: Item buffer between the pager and the matcher
        catalog_order: Server library order; libraries are searched in it

    Returns:
        Tuple of (one EventOutcome per pending event, names of libraries enumerated)

    Raises:
        EnumerationFetchError: if a library listing fails; aborts the run.
    """
    outcomes: dict[str, EventOutcome] = {}
    claimed: set[str] = set()
    enumerated: list[str] = []

    for library, events in group_by_library(pending, catalog_order).items():
        wanted = [e for e in events if e.event_id not in claimed]
        if not wanted:
            log_trace(f"nothing left to find in library '{library.name}', skipping")
            continue

        log_debug(
            f"enumerating library '{library.name}' for {len(wanted)} paths",
            library=library.name, count=len(wanted),
        )
        search = await find_items(client, library, wanted, page_size=page_size, queue_size=queue_size)
        enumerated.append(library.name)

        for event, server_item in search.found:
            claimed.add(event.event_id)
            try:
                await client.refresh_item(server_item.id, refresh_mode)
            except JellyfinError as e:
                log_error(
                    f"failed to refresh item {server_item.id}: {e}",
                    event_id=event.event_id, path=event.path, library=library.name,
                )
                outcomes[event.event_id] = EventOutcome(
                    event.event_id, Disposition.FAILED, Tier.ENUMERATION,
                    f"refresh of item {server_item.id} failed: {e}",
                )
                continue
            log_debug(
                f"refreshed item: {server_item.id}",
                event_id=event.event_id, path=event.path, library=library.name,
            )
            outcomes[event.event_id] = EventOutcome(
                event.event_id, Disposition.REFRESHED, Tier.ENUMERATION,
                f"refreshed item {server_item.id} in library '{library.name}'",
            )

    for event in pending:
        if event.event_id in claimed:
            continue
        log_error(f"item not found after all methods: {event.path}", event_id=event.event_id, path=event.path)
        outcomes[event.event_id] = EventOutcome(
            event.event_id, Disposition.FAILED, Tier.ENUMERATION,
            "not found in any matching library",
        )

    return [outcomes[e.event_id] for e in pending], enumerated

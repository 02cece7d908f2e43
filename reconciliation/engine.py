"""
Reconciliation engine: make a Jellyfin/Emby server aware of changed files.

Drives the escalation ladder for a batch of change events:

    library match  -> events no library claims are a no-op
    Tier 1         -> one batch targeted scan for every remaining path
    Tier 2         -> individual targeted scans, retried on a backoff ladder
    Tier 3         -> library enumeration + explicit refresh (optional)

The engine is the only writer of dispositions. Every input event ends with
exactly one EventOutcome; only catalog and enumeration fetch failures abort
the run.
"""

import asyncio
import time
from collections import Counter
from typing import Iterable, Optional, Sequence, TYPE_CHECKING

from jellyfin.catalog import LibraryCatalog
from jellyfin.exceptions import JellyfinError
from jellyfin.models import RefreshMode
from jellyfin.pager import DEFAULT_PAGE_SIZE
from reconciliation.batch import run_batch_scan
from reconciliation.enumeration import run_enumeration_fallback
from reconciliation.errors import CatalogFetchError
from reconciliation.models import (
    ChangeEvent,
    Disposition,
    EventOutcome,
    PendingEvent,
    ReconcileReport,
    Rewrite,
    Tier,
)
from reconciliation.retry import DEFAULT_BACKOFF_DELAYS, Sleep, run_retried_scans
from shared.log import create_logger

if TYPE_CHECKING:
    from config.settings import JellyScanSettings
    from jellyfin.client import JellyfinClient

log_trace, log_debug, log_info, log_warn, log_error = create_logger("Engine")


class ReconciliationEngine:
    """Orchestrates the three reconciliation tiers for one server.

    Connects the tier strategies to a live client:
    - Library catalog fetched fresh on every run
    - Batch and individual targeted scans (server plugin, may be absent)
    - Library enumeration + refresh when targeted scans cannot help

    Args:
        client: JellyfinClient for the target server
        rewrite: Optional PathRewriter (or any str -> str callable) mapping
                 event paths to server paths
        refresh_metadata: Fall back to library enumeration when targeted
                          scans fail (default True)
        refresh_mode: Refresh mode for items found by enumeration
        backoff_delays: Delays before each targeted-scan retry round
        page_size: Items per page when enumerating a library
        queue_size: Item buffer between pager and matcher (default: one page)
        sleep: Awaitable delay used between retry rounds (default asyncio.sleep)
    """

    def __init__(
        self,
        client: "JellyfinClient",
        rewrite: Optional[Rewrite] = None,
        refresh_metadata: bool = True,
        refresh_mode: RefreshMode = RefreshMode.FULL_REFRESH,
        backoff_delays: Sequence[float] = DEFAULT_BACKOFF_DELAYS,
        page_size: int = DEFAULT_PAGE_SIZE,
        queue_size: Optional[int] = None,
        sleep: Optional[Sleep] = None,
    ):
        self.client = client
        self.rewrite = rewrite
        self.refresh_metadata = refresh_metadata
        self.refresh_mode = refresh_mode
        self.backoff_delays = tuple(backoff_delays)
        self.page_size = page_size
        self.queue_size = queue_size
        self.sleep = sleep or asyncio.sleep

    @classmethod
    def from_settings(cls, client: "JellyfinClient", settings: "JellyScanSettings") -> "ReconciliationEngine":
        """Build an engine from validated JellyScanSettings."""
        return cls(
            client,
            rewrite=settings.build_rewriter(),
            refresh_metadata=settings.refresh_metadata,
            refresh_mode=settings.metadata_refresh_mode,
            backoff_delays=settings.backoff_delays,
            page_size=settings.page_size,
            queue_size=settings.queue_size,
        )

    async def reconcile(self, events: Iterable[ChangeEvent]) -> set[str]:
        """Reconcile events and return the ids that succeeded.

        Failed ids are every input id not in the returned set; use run() for
        the per-event detail.

        Raises:
            CatalogFetchError: library list could not be fetched
            EnumerationFetchError: a library listing failed during the fallback
        """
        report = await self.run(events)
        return report.succeeded

    async def run(self, events: Iterable[ChangeEvent]) -> ReconcileReport:
        """Reconcile events and return the full per-event report.

        Execution steps:
            1. Fetch the library catalog (fatal on failure)
            2. Settle events no library claims as no-ops
            3. Tier 1: batch targeted scan
            4. Tier 2: individual targeted scans with backoff
            5. Tier 3: enumeration fallback, or fail the leftovers
        """
        events = list(events)
        self._check_unique_ids(events)
        report = ReconcileReport()
        started = time.monotonic()

        if not events:
            log_debug("No events to reconcile")
            return report

        # Step 1: Fetch library catalog
        try:
            catalog = await LibraryCatalog.fetch(self.client)
        except JellyfinError as e:
            log_error(f"Failed to fetch libraries: {e}")
            raise CatalogFetchError(f"failed to fetch libraries: {e}") from e

        # Step 2: Match events to libraries
        pending: list[PendingEvent] = []
        for event in events:
            path = event.get_path(self.rewrite)
            libraries = tuple(catalog.match(path))
            if not libraries:
                log_debug(f"no matching library for {path}, skipping (not a failure)", event_id=event.id, path=path)
                self._record(report, EventOutcome(event.id, Disposition.NO_OP, Tier.LIBRARY_MATCH, "no matching library"))
                continue
            pending.append(PendingEvent(event=event, path=path, libraries=libraries))

        if not pending:
            log_info(f"Reconciled {len(events)} events: none belong to a library")
            return self._finish(report, events, started)

        # Step 3: Tier 1
        log_debug(f"Batch targeted scan for {len(pending)} paths", tier=Tier.BATCH_SCAN.value, count=len(pending))
        batch = await run_batch_scan(self.client, pending)
        report.batch_available = batch.rounds > 0
        self._merge(report, batch.outcomes)
        pending = batch.remaining

        # Step 4: Tier 2
        if pending:
            log_debug(
                f"Individual targeted scans for {len(pending)} events",
                tier=Tier.TARGETED_SCAN.value, count=len(pending),
            )
            retried = await run_retried_scans(self.client, pending, self.backoff_delays, self.sleep)
            report.scan_rounds = retried.rounds
            self._merge(report, retried.outcomes)
            pending = retried.remaining

        # Step 5: Tier 3 or give up
        if pending and self.refresh_metadata:
            log_warn(
                f"targeted scan plugin unavailable for {len(pending)} items, falling back to library enumeration",
                tier=Tier.ENUMERATION.value, count=len(pending),
            )
            outcomes, enumerated = await run_enumeration_fallback(
                self.client,
                pending,
                refresh_mode=self.refresh_mode,
                page_size=self.page_size,
                queue_size=self.queue_size,
                catalog_order=catalog.libraries,
            )
            report.enumerated_libraries = enumerated
            self._merge(report, outcomes)
        elif pending:
            for item in pending:
                log_error(
                    f"targeted scan failed for {item.path} after all retries",
                    event_id=item.event_id, path=item.path,
                )
                self._record(report, EventOutcome(
                    item.event_id, Disposition.FAILED, Tier.TARGETED_SCAN,
                    "targeted scan failed after all retries",
                ))

        return self._finish(report, events, started)

    @staticmethod
    def _check_unique_ids(events: list[ChangeEvent]) -> None:
        counts = Counter(e.id for e in events)
        duplicates = sorted(eid for eid, n in counts.items() if n > 1)
        if duplicates:
            raise ValueError(f"duplicate event ids: {', '.join(duplicates)}")

    def _merge(self, report: ReconcileReport, outcomes: list[EventOutcome]) -> None:
        for outcome in outcomes:
            self._record(report, outcome)

    @staticmethod
    def _record(report: ReconcileReport, outcome: EventOutcome) -> None:
        if outcome.event_id in report.outcomes:
            raise RuntimeError(
                f"event {outcome.event_id} already dispositioned as "
                f"{report.outcomes[outcome.event_id].disposition.value}"
            )
        report.outcomes[outcome.event_id] = outcome

    def _finish(self, report: ReconcileReport, events: list[ChangeEvent], started: float) -> ReconcileReport:
        # Restore input order; every event must have been settled exactly once
        missing = [e.id for e in events if e.id not in report.outcomes]
        if missing:
            raise RuntimeError(f"events left without a disposition: {', '.join(missing)}")
        report.outcomes = {e.id: report.outcomes[e.id] for e in events}

        elapsed = time.monotonic() - started
        log_info(
            f"Reconciled {len(events)} events in {elapsed:.1f}s: "
            f"{report.count(Disposition.RESOLVED)} resolved, "
            f"{report.count(Disposition.REFRESHED)} refreshed, "
            f"{report.count(Disposition.NO_OP)} no-op, "
            f"{report.count(Disposition.FAILED)} failed",
            succeeded=len(report.succeeded), failed=len(report.failed),
        )
        return report

"""
Tier 1: resolve every pending path with one batch targeted-scan request.

The batch endpoint is optional on the server. Any failure of the call itself
(plugin missing, transport error, unparseable body) leaves every event for
the retried individual scans; it is not an event failure.
"""

from typing import Optional, TYPE_CHECKING

from jellyfin.exceptions import JellyfinError
from jellyfin.models import ScanOutcome, ScanPathResult
from reconciliation.models import Disposition, EventOutcome, PendingEvent, Tier, TierResult
from shared.log import create_logger

if TYPE_CHECKING:
    from jellyfin.client import JellyfinClient

log_trace, log_debug, log_info, log_warn, log_error = create_logger("BatchScan")


def settle_scan_result(pending: PendingEvent, result: ScanPathResult, tier: Tier) -> Optional[EventOutcome]:
    """Classify one targeted-scan result.

    Returns:
        EventOutcome when the result settles the event, None when it must be
        retried by a later tier.
    """
    outcome = result.outcome
    if outcome is ScanOutcome.RESOLVED:
        log_info(
            f"targeted scan succeeded for {pending.path}: {result.item_id} ({result.status})",
            event_id=pending.event_id, path=pending.path, tier=tier.value,
        )
        detail = result.scan_status.value
        if result.item_id:
            detail += f" item {result.item_id}"
        return EventOutcome(pending.event_id, Disposition.RESOLVED, tier, detail)
    if outcome is ScanOutcome.NOT_FOUND:
        log_debug(
            f"path no longer exists for {pending.path} ({result.status}), skipping",
            event_id=pending.event_id, path=pending.path, tier=tier.value,
        )
        return EventOutcome(pending.event_id, Disposition.NO_OP, tier, result.scan_status.value)
    return None


async def run_batch_scan(client: "JellyfinClient", pending: list[PendingEvent]) -> TierResult:
    """Submit every pending path in one POST /Library/ScanPaths.

    Args:
        client: JellyfinClient to call
        pending: Events to resolve; each path is submitted even if repeated

    Returns:
        TierResult with settled outcomes and the events to retry. rounds is 1
        if the batch call answered, 0 if it failed outright.
    """
    result = TierResult()
    if not pending:
        return result

    try:
        batch = await client.scan_paths([p.path for p in pending])
    except JellyfinError as e:
        log_warn(f"batch targeted scan failed ({e}), trying individual requests", count=len(pending))
        result.remaining = list(pending)
        return result

    result.rounds = 1
    by_key: dict[str, ScanPathResult] = {}
    for scan in batch:
        by_key[scan.match_key] = scan

    for item in pending:
        scan = by_key.get(item.path)
        outcome = settle_scan_result(item, scan, Tier.BATCH_SCAN) if scan is not None else None
        if outcome is None:
            if scan is not None:
                log_debug(
                    f"batch scan returned unrecognized status '{scan.status}' for {item.path}",
                    event_id=item.event_id, path=item.path,
                )
            result.remaining.append(item)
        else:
            result.outcomes.append(outcome)

    log_debug(
        f"batch scan settled {len(result.outcomes)}/{len(pending)} events, "
        f"{len(result.remaining)} remaining"
    )
    return result

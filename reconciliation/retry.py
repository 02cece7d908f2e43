"""
Tier 2: individual targeted scans, retried on a fixed backoff ladder.

Round 0 runs immediately; each further round waits the next delay of the
ladder (default 5s, 15s, 30s). Within a round every request is started
before any is awaited, and the round only ends when all of them have
completed or failed.
"""

import asyncio
from typing import Awaitable, Callable, Optional, Sequence, TYPE_CHECKING, Union

from jellyfin.exceptions import JellyfinError
from jellyfin.models import ScanPathResult
from reconciliation.batch import settle_scan_result
from reconciliation.models import PendingEvent, Tier, TierResult
from shared.log import create_logger

if TYPE_CHECKING:
    from jellyfin.client import JellyfinClient

log_trace, log_debug, log_info, log_warn, log_error = create_logger("TargetedScan")

DEFAULT_BACKOFF_DELAYS: tuple[float, ...] = (5.0, 15.0, 30.0)

Sleep = Callable[[float], Awaitable[None]]
ScanAttempt = tuple[PendingEvent, Union[ScanPathResult, JellyfinError]]


async def _scan_one(client: "JellyfinClient", pending: PendingEvent) -> ScanAttempt:
    try:
        return pending, await client.scan_path(pending.path)
    except JellyfinError as e:
        return pending, e


async def run_scan_round(client: "JellyfinClient", pending: Sequence[PendingEvent]) -> list[ScanAttempt]:
    """Issue one targeted scan per event concurrently and wait for all of them.

    Each task returns its own (event, result-or-error) pair; nothing shared
    is written from inside the tasks.
    """
    tasks = [asyncio.create_task(_scan_one(client, p)) for p in pending]
    return list(await asyncio.gather(*tasks))


async def run_retried_scans(
    client: "JellyfinClient",
    pending: list[PendingEvent],
    backoff_delays: Sequence[float] = DEFAULT_BACKOFF_DELAYS,
    sleep: Optional[Sleep] = None,
) -> TierResult:
    """Resolve events one path at a time with up to len(backoff_delays) retries.

    Args:
        client: JellyfinClient to call
        pending: Events left unresolved by the batch scan
        backoff_delays: Seconds to wait before each retry round
        sleep: Awaitable delay function (default asyncio.sleep)

    Returns:
        TierResult with settled outcomes, events still unresolved after the
        last round, and the number of rounds issued.
    """
    sleep = sleep or asyncio.sleep
    result = TierResult()
    remaining = list(pending)

    for attempt in range(len(backoff_delays) + 1):
        if not remaining:
            break

        if attempt > 0:
            delay = backoff_delays[attempt - 1]
            log_info(
                f"retrying {len(remaining)} targeted scans in {delay:g}s "
                f"(attempt {attempt}/{len(backoff_delays)})",
                count=len(remaining),
            )
            await sleep(delay)

        attempts = await run_scan_round(client, remaining)
        result.rounds += 1

        still_remaining = []
        for item, scan in attempts:
            if isinstance(scan, JellyfinError):
                log_warn(
                    f"targeted scan failed for {item.path}: {scan}, will retry",
                    event_id=item.event_id, path=item.path,
                )
                still_remaining.append(item)
                continue

            outcome = settle_scan_result(item, scan, Tier.TARGETED_SCAN)
            if outcome is None:
                log_warn(
                    f"targeted scan returned unrecognized status '{scan.status}' for {item.path}, will retry",
                    event_id=item.event_id, path=item.path,
                )
                still_remaining.append(item)
            else:
                result.outcomes.append(outcome)
        remaining = still_remaining

    result.remaining = remaining
    return result

#!/usr/bin/env python3
"""
Command-line reconciliation of file-change events with a Jellyfin/Emby server.

Reads a JSON array of change events and makes the server aware of each path
(targeted scan, or library enumeration + refresh as a fallback), then prints
a JSON report of per-event dispositions.

Usage:
    jellyscan --events events.json [--url http://jellyfin:8096 --token KEY]
    echo '[{"id": "a", "path": "/media/movies/x.mkv"}]' | jellyscan

Exit status:
    0  every event succeeded
    1  at least one event failed
    2  bad input, bad configuration, or the run was aborted
"""

import argparse
import asyncio
import json
import sys
from typing import IO, Optional

from config.settings import JellyScanSettings, load_settings
from jellyfin.models import RefreshMode
from reconciliation.engine import ReconciliationEngine
from reconciliation.errors import ReconciliationError
from reconciliation.models import ChangeEvent, ReconcileReport
from shared.log import create_logger
from shared.logging_config import configure_logging

log_trace, log_debug, log_info, log_warn, log_error = create_logger("CLI")

EXIT_OK = 0
EXIT_EVENTS_FAILED = 1
EXIT_ABORTED = 2


def parse_events(raw: str) -> list[ChangeEvent]:
    """Parse a JSON array of {"id", "path"} objects into ChangeEvents.

    Raises:
        ValueError: on invalid JSON or a malformed event entry.
    """
    try:
        data = json.loads(raw)
    except json.JSONDecodeError as e:
        raise ValueError(f"events are not valid JSON: {e}") from e
    if not isinstance(data, list):
        raise ValueError("events must be a JSON array")

    events = []
    for index, entry in enumerate(data):
        if not isinstance(entry, dict):
            raise ValueError(f"event #{index} is not an object")
        event_id = entry.get("id")
        path = entry.get("path", entry.get("file_path"))
        if event_id is None or not path:
            raise ValueError(f"event #{index} needs 'id' and 'path'")
        events.append(ChangeEvent(id=str(event_id), file_path=str(path)))
    return events


async def run_reconciliation(settings: JellyScanSettings, events: list[ChangeEvent]) -> ReconcileReport:
    """Run one reconciliation against the configured server."""
    client = settings.build_client()
    try:
        engine = ReconciliationEngine.from_settings(client, settings)
        return await engine.run(events)
    finally:
        await client.close()


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="jellyscan",
        description="Make a Jellyfin/Emby server aware of changed files",
    )
    parser.add_argument("--events", "-e", help="JSON file with change events (default: stdin)")
    parser.add_argument("--url", help="Server URL (or set JELLYSCAN_URL)")
    parser.add_argument("--token", help="API key (or set JELLYSCAN_TOKEN)")
    parser.add_argument(
        "--refresh-mode",
        choices=[m.value for m in RefreshMode],
        help="Metadata refresh mode for the enumeration fallback",
    )
    parser.add_argument(
        "--no-refresh-metadata",
        action="store_true",
        help="Fail events the targeted scan cannot resolve instead of enumerating libraries",
    )
    parser.add_argument("--log-level", help="trace, debug, info, warning or error")
    return parser


def main(argv: Optional[list[str]] = None, stdin: Optional[IO[str]] = None, stdout: Optional[IO[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    stdin = stdin or sys.stdin
    stdout = stdout or sys.stdout

    settings = load_settings(
        url=args.url,
        token=args.token,
        metadata_refresh_mode=args.refresh_mode,
        refresh_metadata=False if args.no_refresh_metadata else None,
        log_level=args.log_level,
    )
    configure_logging(settings.log_level)
    settings.log_config()

    try:
        if args.events:
            with open(args.events, "r", encoding="utf-8") as f:
                raw = f.read()
        else:
            raw = stdin.read()
        events = parse_events(raw)
    except (OSError, ValueError) as e:
        log_error(f"Cannot read events: {e}")
        return EXIT_ABORTED

    try:
        report = asyncio.run(run_reconciliation(settings, events))
    except (ReconciliationError, ValueError) as e:
        log_error(f"Reconciliation aborted: {e}")
        return EXIT_ABORTED

    json.dump(report.to_dict(), stdout, indent=2)
    stdout.write("\n")
    return EXIT_OK if not report.failed else EXIT_EVENTS_FAILED


if __name__ == '__main__':
    sys.exit(main())

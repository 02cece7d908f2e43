"""
Tests for the jellyscan command-line entry point.

Covers event parsing, exit codes and the JSON report, with the server
mocked by respx (asyncio.run inside main() goes through the mocked transport).
"""

import io
import json
import os
from unittest.mock import AsyncMock, patch

import httpx
import pytest
import respx

import jellyscan
from config.settings import CONFIG_FILE_ENV
from factories import SERVER_URL, TOKEN, library_json, scan_json
from reconciliation.errors import CatalogFetchError
from reconciliation.models import Disposition, EventOutcome, ReconcileReport, Tier


@pytest.fixture(autouse=True)
def isolated_env(monkeypatch, tmp_path):
    for key in list(os.environ):
        if key.startswith("JELLYSCAN_"):
            monkeypatch.delenv(key)
    monkeypatch.setenv(CONFIG_FILE_ENV, str(tmp_path / "missing.yml"))
    monkeypatch.setenv("JELLYSCAN_URL", SERVER_URL)
    monkeypatch.setenv("JELLYSCAN_TOKEN", TOKEN)


def run_main(argv, events):
    stdin = io.StringIO(events if isinstance(events, str) else json.dumps(events))
    stdout = io.StringIO()
    code = jellyscan.main(argv, stdin=stdin, stdout=stdout)
    return code, stdout.getvalue()


# =============================================================================
# parse_events
# =============================================================================

class TestParseEvents:

    def test_parses_id_and_path(self):
        events = jellyscan.parse_events('[{"id": "a", "path": "/media/x.mkv"}, {"id": 7, "file_path": "/y"}]')
        assert [(e.id, e.file_path) for e in events] == [("a", "/media/x.mkv"), ("7", "/y")]

    @pytest.mark.parametrize("raw", [
        "not json",
        '{"id": "a", "path": "/x"}',
        '["a"]',
        '[{"id": "a"}]',
        '[{"path": "/x"}]',
    ])
    def test_rejects_malformed(self, raw):
        with pytest.raises(ValueError):
            jellyscan.parse_events(raw)

    def test_empty_array(self):
        assert jellyscan.parse_events("[]") == []


# =============================================================================
# main
# =============================================================================

class TestMain:

    def test_all_succeeded_exit_zero(self):
        with respx.mock:
            respx.get(f"{SERVER_URL}/Library/VirtualFolders").mock(
                return_value=httpx.Response(200, json=[library_json()])
            )
            respx.post(f"{SERVER_URL}/Library/ScanPaths").mock(
                return_value=httpx.Response(
                    200, json={"Results": [scan_json("Created", "/media/movies/x.mkv", "42")]}
                )
            )
            code, out = run_main([], [
                {"id": "a", "path": "/media/movies/x.mkv"},
                {"id": "b", "path": "/downloads/y.mkv"},
            ])

        assert code == jellyscan.EXIT_OK
        report = json.loads(out)
        assert report["succeeded"] == ["a", "b"]
        assert report["failed"] == []
        assert report["outcomes"]["a"]["disposition"] == "resolved"
        assert report["outcomes"]["b"]["disposition"] == "no_op"

    def test_failed_event_exit_one(self):
        report = ReconcileReport(outcomes={
            "a": EventOutcome("a", Disposition.FAILED, Tier.TARGETED_SCAN, "targeted scan failed after all retries"),
        })
        with patch("jellyscan.run_reconciliation", new=AsyncMock(return_value=report)) as run:
            code, out = run_main(["--no-refresh-metadata"], [{"id": "a", "path": "/media/movies/x.mkv"}])

        assert code == jellyscan.EXIT_EVENTS_FAILED
        assert json.loads(out)["failed"] == ["a"]
        settings = run.call_args.args[0]
        assert settings.refresh_metadata is False

    def test_flags_override_env(self):
        with patch("jellyscan.run_reconciliation", new=AsyncMock(return_value=ReconcileReport())) as run:
            run_main(["--url", "http://other:8096", "--refresh-mode", "ValidationOnly"], [])

        settings = run.call_args.args[0]
        assert settings.url == "http://other:8096"
        assert settings.metadata_refresh_mode.value == "ValidationOnly"

    def test_bad_events_exit_two(self):
        with patch("jellyscan.run_reconciliation", new=AsyncMock()) as run:
            code, out = run_main([], "not json")

        assert code == jellyscan.EXIT_ABORTED
        assert out == ""
        run.assert_not_called()

    def test_missing_events_file_exit_two(self, tmp_path):
        code, _ = run_main(["--events", str(tmp_path / "nope.json")], "")
        assert code == jellyscan.EXIT_ABORTED

    def test_events_file(self, tmp_path):
        events_file = tmp_path / "events.json"
        events_file.write_text(json.dumps([{"id": "a", "path": "/x/a.mkv"}]))
        with patch("jellyscan.run_reconciliation", new=AsyncMock(return_value=ReconcileReport())) as run:
            code, _ = run_main(["-e", str(events_file)], "")

        assert code == jellyscan.EXIT_OK
        assert [e.id for e in run.call_args.args[1]] == ["a"]

    def test_catalog_failure_exit_two(self):
        with patch("jellyscan.run_reconciliation", new=AsyncMock(side_effect=CatalogFetchError("down"))):
            code, out = run_main([], [{"id": "a", "path": "/media/movies/x.mkv"}])

        assert code == jellyscan.EXIT_ABORTED
        assert out == ""

    def test_duplicate_ids_exit_two(self):
        with respx.mock:
            code, _ = run_main([], [{"id": "a", "path": "/x"}, {"id": "a", "path": "/y"}])

        assert code == jellyscan.EXIT_ABORTED

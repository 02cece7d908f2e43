"""
Tests for reconciliation.batch — Tier 1 batch targeted scan.
"""

import pytest

from factories import make_pending, scan_result
from jellyfin.exceptions import JellyfinRequestError
from reconciliation.batch import run_batch_scan, settle_scan_result
from reconciliation.models import Disposition, Tier


A = make_pending("a", "/media/movies/a.mkv")
B = make_pending("b", "/media/movies/b.mkv")
C = make_pending("c", "/media/movies/c.mkv")


# ---------------------------------------------------------------------------
# settle_scan_result
# ---------------------------------------------------------------------------

@pytest.mark.parametrize("status", ["Created", "Refreshed", "Discovered"])
def test_resolved_statuses_settle(status):
    outcome = settle_scan_result(A, scan_result(status, A.path, "42"), Tier.BATCH_SCAN)
    assert outcome.disposition is Disposition.RESOLVED
    assert outcome.tier is Tier.BATCH_SCAN
    assert outcome.detail == f"{status} item 42"


@pytest.mark.parametrize("status", ["PathNotFound", "ParentNotFound", "Removed"])
def test_not_found_is_a_no_op(status):
    outcome = settle_scan_result(A, scan_result(status, A.path), Tier.TARGETED_SCAN)
    assert outcome.disposition is Disposition.NO_OP
    assert outcome.succeeded
    assert outcome.detail == status


def test_resolved_without_item_id():
    outcome = settle_scan_result(A, scan_result("Discovered", A.path), Tier.BATCH_SCAN)
    assert outcome.detail == "Discovered"


def test_unrecognized_status_not_settled():
    assert settle_scan_result(A, scan_result("Queued", A.path), Tier.BATCH_SCAN) is None


# ---------------------------------------------------------------------------
# run_batch_scan
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_batch_unavailable_leaves_everything(fake_client):
    fake_client.batch = JellyfinRequestError("404", status_code=404)

    result = await run_batch_scan(fake_client, [A, B])

    assert result.outcomes == []
    assert result.remaining == [A, B]
    assert result.rounds == 0
    assert fake_client.batch_calls == [[A.path, B.path]]


@pytest.mark.asyncio
async def test_batch_settles_matched_results(fake_client):
    fake_client.batch = [
        scan_result("Created", B.path, "2"),
        scan_result("PathNotFound", A.path),
    ]

    result = await run_batch_scan(fake_client, [A, B, C])

    by_id = {o.event_id: o for o in result.outcomes}
    assert by_id["a"].disposition is Disposition.NO_OP
    assert by_id["b"].disposition is Disposition.RESOLVED
    assert result.remaining == [C]
    assert result.rounds == 1


@pytest.mark.asyncio
async def test_batch_matches_on_message_when_path_empty(fake_client):
    fake_client.batch = [scan_result("Refreshed", "", "7", message=A.path)]

    result = await run_batch_scan(fake_client, [A])

    assert result.outcomes[0].disposition is Disposition.RESOLVED
    assert result.remaining == []


@pytest.mark.asyncio
async def test_batch_unrecognized_result_is_retried(fake_client):
    fake_client.batch = [scan_result("Pending", A.path)]

    result = await run_batch_scan(fake_client, [A])

    assert result.outcomes == []
    assert result.remaining == [A]


@pytest.mark.asyncio
async def test_batch_result_for_unknown_path_ignored(fake_client):
    fake_client.batch = [scan_result("Created", "/media/movies/zzz.mkv", "9")]

    result = await run_batch_scan(fake_client, [A])

    assert result.outcomes == []
    assert result.remaining == [A]


@pytest.mark.asyncio
async def test_batch_same_path_two_events(fake_client):
    """Two events for the same path share the single result for it."""
    twin = make_pending("a2", A.path)
    fake_client.batch = [scan_result("Created", A.path, "1")]

    result = await run_batch_scan(fake_client, [A, twin])

    assert sorted(o.event_id for o in result.outcomes) == ["a", "a2"]


@pytest.mark.asyncio
async def test_batch_nothing_pending(fake_client):
    result = await run_batch_scan(fake_client, [])

    assert result.remaining == []
    assert fake_client.batch_calls == []

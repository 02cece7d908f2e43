"""
Unit tests for jellyfin/models.py and jellyfin/exceptions.py.

Tests payload parsing and status classification:
- ScanStatus parsing into the closed outcome set
- Batch result match keys
- RefreshMode parsing from config values
- httpx exception translation
"""

import httpx
import pytest

from factories import make_library, scan_result
from jellyfin.exceptions import (
    JellyfinConnectionError,
    JellyfinError,
    JellyfinRequestError,
    translate_http_error,
)
from jellyfin.models import (
    Library,
    RefreshMode,
    ScanOutcome,
    ScanPathResult,
    ScanStatus,
    item_type_filter,
)


# =============================================================================
# ScanStatus Tests
# =============================================================================

class TestScanStatus:
    """Tests for status string classification."""

    @pytest.mark.parametrize("raw", ["Created", "Refreshed", "Discovered"])
    def test_resolved_statuses(self, raw):
        assert ScanStatus.parse(raw).outcome is ScanOutcome.RESOLVED

    @pytest.mark.parametrize("raw", ["PathNotFound", "ParentNotFound", "Removed"])
    def test_not_found_statuses(self, raw):
        assert ScanStatus.parse(raw).outcome is ScanOutcome.NOT_FOUND

    @pytest.mark.parametrize("raw", ["", "created", "Queued", None, "Unrecognized"])
    def test_anything_else_is_unrecognized(self, raw):
        """Parsing is exact; unknown, miscased or missing statuses are unrecognized."""
        assert ScanStatus.parse(raw) is ScanStatus.UNRECOGNIZED
        assert ScanStatus.parse(raw).outcome is ScanOutcome.UNRECOGNIZED


# =============================================================================
# ScanPathResult Tests
# =============================================================================

class TestScanPathResult:

    def test_match_key_prefers_path(self):
        result = scan_result("Created", path="/media/a.mkv", message="/media/other.mkv")
        assert result.match_key == "/media/a.mkv"

    def test_match_key_falls_back_to_message(self):
        result = scan_result("Created", path="", message="/media/a.mkv")
        assert result.match_key == "/media/a.mkv"

    def test_null_fields_accepted(self):
        parsed = ScanPathResult.model_validate(
            {"ItemId": None, "ItemName": None, "Status": "PathNotFound", "Path": None, "Message": None}
        )
        assert parsed.match_key == ""
        assert parsed.outcome is ScanOutcome.NOT_FOUND


# =============================================================================
# Library Tests
# =============================================================================

class TestLibrary:

    def test_library_is_hashable(self):
        """Libraries key the per-library grouping of the enumeration fallback."""
        a = make_library()
        b = make_library()
        assert a == b
        assert len({a, b}) == 1

    def test_libraries_with_different_ids_differ(self):
        assert make_library(item_id="one") != make_library(item_id="two")

    def test_populate_by_field_name(self):
        lib = Library(name="X", item_id="x")
        assert lib.locations == ()

    @pytest.mark.parametrize("collection_type,expected", [
        ("tvshows", "Episode"),
        ("TVShows", "Episode"),
        ("movies", "VideoFile,Movie"),
        ("mixed", None),
        (None, None),
    ])
    def test_item_type_filter(self, collection_type, expected):
        assert item_type_filter(collection_type) == expected


# =============================================================================
# RefreshMode Tests
# =============================================================================

class TestRefreshMode:

    @pytest.mark.parametrize("value,expected", [
        ("FullRefresh", RefreshMode.FULL_REFRESH),
        ("full_refresh", RefreshMode.FULL_REFRESH),
        ("validation-only", RefreshMode.VALIDATION_ONLY),
        ("default", RefreshMode.DEFAULT),
        ("None", RefreshMode.NONE),
        (RefreshMode.DEFAULT, RefreshMode.DEFAULT),
    ])
    def test_parse(self, value, expected):
        assert RefreshMode.parse(value) is expected

    def test_parse_invalid(self):
        with pytest.raises(ValueError, match="refresh mode must be one of"):
            RefreshMode.parse("everything")


# =============================================================================
# Exception Translation Tests
# =============================================================================

class TestTranslateHttpError:

    def test_connect_error(self):
        assert isinstance(translate_http_error(httpx.ConnectError("refused")), JellyfinConnectionError)

    def test_timeout(self):
        assert isinstance(translate_http_error(httpx.ReadTimeout("slow")), JellyfinConnectionError)

    def test_status_error_keeps_code(self):
        request = httpx.Request("GET", "http://jellyfin:8096/Items")
        response = httpx.Response(503, request=request)
        exc = httpx.HTTPStatusError("unavailable", request=request, response=response)
        translated = translate_http_error(exc)
        assert isinstance(translated, JellyfinRequestError)
        assert translated.status_code == 503

    def test_jellyfin_error_passes_through(self):
        original = JellyfinError("already ours")
        assert translate_http_error(original) is original

    def test_all_subclass_base(self):
        assert issubclass(JellyfinConnectionError, JellyfinError)
        assert issubclass(JellyfinRequestError, JellyfinError)

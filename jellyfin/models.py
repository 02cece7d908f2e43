"""
Pydantic models for the Jellyfin/Emby REST payloads JellyScan consumes.

The server speaks PascalCase JSON; models use snake_case attributes with
PascalCase aliases. Status strings from the targeted-scan endpoints are
parsed into closed enums here so decision logic never compares raw strings.
"""

from __future__ import annotations

from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_pascal


class _ServerModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_pascal,
        populate_by_name=True,
        extra="ignore",
    )


class Library(_ServerModel):
    """A configured library (virtual folder) and its root locations.

    Frozen so that it is hashable and compares by its full field set; it keys
    the per-library grouping of the enumeration fallback.
    """

    model_config = ConfigDict(frozen=True)

    name: str
    locations: tuple[str, ...] = ()
    item_id: str
    collection_type: Optional[str] = None


class Item(_ServerModel):
    """An indexed server item; only the identifier and file path matter here."""

    id: str
    path: Optional[str] = None


class ItemsPage(_ServerModel):
    items: list[Item] = Field(default_factory=list)


# Collection type -> IncludeItemTypes filter for item listings
ITEM_TYPE_FILTERS = {
    "tvshows": "Episode",
    "books": "Book",
    "music": "Audio",
    "movie": "VideoFile,Movie",
    "movies": "VideoFile,Movie",
}


def item_type_filter(collection_type: Optional[str]) -> Optional[str]:
    """Return the IncludeItemTypes value for a library, or None for unfiltered."""
    if not collection_type:
        return None
    return ITEM_TYPE_FILTERS.get(collection_type.lower())


class ScanOutcome(Enum):
    RESOLVED = "resolved"           # server created, refreshed or discovered the item
    NOT_FOUND = "not_found"         # path is gone on the server side; nothing to do
    UNRECOGNIZED = "unrecognized"


class ScanStatus(Enum):
    """Status reported by the targeted-scan endpoints."""

    CREATED = "Created"
    REFRESHED = "Refreshed"
    DISCOVERED = "Discovered"
    PATH_NOT_FOUND = "PathNotFound"
    PARENT_NOT_FOUND = "ParentNotFound"
    REMOVED = "Removed"             # missing file; the server deleted its stale item
    UNRECOGNIZED = "Unrecognized"

    @classmethod
    def parse(cls, raw: Optional[str]) -> "ScanStatus":
        for status in cls:
            if status is not cls.UNRECOGNIZED and status.value == raw:
                return status
        return cls.UNRECOGNIZED

    @property
    def outcome(self) -> ScanOutcome:
        if self in (ScanStatus.CREATED, ScanStatus.REFRESHED, ScanStatus.DISCOVERED):
            return ScanOutcome.RESOLVED
        if self in (ScanStatus.PATH_NOT_FOUND, ScanStatus.PARENT_NOT_FOUND, ScanStatus.REMOVED):
            return ScanOutcome.NOT_FOUND
        return ScanOutcome.UNRECOGNIZED


class ScanPathResult(_ServerModel):
    """One result from POST /Library/ScanPath or an entry of /Library/ScanPaths."""

    item_id: Optional[str] = None
    item_name: Optional[str] = None
    status: str
    path: Optional[str] = None
    message: Optional[str] = None

    @property
    def scan_status(self) -> ScanStatus:
        return ScanStatus.parse(self.status)

    @property
    def outcome(self) -> ScanOutcome:
        return self.scan_status.outcome

    @property
    def match_key(self) -> str:
        """Key used to pair a batch result with its requested path.

        Some server builds leave ``Path`` empty and echo the path in
        ``Message`` instead.
        """
        return self.path or self.message or ""


class ScanPathsResult(_ServerModel):
    results: list[ScanPathResult] = Field(default_factory=list)


class RefreshMode(str, Enum):
    """Metadata/image refresh mode passed to POST /Items/{id}/Refresh."""

    NONE = "None"
    VALIDATION_ONLY = "ValidationOnly"
    DEFAULT = "Default"
    FULL_REFRESH = "FullRefresh"

    @classmethod
    def parse(cls, value: "str | RefreshMode") -> "RefreshMode":
        """Accept either the wire value ("FullRefresh") or snake_case ("full_refresh")."""
        if isinstance(value, RefreshMode):
            return value
        normalized = str(value).replace("_", "").replace("-", "").lower()
        for mode in cls:
            if mode.value.lower() == normalized:
                return mode
        valid = ", ".join(m.value for m in cls)
        raise ValueError(f"refresh mode must be one of {valid}, got: {value}")

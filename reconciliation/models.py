"""
Result model shared by the reconciliation tiers and the engine.

Tiers never write dispositions themselves: each returns EventOutcome values
for the events it settled plus the PendingEvent list it could not settle.
The engine merges outcomes into the report, one write per event.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Optional, Union

from jellyfin.models import Library
from shared_lib.path_mapper import PathRewriter

Rewrite = Union[PathRewriter, Callable[[str], str]]


@dataclass(frozen=True)
class ChangeEvent:
    """A file-change notification that the server must acknowledge.

    Attributes:
        id: Identifier, unique within a run
        file_path: Path as seen by the producer of the event
    """
    id: str
    file_path: str

    def get_path(self, rewrite: Optional[Rewrite] = None) -> str:
        """Return the path as the media server knows it."""
        if rewrite is None:
            return self.file_path
        return rewrite(self.file_path)


@dataclass(frozen=True)
class PendingEvent:
    """An event still awaiting a disposition, with its server path and candidate libraries."""
    event: ChangeEvent
    path: str
    libraries: tuple[Library, ...] = ()

    @property
    def event_id(self) -> str:
        return self.event.id


class Disposition(Enum):
    RESOLVED = "resolved"     # targeted scan created/refreshed/discovered the item
    NO_OP = "no_op"           # no library claims the path, or the server says it is gone
    REFRESHED = "refreshed"   # enumeration found the item and the refresh was accepted
    FAILED = "failed"

    @property
    def succeeded(self) -> bool:
        return self is not Disposition.FAILED


class Tier(Enum):
    LIBRARY_MATCH = "library_match"
    BATCH_SCAN = "batch_scan"
    TARGETED_SCAN = "targeted_scan"
    ENUMERATION = "enumeration"


@dataclass(frozen=True)
class EventOutcome:
    event_id: str
    disposition: Disposition
    tier: Tier
    detail: str = ""

    @property
    def succeeded(self) -> bool:
        return self.disposition.succeeded

    def to_dict(self) -> dict:
        return {
            "disposition": self.disposition.value,
            "tier": self.tier.value,
            "detail": self.detail,
        }


@dataclass
class TierResult:
    """What a single tier settled and what it hands to the next tier."""
    outcomes: list[EventOutcome] = field(default_factory=list)
    remaining: list[PendingEvent] = field(default_factory=list)
    rounds: int = 0


@dataclass
class ReconcileReport:
    """Final per-event dispositions of one reconciliation run.

    Attributes:
        outcomes: event id -> EventOutcome, in input order
        batch_available: False if the batch scan call failed outright
        scan_rounds: Number of individual targeted-scan rounds issued
        enumerated_libraries: Names of libraries fully or partially enumerated
    """
    outcomes: dict[str, EventOutcome] = field(default_factory=dict)
    batch_available: Optional[bool] = None
    scan_rounds: int = 0
    enumerated_libraries: list[str] = field(default_factory=list)

    @property
    def succeeded(self) -> set[str]:
        return {eid for eid, outcome in self.outcomes.items() if outcome.succeeded}

    @property
    def failed(self) -> set[str]:
        return {eid for eid, outcome in self.outcomes.items() if not outcome.succeeded}

    def count(self, disposition: Disposition) -> int:
        return sum(1 for outcome in self.outcomes.values() if outcome.disposition is disposition)

    def to_dict(self) -> dict:
        return {
            "succeeded": sorted(self.succeeded),
            "failed": sorted(self.failed),
            "outcomes": {eid: outcome.to_dict() for eid, outcome in self.outcomes.items()},
        }

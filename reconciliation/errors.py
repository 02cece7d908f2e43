"""
Run-level reconciliation failures.

Per-event problems never raise; they end up as a FAILED disposition in the
report. Only failures that make the whole run untrustworthy are raised.
"""


class ReconciliationError(Exception):
    """Base class for failures that abort a reconciliation run."""


class CatalogFetchError(ReconciliationError):
    """The library catalog could not be fetched; no event can be classified."""


class EnumerationFetchError(ReconciliationError):
    """
    A library's item listing failed during the enumeration fallback.

    A partial listing cannot prove that a path is absent, so the run is
    aborted rather than marking events as failed.
    """

    def __init__(self, library_name: str, cause: Exception):
        super().__init__(f"failed to fetch items for library: {library_name}: {cause}")
        self.library_name = library_name
        self.cause = cause

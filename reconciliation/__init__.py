"""Reconciliation package: tiered scan/refresh of changed paths on a media server."""
from reconciliation.engine import ReconciliationEngine
from reconciliation.errors import CatalogFetchError, EnumerationFetchError, ReconciliationError
from reconciliation.models import (
    ChangeEvent,
    Disposition,
    EventOutcome,
    ReconcileReport,
    Tier,
)

__all__ = [
    'ReconciliationEngine',
    'ChangeEvent',
    'Disposition',
    'EventOutcome',
    'ReconcileReport',
    'Tier',
    'ReconciliationError',
    'CatalogFetchError',
    'EnumerationFetchError',
]

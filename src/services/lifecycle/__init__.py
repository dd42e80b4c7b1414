"""Event end-of-life: teardown saga, authorisation, daily sweep, orphan cleanup."""

from src.services.lifecycle.lifecycle_service import EventLifecycleService, is_cleanup_allowed
from src.services.lifecycle.orphan_reconciler import OrphanReconciler
from src.services.lifecycle.sweep_scheduler import SweepScheduler
from src.services.lifecycle.teardown_saga import TeardownSaga

__all__ = [
    "EventLifecycleService",
    "OrphanReconciler",
    "SweepScheduler",
    "TeardownSaga",
    "is_cleanup_allowed",
]

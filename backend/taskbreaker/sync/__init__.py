"""Client-side optimistic state sync against the goals backend."""
from taskbreaker.sync.api_client import GoalsApiClient
from taskbreaker.sync.mutations import Confirmed, MutationEngine, MutationFailure, Optimistic, Reconciled
from taskbreaker.sync.store import GoalStore, SyncState
from taskbreaker.sync.tab_guard import TabGuard, TabLockToken

__all__ = [
    "Confirmed",
    "GoalStore",
    "GoalsApiClient",
    "MutationEngine",
    "MutationFailure",
    "Optimistic",
    "Reconciled",
    "SyncState",
    "TabGuard",
    "TabLockToken",
]

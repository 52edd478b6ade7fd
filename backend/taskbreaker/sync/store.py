"""In-memory goal collection with per-goal sync state and change subscribers."""
from __future__ import annotations

import logging
from enum import Enum
from typing import Callable, Dict, List, Optional

from taskbreaker.core.errors import GoalNotFoundError
from taskbreaker.models.entities import Goal, with_derived_values

logger = logging.getLogger(__name__)

Listener = Callable[[List[Goal]], None]


class SyncState(str, Enum):
    OPTIMISTIC = "optimistic"
    CONFIRMED = "confirmed"
    RECONCILED = "reconciled"
    STALE = "stale"


class GoalStore:
    """Ordered goal snapshots; the list handed to readers is never mutated in place."""

    def __init__(self, goals: Optional[List[Goal]] = None):
        self._goals: List[Goal] = [with_derived_values(goal) for goal in goals or []]
        self._states: Dict[str, SyncState] = {
            goal.id: SyncState.CONFIRMED for goal in self._goals if goal.id is not None
        }
        self._listeners: List[Listener] = []

    @property
    def goals(self) -> List[Goal]:
        return list(self._goals)

    def get(self, goal_id: str) -> Optional[Goal]:
        for goal in self._goals:
            if goal.id == goal_id:
                return goal
        return None

    def require(self, goal_id: str) -> Goal:
        goal = self.get(goal_id)
        if goal is None:
            raise GoalNotFoundError(f"Goal {goal_id} not found", {"goal_id": goal_id})
        return goal

    def index_of(self, goal_id: str) -> Optional[int]:
        for index, goal in enumerate(self._goals):
            if goal.id == goal_id:
                return index
        return None

    def sync_state(self, goal_id: str) -> Optional[SyncState]:
        return self._states.get(goal_id)

    def mark(self, goal_id: str, state: SyncState) -> None:
        if self.get(goal_id) is not None:
            self._states[goal_id] = state

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Register ``listener``; the returned callable unsubscribes it."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def replace_all(self, goals: List[Goal], state: SyncState = SyncState.CONFIRMED) -> None:
        self._goals = [with_derived_values(goal) for goal in goals]
        self._states = {goal.id: state for goal in self._goals if goal.id is not None}
        self._notify()

    def upsert(self, goal: Goal, index: Optional[int] = None, state: SyncState = SyncState.CONFIRMED) -> Goal:
        """Insert or replace by id. New goals go to ``index`` or the front of the list."""
        goal = with_derived_values(goal)
        goals = list(self._goals)
        existing = self.index_of(goal.id) if goal.id is not None else None
        if existing is not None:
            goals[existing] = goal
        else:
            position = 0 if index is None else max(0, min(index, len(goals)))
            goals.insert(position, goal)
        self._goals = goals
        if goal.id is not None:
            self._states[goal.id] = state
        self._notify()
        return goal

    def replace(self, old_id: str, goal: Goal, state: SyncState = SyncState.CONFIRMED) -> Goal:
        """Swap the goal stored under ``old_id`` (e.g. a placeholder) for ``goal``."""
        index = self.index_of(old_id)
        if index is None:
            return self.upsert(goal, state=state)
        goal = with_derived_values(goal)
        goals = list(self._goals)
        goals[index] = goal
        self._goals = goals
        self._states.pop(old_id, None)
        if goal.id is not None:
            self._states[goal.id] = state
        self._notify()
        return goal

    def update(self, goal_id: str, change: Callable[[Goal], Goal], state: SyncState) -> Goal:
        current = self.require(goal_id)
        updated = with_derived_values(change(current))
        self._goals = [updated if goal.id == goal_id else goal for goal in self._goals]
        self._states[goal_id] = state
        self._notify()
        return updated

    def remove(self, goal_id: str) -> Optional[Goal]:
        removed = self.get(goal_id)
        if removed is None:
            return None
        self._goals = [goal for goal in self._goals if goal.id != goal_id]
        self._states.pop(goal_id, None)
        self._notify()
        return removed

    def _notify(self) -> None:
        snapshot = self.goals
        for listener in list(self._listeners):
            try:
                listener(snapshot)
            except Exception:
                logger.exception("Goal store listener failed")

"""Optimistic mutation engine.

Every state-changing operation follows one protocol: apply the change to the
local store synchronously (derived values included), send the request, then
either adopt the server's goal or, on failure, refetch the goal and replace the
local copy wholesale. Failures are reported through ``on_error`` and returned
as ``Reconciled``; they are never raised and never retried.

No lock is taken on the store. Concurrent mutations against one goal apply
their optimistic changes in issue order and whichever response or refetch
lands last wins for the whole goal.
"""
from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Awaitable, Callable, List, Literal, Optional, Union

from taskbreaker.core.context import request_id_ctx_var
from taskbreaker.core.errors import MutationNetworkError
from taskbreaker.models.entities import (
    Complexity,
    Goal,
    SubtaskScheduleUpdate,
    Task,
    TaskScheduleUpdate,
    UserSettings,
    append_task,
    apply_subtask_schedule,
    apply_task_schedule,
    new_entity_id,
    remove_task,
    set_subtask_completed,
    set_task_completed,
)
from taskbreaker.observability.metrics import log_metric
from taskbreaker.observability.tracing import trace
from taskbreaker.services.goal_decomposer import GoalDecomposer, build_goal
from taskbreaker.services.settings_propagation import collect_schedule_changes, propagate_settings_to_goals
from taskbreaker.services.task_difficulty import analyze_task_difficulty
from taskbreaker.sync.api_client import GoalsApiClient
from taskbreaker.sync.store import GoalStore, SyncState

logger = logging.getLogger(__name__)

FAILURE_MESSAGES = {
    "load_goals": "Failed to load goals. Please try again.",
    "create_goal": "Failed to create goal. Please try again.",
    "delete_goal": "Failed to delete goal. Please try again.",
    "toggle_task_completion": "Failed to update task. Please try again.",
    "toggle_subtask_completion": "Failed to update subtask. Please try again.",
    "update_task_schedule": "Failed to update task. Please try again.",
    "update_subtask_schedule": "Failed to update subtask. Please try again.",
    "add_progress_update": "Failed to save progress update. Please try again.",
    "report_roadblock": "Failed to report roadblock. Please try again.",
    "add_task": "Failed to add task. Please try again.",
    "delete_task": "Failed to delete task. Please try again.",
}


@dataclass(frozen=True)
class Optimistic:
    """Provisional local state; the request is still in flight."""

    data: Optional[Goal] = None
    kind: Literal["optimistic"] = "optimistic"


@dataclass(frozen=True)
class Confirmed:
    """The backend accepted the change; ``data`` is the adopted goal."""

    data: Optional[Goal] = None
    kind: Literal["confirmed"] = "confirmed"


@dataclass(frozen=True)
class Reconciled:
    """The request failed; ``data`` is the refetched server goal, if any."""

    data: Optional[Goal]
    error: Optional[MutationNetworkError] = None
    refetched: bool = True
    kind: Literal["reconciled"] = "reconciled"


MutationResult = Union[Optimistic, Confirmed, Reconciled]


@dataclass(frozen=True)
class MutationFailure:
    operation: str
    message: str
    error: MutationNetworkError
    goal_id: Optional[str] = None


ErrorSink = Callable[[MutationFailure], None]


class MutationEngine:
    def __init__(
        self,
        api: GoalsApiClient,
        store: Optional[GoalStore] = None,
        *,
        decomposer: Optional[GoalDecomposer] = None,
        on_error: Optional[ErrorSink] = None,
        settings: Optional[UserSettings] = None,
    ):
        self.api = api
        self.store = store or GoalStore()
        self.decomposer = decomposer
        self.on_error = on_error
        self.settings = settings or UserSettings()

    def status(self, goal_id: str) -> Optional[MutationResult]:
        """Tagged view of the local copy: provisional until the server has vouched for it.

        A goal last replaced by a refetch reports as ``Reconciled`` without an error.
        """
        goal = self.store.get(goal_id)
        state = self.store.sync_state(goal_id)
        if goal is None or state is None:
            return None
        if state in (SyncState.OPTIMISTIC, SyncState.STALE):
            return Optimistic(data=goal)
        if state is SyncState.RECONCILED:
            return Reconciled(data=goal)
        return Confirmed(data=goal)

    # -- protocol ---------------------------------------------------------

    def _report(self, operation: str, error: MutationNetworkError, goal_id: Optional[str] = None) -> None:
        logger.warning("Mutation %s failed for goal %s: %s", operation, goal_id, error)
        log_metric("mutation.failed", 1, {"operation": operation, "status_code": error.status_code})
        if self.on_error is None:
            return
        failure = MutationFailure(
            operation=operation,
            message=FAILURE_MESSAGES.get(operation, "Something went wrong. Please try again."),
            error=error,
            goal_id=goal_id,
        )
        try:
            self.on_error(failure)
        except Exception:
            logger.exception("Mutation error handler failed")

    async def _refetch(
        self, operation: str, goal_id: str, error: MutationNetworkError, index: Optional[int] = None
    ) -> Reconciled:
        try:
            with trace("mutation.refetch", metadata={"operation": operation}, goal_id=goal_id):
                fresh = await self.api.get_goal(goal_id)
        except MutationNetworkError as refetch_error:
            if refetch_error.status_code == 404:
                logger.info("Goal %s no longer exists on the server, dropping it", goal_id)
                self.store.remove(goal_id)
                log_metric("mutation.reconciled", 1, {"operation": operation, "removed": True})
                return Reconciled(data=None, error=error, refetched=True)
            logger.warning("Refetch of goal %s failed, local copy is stale: %s", goal_id, refetch_error)
            self.store.mark(goal_id, SyncState.STALE)
            return Reconciled(data=None, error=error, refetched=False)

        goal = self.store.upsert(fresh, index=index, state=SyncState.RECONCILED)
        log_metric("mutation.reconciled", 1, {"operation": operation})
        return Reconciled(data=goal, error=error, refetched=True)

    def _adopt(self, goal_id: str, server_goal: Optional[Goal]) -> Optional[Goal]:
        if self.store.get(goal_id) is None:
            # Deleted locally while the request was in flight.
            return server_goal
        if server_goal is None:
            self.store.mark(goal_id, SyncState.CONFIRMED)
            return self.store.get(goal_id)
        return self.store.upsert(server_goal, state=SyncState.CONFIRMED)

    async def _mutate(
        self,
        operation: str,
        goal_id: str,
        apply: Callable[[Goal], Goal],
        request: Callable[[], Awaitable[Optional[Goal]]],
    ) -> MutationResult:
        token = request_id_ctx_var.set(f"mutation-{new_entity_id()[:12]}")
        try:
            self.store.update(goal_id, apply, SyncState.OPTIMISTIC)
            try:
                with trace(f"mutation.{operation}", goal_id=goal_id):
                    server_goal = await request()
            except MutationNetworkError as exc:
                self._report(operation, exc, goal_id)
                return await self._refetch(operation, goal_id, exc)
            logger.debug("Mutation %s confirmed for goal %s", operation, goal_id)
            return Confirmed(data=self._adopt(goal_id, server_goal))
        finally:
            request_id_ctx_var.reset(token)

    # -- operations -------------------------------------------------------

    async def load_goals(self) -> List[Goal]:
        try:
            with trace("mutation.load_goals"):
                goals = await self.api.list_goals()
        except MutationNetworkError as exc:
            self._report("load_goals", exc)
            return self.store.goals
        self.store.replace_all(goals)
        return self.store.goals

    async def create_goal(
        self,
        title: str,
        *,
        time_constraint_minutes: Optional[int] = None,
        additional_info: Optional[str] = None,
        notification_channels: Optional[List[str]] = None,
        contact_email: Optional[str] = None,
        contact_phone: Optional[str] = None,
        empty: bool = False,
    ) -> MutationResult:
        """Create a goal behind a temporary placeholder.

        With a decomposer the breakdown runs here and its tasks are sent with
        the request; otherwise the server decomposes. Decomposition errors
        propagate before anything reaches the store.
        """
        breakdown = None
        if self.decomposer is not None and not empty:
            breakdown = await self.decomposer.decompose(title, time_constraint_minutes, additional_info)

        temp_id = f"temp-{new_entity_id()}"
        token = request_id_ctx_var.set(f"mutation-{new_entity_id()[:12]}")
        try:
            placeholder = build_goal(
                title,
                breakdown,
                time_constraint_minutes=time_constraint_minutes,
                additional_info=additional_info,
                notification_channels=notification_channels,
                goal_id=temp_id,
            )
            self.store.upsert(placeholder, index=0, state=SyncState.OPTIMISTIC)
            try:
                with trace("mutation.create_goal", metadata={"client_decomposed": breakdown is not None}):
                    created = await self.api.create_goal(
                        title,
                        time_constraint_minutes=time_constraint_minutes,
                        additional_info=additional_info,
                        notification_channels=notification_channels,
                        contact_email=contact_email,
                        contact_phone=contact_phone,
                        skip_decomposition=empty,
                        tasks=breakdown.tasks if breakdown else None,
                        overall_suggestions=breakdown.overall_suggestions if breakdown else None,
                    )
            except MutationNetworkError as exc:
                self.store.remove(temp_id)
                self._report("create_goal", exc)
                await self.load_goals()
                return Reconciled(data=None, error=exc, refetched=True)

            if created is None:
                self.store.remove(temp_id)
                await self.load_goals()
                return Confirmed(data=None)
            goal = self.store.replace(temp_id, created, state=SyncState.CONFIRMED)
            log_metric("goal.created", 1, {"tasks": len(goal.tasks), "empty": empty})
            return Confirmed(data=goal)
        finally:
            request_id_ctx_var.reset(token)

    async def delete_goal(self, goal_id: str) -> MutationResult:
        index = self.store.index_of(goal_id)
        removed = self.store.remove(goal_id)
        try:
            with trace("mutation.delete_goal", goal_id=goal_id):
                await self.api.delete_goal(goal_id)
        except MutationNetworkError as exc:
            self._report("delete_goal", exc, goal_id)
            return await self._refetch("delete_goal", goal_id, exc, index=index)
        return Confirmed(data=removed)

    async def toggle_task_completion(self, goal_id: str, task_id: str, completed: bool) -> MutationResult:
        return await self._mutate(
            "toggle_task_completion",
            goal_id,
            lambda goal: set_task_completed(goal, task_id, completed),
            lambda: self.api.update_task_completion(goal_id, task_id, completed),
        )

    async def toggle_subtask_completion(
        self, goal_id: str, task_id: str, subtask_id: str, completed: bool
    ) -> MutationResult:
        return await self._mutate(
            "toggle_subtask_completion",
            goal_id,
            lambda goal: set_subtask_completed(goal, task_id, subtask_id, completed),
            lambda: self.api.update_subtask_completion(goal_id, task_id, subtask_id, completed),
        )

    async def update_task_schedule(self, goal_id: str, task_id: str, updates: TaskScheduleUpdate) -> MutationResult:
        return await self._mutate(
            "update_task_schedule",
            goal_id,
            lambda goal: apply_task_schedule(goal, task_id, updates),
            lambda: self.api.update_task_schedule(goal_id, task_id, updates),
        )

    async def update_subtask_schedule(
        self, goal_id: str, task_id: str, subtask_id: str, updates: SubtaskScheduleUpdate
    ) -> MutationResult:
        return await self._mutate(
            "update_subtask_schedule",
            goal_id,
            lambda goal: apply_subtask_schedule(goal, task_id, subtask_id, updates),
            lambda: self.api.update_subtask_schedule(goal_id, task_id, subtask_id, updates),
        )

    async def add_progress_update(
        self,
        goal_id: str,
        update_message: str,
        *,
        notify_channels: Optional[List[str]] = None,
        contact_email: Optional[str] = None,
        contact_phone: Optional[str] = None,
    ) -> MutationResult:
        return await self._mutate(
            "add_progress_update",
            goal_id,
            lambda goal: goal.model_copy(update={"last_progress_update": update_message}),
            lambda: self.api.add_progress_update(
                goal_id,
                update_message,
                notify_channels=notify_channels,
                contact_email=contact_email,
                contact_phone=contact_phone,
            ),
        )

    async def report_roadblock(
        self,
        goal_id: str,
        description: str,
        *,
        needs_help: Optional[bool] = None,
        notify_channels: Optional[List[str]] = None,
        contact_email: Optional[str] = None,
        contact_phone: Optional[str] = None,
    ) -> MutationResult:
        return await self._mutate(
            "report_roadblock",
            goal_id,
            lambda goal: goal.model_copy(update={"roadblocks": description}),
            lambda: self.api.report_roadblock(
                goal_id,
                description,
                needs_help=needs_help,
                notify_channels=notify_channels,
                contact_email=contact_email,
                contact_phone=contact_phone,
            ),
        )

    async def add_task(
        self,
        goal_id: str,
        title: str,
        *,
        estimated_minutes: Optional[int] = None,
        complexity: Optional[Complexity] = None,
        context: Optional[str] = None,
    ) -> MutationResult:
        """Append a task; a missing complexity is rated before the optimistic step."""
        self.store.require(goal_id)
        if complexity is None:
            provider = self.decomposer.provider if self.decomposer is not None else None
            complexity = await analyze_task_difficulty(title, context, provider=provider)
        task = Task(
            id=new_entity_id(),
            title=title.strip(),
            estimated_minutes=estimated_minutes,
            complexity=complexity,
            context=context,
        )
        return await self._mutate(
            "add_task",
            goal_id,
            lambda goal: append_task(goal, task),
            lambda: self.api.add_task(goal_id, task),
        )

    async def delete_task(self, goal_id: str, task_id: str) -> MutationResult:
        return await self._mutate(
            "delete_task",
            goal_id,
            lambda goal: remove_task(goal, task_id),
            lambda: self.api.delete_task(goal_id, task_id),
        )

    async def update_global_settings(self, settings: UserSettings) -> List[MutationResult]:
        """Store new settings and push the retroactive task changes they imply."""
        self.settings = settings
        before = self.store.goals
        after = propagate_settings_to_goals(settings, before)
        changes = collect_schedule_changes(before, after)
        if not changes:
            return []
        logger.info("Settings change touches %s task(s)", len(changes))
        return list(
            await asyncio.gather(
                *(self.update_task_schedule(change.goal_id, change.task_id, change.updates) for change in changes)
            )
        )

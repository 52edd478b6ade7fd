"""Goal/Task/Subtask entity model and its derived-value rules.

Entities are treated as immutable snapshots: every helper below returns new
objects and leaves its input untouched, so a snapshot handed to a reader never
changes underneath it. Derived values (goal progress, cascading task
completion) are recomputed in the same call that changes the raw field.
"""
from __future__ import annotations

import math
from datetime import datetime
from typing import Callable, Iterable, List, Literal, Optional
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from taskbreaker.core.errors import GoalNotFoundError

Complexity = Literal["low", "medium", "high"]
NotificationChannel = Literal["email", "slack", "whatsapp"]
ReminderFrequency = Literal["daily", "weekly", "task-only"]

COMPLEXITY_LEVELS: tuple[str, ...] = ("low", "medium", "high")


class EntityModel(BaseModel):
    """Base for wire-compatible entities (camelCase on the wire)."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        coerce_numbers_to_str=True,
    )


def validate_iso_datetime(value: Optional[str]) -> Optional[str]:
    if value is None or value == "":
        return None
    try:
        datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError as exc:
        raise ValueError(f"dueDate must be an ISO-8601 date-time, got {value!r}") from exc
    return value


class Subtask(EntityModel):
    id: str
    title: str
    completed: bool = False
    estimated_minutes: Optional[int] = None
    context: Optional[str] = None
    due_date: Optional[str] = None
    added_to_calendar: Optional[bool] = None

    @field_validator("due_date")
    @classmethod
    def check_due_date(cls, value: Optional[str]) -> Optional[str]:
        return validate_iso_datetime(value)


class Task(EntityModel):
    id: str
    title: str
    completed: bool = False
    subtasks: List[Subtask] = Field(default_factory=list)
    estimated_minutes: Optional[int] = None
    complexity: Optional[Complexity] = None
    context: Optional[str] = None
    action_items: Optional[List[str]] = None
    due_date: Optional[str] = None
    added_to_calendar: Optional[bool] = None
    reminder_enabled: Optional[bool] = None
    reminder_time: Optional[str] = Field(default=None, pattern=r"^([01]\d|2[0-3]):[0-5]\d$")
    enable_whatsapp: Optional[bool] = None
    whatsapp_number: Optional[str] = None

    @field_validator("due_date")
    @classmethod
    def check_due_date(cls, value: Optional[str]) -> Optional[str]:
        return validate_iso_datetime(value)


class Goal(EntityModel):
    id: Optional[str] = None
    title: str
    tasks: List[Task] = Field(default_factory=list)
    progress: int = 0
    user_id: Optional[str] = None
    created_at: Optional[str] = None
    total_estimated_minutes: Optional[int] = None
    time_constraint_minutes: Optional[int] = None
    additional_info: Optional[str] = None
    overall_suggestions: Optional[str] = None
    notification_channels: Optional[List[NotificationChannel]] = None
    last_progress_update: Optional[str] = None
    roadblocks: Optional[str] = None


class UserSettings(EntityModel):
    whatsapp_number: Optional[str] = None
    enable_whatsapp_notifications: bool = False
    reminder_frequency: ReminderFrequency = "task-only"
    reminder_time: Optional[str] = Field(default="09:00", pattern=r"^([01]\d|2[0-3]):[0-5]\d$")
    reminder_days: Optional[List[str]] = None
    default_notification_channels: List[Literal["email", "whatsapp"]] = Field(default_factory=list)
    contact_email: Optional[str] = None
    contact_phone: Optional[str] = None


class TaskScheduleUpdate(EntityModel):
    """Partial update of a task's scheduling fields; only set fields apply."""

    due_date: Optional[str] = None
    added_to_calendar: Optional[bool] = None
    reminder_enabled: Optional[bool] = None
    reminder_time: Optional[str] = Field(default=None, pattern=r"^([01]\d|2[0-3]):[0-5]\d$")
    enable_whatsapp: Optional[bool] = None
    whatsapp_number: Optional[str] = None

    @field_validator("due_date")
    @classmethod
    def check_due_date(cls, value: Optional[str]) -> Optional[str]:
        return validate_iso_datetime(value)


class SubtaskScheduleUpdate(EntityModel):
    due_date: Optional[str] = None
    added_to_calendar: Optional[bool] = None

    @field_validator("due_date")
    @classmethod
    def check_due_date(cls, value: Optional[str]) -> Optional[str]:
        return validate_iso_datetime(value)


def new_entity_id() -> str:
    """Opaque id for client-generated tasks and subtasks."""
    return uuid4().hex


def compute_progress(tasks: Iterable[Task]) -> int:
    """Percentage of completed tasks, rounded half up; 0 for an empty list."""
    task_list = list(tasks)
    if not task_list:
        return 0
    completed = sum(1 for task in task_list if task.completed)
    return math.floor(100 * completed / len(task_list) + 0.5)


def total_estimated_minutes(tasks: Iterable[Task]) -> int:
    """Sum of task-level estimates; subtask estimates are detail, not added again."""
    return sum(task.estimated_minutes or 0 for task in tasks)


def with_derived_values(goal: Goal) -> Goal:
    """Return ``goal`` with progress recomputed from its task list."""
    progress = compute_progress(goal.tasks)
    if progress == goal.progress:
        return goal
    return goal.model_copy(update={"progress": progress})


def find_task(goal: Goal, task_id: str) -> Task:
    for task in goal.tasks:
        if task.id == task_id:
            return task
    raise GoalNotFoundError(f"Task {task_id} not found in goal {goal.id}", {"goal_id": goal.id, "task_id": task_id})


def find_subtask(task: Task, subtask_id: str) -> Subtask:
    for subtask in task.subtasks:
        if subtask.id == subtask_id:
            return subtask
    raise GoalNotFoundError(f"Subtask {subtask_id} not found in task {task.id}", {"task_id": task.id, "subtask_id": subtask_id})


def _replace_task(goal: Goal, task_id: str, change: Callable[[Task], Task]) -> Goal:
    find_task(goal, task_id)
    tasks = [change(task) if task.id == task_id else task for task in goal.tasks]
    return with_derived_values(goal.model_copy(update={"tasks": tasks}))


def set_task_completed(goal: Goal, task_id: str, completed: bool) -> Goal:
    return _replace_task(goal, task_id, lambda task: task.model_copy(update={"completed": completed}))


def set_subtask_completed(goal: Goal, task_id: str, subtask_id: str, completed: bool) -> Goal:
    """Flip one subtask and cascade: a task with subtasks is complete iff all of them are."""

    def change(task: Task) -> Task:
        find_subtask(task, subtask_id)
        subtasks = [
            subtask.model_copy(update={"completed": completed}) if subtask.id == subtask_id else subtask
            for subtask in task.subtasks
        ]
        return task.model_copy(
            update={"subtasks": subtasks, "completed": all(subtask.completed for subtask in subtasks)}
        )

    return _replace_task(goal, task_id, change)


def apply_task_schedule(goal: Goal, task_id: str, updates: TaskScheduleUpdate) -> Goal:
    fields = updates.model_dump(exclude_unset=True)
    return _replace_task(goal, task_id, lambda task: task.model_copy(update=fields))


def apply_subtask_schedule(goal: Goal, task_id: str, subtask_id: str, updates: SubtaskScheduleUpdate) -> Goal:
    fields = updates.model_dump(exclude_unset=True)

    def change(task: Task) -> Task:
        find_subtask(task, subtask_id)
        subtasks = [
            subtask.model_copy(update=fields) if subtask.id == subtask_id else subtask
            for subtask in task.subtasks
        ]
        return task.model_copy(update={"subtasks": subtasks})

    return _replace_task(goal, task_id, change)


def append_task(goal: Goal, task: Task) -> Goal:
    tasks = [*goal.tasks, task]
    updated = goal.model_copy(update={"tasks": tasks, "total_estimated_minutes": total_estimated_minutes(tasks)})
    return with_derived_values(updated)


def remove_task(goal: Goal, task_id: str) -> Goal:
    find_task(goal, task_id)
    tasks = [task for task in goal.tasks if task.id != task_id]
    updated = goal.model_copy(update={"tasks": tasks, "total_estimated_minutes": total_estimated_minutes(tasks)})
    return with_derived_values(updated)

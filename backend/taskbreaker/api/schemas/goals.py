"""Request bodies for the goals REST contract (camelCase on the wire)."""
from __future__ import annotations

from typing import List, Optional

from pydantic import Field

from taskbreaker.models.entities import (
    Complexity,
    EntityModel,
    NotificationChannel,
    SubtaskScheduleUpdate,
    Task,
    TaskScheduleUpdate,
)


class CreateGoalRequest(EntityModel):
    title: str = Field(..., min_length=3)
    time_constraint_minutes: Optional[int] = Field(default=None, gt=0)
    additional_info: Optional[str] = None
    notification_channels: Optional[List[NotificationChannel]] = None
    contact_email: Optional[str] = None
    contact_phone: Optional[str] = None
    skip_decomposition: bool = False
    # Present when the caller already decomposed the goal client-side.
    tasks: Optional[List[Task]] = None
    overall_suggestions: Optional[str] = None


class UpdateTaskRequest(EntityModel):
    goal_id: str
    task_id: str
    completed: bool


class UpdateSubtaskRequest(EntityModel):
    goal_id: str
    task_id: str
    subtask_id: str
    completed: bool


class TaskScheduleRequest(EntityModel):
    goal_id: str
    task_id: str
    updates: TaskScheduleUpdate


class SubtaskScheduleRequest(EntityModel):
    goal_id: str
    task_id: str
    subtask_id: str
    updates: SubtaskScheduleUpdate


class ProgressUpdateRequest(EntityModel):
    update_message: str = Field(..., min_length=1)
    notify_channels: Optional[List[NotificationChannel]] = None
    contact_email: Optional[str] = None
    contact_phone: Optional[str] = None


class RoadblockRequest(EntityModel):
    description: str = Field(..., min_length=1)
    needs_help: Optional[bool] = None
    notify_channels: Optional[List[NotificationChannel]] = None
    contact_email: Optional[str] = None
    contact_phone: Optional[str] = None


class AddTaskRequest(EntityModel):
    id: Optional[str] = None
    title: str = Field(..., min_length=1)
    estimated_minutes: Optional[int] = Field(default=None, ge=0)
    complexity: Optional[Complexity] = None
    context: Optional[str] = None
    action_items: Optional[List[str]] = None

"""Task and subtask completion and scheduling endpoints."""
from __future__ import annotations

from typing import Any, Dict

from fastapi import APIRouter, Depends, HTTPException, Request, status
from sqlalchemy.orm import Session

from taskbreaker.api.schemas.goals import (
    SubtaskScheduleRequest,
    TaskScheduleRequest,
    UpdateSubtaskRequest,
    UpdateTaskRequest,
)
from taskbreaker.core.errors import GoalNotFoundError
from taskbreaker.db.deps import get_db
from taskbreaker.models.entities import Goal
from taskbreaker.observability.metrics import log_metric
from taskbreaker.observability.tracing import trace
from taskbreaker.services import goal_store

router = APIRouter()


@router.patch("/tasks", response_model=Goal, tags=["tasks"])
def update_task_completion(payload: UpdateTaskRequest, http_request: Request, db: Session = Depends(get_db)) -> Goal:
    """Mark a task complete or incomplete and return the recomputed goal."""
    request_id = getattr(http_request.state, "request_id", None)
    metadata: Dict[str, Any] = {
        "route": "/tasks",
        "task_id": payload.task_id,
        "completed": payload.completed,
        "request_id": request_id,
    }
    try:
        with trace("task.complete", metadata=metadata, goal_id=payload.goal_id, request_id=request_id):
            goal = goal_store.update_task_completion(db, payload.goal_id, payload.task_id, payload.completed)
    except GoalNotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=exc.message) from exc

    log_metric("task.complete.success", 1, metadata={"goal_id": payload.goal_id, "progress": goal.progress})
    return goal


@router.patch("/subtasks", response_model=Goal, tags=["tasks"])
def update_subtask_completion(
    payload: UpdateSubtaskRequest, http_request: Request, db: Session = Depends(get_db)
) -> Goal:
    request_id = getattr(http_request.state, "request_id", None)
    try:
        with trace(
            "subtask.complete",
            metadata={"route": "/subtasks", "subtask_id": payload.subtask_id, "completed": payload.completed},
            goal_id=payload.goal_id,
            request_id=request_id,
        ):
            goal = goal_store.update_subtask_completion(
                db, payload.goal_id, payload.task_id, payload.subtask_id, payload.completed
            )
    except GoalNotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=exc.message) from exc

    log_metric("subtask.complete.success", 1, metadata={"goal_id": payload.goal_id, "progress": goal.progress})
    return goal


@router.patch("/tasks/schedule", response_model=Goal, tags=["tasks"])
def update_task_schedule(payload: TaskScheduleRequest, db: Session = Depends(get_db)) -> Goal:
    try:
        goal = goal_store.update_task_schedule(db, payload.goal_id, payload.task_id, payload.updates)
    except GoalNotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=exc.message) from exc
    log_metric("task.schedule.success", 1, metadata={"fields": ",".join(sorted(payload.updates.model_fields_set))})
    return goal


@router.patch("/subtasks/schedule", response_model=Goal, tags=["tasks"])
def update_subtask_schedule(payload: SubtaskScheduleRequest, db: Session = Depends(get_db)) -> Goal:
    try:
        goal = goal_store.update_subtask_schedule(
            db, payload.goal_id, payload.task_id, payload.subtask_id, payload.updates
        )
    except GoalNotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=exc.message) from exc
    log_metric("subtask.schedule.success", 1)
    return goal

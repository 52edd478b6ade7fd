"""Server-side goal persistence; every write recomputes derived values."""
from __future__ import annotations

import logging
from typing import Callable, List, Optional

from sqlalchemy.orm import Session

from taskbreaker.core.errors import GoalNotFoundError
from taskbreaker.db.models.goal import GoalRecord
from taskbreaker.models.entities import (
    Goal,
    SubtaskScheduleUpdate,
    Task,
    TaskScheduleUpdate,
    append_task,
    apply_subtask_schedule,
    apply_task_schedule,
    remove_task,
    set_subtask_completed,
    set_task_completed,
    total_estimated_minutes,
    with_derived_values,
)

logger = logging.getLogger(__name__)


def record_to_goal(record: GoalRecord) -> Goal:
    return Goal(
        id=str(record.id),
        title=record.title,
        tasks=[Task.model_validate(item) for item in record.tasks or []],
        progress=record.progress or 0,
        user_id=record.user_id,
        created_at=record.created_at.isoformat() if record.created_at else None,
        total_estimated_minutes=record.total_estimated_minutes,
        time_constraint_minutes=record.time_constraint_minutes,
        additional_info=record.additional_info,
        overall_suggestions=record.overall_suggestions,
        notification_channels=record.notification_channels,
        last_progress_update=record.last_progress_update,
        roadblocks=record.roadblocks,
    )


def _write_goal(record: GoalRecord, goal: Goal) -> None:
    goal = with_derived_values(goal)
    # Assign fresh lists so SQLAlchemy sees the JSON columns as changed.
    record.tasks = [task.model_dump(mode="json", by_alias=True, exclude_none=True) for task in goal.tasks]
    record.progress = goal.progress
    record.total_estimated_minutes = goal.total_estimated_minutes
    record.time_constraint_minutes = goal.time_constraint_minutes
    record.additional_info = goal.additional_info
    record.overall_suggestions = goal.overall_suggestions
    record.notification_channels = list(goal.notification_channels) if goal.notification_channels else None
    record.last_progress_update = goal.last_progress_update
    record.roadblocks = goal.roadblocks


def _get_record(db: Session, goal_id: str) -> GoalRecord:
    try:
        key = int(goal_id)
    except (TypeError, ValueError):
        raise GoalNotFoundError(f"Goal {goal_id} not found", {"goal_id": goal_id})
    record = db.get(GoalRecord, key)
    if record is None:
        raise GoalNotFoundError(f"Goal {goal_id} not found", {"goal_id": goal_id})
    return record


def list_goals(db: Session, user_id: Optional[str] = None) -> List[Goal]:
    query = db.query(GoalRecord)
    if user_id is not None:
        query = query.filter(GoalRecord.user_id == user_id)
    return [record_to_goal(record) for record in query.order_by(GoalRecord.id.desc()).all()]


def get_goal(db: Session, goal_id: str) -> Goal:
    return record_to_goal(_get_record(db, goal_id))


def create_goal(db: Session, goal: Goal) -> Goal:
    record = GoalRecord(title=goal.title, user_id=goal.user_id)
    _write_goal(record, goal.model_copy(update={"total_estimated_minutes": total_estimated_minutes(goal.tasks)}))
    db.add(record)
    db.commit()
    db.refresh(record)
    logger.info("Created goal %s with %s task(s)", record.id, len(goal.tasks))
    return record_to_goal(record)


def delete_goal(db: Session, goal_id: str) -> None:
    record = _get_record(db, goal_id)
    db.delete(record)
    db.commit()


def _apply(db: Session, goal_id: str, change: Callable[[Goal], Goal]) -> Goal:
    record = _get_record(db, goal_id)
    try:
        _write_goal(record, change(record_to_goal(record)))
        db.add(record)
        db.commit()
    except Exception:
        db.rollback()
        raise
    db.refresh(record)
    return record_to_goal(record)


def update_task_completion(db: Session, goal_id: str, task_id: str, completed: bool) -> Goal:
    return _apply(db, goal_id, lambda goal: set_task_completed(goal, task_id, completed))


def update_subtask_completion(db: Session, goal_id: str, task_id: str, subtask_id: str, completed: bool) -> Goal:
    return _apply(db, goal_id, lambda goal: set_subtask_completed(goal, task_id, subtask_id, completed))


def update_task_schedule(db: Session, goal_id: str, task_id: str, updates: TaskScheduleUpdate) -> Goal:
    return _apply(db, goal_id, lambda goal: apply_task_schedule(goal, task_id, updates))


def update_subtask_schedule(
    db: Session, goal_id: str, task_id: str, subtask_id: str, updates: SubtaskScheduleUpdate
) -> Goal:
    return _apply(db, goal_id, lambda goal: apply_subtask_schedule(goal, task_id, subtask_id, updates))


def add_progress_update(db: Session, goal_id: str, update_message: str) -> Goal:
    return _apply(db, goal_id, lambda goal: goal.model_copy(update={"last_progress_update": update_message}))


def report_roadblock(db: Session, goal_id: str, description: str) -> Goal:
    return _apply(db, goal_id, lambda goal: goal.model_copy(update={"roadblocks": description}))


def add_task(db: Session, goal_id: str, task: Task) -> Goal:
    return _apply(db, goal_id, lambda goal: append_task(goal, task))


def delete_task(db: Session, goal_id: str, task_id: str) -> Goal:
    return _apply(db, goal_id, lambda goal: remove_task(goal, task_id))

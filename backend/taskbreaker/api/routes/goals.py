"""Goal collection endpoints: list, fetch, create (with decomposition), delete."""
from __future__ import annotations

from time import perf_counter
from typing import Any, Dict, List

from fastapi import APIRouter, Depends, HTTPException, Request, Response, status
from sqlalchemy.orm import Session

from taskbreaker.api.schemas.goals import (
    AddTaskRequest,
    CreateGoalRequest,
    ProgressUpdateRequest,
    RoadblockRequest,
)
from taskbreaker.core.errors import DecompositionFailedError, GoalNotFoundError, MalformedBreakdownError
from taskbreaker.db.deps import get_db
from taskbreaker.models.entities import Goal, Task, new_entity_id
from taskbreaker.observability.metrics import log_metric
from taskbreaker.observability.tracing import trace
from taskbreaker.services import goal_store
from taskbreaker.services.goal_decomposer import GoalDecomposer, build_goal
from taskbreaker.services.task_difficulty import analyze_task_difficulty

router = APIRouter()


def get_goal_decomposer() -> GoalDecomposer:
    return GoalDecomposer()


def _not_found(exc: GoalNotFoundError) -> HTTPException:
    return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=exc.message)


@router.get("/goals", response_model=List[Goal], tags=["goals"])
def list_goals(db: Session = Depends(get_db)) -> List[Goal]:
    """Return every goal, newest first."""
    with trace("goal.list", metadata={"route": "/goals"}):
        goals = goal_store.list_goals(db)
    log_metric("goal.list.count", len(goals))
    return goals


@router.get("/goals/{goal_id}", response_model=Goal, tags=["goals"])
def get_goal(goal_id: str, db: Session = Depends(get_db)) -> Goal:
    try:
        return goal_store.get_goal(db, goal_id)
    except GoalNotFoundError as exc:
        raise _not_found(exc) from exc


@router.post("/goals", response_model=Goal, status_code=status.HTTP_201_CREATED, tags=["goals"])
async def create_goal(
    payload: CreateGoalRequest,
    http_request: Request,
    db: Session = Depends(get_db),
    decomposer: GoalDecomposer = Depends(get_goal_decomposer),
) -> Goal:
    """Create a goal, decomposing it unless tasks were supplied or decomposition is skipped."""
    request_id = getattr(http_request.state, "request_id", None)
    metadata: Dict[str, Any] = {
        "route": "/goals",
        "request_id": request_id,
        "skip_decomposition": payload.skip_decomposition,
        "client_tasks": payload.tasks is not None,
        "llm_input_text": payload.title[:500],
    }

    start_time = perf_counter()
    with trace("goal.create", metadata=metadata, request_id=request_id):
        if payload.tasks is not None or payload.skip_decomposition:
            goal = build_goal(
                payload.title,
                time_constraint_minutes=payload.time_constraint_minutes,
                additional_info=payload.additional_info,
                notification_channels=payload.notification_channels,
            ).model_copy(
                update={"tasks": payload.tasks or [], "overall_suggestions": payload.overall_suggestions}
            )
        else:
            try:
                breakdown = await decomposer.decompose(
                    payload.title, payload.time_constraint_minutes, payload.additional_info
                )
            except (DecompositionFailedError, MalformedBreakdownError) as exc:
                log_metric("goal.create.failed", 1, {"error": type(exc).__name__})
                raise HTTPException(
                    status_code=status.HTTP_502_BAD_GATEWAY,
                    detail={"message": exc.message, **exc.details},
                ) from exc
            goal = build_goal(
                payload.title,
                breakdown,
                time_constraint_minutes=payload.time_constraint_minutes,
                additional_info=payload.additional_info,
                notification_channels=payload.notification_channels,
            )
        created = goal_store.create_goal(db, goal)

    log_metric("goal.create.success", 1, {"tasks": len(created.tasks)})
    log_metric("goal.create.latency_ms", (perf_counter() - start_time) * 1000)
    return created


@router.delete("/goals/{goal_id}", status_code=status.HTTP_204_NO_CONTENT, tags=["goals"])
def delete_goal(goal_id: str, db: Session = Depends(get_db)) -> Response:
    try:
        with trace("goal.delete", metadata={"route": f"/goals/{goal_id}"}, goal_id=goal_id):
            goal_store.delete_goal(db, goal_id)
    except GoalNotFoundError as exc:
        raise _not_found(exc) from exc
    log_metric("goal.delete.success", 1)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post("/goals/{goal_id}/progress", response_model=Goal, tags=["goals"])
def add_progress_update(goal_id: str, payload: ProgressUpdateRequest, db: Session = Depends(get_db)) -> Goal:
    """Record the latest progress note; notification delivery is handled elsewhere."""
    try:
        goal = goal_store.add_progress_update(db, goal_id, payload.update_message)
    except GoalNotFoundError as exc:
        raise _not_found(exc) from exc
    log_metric("goal.progress_update", 1, {"notify_channels": ",".join(payload.notify_channels or []) or None})
    return goal


@router.post("/goals/{goal_id}/roadblock", response_model=Goal, tags=["goals"])
def report_roadblock(goal_id: str, payload: RoadblockRequest, db: Session = Depends(get_db)) -> Goal:
    try:
        goal = goal_store.report_roadblock(db, goal_id, payload.description)
    except GoalNotFoundError as exc:
        raise _not_found(exc) from exc
    log_metric("goal.roadblock", 1, {"needs_help": payload.needs_help})
    return goal


@router.post("/goals/{goal_id}/tasks", response_model=Goal, status_code=status.HTTP_201_CREATED, tags=["goals"])
async def add_task(
    goal_id: str,
    payload: AddTaskRequest,
    db: Session = Depends(get_db),
    decomposer: GoalDecomposer = Depends(get_goal_decomposer),
) -> Goal:
    """Append a task, rating its complexity when the caller left it out."""
    complexity = payload.complexity
    if complexity is None:
        complexity = await analyze_task_difficulty(payload.title, payload.context, provider=decomposer.provider)
    task = Task(
        id=payload.id or new_entity_id(),
        title=payload.title.strip(),
        estimated_minutes=payload.estimated_minutes,
        complexity=complexity,
        context=payload.context,
        action_items=payload.action_items,
    )
    try:
        return goal_store.add_task(db, goal_id, task)
    except GoalNotFoundError as exc:
        raise _not_found(exc) from exc


@router.delete("/goals/{goal_id}/tasks/{task_id}", response_model=Goal, tags=["goals"])
def delete_task(goal_id: str, task_id: str, db: Session = Depends(get_db)) -> Goal:
    try:
        return goal_store.delete_task(db, goal_id, task_id)
    except GoalNotFoundError as exc:
        raise _not_found(exc) from exc

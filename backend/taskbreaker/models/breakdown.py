"""Schema the structured-extraction stage must satisfy."""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, List, Optional

from pydantic import Field, field_validator

from taskbreaker.models.entities import Complexity, EntityModel, Task, validate_iso_datetime


def _require_title(value: Any) -> str:
    if not isinstance(value, str) or not value.strip():
        raise ValueError("title must be a non-empty string")
    return value.strip()


def _lenient_due_date(value: Any) -> Optional[str]:
    if not isinstance(value, str):
        return None
    try:
        return validate_iso_datetime(value)
    except ValueError:
        return None


class SubtaskDraft(EntityModel):
    title: str
    estimated_minutes: Optional[int] = Field(default=None, ge=0)
    context: Optional[str] = None
    due_date: Optional[str] = None

    @field_validator("due_date", mode="before")
    @classmethod
    def drop_unparseable_due_date(cls, value: Any) -> Optional[str]:
        return _lenient_due_date(value)

    @field_validator("title", mode="before")
    @classmethod
    def title_present(cls, value: Any) -> str:
        return _require_title(value)


class TaskDraft(EntityModel):
    title: str
    estimated_minutes: int = Field(..., gt=0, description="Positive whole minutes.")
    complexity: Complexity
    context: Optional[str] = None
    action_items: Optional[List[str]] = Field(default_factory=list)
    due_date: Optional[str] = None
    subtasks: Optional[List[SubtaskDraft]] = Field(default_factory=list)

    @field_validator("action_items", "subtasks", mode="before")
    @classmethod
    def null_list_is_empty(cls, value: Any) -> Any:
        return [] if value is None else value

    @field_validator("due_date", mode="before")
    @classmethod
    def drop_unparseable_due_date(cls, value: Any) -> Optional[str]:
        return _lenient_due_date(value)

    @field_validator("title", mode="before")
    @classmethod
    def title_present(cls, value: Any) -> str:
        return _require_title(value)

    @field_validator("complexity", mode="before")
    @classmethod
    def normalize_complexity(cls, value: Any) -> Any:
        if isinstance(value, str):
            return value.strip().lower()
        return value


class BreakdownPayload(EntityModel):
    """Raw stage-two answer; ``totalEstimatedMinutes`` from the model is ignored."""

    tasks: List[TaskDraft] = Field(..., min_length=1)
    total_estimated_minutes: Any = None
    overall_suggestions: Optional[str] = None


@dataclass
class TaskBreakdown:
    """Validated decomposition ready to populate a Goal."""

    tasks: List[Task]
    total_estimated_minutes: int
    overall_suggestions: Optional[str] = None
    time_constraint_minutes: Optional[int] = None
    exceeds_time_constraint: bool = False
    analysis_degraded: bool = False
    attempts: int = 1
    advisories: List[str] = field(default_factory=list)

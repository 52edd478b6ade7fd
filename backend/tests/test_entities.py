from __future__ import annotations

import pytest
from pydantic import ValidationError

from taskbreaker.core.errors import GoalNotFoundError
from taskbreaker.models.entities import (
    Goal,
    Subtask,
    Task,
    TaskScheduleUpdate,
    append_task,
    apply_task_schedule,
    compute_progress,
    remove_task,
    set_subtask_completed,
    set_task_completed,
    with_derived_values,
)


def _goal(task_states: list[bool], subtasks: int = 0) -> Goal:
    tasks = [
        Task(
            id=f"t{index}",
            title=f"Task {index}",
            completed=done,
            estimated_minutes=30,
            subtasks=[Subtask(id=f"t{index}-s{n}", title=f"Step {n}") for n in range(subtasks)],
        )
        for index, done in enumerate(task_states)
    ]
    return with_derived_values(Goal(id="1", title="Learn guitar", tasks=tasks))


@pytest.mark.parametrize(
    "states, expected",
    [
        ([], 0),
        ([False, False], 0),
        ([True, False, False], 33),
        ([True, True, False], 67),
        ([True, False], 50),
        ([True] * 7 + [False] * 9, 44),
        ([True, True], 100),
    ],
)
def test_progress_is_rounded_percentage(states, expected) -> None:
    assert _goal(states).progress == expected


def test_progress_rounds_half_up() -> None:
    tasks = [Task(id=str(i), title="x", completed=i < 1) for i in range(8)]
    # 12.5% rounds up, matching the client rendering
    assert compute_progress(tasks) == 13


def test_set_task_completed_returns_new_goal_and_keeps_original() -> None:
    goal = _goal([False, False])

    updated = set_task_completed(goal, "t0", True)

    assert updated.progress == 50
    assert updated.tasks[0].completed is True
    assert goal.tasks[0].completed is False
    assert goal.progress == 0


def test_toggle_to_same_value_does_not_change_progress() -> None:
    goal = _goal([True, False])

    again = set_task_completed(goal, "t0", True)

    assert again.progress == goal.progress == 50
    assert again.tasks == goal.tasks


def test_last_subtask_completion_cascades_to_task_and_progress() -> None:
    goal = _goal([False, False], subtasks=2)
    goal = set_subtask_completed(goal, "t0", "t0-s0", True)
    assert goal.tasks[0].completed is False
    assert goal.progress == 0

    goal = set_subtask_completed(goal, "t0", "t0-s1", True)

    assert goal.tasks[0].completed is True
    assert goal.progress == 50


def test_uncompleting_a_subtask_reopens_its_task() -> None:
    goal = _goal([False], subtasks=2)
    goal = set_subtask_completed(goal, "t0", "t0-s0", True)
    goal = set_subtask_completed(goal, "t0", "t0-s1", True)

    goal = set_subtask_completed(goal, "t0", "t0-s1", False)

    assert goal.tasks[0].completed is False
    assert goal.progress == 0


def test_unknown_task_raises_not_found() -> None:
    with pytest.raises(GoalNotFoundError):
        set_task_completed(_goal([False]), "missing", True)
    with pytest.raises(GoalNotFoundError):
        set_subtask_completed(_goal([False], subtasks=1), "t0", "missing", True)


def test_schedule_update_only_touches_set_fields() -> None:
    goal = _goal([False])
    goal = apply_task_schedule(goal, "t0", TaskScheduleUpdate(reminder_enabled=True, reminder_time="08:30"))

    goal = apply_task_schedule(goal, "t0", TaskScheduleUpdate(due_date="2026-11-01T09:00:00Z"))

    task = goal.tasks[0]
    assert task.due_date == "2026-11-01T09:00:00Z"
    assert task.reminder_enabled is True
    assert task.reminder_time == "08:30"


def test_schedule_update_rejects_bad_values() -> None:
    with pytest.raises(ValidationError):
        TaskScheduleUpdate(due_date="next tuesday")
    with pytest.raises(ValidationError):
        TaskScheduleUpdate(reminder_time="25:00")


def test_append_and_remove_task_keep_totals_in_step() -> None:
    goal = _goal([True])

    grown = append_task(goal, Task(id="new", title="Practice scales", estimated_minutes=45))
    assert grown.total_estimated_minutes == 75
    assert grown.progress == 50

    shrunk = remove_task(grown, "t0")
    assert shrunk.total_estimated_minutes == 45
    assert shrunk.progress == 0


def test_goal_round_trips_camel_case_wire_format() -> None:
    goal = Goal.model_validate(
        {
            "id": 12,
            "title": "Ship the album",
            "timeConstraintMinutes": 600,
            "tasks": [{"id": "a", "title": "Record", "estimatedMinutes": 120, "enableWhatsapp": True}],
        }
    )

    assert goal.id == "12"
    assert goal.time_constraint_minutes == 600
    assert goal.tasks[0].enable_whatsapp is True
    dumped = goal.model_dump(by_alias=True)
    assert dumped["tasks"][0]["estimatedMinutes"] == 120

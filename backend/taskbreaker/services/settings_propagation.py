"""Retroactive copy of user WhatsApp settings onto reminder-enabled tasks.

Saving settings rewrites existing tasks that have reminders on but no WhatsApp
number of their own. Callers get new goal snapshots and the list of task
updates to push; nothing here talks to the backend.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import List, Sequence

from taskbreaker.models.entities import Goal, Task, TaskScheduleUpdate, UserSettings


@dataclass(frozen=True)
class ScheduleChange:
    goal_id: str
    task_id: str
    updates: TaskScheduleUpdate


def _needs_whatsapp(task: Task) -> bool:
    return bool(task.reminder_enabled) and not task.whatsapp_number


def propagate_settings_to_goals(settings: UserSettings, goals: Sequence[Goal]) -> List[Goal]:
    """Return goals with settings applied; untouched goals are returned as-is."""
    if not settings.enable_whatsapp_notifications or not settings.whatsapp_number:
        return list(goals)

    result: List[Goal] = []
    for goal in goals:
        if not any(_needs_whatsapp(task) for task in goal.tasks):
            result.append(goal)
            continue
        tasks = [
            task.model_copy(update={"enable_whatsapp": True, "whatsapp_number": settings.whatsapp_number})
            if _needs_whatsapp(task)
            else task
            for task in goal.tasks
        ]
        result.append(goal.model_copy(update={"tasks": tasks}))
    return result


def collect_schedule_changes(before: Sequence[Goal], after: Sequence[Goal]) -> List[ScheduleChange]:
    """Diff two goal lists from ``propagate_settings_to_goals`` into per-task updates."""
    changes: List[ScheduleChange] = []
    for old_goal, new_goal in zip(before, after):
        if old_goal is new_goal or new_goal.id is None:
            continue
        for old_task, new_task in zip(old_goal.tasks, new_goal.tasks):
            if old_task is new_task:
                continue
            changes.append(
                ScheduleChange(
                    goal_id=new_goal.id,
                    task_id=new_task.id,
                    updates=TaskScheduleUpdate(
                        enable_whatsapp=new_task.enable_whatsapp,
                        whatsapp_number=new_task.whatsapp_number,
                    ),
                )
            )
    return changes

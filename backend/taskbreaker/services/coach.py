"""Read-only advisory generation: coaching nudges, roadblock tips, task discussion.

Nothing here mutates the entity model. Every provider failure is absorbed and
replaced with a static fallback so coaching never blocks task tracking.
"""
from __future__ import annotations

import json
import logging
import math
from typing import Iterable, List, Literal, Optional

from pydantic import BaseModel, Field

from taskbreaker.core.config import settings
from taskbreaker.llm.base import GenerationConstraints, LLMProvider
from taskbreaker.llm.factory import get_llm_provider
from taskbreaker.models.entities import Goal, Task
from taskbreaker.observability.metrics import log_metric
from taskbreaker.observability.tracing import trace
from taskbreaker.services.goal_decomposer import parse_json_object

logger = logging.getLogger(__name__)

CoachMessageType = Literal["encouragement", "tip", "congratulation", "milestone"]
COACH_MESSAGE_TYPES = {"encouragement", "tip", "congratulation", "milestone"}

FALLBACK_MESSAGE = "Keep pushing forward! Every small step counts toward your bigger goals."
FALLBACK_ROADBLOCK_TIPS = [
    "Break down the challenge into smaller, more manageable tasks.",
    "Consider seeking help or advice from someone with expertise in this area.",
    "Take a short break and return with a fresh perspective.",
]
FALLBACK_DISCUSSION = (
    "I suggest breaking this task into smaller steps and tackling them one by one. "
    "If you're unsure how to proceed, research the specific part that's blocking you "
    "or ask someone with relevant experience for advice."
)

COACH_SYSTEM_PROMPT = """You are Coach AI, an expert productivity coach and motivator for the TaskBreaker app.

Your coaching style is compassionate but action-oriented, personalized to the user's goals
and progress, and grounded in behavioral psychology.

Message types:
- encouragement: support for ongoing work or when motivation might be needed
- tip: one specific, actionable piece of advice relevant to their current goals
- congratulation: celebrate completed tasks or significant progress
- milestone: recognize reaching an important point in the goal journey

Guidelines:
- With many completed tasks, name the accomplishments specifically.
- With roadblocks, acknowledge the challenge and give ONE specific tip.
- For users just starting out, be encouraging and forward-looking.
- With slow progress, be supportive without judgment.
- Reference a specific goal title. Keep it to 2-3 sentences, conversational.

Respond with JSON: {"message": "...", "type": "encouragement | tip | congratulation | milestone"}"""

ROADBLOCK_SYSTEM_PROMPT = """You are Coach AI, an expert in overcoming productivity roadblocks.

Given a goal and a roadblock, provide 3-5 tips that are specific to the roadblock described,
actionable immediately, realistic without special resources, and varied in approach.
Technical roadblocks get technical approaches; motivation roadblocks get habit and
psychology techniques; resource roadblocks get creative workarounds; skill roadblocks get
a stepwise learning path.

Respond with a JSON object with a "tips" array of strings, 1-2 sentences each."""

DISCUSSION_SYSTEM_PROMPT = """You are a helpful AI task assistant in the TaskBreaker app. Help the user with their task by
answering specific questions about how to accomplish it, suggesting approaches for complex
parts, clarifying confusing aspects into clear steps, and pointing to techniques that help.

You receive the task details: context, complexity, action items, subtasks and the goal it
belongs to. Keep answers practical and tied to those details; avoid generic advice."""


class CoachMessage(BaseModel):
    message: str
    type: CoachMessageType = "encouragement"


class GoalSnapshot(BaseModel):
    title: str
    progress: int = 0
    tasks_completed: int = 0
    total_tasks: int = 0
    has_roadblocks: bool = False
    roadblock_description: str = ""
    time_constraint: int = 0


class CoachingContext(BaseModel):
    user_name: str = "there"
    goals: List[GoalSnapshot] = Field(default_factory=list)
    overall_progress: int = 0
    total_completed_tasks: int = 0
    total_tasks: int = 0
    has_goals_with_roadblocks: bool = False


class SubtaskSnapshot(BaseModel):
    title: str
    context: str = ""
    completed: bool = False


class TaskDiscussionContext(BaseModel):
    title: str
    context: str = ""
    complexity: str = "medium"
    estimated_minutes: int = 0
    completed: bool = False
    action_items: List[str] = Field(default_factory=list)
    subtasks: List[SubtaskSnapshot] = Field(default_factory=list)
    goal_title: str = ""


def build_coaching_context(goals: Iterable[Goal], user_name: str = "there") -> CoachingContext:
    """Snapshot the fields coaching needs from the current goals."""
    snapshots: List[GoalSnapshot] = []
    for goal in goals:
        completed = sum(1 for task in goal.tasks if task.completed)
        snapshots.append(
            GoalSnapshot(
                title=goal.title,
                progress=goal.progress or 0,
                tasks_completed=completed,
                total_tasks=len(goal.tasks),
                has_roadblocks=bool(goal.roadblocks),
                roadblock_description=goal.roadblocks or "",
                time_constraint=goal.time_constraint_minutes or 0,
            )
        )
    overall = math.floor(sum(s.progress for s in snapshots) / len(snapshots) + 0.5) if snapshots else 0
    return CoachingContext(
        user_name=user_name,
        goals=snapshots,
        overall_progress=overall,
        total_completed_tasks=sum(s.tasks_completed for s in snapshots),
        total_tasks=sum(s.total_tasks for s in snapshots),
        has_goals_with_roadblocks=any(s.has_roadblocks for s in snapshots),
    )


def build_task_discussion_context(goal: Goal, task: Task) -> TaskDiscussionContext:
    return TaskDiscussionContext(
        title=task.title,
        context=task.context or "",
        complexity=task.complexity or "medium",
        estimated_minutes=task.estimated_minutes or 0,
        completed=task.completed,
        action_items=list(task.action_items or []),
        subtasks=[
            SubtaskSnapshot(title=sub.title, context=sub.context or "", completed=sub.completed)
            for sub in task.subtasks
        ],
        goal_title=goal.title,
    )


class CoachService:
    def __init__(self, provider: Optional[LLMProvider] = None, *, model: Optional[str] = None):
        self._provider = provider
        self.model = model or settings.openai_coach_model

    @property
    def provider(self) -> LLMProvider:
        if self._provider is None:
            self._provider = get_llm_provider()
        return self._provider

    def _fallback(self, operation: str, exc: Optional[Exception] = None) -> None:
        if exc is not None:
            logger.warning("Coach %s fell back to static text: %s", operation, exc)
        log_metric("coach.fallback.used", 1, {"operation": operation, "provider": self.provider.name})

    async def generate_message(self, context: CoachingContext) -> CoachMessage:
        if not self.provider.is_available():
            self._fallback("message")
            return CoachMessage(message="Keep going! You're making great progress on your goals.")
        try:
            with trace("coach.message", metadata={"goals": len(context.goals), "provider": self.provider.name}):
                raw = await self.provider.generate(
                    context.model_dump_json(),
                    GenerationConstraints(system_prompt=COACH_SYSTEM_PROMPT, model=self.model, json_mode=True),
                )
            data = parse_json_object(raw)
        except Exception as exc:
            self._fallback("message", exc)
            return CoachMessage(message=FALLBACK_MESSAGE)

        message = data.get("message")
        if not isinstance(message, str) or not message.strip():
            message = "Keep up the good work!"
        message_type = data.get("type")
        if message_type not in COACH_MESSAGE_TYPES:
            message_type = "encouragement"
        return CoachMessage(message=message.strip(), type=message_type)

    async def generate_roadblock_tips(self, goal_title: str, roadblock_text: Optional[str]) -> List[str]:
        if not roadblock_text or not roadblock_text.strip() or not self.provider.is_available():
            self._fallback("roadblock_tips")
            return list(FALLBACK_ROADBLOCK_TIPS)
        prompt = f"Goal: {goal_title}\nRoadblock: {roadblock_text.strip()}"
        try:
            with trace("coach.roadblock_tips", metadata={"provider": self.provider.name, "llm_input_text": prompt[:500]}):
                raw = await self.provider.generate(
                    prompt,
                    GenerationConstraints(system_prompt=ROADBLOCK_SYSTEM_PROMPT, model=self.model, json_mode=True),
                )
            data = parse_json_object(raw)
        except Exception as exc:
            self._fallback("roadblock_tips", exc)
            return list(FALLBACK_ROADBLOCK_TIPS)

        tips = data.get("tips")
        if not isinstance(tips, list):
            return list(FALLBACK_ROADBLOCK_TIPS)
        cleaned = [tip.strip() for tip in tips if isinstance(tip, str) and tip.strip()]
        return cleaned or list(FALLBACK_ROADBLOCK_TIPS)

    async def discuss_task(self, task_context: TaskDiscussionContext, user_message: str) -> str:
        if not self.provider.is_available():
            self._fallback("discuss_task")
            return FALLBACK_DISCUSSION
        prompt = f"Task: {json.dumps(task_context.model_dump())}\n\nMy question/comment: {user_message}"
        try:
            with trace("coach.discuss_task", metadata={"provider": self.provider.name, "task": task_context.title}):
                reply = await self.provider.generate(
                    prompt,
                    GenerationConstraints(system_prompt=DISCUSSION_SYSTEM_PROMPT, model=self.model),
                )
        except Exception as exc:
            self._fallback("discuss_task", exc)
            return FALLBACK_DISCUSSION
        return reply.strip() or FALLBACK_DISCUSSION

"""Two-stage LLM pipeline that turns goal text into a validated task breakdown."""
from __future__ import annotations

import json
import logging
import re
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from pydantic import ValidationError

from taskbreaker.core.errors import (
    DecompositionFailedError,
    MalformedBreakdownError,
    ProviderUnavailableError,
)
from taskbreaker.llm.base import GenerationConstraints, LLMProvider
from taskbreaker.llm.factory import get_llm_provider
from taskbreaker.models.breakdown import BreakdownPayload, TaskBreakdown, TaskDraft
from taskbreaker.models.entities import (
    Goal,
    Subtask,
    Task,
    compute_progress,
    new_entity_id,
    total_estimated_minutes,
)
from taskbreaker.observability.metrics import log_metric
from taskbreaker.observability.tracing import trace

logger = logging.getLogger(__name__)

ANALYSIS_SYSTEM_PROMPT = (
    "You are a productivity expert who thinks carefully before planning. "
    "Reason step by step about how a goal should be broken down: what has to happen first, "
    "which steps depend on each other, where the user is likely to get stuck, and how long "
    "each part realistically takes. Write your reasoning as plain prose; do not produce JSON."
)

EXTRACTION_SYSTEM_PROMPT = (
    "You are a productivity expert specializing in breaking down goals into manageable, "
    "actionable tasks with accurate time estimates."
)

STRICT_SUFFIX = (
    "### STRICT OUTPUT MODE\n"
    "Your previous answer could not be used. Return JSON only: a single object that matches the "
    "schema exactly, with no markdown fences, commentary or trailing text. Every task needs a "
    "non-empty title, a positive integer estimatedMinutes and a complexity of low, medium or high. "
    "Every subtask needs a non-empty title."
)

_FENCE_RE = re.compile(r"^```(?:json)?\s*|\s*```$", re.IGNORECASE)


@dataclass(frozen=True)
class ReasoningContext:
    """Opaque stage-one output; only the stage-two prompt builder reads it."""

    _text: str = field(default="", repr=False)

    @classmethod
    def empty(cls) -> "ReasoningContext":
        return cls("")

    def render_for_prompt(self) -> str:
        if not self._text.strip():
            return ""
        return f"### PRIOR ANALYSIS\nUse this reasoning to inform the breakdown:\n{self._text.strip()}\n\n"


class _UnparseableOutput(Exception):
    """Stage-two text was not a JSON object."""


def _constraint_block(time_constraint_minutes: Optional[int], additional_info: Optional[str]) -> str:
    parts: List[str] = []
    if time_constraint_minutes:
        parts.append(
            f"IMPORTANT: The user wants to finish this goal within {time_constraint_minutes} minutes. "
            "Prioritize accordingly and keep the plan realistic for that timeframe."
        )
    if additional_info and additional_info.strip():
        parts.append(
            "The user provided additional context about this goal:\n"
            f'"{additional_info.strip()}"\n'
            "Use it to make the breakdown accurate and relevant."
        )
    return "\n\n".join(parts)


def build_analysis_prompt(
    title: str,
    time_constraint_minutes: Optional[int] = None,
    additional_info: Optional[str] = None,
) -> str:
    constraints = _constraint_block(time_constraint_minutes, additional_info)
    constraint_text = f"{constraints}\n\n" if constraints else ""
    return (
        f'Goal: "{title.strip()}"\n\n'
        f"{constraint_text}"
        "Think through this goal before any plan is written:\n"
        "1. What does done look like, concretely?\n"
        "2. Which candidate steps are needed, and in what order?\n"
        "3. Which steps are risky, ambiguous or likely to stall, and why?\n"
        "4. Roughly how long does each step take for someone at the user's level?\n"
        "5. Which steps are big enough to need 1-3 subtasks?"
    )


def build_extraction_prompt(
    title: str,
    reasoning: ReasoningContext,
    time_constraint_minutes: Optional[int] = None,
    additional_info: Optional[str] = None,
    *,
    strict: bool = False,
) -> str:
    schema_json = json.dumps(BreakdownPayload.model_json_schema(by_alias=True), indent=2)
    constraints = _constraint_block(time_constraint_minutes, additional_info)
    constraint_text = f"{constraints}\n\n" if constraints else ""
    prompt = (
        "Break down the following goal into manageable tasks and subtasks with time estimates.\n\n"
        f'Goal: "{title.strip()}"\n\n'
        f"{constraint_text}"
        f"{reasoning.render_for_prompt()}"
        "Provide 5-10 specific, actionable tasks. Give a task 1-3 subtasks only when it needs "
        "further breakdown. For each task estimate the minutes needed and rate its complexity "
        "(low, medium, high); add a short context note and concrete actionItems where useful. "
        "Make every task specific, actionable and measurable. Don't be generic.\n\n"
        "### OUTPUT REQUIREMENT\n"
        "Return strictly valid JSON matching this schema:\n"
        f"{schema_json}"
    )
    if strict:
        prompt = f"{prompt}\n\n{STRICT_SUFFIX}"
    return prompt


def parse_json_object(text: str) -> Dict[str, Any]:
    """Parse a JSON object out of model output, tolerating code fences and chatter."""
    cleaned = _FENCE_RE.sub("", (text or "").strip())
    try:
        data = json.loads(cleaned)
    except json.JSONDecodeError:
        start, end = cleaned.find("{"), cleaned.rfind("}")
        if start == -1 or end <= start:
            raise _UnparseableOutput("no JSON object in model output")
        try:
            data = json.loads(cleaned[start : end + 1])
        except json.JSONDecodeError as exc:
            raise _UnparseableOutput(str(exc)) from exc
    if isinstance(data, list):
        data = {"tasks": data}
    if not isinstance(data, dict):
        raise _UnparseableOutput(f"expected a JSON object, got {type(data).__name__}")
    return data


def validate_breakdown(data: Dict[str, Any]) -> BreakdownPayload:
    """Validate stage-two output against the breakdown schema."""
    try:
        return BreakdownPayload.model_validate(data)
    except ValidationError as exc:
        errors = exc.errors(include_url=False, include_input=False)
        raise MalformedBreakdownError(
            f"Task breakdown failed validation ({len(errors)} error(s))",
            {"errors": [{"loc": list(err["loc"]), "msg": err["msg"]} for err in errors]},
        ) from exc


def _draft_to_task(draft: TaskDraft) -> Task:
    return Task(
        id=new_entity_id(),
        title=draft.title,
        completed=False,
        estimated_minutes=draft.estimated_minutes,
        complexity=draft.complexity,
        context=draft.context,
        action_items=list(draft.action_items) or None,
        due_date=draft.due_date,
        subtasks=[
            Subtask(
                id=new_entity_id(),
                title=sub.title,
                completed=False,
                estimated_minutes=sub.estimated_minutes,
                context=sub.context,
                due_date=sub.due_date,
            )
            for sub in draft.subtasks
        ],
    )


class GoalDecomposer:
    """Chain-of-thought analysis followed by schema-constrained extraction."""

    def __init__(self, provider: Optional[LLMProvider] = None, *, max_extraction_attempts: int = 2):
        self._provider = provider
        self.max_extraction_attempts = max(1, max_extraction_attempts)

    @property
    def provider(self) -> LLMProvider:
        if self._provider is None:
            self._provider = get_llm_provider()
        return self._provider

    async def analyze(
        self,
        title: str,
        time_constraint_minutes: Optional[int] = None,
        additional_info: Optional[str] = None,
    ) -> ReasoningContext:
        """Stage one. Raises ``ProviderUnavailableError`` on provider failure."""
        prompt = build_analysis_prompt(title, time_constraint_minutes, additional_info)
        with trace("decomposition.analyze", metadata={"provider": self.provider.name, "llm_input_text": title[:500]}):
            text = await self.provider.generate(
                prompt, GenerationConstraints(system_prompt=ANALYSIS_SYSTEM_PROMPT)
            )
        return ReasoningContext(text or "")

    async def extract(
        self,
        title: str,
        reasoning: ReasoningContext,
        time_constraint_minutes: Optional[int] = None,
        additional_info: Optional[str] = None,
        *,
        strict: bool = False,
    ) -> BreakdownPayload:
        """Stage two, single attempt."""
        prompt = build_extraction_prompt(
            title, reasoning, time_constraint_minutes, additional_info, strict=strict
        )
        with trace("decomposition.extract", metadata={"provider": self.provider.name, "strict": strict}):
            text = await self.provider.generate(
                prompt,
                GenerationConstraints(system_prompt=EXTRACTION_SYSTEM_PROMPT, json_mode=True),
            )
        return validate_breakdown(parse_json_object(text))

    async def decompose(
        self,
        title: str,
        time_constraint_minutes: Optional[int] = None,
        additional_info: Optional[str] = None,
    ) -> TaskBreakdown:
        """Run both stages and post-process into a ``TaskBreakdown``.

        Stage-one failure degrades to an empty reasoning context. Stage two gets
        one retry in strict mode; if that also fails, schema violations raise
        ``MalformedBreakdownError`` and provider/parse failures raise
        ``DecompositionFailedError``.
        """
        degraded = False
        try:
            reasoning = await self.analyze(title, time_constraint_minutes, additional_info)
        except ProviderUnavailableError as exc:
            logger.warning("Goal analysis unavailable, extracting without reasoning: %s", exc)
            log_metric("decomposition.stage1.degraded", 1, {"provider": self.provider.name})
            reasoning = ReasoningContext.empty()
            degraded = True

        payload: Optional[BreakdownPayload] = None
        last_error: Optional[Exception] = None
        attempts = 0
        for attempt in range(self.max_extraction_attempts):
            attempts = attempt + 1
            strict = attempt > 0
            if strict:
                log_metric("decomposition.retry.used", 1, {"provider": self.provider.name})
            try:
                payload = await self.extract(
                    title, reasoning, time_constraint_minutes, additional_info, strict=strict
                )
                break
            except MalformedBreakdownError as exc:
                logger.warning("Breakdown attempt %s failed validation: %s", attempts, exc.details)
                last_error = exc
            except (ProviderUnavailableError, _UnparseableOutput) as exc:
                logger.warning("Breakdown attempt %s failed: %s", attempts, exc)
                last_error = exc
                if isinstance(exc, ProviderUnavailableError) and not self.provider.is_available():
                    break

        if payload is None:
            log_metric("decomposition.failed", 1, {"provider": self.provider.name, "attempts": attempts})
            if isinstance(last_error, MalformedBreakdownError):
                raise last_error
            raise DecompositionFailedError(
                f"Failed to break down goal after {attempts} attempt(s)",
                {"attempts": attempts, "reason": str(last_error)},
                original_error=last_error,
            ) from last_error

        return self._post_process(payload, time_constraint_minutes, degraded, attempts)

    def _post_process(
        self,
        payload: BreakdownPayload,
        time_constraint_minutes: Optional[int],
        degraded: bool,
        attempts: int,
    ) -> TaskBreakdown:
        tasks = [_draft_to_task(draft) for draft in payload.tasks]
        total = total_estimated_minutes(tasks)
        breakdown = TaskBreakdown(
            tasks=tasks,
            total_estimated_minutes=total,
            overall_suggestions=payload.overall_suggestions,
            time_constraint_minutes=time_constraint_minutes,
            analysis_degraded=degraded,
            attempts=attempts,
        )
        if time_constraint_minutes is not None and total > time_constraint_minutes:
            breakdown.exceeds_time_constraint = True
            breakdown.advisories.append(
                f"Estimated {total} minutes exceeds the {time_constraint_minutes}-minute time constraint."
            )
            logger.warning("Breakdown estimate %s min exceeds constraint %s min", total, time_constraint_minutes)
            log_metric("decomposition.over_constraint", 1, {"total": total, "constraint": time_constraint_minutes})
        log_metric("decomposition.tasks", len(tasks), {"degraded": degraded, "attempts": attempts})
        return breakdown


def build_goal(
    title: str,
    breakdown: Optional[TaskBreakdown] = None,
    *,
    time_constraint_minutes: Optional[int] = None,
    additional_info: Optional[str] = None,
    notification_channels: Optional[List[str]] = None,
    user_id: Optional[str] = None,
    goal_id: Optional[str] = None,
    created_at: Optional[str] = None,
) -> Goal:
    """Populate a Goal from a breakdown; no breakdown gives the empty-goal shortcut."""
    tasks = list(breakdown.tasks) if breakdown else []
    return Goal(
        id=goal_id,
        title=title.strip(),
        tasks=tasks,
        progress=compute_progress(tasks),
        user_id=user_id,
        created_at=created_at or datetime.now(timezone.utc).isoformat(),
        total_estimated_minutes=breakdown.total_estimated_minutes if breakdown else 0,
        time_constraint_minutes=time_constraint_minutes,
        additional_info=additional_info,
        overall_suggestions=breakdown.overall_suggestions if breakdown else None,
        notification_channels=notification_channels,
    )

"""Single-word complexity rating for tasks added after decomposition."""
from __future__ import annotations

import logging
from typing import Optional

from taskbreaker.core.config import settings
from taskbreaker.llm.base import GenerationConstraints, LLMProvider
from taskbreaker.llm.factory import get_llm_provider
from taskbreaker.models.entities import Complexity

logger = logging.getLogger(__name__)

DIFFICULTY_SYSTEM_PROMPT = """You are an assistant that rates how complex a task is.
- 'high': complex, time-consuming tasks requiring significant effort or expertise
- 'medium': moderate tasks requiring some thought but not overwhelming
- 'low': simple, straightforward tasks that can be completed quickly

Reply with ONLY the complexity level, nothing else."""


async def analyze_task_difficulty(
    task_title: str,
    context: Optional[str] = None,
    provider: Optional[LLMProvider] = None,
) -> Complexity:
    """Rate a task; anything unexpected (including provider failure) means medium."""
    provider = provider or get_llm_provider()
    prompt = f"Task: {task_title}"
    if context:
        prompt = f"{prompt}\nAdditional context: {context}"
    try:
        answer = await provider.generate(
            prompt,
            GenerationConstraints(system_prompt=DIFFICULTY_SYSTEM_PROMPT, model=settings.openai_coach_model),
        )
    except Exception as exc:
        logger.warning("Task difficulty analysis failed, defaulting to medium: %s", exc)
        return "medium"

    normalized = answer.strip().lower()
    for level in ("high", "medium", "low"):
        if level in normalized:
            return level  # type: ignore[return-value]
    return "medium"

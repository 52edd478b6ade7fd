"""Error taxonomy for decomposition, mutation and advisory flows."""
from __future__ import annotations

from typing import Any, Dict, Optional


class TaskBreakerError(Exception):
    """Base exception carrying a message and optional structured details."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        self.message = message
        self.details = details or {}
        super().__init__(self.message)


class MalformedBreakdownError(TaskBreakerError):
    """Structured extraction returned data that fails the breakdown schema."""


class DecompositionFailedError(TaskBreakerError):
    """Provider unavailable for extraction, or the stricter retry also failed."""

    def __init__(
        self,
        message: str,
        details: Optional[Dict[str, Any]] = None,
        original_error: Optional[Exception] = None,
    ):
        super().__init__(message, details)
        self.original_error = original_error


class MutationNetworkError(TaskBreakerError):
    """A request against the goals backend failed or returned a non-2xx status."""

    def __init__(
        self,
        message: str,
        *,
        operation: str,
        status_code: Optional[int] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message, details)
        self.operation = operation
        self.status_code = status_code


class ProviderUnavailableError(TaskBreakerError):
    """The text-generation provider is not configured or the call failed."""

    def __init__(self, message: str, provider: Optional[str] = None, original_error: Optional[Exception] = None):
        super().__init__(message, {"provider": provider} if provider else None)
        self.provider = provider
        self.original_error = original_error


class GoalNotFoundError(TaskBreakerError):
    """Goal, task or subtask lookup failed in the goal store."""

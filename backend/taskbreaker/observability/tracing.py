"""Trace spans around LLM stages, coaching calls and backend round trips."""
from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import TYPE_CHECKING, Any, Dict, Iterator, Optional

from taskbreaker.core.context import get_request_id
from taskbreaker.observability.client import get_opik_client

if TYPE_CHECKING:  # pragma: no cover - typing helper
    from opik.api_objects.trace.trace_client import Trace
else:  # pragma: no cover - typing helper
    Trace = object  # type: ignore[assignment]

logger = logging.getLogger(__name__)


@contextmanager
def trace(
    name: str,
    metadata: Optional[Dict[str, Any]] = None,
    goal_id: Optional[Any] = None,
    request_id: Optional[str] = None,
) -> Iterator[Optional["Trace"]]:
    """
    Open an Opik trace for the enclosed block.

    The correlation id defaults to the active request/mutation id. When
    tracing is disabled the context yields ``None`` and costs nothing.
    """
    client = get_opik_client()
    span: Optional["Trace"] = None

    if client:
        span_metadata = dict(metadata or {})
        if goal_id is not None:
            span_metadata.setdefault("goal_id", str(goal_id))
        correlation = request_id or get_request_id()
        if correlation:
            span_metadata.setdefault("request_id", correlation)
        try:
            span = client.trace(name=name, metadata=span_metadata or None)
        except Exception as exc:  # pragma: no cover - depends on Opik backend
            logger.debug("Could not open trace %s: %s", name, exc)

    try:
        yield span
    except Exception as exc:
        if span:
            try:
                span.update(error_info={"message": str(exc), "type": type(exc).__name__})
            except Exception:  # pragma: no cover
                logger.debug("Could not attach error to trace %s", name, exc_info=True)
        raise
    finally:
        if span:
            try:
                span.end()
            except Exception:  # pragma: no cover
                logger.debug("Could not close trace %s", name, exc_info=True)

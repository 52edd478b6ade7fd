"""Counters and timings recorded as Opik metric traces."""
from __future__ import annotations

import logging
from typing import Any, Dict, Optional

from taskbreaker.observability.tracing import trace

logger = logging.getLogger(__name__)


def log_metric(name: str, value: float | int, metadata: Optional[Dict[str, Any]] = None) -> None:
    """Record a metric; a no-op unless Opik tracing is enabled."""
    payload: Dict[str, Any] = {"value": value}
    if metadata:
        payload.update({key: val for key, val in metadata.items() if val is not None})

    try:
        with trace(f"metric:{name}", metadata=payload):
            pass
    except Exception as exc:  # pragma: no cover - depends on Opik backend
        logger.debug("Unable to record metric %s: %s", name, exc)

"""Tests for metrics and tracing helpers."""
from __future__ import annotations

from typing import Any, Dict

import pytest

from taskbreaker.core.context import request_id_ctx_var
from taskbreaker.observability import metrics
from taskbreaker.observability import tracing


class _DummyTrace:
    def __init__(self, name: str, metadata: Dict[str, Any]):
        self.name = name
        self.metadata = metadata
        self.ended = False
        self.error_info: Dict[str, Any] | None = None

    def update(self, error_info: Dict[str, Any] | None = None, **kwargs) -> None:
        self.error_info = error_info

    def end(self) -> None:
        self.ended = True


class _DummyClient:
    def __init__(self):
        self.traces: list[_DummyTrace] = []

    def trace(self, name: str, metadata: Dict[str, Any] | None = None):
        trace = _DummyTrace(name, metadata or {})
        self.traces.append(trace)
        return trace


def test_log_metric_closes_trace(monkeypatch) -> None:
    dummy_client = _DummyClient()
    monkeypatch.setattr(tracing, "get_opik_client", lambda: dummy_client)

    metrics.log_metric("mutation.failed", 1, metadata={"operation": "toggle_task_completion", "status_code": None})

    assert dummy_client.traces, "Metric call should record a trace"
    recorded = dummy_client.traces[0]
    assert recorded.name == "metric:mutation.failed"
    assert recorded.metadata["value"] == 1
    assert recorded.metadata["operation"] == "toggle_task_completion"
    assert "status_code" not in recorded.metadata
    assert recorded.ended is True


def test_trace_stamps_goal_and_correlation_id(monkeypatch) -> None:
    dummy_client = _DummyClient()
    monkeypatch.setattr(tracing, "get_opik_client", lambda: dummy_client)

    token = request_id_ctx_var.set("mutation-abc")
    try:
        with tracing.trace("mutation.toggle_task_completion", goal_id=7):
            pass
    finally:
        request_id_ctx_var.reset(token)

    recorded = dummy_client.traces[0]
    assert recorded.metadata == {"goal_id": "7", "request_id": "mutation-abc"}
    assert recorded.ended is True


def test_trace_records_error_and_reraises(monkeypatch) -> None:
    dummy_client = _DummyClient()
    monkeypatch.setattr(tracing, "get_opik_client", lambda: dummy_client)

    with pytest.raises(RuntimeError):
        with tracing.trace("decomposition.extract"):
            raise RuntimeError("provider timed out")

    recorded = dummy_client.traces[0]
    assert recorded.error_info == {"message": "provider timed out", "type": "RuntimeError"}
    assert recorded.ended is True


def test_trace_yields_none_when_disabled(monkeypatch) -> None:
    monkeypatch.setattr(tracing, "get_opik_client", lambda: None)

    with tracing.trace("coach.message") as span:
        assert span is None

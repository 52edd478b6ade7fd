from __future__ import annotations

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from taskbreaker.db.deps import get_db
from taskbreaker.db.models.goal import GoalRecord
from taskbreaker.observability import client as client_module


class _DummyTrace:
    def __init__(self, name, metadata=None, **kwargs):
        self.name = name
        self.metadata = metadata or {}
        self.ended = False

    def update(self, metadata=None, **kwargs):
        if metadata:
            self.metadata = metadata

    def end(self):
        self.ended = True


class _DummyOpik:
    def __init__(self, *args, **kwargs):
        self.kwargs = kwargs
        self.traces = []

    def trace(self, **kwargs):
        trace = _DummyTrace(kwargs.get("name"), metadata=kwargs.get("metadata"))
        self.traces.append(trace)
        return trace


@pytest.fixture()
def sqlite_override():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
        future=True,
    )
    TestingSessionLocal = sessionmaker(bind=engine, autoflush=False, autocommit=False, future=True)
    GoalRecord.__table__.create(bind=engine)

    def override_get_db():
        db = TestingSessionLocal()
        try:
            yield db
        finally:
            db.close()

    return override_get_db


@pytest.fixture()
def dummy_opik(monkeypatch):
    monkeypatch.setattr(client_module, "Opik", _DummyOpik)
    monkeypatch.setattr(client_module.settings, "opik_enabled", True)
    monkeypatch.setattr(client_module.settings, "opik_api_key", "test-key")
    monkeypatch.setattr(client_module.settings, "opik_project", "taskbreaker-test")
    client_module.reset_opik_client()
    yield
    client_module.reset_opik_client()


def test_routes_record_traces_with_request_id(dummy_opik, sqlite_override):
    from taskbreaker.main import app

    app.dependency_overrides[get_db] = sqlite_override
    try:
        with TestClient(app) as test_client:
            assert test_client.get("/health").status_code == 200
            resp = test_client.post(
                "/goals",
                json={"title": "Write a short story", "skipDecomposition": True},
                headers={"X-Request-Id": "trace-me"},
            )
            assert resp.status_code == 201
    finally:
        app.dependency_overrides.clear()

    opik_client = client_module.get_opik_client()
    assert isinstance(opik_client, _DummyOpik)
    assert opik_client.kwargs["project_name"] == "taskbreaker-test"
    names = [trace.name for trace in opik_client.traces]
    assert "http.health_check" in names
    create_trace = next(trace for trace in opik_client.traces if trace.name == "goal.create")
    assert create_trace.metadata["request_id"] == "trace-me"
    assert create_trace.ended is True
    assert "metric:goal.create.success" in names

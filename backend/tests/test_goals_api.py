from __future__ import annotations

import json
from typing import List, Optional

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from taskbreaker.api.routes.goals import get_goal_decomposer
from taskbreaker.db.deps import get_db
from taskbreaker.db.models.goal import GoalRecord
from taskbreaker.llm.base import GenerationConstraints, LLMProvider
from taskbreaker.main import app
from taskbreaker.services.goal_decomposer import GoalDecomposer

BREAKDOWN = {
    "tasks": [
        {
            "title": "Learn open chords",
            "estimatedMinutes": 90,
            "complexity": "medium",
            "subtasks": [{"title": "G and C"}, {"title": "D and Em"}],
        },
        {"title": "Play a first song", "estimatedMinutes": 60, "complexity": "high"},
    ],
    "overallSuggestions": "Practice daily.",
}


class _CannedProvider(LLMProvider):
    name = "canned"

    def __init__(self, answers: List[str]):
        self.answers = answers

    def is_available(self) -> bool:
        return True

    async def generate(self, prompt: str, constraints: Optional[GenerationConstraints] = None) -> str:
        return self.answers.pop(0)


@pytest.fixture()
def client():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
        future=True,
    )
    TestingSessionLocal = sessionmaker(bind=engine, autoflush=False, autocommit=False, future=True)
    GoalRecord.__table__.create(bind=engine)
    answers: List[str] = []

    def override_get_db():
        db = TestingSessionLocal()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_goal_decomposer] = lambda: GoalDecomposer(_CannedProvider(answers))
    with TestClient(app) as test_client:
        yield test_client, answers
    app.dependency_overrides.clear()


def _create(test_client: TestClient, answers: List[str]) -> dict:
    answers.extend(["analysis text", json.dumps(BREAKDOWN)])
    response = test_client.post("/goals", json={"title": "Learn guitar", "timeConstraintMinutes": 120})
    assert response.status_code == 201
    return response.json()


def test_create_goal_runs_decomposition(client) -> None:
    test_client, answers = client

    goal = _create(test_client, answers)

    assert goal["title"] == "Learn guitar"
    assert goal["totalEstimatedMinutes"] == 150
    assert goal["timeConstraintMinutes"] == 120
    assert goal["overallSuggestions"] == "Practice daily."
    assert goal["progress"] == 0
    assert len(goal["tasks"][0]["subtasks"]) == 2

    listed = test_client.get("/goals").json()
    assert [item["id"] for item in listed] == [goal["id"]]


def test_create_goal_maps_decomposition_failure_to_502(client) -> None:
    test_client, answers = client
    answers.extend(["analysis", "not json", "still not json"])

    response = test_client.post("/goals", json={"title": "Learn guitar"})

    assert response.status_code == 502
    assert test_client.get("/goals").json() == []


def test_create_goal_validates_title(client) -> None:
    test_client, _ = client

    response = test_client.post("/goals", json={"title": "ab"})

    assert response.status_code == 422


def test_skip_decomposition_creates_empty_goal(client) -> None:
    test_client, answers = client

    response = test_client.post("/goals", json={"title": "Tidy garage", "skipDecomposition": True})

    assert response.status_code == 201
    body = response.json()
    assert body["tasks"] == [] and body["progress"] == 0
    assert answers == []


def test_subtask_patch_cascades_and_returns_goal(client) -> None:
    test_client, answers = client
    goal = _create(test_client, answers)
    task = goal["tasks"][0]

    for subtask in task["subtasks"]:
        response = test_client.patch(
            "/subtasks",
            json={"goalId": goal["id"], "taskId": task["id"], "subtaskId": subtask["id"], "completed": True},
        )
        assert response.status_code == 200

    updated = response.json()
    assert updated["tasks"][0]["completed"] is True
    assert updated["progress"] == 50
    assert test_client.get(f"/goals/{goal['id']}").json()["progress"] == 50


def test_task_patch_and_schedule(client) -> None:
    test_client, answers = client
    goal = _create(test_client, answers)
    task_id = goal["tasks"][1]["id"]

    done = test_client.patch("/tasks", json={"goalId": goal["id"], "taskId": task_id, "completed": True})
    scheduled = test_client.patch(
        "/tasks/schedule",
        json={
            "goalId": goal["id"],
            "taskId": task_id,
            "updates": {"dueDate": "2026-11-05T18:00:00Z", "reminderEnabled": True},
        },
    )

    assert done.json()["progress"] == 50
    task = scheduled.json()["tasks"][1]
    assert task["dueDate"] == "2026-11-05T18:00:00Z"
    assert task["reminderEnabled"] is True
    assert task["completed"] is True


def test_unknown_goal_or_task_is_404(client) -> None:
    test_client, answers = client
    goal = _create(test_client, answers)

    assert test_client.get("/goals/999").status_code == 404
    assert test_client.get("/goals/not-a-number").status_code == 404
    response = test_client.patch("/tasks", json={"goalId": goal["id"], "taskId": "nope", "completed": True})
    assert response.status_code == 404


def test_progress_and_roadblock_endpoints(client) -> None:
    test_client, answers = client
    goal = _create(test_client, answers)

    progress = test_client.post(f"/goals/{goal['id']}/progress", json={"updateMessage": "Chords are clean"})
    roadblock = test_client.post(
        f"/goals/{goal['id']}/roadblock", json={"description": "Sore fingertips", "needsHelp": True}
    )

    assert progress.json()["lastProgressUpdate"] == "Chords are clean"
    assert roadblock.json()["roadblocks"] == "Sore fingertips"


def test_add_and_delete_task(client) -> None:
    test_client, answers = client
    goal = _create(test_client, answers)
    answers.append("low")

    added = test_client.post(f"/goals/{goal['id']}/tasks", json={"title": "Restring the guitar", "estimatedMinutes": 20})

    assert added.status_code == 201
    new_task = added.json()["tasks"][-1]
    assert new_task["complexity"] == "low"
    assert added.json()["totalEstimatedMinutes"] == 170

    removed = test_client.delete(f"/goals/{goal['id']}/tasks/{new_task['id']}")
    assert [task["title"] for task in removed.json()["tasks"]] == ["Learn open chords", "Play a first song"]


def test_delete_goal(client) -> None:
    test_client, answers = client
    goal = _create(test_client, answers)

    assert test_client.delete(f"/goals/{goal['id']}").status_code == 204
    assert test_client.get(f"/goals/{goal['id']}").status_code == 404
    assert test_client.delete(f"/goals/{goal['id']}").status_code == 404

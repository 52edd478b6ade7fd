from __future__ import annotations

import asyncio
import json
from typing import List

import httpx
import pytest

from taskbreaker.core.context import request_id_ctx_var
from taskbreaker.core.errors import MutationNetworkError
from taskbreaker.models.entities import SubtaskScheduleUpdate, TaskScheduleUpdate
from taskbreaker.sync.api_client import GoalsApiClient

GOAL_JSON = {
    "id": 5,
    "title": "Learn guitar",
    "progress": 0,
    "tasks": [{"id": "t1", "title": "Chords", "completed": False, "subtasks": []}],
}


def _client(handler, requests: List[httpx.Request]) -> GoalsApiClient:
    def recording(request: httpx.Request) -> httpx.Response:
        requests.append(request)
        return handler(request)

    http = httpx.AsyncClient(base_url="http://backend.test", transport=httpx.MockTransport(recording))
    return GoalsApiClient("http://backend.test", client=http)


def test_task_completion_patch_body_matches_contract() -> None:
    requests: List[httpx.Request] = []
    api = _client(lambda request: httpx.Response(200, json=GOAL_JSON), requests)

    goal = asyncio.run(api.update_task_completion("5", "t1", True))

    assert goal.id == "5"
    assert requests[0].method == "PATCH"
    assert requests[0].url.path == "/tasks"
    assert json.loads(requests[0].content) == {"goalId": "5", "taskId": "t1", "completed": True}


def test_schedule_updates_send_only_set_fields() -> None:
    requests: List[httpx.Request] = []
    api = _client(lambda request: httpx.Response(200, json=GOAL_JSON), requests)

    asyncio.run(api.update_task_schedule("5", "t1", TaskScheduleUpdate(reminder_enabled=True, reminder_time="07:45")))
    asyncio.run(api.update_subtask_schedule("5", "t1", "s1", SubtaskScheduleUpdate(added_to_calendar=True)))

    assert json.loads(requests[0].content) == {
        "goalId": "5",
        "taskId": "t1",
        "updates": {"reminderEnabled": True, "reminderTime": "07:45"},
    }
    assert requests[1].url.path == "/subtasks/schedule"
    assert json.loads(requests[1].content)["updates"] == {"addedToCalendar": True}


def test_create_goal_omits_missing_optional_fields() -> None:
    requests: List[httpx.Request] = []
    api = _client(lambda request: httpx.Response(201, json=GOAL_JSON), requests)

    asyncio.run(api.create_goal("Learn guitar", time_constraint_minutes=60, notification_channels=["email"]))

    assert json.loads(requests[0].content) == {
        "title": "Learn guitar",
        "timeConstraintMinutes": 60,
        "notificationChannels": ["email"],
    }


def test_progress_and_roadblock_paths() -> None:
    requests: List[httpx.Request] = []
    api = _client(lambda request: httpx.Response(200, json=GOAL_JSON), requests)

    asyncio.run(api.add_progress_update("5", "Halfway", notify_channels=["whatsapp"], contact_phone="+1555"))
    asyncio.run(api.report_roadblock("5", "Stuck on barre chords", needs_help=True))

    assert requests[0].url.path == "/goals/5/progress"
    assert json.loads(requests[0].content) == {
        "updateMessage": "Halfway",
        "notifyChannels": ["whatsapp"],
        "contactPhone": "+1555",
    }
    assert requests[1].url.path == "/goals/5/roadblock"
    assert json.loads(requests[1].content) == {"description": "Stuck on barre chords", "needsHelp": True}


def test_delete_goal_accepts_empty_response() -> None:
    requests: List[httpx.Request] = []
    api = _client(lambda request: httpx.Response(204), requests)

    assert asyncio.run(api.delete_goal("5")) is None
    assert requests[0].method == "DELETE"


def test_server_error_becomes_mutation_network_error() -> None:
    api = _client(lambda request: httpx.Response(500, text="boom"), [])

    with pytest.raises(MutationNetworkError) as excinfo:
        asyncio.run(api.update_task_completion("5", "t1", True))

    assert excinfo.value.status_code == 500
    assert excinfo.value.operation == "toggle_task_completion"


def test_transport_error_has_no_status_code() -> None:
    def refuse(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    api = _client(refuse, [])

    with pytest.raises(MutationNetworkError) as excinfo:
        asyncio.run(api.get_goal("5"))

    assert excinfo.value.status_code is None


def test_list_goals_rejects_non_array() -> None:
    api = _client(lambda request: httpx.Response(200, json={"goals": []}), [])

    with pytest.raises(MutationNetworkError):
        asyncio.run(api.list_goals())


def test_active_mutation_id_is_forwarded_as_request_id() -> None:
    requests: List[httpx.Request] = []
    api = _client(lambda request: httpx.Response(200, json=GOAL_JSON), requests)

    token = request_id_ctx_var.set("mutation-1234")
    try:
        asyncio.run(api.get_goal("5"))
    finally:
        request_id_ctx_var.reset(token)
    asyncio.run(api.get_goal("5"))

    assert requests[0].headers["X-Request-Id"] == "mutation-1234"
    assert "X-Request-Id" not in requests[1].headers

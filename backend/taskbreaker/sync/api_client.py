"""Async HTTP client for the goals backend REST contract."""
from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

import httpx

from taskbreaker.core.config import settings
from taskbreaker.core.context import get_request_id
from taskbreaker.core.errors import MutationNetworkError
from taskbreaker.models.entities import Goal, SubtaskScheduleUpdate, Task, TaskScheduleUpdate

logger = logging.getLogger(__name__)


def _compact(payload: Dict[str, Any]) -> Dict[str, Any]:
    return {key: value for key, value in payload.items() if value is not None}


class GoalsApiClient:
    """Thin wrapper over ``httpx.AsyncClient``.

    Every transport failure, non-2xx status or undecodable body surfaces as
    ``MutationNetworkError`` so callers deal with a single failure type.
    """

    def __init__(
        self,
        base_url: Optional[str] = None,
        *,
        client: Optional[httpx.AsyncClient] = None,
        timeout: Optional[float] = None,
    ):
        self.base_url = (base_url or settings.api_base_url).rstrip("/")
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(
            base_url=self.base_url,
            timeout=timeout if timeout is not None else settings.http_timeout_seconds,
        )

    async def __aenter__(self) -> "GoalsApiClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    async def _request(self, operation: str, method: str, path: str, json: Optional[Dict[str, Any]] = None) -> Any:
        correlation = get_request_id()
        headers = {"X-Request-Id": correlation} if correlation else None
        try:
            response = await self._client.request(method, path, json=json, headers=headers)
        except httpx.HTTPError as exc:
            raise MutationNetworkError(
                f"{operation} request failed: {exc}",
                operation=operation,
                details={"method": method, "path": path},
            ) from exc

        if response.status_code >= 400:
            raise MutationNetworkError(
                f"{operation} returned HTTP {response.status_code}",
                operation=operation,
                status_code=response.status_code,
                details={"method": method, "path": path, "body": response.text[:500]},
            )
        if response.status_code == 204 or not response.content:
            return None
        try:
            return response.json()
        except ValueError as exc:
            raise MutationNetworkError(
                f"{operation} returned an undecodable body",
                operation=operation,
                status_code=response.status_code,
            ) from exc

    async def _goal_request(self, operation: str, method: str, path: str, json: Optional[Dict[str, Any]] = None) -> Optional[Goal]:
        data = await self._request(operation, method, path, json)
        if data is None:
            return None
        try:
            return Goal.model_validate(data)
        except ValueError as exc:
            raise MutationNetworkError(
                f"{operation} returned a goal that failed validation",
                operation=operation,
                details={"error": str(exc)},
            ) from exc

    async def list_goals(self) -> List[Goal]:
        data = await self._request("list_goals", "GET", "/goals")
        if not isinstance(data, list):
            raise MutationNetworkError("list_goals expected a JSON array", operation="list_goals")
        try:
            return [Goal.model_validate(item) for item in data]
        except ValueError as exc:
            raise MutationNetworkError(
                "list_goals returned a goal that failed validation",
                operation="list_goals",
                details={"error": str(exc)},
            ) from exc

    async def get_goal(self, goal_id: str) -> Goal:
        goal = await self._goal_request("get_goal", "GET", f"/goals/{goal_id}")
        if goal is None:
            raise MutationNetworkError("get_goal returned no body", operation="get_goal")
        return goal

    async def create_goal(
        self,
        title: str,
        *,
        time_constraint_minutes: Optional[int] = None,
        additional_info: Optional[str] = None,
        notification_channels: Optional[List[str]] = None,
        contact_email: Optional[str] = None,
        contact_phone: Optional[str] = None,
        skip_decomposition: bool = False,
        tasks: Optional[List[Task]] = None,
        overall_suggestions: Optional[str] = None,
    ) -> Optional[Goal]:
        body = _compact(
            {
                "title": title,
                "timeConstraintMinutes": time_constraint_minutes,
                "additionalInfo": additional_info,
                "notificationChannels": notification_channels,
                "contactEmail": contact_email,
                "contactPhone": contact_phone,
                "overallSuggestions": overall_suggestions,
            }
        )
        if skip_decomposition:
            body["skipDecomposition"] = True
        if tasks is not None:
            body["tasks"] = [task.model_dump(mode="json", by_alias=True, exclude_none=True) for task in tasks]
        return await self._goal_request("create_goal", "POST", "/goals", body)

    async def delete_goal(self, goal_id: str) -> None:
        await self._request("delete_goal", "DELETE", f"/goals/{goal_id}")

    async def update_task_completion(self, goal_id: str, task_id: str, completed: bool) -> Optional[Goal]:
        body = {"goalId": goal_id, "taskId": task_id, "completed": completed}
        return await self._goal_request("toggle_task_completion", "PATCH", "/tasks", body)

    async def update_subtask_completion(
        self, goal_id: str, task_id: str, subtask_id: str, completed: bool
    ) -> Optional[Goal]:
        body = {"goalId": goal_id, "taskId": task_id, "subtaskId": subtask_id, "completed": completed}
        return await self._goal_request("toggle_subtask_completion", "PATCH", "/subtasks", body)

    async def update_task_schedule(self, goal_id: str, task_id: str, updates: TaskScheduleUpdate) -> Optional[Goal]:
        body = {
            "goalId": goal_id,
            "taskId": task_id,
            "updates": updates.model_dump(by_alias=True, exclude_unset=True),
        }
        return await self._goal_request("update_task_schedule", "PATCH", "/tasks/schedule", body)

    async def update_subtask_schedule(
        self, goal_id: str, task_id: str, subtask_id: str, updates: SubtaskScheduleUpdate
    ) -> Optional[Goal]:
        body = {
            "goalId": goal_id,
            "taskId": task_id,
            "subtaskId": subtask_id,
            "updates": updates.model_dump(by_alias=True, exclude_unset=True),
        }
        return await self._goal_request("update_subtask_schedule", "PATCH", "/subtasks/schedule", body)

    async def add_progress_update(
        self,
        goal_id: str,
        update_message: str,
        *,
        notify_channels: Optional[List[str]] = None,
        contact_email: Optional[str] = None,
        contact_phone: Optional[str] = None,
    ) -> Optional[Goal]:
        body = _compact(
            {
                "updateMessage": update_message,
                "notifyChannels": notify_channels,
                "contactEmail": contact_email,
                "contactPhone": contact_phone,
            }
        )
        return await self._goal_request("add_progress_update", "POST", f"/goals/{goal_id}/progress", body)

    async def report_roadblock(
        self,
        goal_id: str,
        description: str,
        *,
        needs_help: Optional[bool] = None,
        notify_channels: Optional[List[str]] = None,
        contact_email: Optional[str] = None,
        contact_phone: Optional[str] = None,
    ) -> Optional[Goal]:
        body = _compact(
            {
                "description": description,
                "needsHelp": needs_help,
                "notifyChannels": notify_channels,
                "contactEmail": contact_email,
                "contactPhone": contact_phone,
            }
        )
        return await self._goal_request("report_roadblock", "POST", f"/goals/{goal_id}/roadblock", body)

    async def add_task(self, goal_id: str, task: Task) -> Optional[Goal]:
        body = task.model_dump(mode="json", by_alias=True, exclude_none=True)
        return await self._goal_request("add_task", "POST", f"/goals/{goal_id}/tasks", body)

    async def delete_task(self, goal_id: str, task_id: str) -> Optional[Goal]:
        return await self._goal_request("delete_task", "DELETE", f"/goals/{goal_id}/tasks/{task_id}")

from __future__ import annotations

import asyncio

import pytest

from taskbreaker.sync.tab_guard import TabGuard


def test_navigation_ignored_while_locked() -> None:
    guard = TabGuard()
    token = guard.lock()

    assert guard.navigate("coach") is False
    assert guard.active_tab == "dashboard"

    guard.unlock(token)
    assert guard.navigate("coach") is True
    assert guard.active_tab == "coach"


def test_unlock_requires_the_issued_token() -> None:
    guard = TabGuard()
    token = guard.lock()
    guard.unlock(token)

    with pytest.raises(ValueError):
        guard.unlock(token)


def test_lock_held_until_every_token_released() -> None:
    guard = TabGuard()
    first, second = guard.lock(), guard.lock()

    guard.unlock(first)
    assert guard.is_locked is True
    guard.unlock(second)
    assert guard.is_locked is False


def test_hold_releases_on_error() -> None:
    guard = TabGuard()

    with pytest.raises(RuntimeError):
        with guard.hold():
            raise RuntimeError("boom")

    assert guard.is_locked is False


def test_preserve_current_tab_restores_drifted_view() -> None:
    guard = TabGuard(initial_tab="goals")
    changes: list[str] = []
    guard.subscribe(changes.append)

    async def create_then_open_chat() -> str:
        assert guard.navigate("settings") is False
        guard.navigate("chat", force=True)
        await asyncio.sleep(0)
        return "goal-7"

    result = asyncio.run(guard.preserve_current_tab(create_then_open_chat))

    assert result == "goal-7"
    assert guard.active_tab == "goals"
    assert guard.is_locked is False
    assert changes == ["chat", "goals"]


def test_preserve_current_tab_unlocks_when_operation_fails() -> None:
    guard = TabGuard()

    async def failing() -> None:
        raise RuntimeError("network down")

    with pytest.raises(RuntimeError):
        asyncio.run(guard.preserve_current_tab(failing))

    assert guard.is_locked is False
    assert guard.navigate("goals") is True


def test_view_goal_details_selects_goal_unless_locked() -> None:
    guard = TabGuard()

    with guard.hold():
        assert guard.view_goal_details("3") is False
    assert guard.selected_goal_id is None

    assert guard.view_goal_details("3") is True
    assert guard.active_tab == "goals"
    assert guard.selected_goal_id == "3"

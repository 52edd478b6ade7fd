"""Active-view state with a scoped navigation lock.

``lock()`` hands out a token and only that token releases it, so a caller
cannot unlock someone else's hold. While any token is outstanding, ordinary
navigation requests are dropped silently.
"""
from __future__ import annotations

import logging
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Awaitable, Callable, Iterator, List, Optional, Set, TypeVar
from uuid import uuid4

logger = logging.getLogger(__name__)

T = TypeVar("T")
TabListener = Callable[[str], None]


@dataclass(frozen=True)
class TabLockToken:
    value: str = field(default_factory=lambda: uuid4().hex)


class TabGuard:
    def __init__(self, initial_tab: str = "dashboard"):
        self._active_tab = initial_tab
        self._selected_goal_id: Optional[str] = None
        self._holders: Set[TabLockToken] = set()
        self._listeners: List[TabListener] = []

    @property
    def active_tab(self) -> str:
        return self._active_tab

    @property
    def selected_goal_id(self) -> Optional[str]:
        return self._selected_goal_id

    @property
    def is_locked(self) -> bool:
        return bool(self._holders)

    def subscribe(self, listener: TabListener) -> Callable[[], None]:
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _set_tab(self, tab: str) -> None:
        if tab == self._active_tab:
            return
        self._active_tab = tab
        for listener in list(self._listeners):
            try:
                listener(tab)
            except Exception:
                logger.exception("Tab listener failed")

    def navigate(self, tab: str, *, force: bool = False) -> bool:
        """Switch views; returns False when the request was dropped by the lock."""
        if self.is_locked and not force:
            logger.debug("Navigation to %s ignored while locked", tab)
            return False
        self._set_tab(tab)
        return True

    def view_goal_details(self, goal_id: str) -> bool:
        if not self.navigate("goals"):
            return False
        self._selected_goal_id = goal_id
        return True

    def lock(self) -> TabLockToken:
        token = TabLockToken()
        self._holders.add(token)
        return token

    def unlock(self, token: TabLockToken) -> None:
        if token not in self._holders:
            raise ValueError("Unknown or already released tab lock token")
        self._holders.discard(token)

    @contextmanager
    def hold(self) -> Iterator[TabLockToken]:
        token = self.lock()
        try:
            yield token
        finally:
            self.unlock(token)

    async def preserve_current_tab(self, fn: Callable[[], Awaitable[T]]) -> T:
        """Run ``fn`` with navigation locked and the starting view restored afterwards."""
        original = self._active_tab
        with self.hold():
            try:
                return await fn()
            finally:
                if self._active_tab != original:
                    logger.debug("Restoring tab %s after drift to %s", original, self._active_tab)
                    self._set_tab(original)

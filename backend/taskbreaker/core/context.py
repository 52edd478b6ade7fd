"""Correlation id shared by HTTP requests and client-side mutations."""
from __future__ import annotations

from contextvars import ContextVar

request_id_ctx_var: ContextVar[str | None] = ContextVar("request_id", default=None)


def get_request_id() -> str | None:
    """Return the current correlation id if available."""
    return request_id_ctx_var.get()

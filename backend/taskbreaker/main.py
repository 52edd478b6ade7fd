"""Main FastAPI application for the TaskBreaker goals backend."""
from fastapi import FastAPI, Request

from taskbreaker import __version__
from taskbreaker.api.routes.goals import router as goals_router
from taskbreaker.api.routes.tasks import router as tasks_router
from taskbreaker.core.config import settings
from taskbreaker.core.logging import configure_logging
from taskbreaker.core.middleware import RequestIDMiddleware
from taskbreaker.db import Base
from taskbreaker.db.session import engine
from taskbreaker.observability.client import init_opik
from taskbreaker.observability.tracing import trace

configure_logging(log_level=settings.log_level, debug=settings.debug)

app = FastAPI(title=settings.app_name, version=__version__)
app.add_middleware(RequestIDMiddleware)
app.include_router(goals_router)
app.include_router(tasks_router)


@app.on_event("startup")
async def startup() -> None:
    """Create tables and initialize observability after the event loop starts."""
    Base.metadata.create_all(bind=engine)
    init_opik()


@app.get("/health", tags=["health"], summary="Readiness probe")
async def health_check(request: Request) -> dict[str, str]:
    """Return a simple status payload so automation can probe the API."""
    with trace("http.health_check", metadata={"route": "/health"}, request_id=request.state.request_id):
        return {"status": "ok"}

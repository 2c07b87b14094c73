"""
HTTP API for the agent core.

Endpoints:
- GET  /health
- GET  /capabilities
- POST /chat
- GET  /metrics, GET /metrics/{capability_id}
- GET  /executions
- POST /workflows, GET /workflows/{workflow_id}, POST /workflows/{workflow_id}/cancel
"""

from __future__ import annotations

import uuid
from contextlib import asynccontextmanager
from typing import Any

from fastapi import FastAPI, HTTPException
from pydantic import BaseModel, Field

from main import build_pipeline
from shared.errors import NotFound
from shared.models import EntryRequest
from shared.response_formatter import format_output


class ChatRequest(BaseModel):
    message: str
    session_id: str | None = None
    metadata: dict[str, Any] = Field(default_factory=dict)


class WorkflowRequest(BaseModel):
    goal: str = Field(min_length=1)
    session_id: str | None = None


@asynccontextmanager
async def lifespan(_app: FastAPI):
    _app.state.pipeline = build_pipeline()
    yield


app = FastAPI(
    title="Agent Core API",
    version="0.1.0",
    lifespan=lifespan,
)


@app.get("/health")
def health() -> dict[str, str]:
    return {"status": "ok"}


@app.get("/capabilities")
def list_capabilities() -> dict[str, Any]:
    registry = app.state.pipeline.registry
    return {"capabilities": [info.model_dump() for info in registry.describe_all()]}


@app.post("/chat")
async def chat(request: ChatRequest) -> dict[str, Any]:
    pipeline = app.state.pipeline
    session_id = request.session_id or uuid.uuid4().hex[:8]
    entry = EntryRequest(
        session_id=session_id,
        input_text=request.message,
        metadata={"source": "api", **request.metadata},
    )
    output = await pipeline.orchestrator.handle(entry, pipeline.commands)
    return {
        "session_id": session_id,
        "text": format_output(output),
        "output": output.model_dump(mode="json"),
    }


@app.get("/metrics")
def metrics() -> dict[str, Any]:
    tracker = app.state.pipeline.tracker
    return {
        "health": tracker.system_health().model_dump(mode="json"),
        "capabilities": [m.model_dump(mode="json") for m in tracker.all_metrics()],
    }


@app.get("/metrics/{capability_id}")
def capability_metrics(capability_id: str) -> dict[str, Any]:
    found = app.state.pipeline.tracker.get_metrics(capability_id)
    if found is None:
        raise HTTPException(status_code=404, detail=f"No metrics for capability '{capability_id}'")
    return found.model_dump(mode="json")


@app.get("/executions")
def executions(limit: int = 50, capability_id: str | None = None) -> dict[str, Any]:
    tracker = app.state.pipeline.tracker
    return {
        "executions": [e.model_dump(mode="json") for e in tracker.history(capability_id, limit=limit)],
        "active": [e.id for e in tracker.active_executions()],
    }


@app.post("/workflows")
async def run_workflow(request: WorkflowRequest) -> dict[str, Any]:
    pipeline = app.state.pipeline
    events: list[dict[str, Any]] = []

    async def collect(payload: dict[str, Any]) -> None:
        events.append(payload)

    workflow = pipeline.workflow_engine.create_for_goal(request.goal)
    workflow = await pipeline.workflow_engine.run(
        workflow.id,
        pipeline.commands,
        session_id=request.session_id,
        progress_callback=collect,
    )
    return {"workflow": workflow.model_dump(mode="json"), "events": events}


@app.get("/workflows/{workflow_id}")
def get_workflow(workflow_id: str) -> dict[str, Any]:
    try:
        workflow = app.state.pipeline.workflow_engine.get(workflow_id)
    except NotFound as e:
        raise HTTPException(status_code=404, detail=e.message) from e
    return workflow.model_dump(mode="json")


@app.post("/workflows/{workflow_id}/cancel")
def cancel_workflow(workflow_id: str) -> dict[str, Any]:
    try:
        workflow = app.state.pipeline.workflow_engine.cancel(workflow_id)
    except NotFound as e:
        raise HTTPException(status_code=404, detail=e.message) from e
    return workflow.model_dump(mode="json")

"""Project run and version-history endpoints."""

import logging
from typing import Annotated, Any

from fastapi import APIRouter, Depends, HTTPException, Request
from sse_starlette.sse import EventSourceResponse

from backend.web.core.dependencies import get_app, get_project_lock
from backend.web.models.requests import RunRequest, SnapshotRequest
from backend.web.services.run_service import (
    get_active_run,
    get_history,
    history_state,
    start_project_run,
)
from core.events import observe_run_events

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/projects", tags=["projects"])

# SSE response headers: disable proxy buffering for real-time streaming
SSE_HEADERS = {
    "Cache-Control": "no-cache",
    "X-Accel-Buffering": "no",
}


# Run endpoint: returns JSON, the run proceeds in background
@router.post("/{project_id}/runs")
async def run_project(
    project_id: str,
    payload: RunRequest,
    app: Annotated[Any, Depends(get_app)] = None,
) -> dict[str, Any]:
    """Start a run. Returns {run_id, project_id}; observe via GET /runs/events."""
    if not payload.message.strip():
        raise HTTPException(status_code=400, detail="message cannot be empty")

    lock = await get_project_lock(app, project_id)
    async with lock:
        if get_active_run(app, project_id) is not None:
            raise HTTPException(status_code=409, detail="Project already has a run in progress")
        try:
            handle = start_project_run(
                app, project_id, payload.message, payload.current_files, payload.strategy, payload.options
            )
        except ValueError as e:
            raise HTTPException(status_code=400, detail=str(e)) from e

    return {"run_id": handle.run_id, "project_id": project_id}


@router.get("/{project_id}/runs/events")
async def stream_run_events(
    project_id: str,
    request: Request,
    after: int = 0,
    app: Annotated[Any, Depends(get_app)] = None,
) -> EventSourceResponse:
    """SSE event stream for the project's latest run.

    Supports reconnection via ``?after=N`` or ``Last-Event-ID`` header.
    """
    last_id = request.headers.get("Last-Event-ID")
    if last_id:
        try:
            after = max(after, int(last_id))
        except ValueError:
            pass

    handle = app.state.project_runs.get(project_id)
    if handle is None:
        raise HTTPException(status_code=404, detail="No run found for project")

    stream = app.state.settings.stream
    return EventSourceResponse(
        observe_run_events(
            handle.buffer,
            after=after,
            heartbeat_seconds=stream.heartbeat_seconds,
            retry_ms=stream.retry_ms,
        ),
        headers=SSE_HEADERS,
    )


@router.post("/{project_id}/runs/cancel")
async def cancel_run(
    project_id: str,
    app: Annotated[Any, Depends(get_app)] = None,
):
    """Cancel the active run for the given project."""
    handle = get_active_run(app, project_id)
    if not handle:
        return {"ok": False, "message": "No active run found"}
    handle.cancel()
    return {"ok": True, "message": "Run cancellation requested", "run_id": handle.run_id}


@router.get("/{project_id}/runs/result")
async def get_run_result(
    project_id: str,
    app: Annotated[Any, Depends(get_app)] = None,
) -> dict[str, Any]:
    """Final files and summary of the latest run, once it has finished."""
    handle = app.state.project_runs.get(project_id)
    if handle is None:
        raise HTTPException(status_code=404, detail="No run found for project")
    if handle.outcome is None:
        return {"run_id": handle.run_id, "finished": False}
    outcome = handle.outcome
    return {
        "run_id": handle.run_id,
        "finished": True,
        **outcome.summary(),
        "message": outcome.message,
        "error": outcome.error,
        "files": outcome.files,
        "log": [entry.to_dict() for entry in outcome.log],
    }


# ── Version history ──


@router.get("/{project_id}/history")
async def list_history(
    project_id: str,
    app: Annotated[Any, Depends(get_app)] = None,
) -> dict[str, Any]:
    history = get_history(app, project_id)
    return {"snapshots": history.list_snapshots(), **history_state(history)}


@router.post("/{project_id}/history/snapshots")
async def create_snapshot(
    project_id: str,
    payload: SnapshotRequest,
    app: Annotated[Any, Depends(get_app)] = None,
) -> dict[str, Any]:
    history = get_history(app, project_id)
    snapshot = history.add_snapshot(payload.files, payload.description, payload.kind)
    return {"created": snapshot is not None, "snapshot_id": snapshot.id if snapshot else None, **history_state(history)}


@router.post("/{project_id}/history/undo")
async def undo(
    project_id: str,
    app: Annotated[Any, Depends(get_app)] = None,
) -> dict[str, Any]:
    history = get_history(app, project_id)
    return history_state(history, history.undo())


@router.post("/{project_id}/history/redo")
async def redo(
    project_id: str,
    app: Annotated[Any, Depends(get_app)] = None,
) -> dict[str, Any]:
    history = get_history(app, project_id)
    return history_state(history, history.redo())


@router.post("/{project_id}/history/goto/{index}")
async def go_to_snapshot(
    project_id: str,
    index: int,
    app: Annotated[Any, Depends(get_app)] = None,
) -> dict[str, Any]:
    history = get_history(app, project_id)
    return history_state(history, history.go_to(index))


@router.delete("/{project_id}/history")
async def clear_history(
    project_id: str,
    app: Annotated[Any, Depends(get_app)] = None,
) -> dict[str, Any]:
    history = get_history(app, project_id)
    history.clear()
    return history_state(history)

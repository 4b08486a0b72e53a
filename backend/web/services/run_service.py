"""Per-project run and history management for the web API."""

import logging
from typing import Any

from fastapi import FastAPI

from core.history import VersionHistory
from core.loop import BuildOrchestrator, LangChainCollaborator, RunHandle, RunOptions

logger = logging.getLogger(__name__)


def get_history(app: FastAPI, project_id: str) -> VersionHistory:
    """Get or load the version history for a project."""
    history = app.state.histories.get(project_id)
    if history is None:
        history = VersionHistory.load(
            app.state.snapshot_repo,
            project_id,
            max_snapshots=app.state.settings.history.max_snapshots,
        )
        app.state.histories[project_id] = history
    return history


def get_collaborator(app: FastAPI) -> Any:
    if app.state.collaborator is None:
        app.state.collaborator = LangChainCollaborator.from_settings(app.state.settings)
    return app.state.collaborator


def get_active_run(app: FastAPI, project_id: str) -> RunHandle | None:
    handle = app.state.project_runs.get(project_id)
    if handle is None or handle.done:
        return None
    return handle


def start_project_run(
    app: FastAPI,
    project_id: str,
    message: str,
    current_files: dict[str, str],
    strategy: str | None,
    options: RunOptions,
) -> RunHandle:
    """Start a run for a project. The handle stays registered until the next run replaces it."""
    orchestrator = BuildOrchestrator(
        get_collaborator(app),
        app.state.settings,
        history=get_history(app, project_id),
    )
    handle = orchestrator.start(message, current_files, strategy=strategy, options=options)
    app.state.project_runs[project_id] = handle
    logger.info("Project %s: run %s started", project_id, handle.run_id)
    return handle


def history_state(history: VersionHistory, files: dict[str, str] | None = None) -> dict[str, Any]:
    current = history.current_snapshot()
    return {
        "files": files,
        "current_index": history.current_index,
        "current_id": current.id if current else None,
        "can_undo": history.can_undo(),
        "can_redo": history.can_redo(),
    }

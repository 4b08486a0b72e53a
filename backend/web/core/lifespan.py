"""Application lifespan management."""

import asyncio
import logging
from contextlib import asynccontextmanager
from typing import Any

from fastapi import FastAPI

from config.loader import load_config
from core.history import VersionHistory
from core.loop import RunHandle
from storage.providers.memory import InMemorySnapshotRepo
from storage.providers.sqlite import SQLiteSnapshotRepo

logger = logging.getLogger(__name__)


def build_snapshot_repo(settings: Any) -> Any:
    if settings.history.sink == "sqlite":
        return SQLiteSnapshotRepo(settings.history.db_path)
    return InMemorySnapshotRepo()


def init_app_state(app: FastAPI, settings: Any) -> None:
    """Populate app.state; also used by tests that skip the lifespan."""
    app.state.settings = settings
    app.state.snapshot_repo = build_snapshot_repo(settings)
    app.state.histories: dict[str, VersionHistory] = {}
    app.state.project_runs: dict[str, RunHandle] = {}
    app.state.project_locks: dict[str, asyncio.Lock] = {}
    app.state.project_locks_guard = asyncio.Lock()
    # Built lazily on the first run so the server starts without an API key
    app.state.collaborator = None


@asynccontextmanager
async def lifespan(app: FastAPI):
    """FastAPI lifespan context manager for startup and shutdown."""
    settings = load_config()
    init_app_state(app, settings)
    logger.info("buildloop backend ready (history sink: %s)", settings.history.sink)

    try:
        yield
    finally:
        # Cleanup: cancel in-flight runs
        for handle in app.state.project_runs.values():
            if not handle.done:
                handle.cancel()
                await handle.wait()
        app.state.snapshot_repo.close()

"""FastAPI dependency injection functions."""

import asyncio
from typing import Annotated

from fastapi import Depends, FastAPI, Request


async def get_app(request: Request) -> FastAPI:
    """Get FastAPI app instance from request."""
    return request.app


async def get_project_lock(app: Annotated[FastAPI, Depends(get_app)], project_id: str) -> asyncio.Lock:
    """Get or create a lock for a specific project."""
    async with app.state.project_locks_guard:
        lock = app.state.project_locks.get(project_id)
        if lock is None:
            lock = asyncio.Lock()
            app.state.project_locks[project_id] = lock
        return lock

"""buildloop Web Backend - FastAPI Application."""

import os

import uvicorn
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from backend.web.core.lifespan import lifespan
from backend.web.routers import projects, tools

# Create FastAPI app
app = FastAPI(title="buildloop Web Backend", lifespan=lifespan)

# Add CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include routers
app.include_router(projects.router)
app.include_router(tools.router)


def _resolve_port() -> int:
    """Resolve backend port: BUILDLOOP_BACKEND_PORT > PORT > default 8001."""
    port = os.environ.get("BUILDLOOP_BACKEND_PORT") or os.environ.get("PORT")
    if port:
        return int(port)
    return 8001


if __name__ == "__main__":
    # @@@module-launch-target - Package-qualified target keeps module launch (`python -m backend.web.main`) import-safe.
    uvicorn.run("backend.web.main:app", host="0.0.0.0", port=_resolve_port(), reload=True)

"""RollCall Vision service.

Exposes session control, student enrollment, the attendance log and the
per-cycle metadata WebSocket. The capture session itself is created lazily by
`rollcall.api.services.state` and only runs after ``POST /session/start``.
"""

from __future__ import annotations

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from rollcall.api.routes import attendance, config, health, session, stream, students

ROUTERS = (health, config, session, students, attendance, stream)


@asynccontextmanager
async def lifespan(_: FastAPI) -> AsyncIterator[None]:
    """Stop the capture session (and release the camera) on shutdown."""

    from rollcall.api.services.state import stop_session

    yield
    stop_session()


app = FastAPI(
    title="RollCall Vision API",
    description="Classroom attendance from face tracks kept stable across analysis cycles.",
    version="0.1.0",
    lifespan=lifespan,
)

# The dashboard is served from a different origin during development.
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

for module in ROUTERS:
    app.include_router(module.router)


if __name__ == "__main__":
    uvicorn.run("rollcall.api.main:app", host="0.0.0.0", port=8000, reload=True)

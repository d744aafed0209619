"""Capture session control endpoints."""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException

from rollcall.api.schemas.models import CycleSchema, SessionStatusSchema
from rollcall.api.services.session import CaptureSession, SessionStatus
from rollcall.api.services.state import get_session

router = APIRouter(prefix="/session", tags=["session"])


def _status_schema(status: SessionStatus) -> SessionStatusSchema:
    return SessionStatusSchema(
        state=status.state.value,
        running=status.running,
        busy=status.busy,
        paused_until=status.paused_until,
        active_tracks=status.active_tracks,
        cycles=status.cycles,
        error=status.error,
    )


@router.post("/start", response_model=SessionStatusSchema)
def start_session(session: CaptureSession = Depends(get_session)) -> SessionStatusSchema:
    """Start capturing; tracks and ids start from scratch."""

    session.start()
    status = session.status()
    if not status.running:
        raise HTTPException(status_code=503, detail=status.error or "Capture session failed to start")
    return _status_schema(status)


@router.post("/stop", response_model=SessionStatusSchema)
def stop_session(session: CaptureSession = Depends(get_session)) -> SessionStatusSchema:
    """Stop capturing and forget every track."""

    session.stop()
    return _status_schema(session.status())


@router.get("/status", response_model=SessionStatusSchema)
def session_status(session: CaptureSession = Depends(get_session)) -> SessionStatusSchema:
    return _status_schema(session.status())


@router.get("/detections", response_model=CycleSchema | None)
def latest_detections(session: CaptureSession = Depends(get_session)) -> CycleSchema | None:
    """Return the annotated detections of the most recent cycle (or null)."""

    summary = session.latest_summary()
    if summary is None:
        return None
    return CycleSchema.from_summary(summary)

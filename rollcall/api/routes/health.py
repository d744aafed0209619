"""Liveness endpoint."""

from fastapi import APIRouter

from rollcall.api.services.state import session_state

router = APIRouter()


@router.get("/health")
def health() -> dict[str, str]:
    """Report liveness plus the capture session state, without starting one."""

    return {"status": "ok", "session": session_state()}

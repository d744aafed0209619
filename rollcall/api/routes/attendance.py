"""Attendance log endpoint."""

from __future__ import annotations

from fastapi import APIRouter, Depends

from rollcall.api.schemas.models import AttendanceSchema
from rollcall.api.services.state import get_attendance
from rollcall.core.attendance.registry import AttendanceLog

router = APIRouter()


@router.get("/attendance", response_model=list[AttendanceSchema])
def list_attendance(log: AttendanceLog = Depends(get_attendance)) -> list[AttendanceSchema]:
    """Return every attendance record logged since the service started."""

    return [AttendanceSchema.from_record(r) for r in log.records()]

"""Student enrollment endpoints.

Enrolling binds a durable student identity to the track id currently shown
for a face; attendance is only logged for enrolled tracks.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException

from rollcall.api.schemas.models import EnrollmentSchema, StudentSchema
from rollcall.api.services.state import get_enrollment
from rollcall.core.attendance.registry import EnrollmentRegistry

router = APIRouter(prefix="/students", tags=["students"])


@router.get("", response_model=list[EnrollmentSchema])
def list_students(registry: EnrollmentRegistry = Depends(get_enrollment)) -> list[EnrollmentSchema]:
    return [
        EnrollmentSchema(track_id=track_id, student=StudentSchema.from_student(student))
        for track_id, student in sorted(registry.all().items())
    ]


@router.put("/{track_id}", response_model=EnrollmentSchema)
def enroll_student(
    track_id: int,
    student: StudentSchema,
    registry: EnrollmentRegistry = Depends(get_enrollment),
) -> EnrollmentSchema:
    if track_id <= 0:
        raise HTTPException(status_code=422, detail="track_id must be > 0")
    registry.enroll(track_id, student.to_student())
    return EnrollmentSchema(track_id=track_id, student=student)


@router.delete("/{track_id}", status_code=204)
def remove_student(track_id: int, registry: EnrollmentRegistry = Depends(get_enrollment)) -> None:
    if not registry.remove(track_id):
        raise HTTPException(status_code=404, detail="Unknown student")

"""Pydantic models for the HTTP/WS API."""

from __future__ import annotations

from pydantic import BaseModel, Field, field_validator

from rollcall.core.types import (
    AttendanceRecord,
    CycleSummary,
    FaceDetection,
    HandDetection,
    Region,
    StudentInfo,
)


class RegionSchema(BaseModel):
    x: float
    y: float
    width: float
    height: float

    @classmethod
    def from_region(cls, region: Region) -> RegionSchema:
        return cls(x=region.x, y=region.y, width=region.width, height=region.height)


class StudentSchema(BaseModel):
    """Student identity a track is enrolled as."""

    name: str = Field(min_length=1)
    roll_number: str = Field(min_length=1)

    @field_validator("name", "roll_number")
    @classmethod
    def _strip(cls, v: str) -> str:
        v2 = v.strip()
        if not v2:
            raise ValueError("must not be blank")
        return v2

    @classmethod
    def from_student(cls, student: StudentInfo) -> StudentSchema:
        return cls(name=student.name, roll_number=student.roll_number)

    def to_student(self) -> StudentInfo:
        return StudentInfo(name=self.name, roll_number=self.roll_number)


class EnrollmentSchema(BaseModel):
    track_id: int
    student: StudentSchema


class FaceSchema(BaseModel):
    """Annotated face payload."""

    track_id: int | None
    label: str
    emotion: str | None
    confidence: float
    region: RegionSchema
    student: StudentSchema | None = None

    @classmethod
    def from_face(cls, face: FaceDetection) -> FaceSchema:
        return cls(
            track_id=face.track_id,
            label=face.label,
            emotion=face.emotion.value if face.emotion else None,
            confidence=face.confidence,
            region=RegionSchema.from_region(face.region),
            student=StudentSchema.from_student(face.student) if face.student else None,
        )


class HandSchema(BaseModel):
    sign: str
    confidence: float
    region: RegionSchema

    @classmethod
    def from_hand(cls, hand: HandDetection) -> HandSchema:
        return cls(
            sign=hand.sign.value,
            confidence=hand.confidence,
            region=RegionSchema.from_region(hand.region),
        )


class CycleSchema(BaseModel):
    """Per-cycle detection payload."""

    cycle_id: int
    timestamp: float
    faces: list[FaceSchema]
    hands: list[HandSchema]
    active_tracks: int
    error: str | None = None

    @classmethod
    def from_summary(cls, summary: CycleSummary) -> CycleSchema:
        return cls(
            cycle_id=summary.cycle_id,
            timestamp=summary.timestamp,
            faces=[FaceSchema.from_face(f) for f in summary.faces],
            hands=[HandSchema.from_hand(h) for h in summary.hands],
            active_tracks=summary.active_tracks,
            error=summary.error,
        )


class SessionStatusSchema(BaseModel):
    state: str
    running: bool
    busy: bool
    paused_until: float | None = None
    active_tracks: int
    cycles: int
    error: str | None = None


class AttendanceSchema(BaseModel):
    track_id: int
    student: StudentSchema
    timestamp: float
    emotion: str | None = None

    @classmethod
    def from_record(cls, record: AttendanceRecord) -> AttendanceSchema:
        return cls(
            track_id=record.track_id,
            student=StudentSchema.from_student(record.student),
            timestamp=record.timestamp,
            emotion=record.emotion.value if record.emotion else None,
        )


class ConfigSchema(BaseModel):
    """Runtime configuration payload (the API key is write-only)."""

    video_source: str
    video_path: str | None = None
    camera_index: int = Field(default=0, ge=0)
    gemini_model: str
    request_timeout_s: float = Field(default=30.0, gt=0)
    jpeg_quality: int = Field(default=80, ge=10, le=100)
    analysis_interval_s: float = Field(default=30.0, gt=0)
    rate_limit_pause_s: float = Field(default=61.0, ge=0)
    match_threshold: float = Field(default=0.4, ge=0.0, lt=1.0)
    max_inactivity_s: float = Field(default=20.0, ge=0)
    attendance_cooldown_s: float = Field(default=300.0, ge=0)

    @field_validator("video_source")
    @classmethod
    def _validate_source(cls, v: str) -> str:
        if v not in {"webcam", "file"}:
            raise ValueError("video_source must be webcam|file")
        return v

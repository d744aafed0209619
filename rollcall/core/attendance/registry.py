from __future__ import annotations

from threading import RLock
from typing import Protocol

from rollcall.core.types import AttendanceRecord, StudentInfo


class EnrollmentLink(Protocol):
    def get(self, track_id: int) -> StudentInfo | None: ...


class AttendanceSink(Protocol):
    def append(self, record: AttendanceRecord) -> None: ...


class EnrollmentRegistry:
    """In-memory mapping from track id to the student enrolled on it."""

    def __init__(self) -> None:
        self._students: dict[int, StudentInfo] = {}
        self._lock = RLock()

    def get(self, track_id: int) -> StudentInfo | None:
        with self._lock:
            return self._students.get(track_id)

    def enroll(self, track_id: int, student: StudentInfo) -> None:
        """Bind `track_id` to `student`, replacing any previous binding."""

        with self._lock:
            self._students[track_id] = student

    def remove(self, track_id: int) -> bool:
        with self._lock:
            return self._students.pop(track_id, None) is not None

    def all(self) -> dict[int, StudentInfo]:
        with self._lock:
            return dict(self._students)


class AttendanceLog:
    """Append-only in-memory attendance sink."""

    def __init__(self) -> None:
        self._records: list[AttendanceRecord] = []
        self._lock = RLock()

    def append(self, record: AttendanceRecord) -> None:
        with self._lock:
            self._records.append(record)

    def records(self) -> list[AttendanceRecord]:
        with self._lock:
            return list(self._records)

    def clear(self) -> None:
        with self._lock:
            self._records.clear()

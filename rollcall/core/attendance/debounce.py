"""Attendance logging gated on durable track ids.

A track only produces attendance once it is enrolled, and then at most once
per cooldown window.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Iterable

from rollcall.core.attendance.registry import AttendanceSink, EnrollmentLink
from rollcall.core.types import AttendanceRecord, FaceDetection

logger = logging.getLogger(__name__)

DEFAULT_COOLDOWN_S = 5 * 60.0


class AttendanceDebouncer:
    """Last-logged registry keyed by track id."""

    def __init__(self, cooldown_s: float = DEFAULT_COOLDOWN_S) -> None:
        self.cooldown_s = cooldown_s
        self.last_logged: dict[int, float] = {}
        self._lock = threading.Lock()

    def should_log(self, track_id: int, now: float) -> bool:
        """Return True (and record `now`) when `track_id` is due for an event."""

        with self._lock:
            last = self.last_logged.get(track_id)
            if last is not None and now - last <= self.cooldown_s:
                return False
            self.last_logged[track_id] = now
            return True

    def process(
        self,
        faces: Iterable[FaceDetection],
        enrollment: EnrollmentLink,
        sink: AttendanceSink,
        now: float,
    ) -> list[AttendanceRecord]:
        """Emit attendance for every enrolled, due face in an annotated detection list.

        Enrolled faces get their `student` filled in for display whether or not
        an event is emitted. Unenrolled faces are left alone.
        """

        emitted: list[AttendanceRecord] = []
        for face in faces:
            if face.track_id is None:
                continue
            student = enrollment.get(face.track_id)
            if student is None:
                continue
            face.student = student
            if not self.should_log(face.track_id, now):
                continue
            record = AttendanceRecord(
                track_id=face.track_id,
                student=student,
                timestamp=now,
                emotion=face.emotion,
            )
            sink.append(record)
            emitted.append(record)
            logger.info("Attendance logged for %s (track %s)", student.roll_number, face.track_id)
        return emitted

    def clear(self) -> None:
        with self._lock:
            self.last_logged.clear()

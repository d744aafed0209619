"""In-process state for settings, the capture session and the attendance stores.

FastAPI routes use this module to access (and hot-reload) the singleton
`CaptureSession` instance. Enrollments, the attendance log and the debounce
registry outlive individual sessions.
"""

from __future__ import annotations

from threading import RLock

from rollcall.api.services.session import CaptureSession
from rollcall.core.attendance.debounce import AttendanceDebouncer
from rollcall.core.attendance.registry import AttendanceLog, EnrollmentRegistry
from rollcall.core.config.settings import AppSettings, load_settings, settings_to_dict

_settings: AppSettings | None = None
_session: CaptureSession | None = None
_enrollment = EnrollmentRegistry()
_attendance = AttendanceLog()
_debouncer: AttendanceDebouncer | None = None
_lock = RLock()


def get_settings() -> AppSettings:
    """Return cached settings, loading them on first use."""

    global _settings
    with _lock:
        if _settings is None:
            _settings = load_settings()
    return _settings


def get_enrollment() -> EnrollmentRegistry:
    return _enrollment


def get_attendance() -> AttendanceLog:
    return _attendance


def _get_debouncer(settings: AppSettings) -> AttendanceDebouncer:
    global _debouncer
    with _lock:
        if _debouncer is None:
            _debouncer = AttendanceDebouncer(cooldown_s=settings.attendance_cooldown_s)
        else:
            _debouncer.cooldown_s = settings.attendance_cooldown_s
    return _debouncer


def _new_session(settings: AppSettings) -> CaptureSession:
    return CaptureSession(
        settings,
        enrollment=_enrollment,
        attendance=_attendance,
        debouncer=_get_debouncer(settings),
    )


def reload_settings(data: dict | None = None) -> AppSettings:
    """Reload settings and restart the session if it is running.

    Args:
        data: Optional patch dict merged into the loaded settings.
    """

    global _settings, _session
    with _lock:
        base = load_settings()
        if data:
            _settings = AppSettings(**{**settings_to_dict(base), **data})
        else:
            _settings = base
        if _session:
            was_running = _session.running
            _session.stop()
            _session = _new_session(_settings)
            if was_running:
                _session.start()
    return _settings


def get_session() -> CaptureSession:
    """Return the singleton session, creating it (stopped) if needed."""

    global _session
    with _lock:
        if _session is None:
            _session = _new_session(get_settings())
    return _session


def stop_session() -> None:
    """Stop and discard the singleton session (if present)."""

    global _session
    with _lock:
        if _session is not None:
            _session.stop()
            _session = None


def session_state() -> str:
    """State of the singleton session, or ``"stopped"`` when none exists yet."""

    with _lock:
        session = _session
    return session.state.value if session is not None else "stopped"

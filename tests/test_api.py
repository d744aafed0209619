from __future__ import annotations

import pytest
from fastapi.testclient import TestClient

from rollcall.api.main import app
from rollcall.api.services import state
from rollcall.api.services.session import SessionState, SessionStatus
from rollcall.api.services.state import get_attendance, get_enrollment, get_session
from rollcall.core.attendance.registry import AttendanceLog, EnrollmentRegistry
from rollcall.core.config.settings import AppSettings
from rollcall.core.types import (
    AttendanceRecord,
    CycleSummary,
    Emotion,
    FaceDetection,
    Region,
    StudentInfo,
)


class DummySession:
    def __init__(self, summary=None, error=None, start_ok=True):
        self._summary = summary
        self.last_error = error
        self.running = False
        self._start_ok = start_ok
        self.started = 0
        self.stopped = 0

    def start(self):
        self.started += 1
        if self._start_ok:
            self.running = True
        else:
            self.last_error = "Failed to initialize capture session"

    def stop(self):
        self.stopped += 1
        self.running = False

    def status(self):
        return SessionStatus(
            state=SessionState.IDLE if self.running else SessionState.STOPPED,
            running=self.running,
            busy=False,
            paused_until=None,
            active_tracks=0,
            cycles=0,
            error=self.last_error,
        )

    def latest_summary(self):
        return self._summary


@pytest.fixture
def client():
    yield TestClient(app)
    app.dependency_overrides.clear()


def _summary() -> CycleSummary:
    face = FaceDetection(
        region=Region(0.1, 0.1, 0.2, 0.2),
        label="Person with glasses",
        emotion=Emotion.HAPPY,
        confidence=0.9,
        track_id=3,
        student=StudentInfo(name="Alice", roll_number="R-1"),
    )
    return CycleSummary(cycle_id=7, timestamp=12.5, faces=[face], hands=[], active_tracks=2)


def test_health_endpoint(client, monkeypatch):
    monkeypatch.setattr(state, "_session", None)
    res = client.get("/health")
    assert res.status_code == 200
    assert res.json() == {"status": "ok", "session": "stopped"}


def test_session_start_and_stop(client):
    session = DummySession()
    app.dependency_overrides[get_session] = lambda: session

    res = client.post("/session/start")
    assert res.status_code == 200
    assert res.json()["running"] is True
    assert res.json()["state"] == "idle"

    res = client.post("/session/stop")
    assert res.status_code == 200
    assert res.json()["state"] == "stopped"
    assert session.started == 1
    assert session.stopped == 1


def test_session_start_failure_returns_503(client):
    session = DummySession(start_ok=False)
    app.dependency_overrides[get_session] = lambda: session
    res = client.post("/session/start")
    assert res.status_code == 503
    assert res.json()["detail"] == "Failed to initialize capture session"


def test_session_detections(client):
    session = DummySession()
    app.dependency_overrides[get_session] = lambda: session
    res = client.get("/session/detections")
    assert res.status_code == 200
    assert res.json() is None

    session._summary = _summary()
    data = client.get("/session/detections").json()
    assert data["cycle_id"] == 7
    face = data["faces"][0]
    assert face["track_id"] == 3
    assert face["label"] == "Person with glasses"
    assert face["emotion"] == "Happy"
    assert face["region"] == {"x": 0.1, "y": 0.1, "width": 0.2, "height": 0.2}
    assert face["student"] == {"name": "Alice", "roll_number": "R-1"}


def test_session_status_reports_error(client):
    session = DummySession(error="Could not analyze the frame. Retrying automatically...")
    app.dependency_overrides[get_session] = lambda: session
    data = client.get("/session/status").json()
    assert data["running"] is False
    assert data["error"].startswith("Could not analyze")


def test_enroll_list_and_remove_students(client):
    registry = EnrollmentRegistry()
    app.dependency_overrides[get_enrollment] = lambda: registry

    res = client.put("/students/2", json={"name": " Bob ", "roll_number": "R-2"})
    assert res.status_code == 200
    assert res.json() == {"track_id": 2, "student": {"name": "Bob", "roll_number": "R-2"}}
    client.put("/students/1", json={"name": "Alice", "roll_number": "R-1"})

    listed = client.get("/students").json()
    assert [e["track_id"] for e in listed] == [1, 2]
    assert registry.get(2) == StudentInfo(name="Bob", roll_number="R-2")

    assert client.delete("/students/2").status_code == 204
    assert client.delete("/students/2").status_code == 404


def test_enroll_validation(client):
    app.dependency_overrides[get_enrollment] = lambda: EnrollmentRegistry()
    assert client.put("/students/1", json={"name": "   ", "roll_number": "R"}).status_code == 422
    assert client.put("/students/0", json={"name": "A", "roll_number": "R"}).status_code == 422


def test_attendance_listing(client):
    log = AttendanceLog()
    log.append(
        AttendanceRecord(
            track_id=1,
            student=StudentInfo(name="Alice", roll_number="R-1"),
            timestamp=100.0,
            emotion=Emotion.NEUTRAL,
        )
    )
    app.dependency_overrides[get_attendance] = lambda: log
    data = client.get("/attendance").json()
    assert data == [
        {
            "track_id": 1,
            "student": {"name": "Alice", "roll_number": "R-1"},
            "timestamp": 100.0,
            "emotion": "Neutral",
        }
    ]


def test_get_config_hides_api_key(client, monkeypatch: pytest.MonkeyPatch):
    monkeypatch.setattr(state, "_settings", AppSettings(gemini_api_key="secret"))
    data = client.get("/config").json()
    assert data["match_threshold"] == 0.4
    assert "gemini_api_key" not in data


def test_config_update(client, monkeypatch: pytest.MonkeyPatch):
    monkeypatch.setattr(state, "load_settings", lambda: AppSettings())
    monkeypatch.setattr(state, "_settings", None)
    monkeypatch.setattr(state, "_session", None)
    payload = {
        "video_source": "webcam",
        "gemini_model": "gemini-2.5-flash",
        "analysis_interval_s": 15.0,
        "max_inactivity_s": 25.0,
    }
    res = client.post("/config", json=payload)
    assert res.status_code == 200
    assert res.json()["analysis_interval_s"] == 15.0
    assert state.get_settings().max_inactivity_s == 25.0


def test_config_validation(client):
    payload = {
        "video_source": "rtsp",
        "gemini_model": "gemini-2.5-flash",
        "match_threshold": 1.5,
    }
    res = client.post("/config", json=payload)
    assert res.status_code == 422

"""Shared type definitions used across the service.

This module intentionally centralizes small, stable types (regions, detections,
tracks and per-cycle summaries) so detector/tracker/session code can stay
strongly typed.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum

import numpy as np

Frame = np.ndarray


class Emotion(str, Enum):
    HAPPY = "Happy"
    SAD = "Sad"
    ANGRY = "Angry"
    SURPRISED = "Surprised"
    NEUTRAL = "Neutral"
    DISGUSTED = "Disgusted"
    FEARFUL = "Fearful"


class HandSign(str, Enum):
    THUMBS_UP = "Thumbs Up"
    THUMBS_DOWN = "Thumbs Down"
    PEACE = "Peace"
    OK = "OK"
    FIST = "Fist"
    WAVE = "Wave"
    POINTING = "Pointing"
    HIGH_FIVE = "High Five"
    CALL_ME = "Call Me"
    CROSSED_FINGERS = "Crossed Fingers"
    LOVE = "Love"


@dataclass(frozen=True)
class Region:
    """Axis-aligned rectangle in the detector's coordinate space (top-left origin)."""

    x: float
    y: float
    width: float
    height: float


@dataclass
class StudentInfo:
    """Durable identity a track can be enrolled as."""

    name: str
    roll_number: str


@dataclass
class FaceDetection:
    """One face observed in the current cycle.

    `label` is the detector's own name for the person and is not stable across
    cycles. `track_id` is filled in by the reconciler.
    """

    region: Region
    label: str = ""
    emotion: Emotion | None = None
    confidence: float = 0.0
    track_id: int | None = None
    student: StudentInfo | None = None


@dataclass
class HandDetection:
    sign: HandSign
    confidence: float
    region: Region


@dataclass
class DetectionResult:
    """Full detector output for one frame."""

    faces: list[FaceDetection] = field(default_factory=list)
    hands: list[HandDetection] = field(default_factory=list)


@dataclass
class Track:
    """Reconciler state for one believed physical person."""

    track_id: int
    region: Region
    last_seen: float
    label: str = ""  # diagnostics only, never an identity key


@dataclass
class AttendanceRecord:
    track_id: int
    student: StudentInfo
    timestamp: float
    emotion: Emotion | None = None


@dataclass
class CycleSummary:
    """Payload published after each analysis cycle."""

    cycle_id: int
    timestamp: float
    faces: list[FaceDetection]
    hands: list[HandDetection]
    active_tracks: int
    error: str | None = None

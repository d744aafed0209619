from __future__ import annotations

import asyncio
import itertools
import logging
import threading
import time
from collections.abc import AsyncGenerator, Callable
from dataclasses import dataclass
from enum import Enum
from pathlib import Path

from rollcall.core.attendance.debounce import AttendanceDebouncer
from rollcall.core.attendance.registry import AttendanceLog, EnrollmentRegistry
from rollcall.core.config.settings import AppSettings
from rollcall.core.detectors.base import DetectionError, FaceDetector, RateLimitError
from rollcall.core.detectors.gemini import GeminiFaceDetector
from rollcall.core.trackers.face_tracker import FaceTrackReconciler
from rollcall.core.types import CycleSummary, Frame, Track
from rollcall.core.video_sources.base import FileSource, VideoSource, WebcamSource, encode_jpeg

logger = logging.getLogger(__name__)

RATE_LIMIT_MESSAGE = "API rate limit exceeded. Analysis is paused and will resume automatically."
ANALYSIS_FAILED_MESSAGE = "Could not analyze the frame. Retrying automatically..."


class SessionState(str, Enum):
    STOPPED = "stopped"
    IDLE = "idle"
    CAPTURING = "capturing"
    RECONCILING = "reconciling"
    RATE_LIMIT_PAUSED = "rate_limit_paused"


@dataclass
class SessionStatus:
    state: SessionState
    running: bool
    busy: bool
    paused_until: float | None
    active_tracks: int
    cycles: int
    error: str | None


class CaptureSession:
    """Runs the capture → detect → reconcile → attendance cycle on a fixed period.

    - a scheduler thread ticks every `analysis_interval_s`, waiting on a
      per-start `threading.Event` that `stop()` sets
    - each tick runs at most one cycle on a worker thread; ticks that fire while
      a cycle is in flight, or during a rate-limit pause, are skipped
    - a rate-limited detector pauses ticking for `rate_limit_pause_s`, after
      which the next tick resumes with an immediate cycle
    - `stop()` is a hard reset: tracks and ids are cleared and results of a
      cycle still in flight are discarded
    """

    def __init__(
        self,
        settings: AppSettings,
        detector: FaceDetector | None = None,
        source_factory: Callable[[AppSettings], VideoSource] | None = None,
        enrollment: EnrollmentRegistry | None = None,
        attendance: AttendanceLog | None = None,
        debouncer: AttendanceDebouncer | None = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.settings = settings
        self.detector = detector
        self._source_factory = source_factory
        self.enrollment = enrollment if enrollment is not None else EnrollmentRegistry()
        self.attendance = attendance if attendance is not None else AttendanceLog()
        self.debouncer = (
            debouncer
            if debouncer is not None
            else AttendanceDebouncer(cooldown_s=settings.attendance_cooldown_s)
        )
        self.reconciler = FaceTrackReconciler(
            match_threshold=settings.match_threshold,
            max_inactivity_s=settings.max_inactivity_s,
        )
        self._clock = clock

        self.source: VideoSource | None = None
        self.running = False
        self.last_error: str | None = None
        self._lock = threading.Lock()
        self._state = SessionState.STOPPED
        self._busy = False
        self._generation = 0
        self._paused_until: float | None = None
        self._cycle_ids = itertools.count(1)
        self._cycles = 0
        self._latest_summary: CycleSummary | None = None
        self._cycle_lock = threading.RLock()
        self._stop_event = threading.Event()
        self._wake = threading.Event()
        self._scheduler_thread: threading.Thread | None = None

    @property
    def state(self) -> SessionState:
        with self._lock:
            return self._state

    def _make_source(self) -> VideoSource:
        """Instantiate the configured `VideoSource`."""

        if self._source_factory is not None:
            return self._source_factory(self.settings)
        if self.settings.video_source == "file":
            if not self.settings.video_path:
                raise RuntimeError("video_path is required for a file source")
            video_path = Path(self.settings.video_path)
            if not video_path.exists():
                raise RuntimeError(f"Video path not found: {video_path}")
            return FileSource(str(video_path))
        return WebcamSource(self.settings.camera_index)

    def _make_detector(self) -> FaceDetector:
        return GeminiFaceDetector(
            api_key=self.settings.gemini_api_key or "",
            model_name=self.settings.gemini_model,
            endpoint=self.settings.gemini_endpoint,
            timeout_s=self.settings.request_timeout_s,
        )

    def _hard_reset(self) -> None:
        with self._cycle_lock:
            self.reconciler.reset()
            with self._lock:
                self._generation += 1
                self._paused_until = None
                self._latest_summary = None
                self.last_error = None

    def start(self) -> None:
        """Start capturing and ticking.

        Safe to call multiple times; subsequent calls while running are ignored.
        """

        if self.running:
            return
        self._hard_reset()
        try:
            if self.detector is None:
                self.detector = self._make_detector()
            self.source = self._make_source()
        except Exception:
            self.last_error = "Failed to initialize capture session"
            logger.exception(self.last_error)
            return

        self._stop_event = threading.Event()
        self._wake = threading.Event()
        with self._lock:
            self.running = True
            self._state = SessionState.IDLE
        self._scheduler_thread = threading.Thread(
            target=self._schedule_loop, args=(self._stop_event, self._wake), daemon=True
        )
        self._scheduler_thread.start()
        logger.info("Capture session started (interval=%.1fs)", self.settings.analysis_interval_s)

    def stop(self) -> None:
        """Stop ticking, cancel any rate-limit pause and forget all tracks."""

        self._stop_event.set()
        self._wake.set()
        if self._scheduler_thread and self._scheduler_thread.is_alive():
            self._scheduler_thread.join(timeout=2)
        self._scheduler_thread = None
        # Waits for an in-flight reconcile so the table is empty on return.
        with self._cycle_lock:
            with self._lock:
                was_running = self.running
                self.running = False
                self._state = SessionState.STOPPED
            self._hard_reset()
        if self.source:
            self.source.close()
            self.source = None
        if was_running:
            logger.info("Capture session stopped")

    def _next_delay(self) -> float:
        interval = self.settings.analysis_interval_s
        with self._lock:
            paused_until = self._paused_until
        if paused_until is None:
            return interval
        return max(0.0, min(interval, paused_until - self._clock()))

    def _schedule_loop(self, stop_event: threading.Event, wake: threading.Event) -> None:
        """Tick, then sleep until the next tick is due.

        `wake` cuts the sleep short so the delay is recomputed, either because
        a rate-limit pause began or because the session is stopping.
        """

        logger.debug("Scheduler loop started")
        while not stop_event.is_set():
            wake.clear()
            self.tick()
            wake.wait(self._next_delay())

    def tick(self, now: float | None = None) -> bool:
        """Dispatch one cycle on a worker thread unless busy, paused or stopped.

        Returns True when a cycle was dispatched.
        """

        now = self._clock() if now is None else now
        with self._lock:
            if not self.running:
                return False
            if self._state == SessionState.RATE_LIMIT_PAUSED:
                if self._paused_until is not None and now < self._paused_until:
                    return False
                self._paused_until = None
                self._state = SessionState.IDLE
                self.last_error = None
                logger.info("Rate-limit pause over; resuming analysis")
        generation = self._begin_cycle()
        if generation is None:
            return False
        worker = threading.Thread(target=self._execute, args=(generation,), daemon=True)
        worker.start()
        return True

    def run_cycle(self, frame: Frame | None = None, now: float | None = None) -> CycleSummary | None:
        """Run one cycle synchronously.

        Returns the published summary, or None when the cycle was skipped (a
        cycle is already in flight, or no frame is available).
        """

        generation = self._begin_cycle()
        if generation is None:
            return None
        return self._execute(generation, frame=frame, now=now)

    def _begin_cycle(self) -> int | None:
        with self._lock:
            if self._busy:
                return None
            self._busy = True
            self._state = SessionState.CAPTURING
            return self._generation

    def _end_cycle(self) -> None:
        with self._lock:
            self._busy = False
            if self._state in (SessionState.CAPTURING, SessionState.RECONCILING):
                self._state = SessionState.IDLE if self.running else SessionState.STOPPED

    def _execute(
        self, generation: int, frame: Frame | None = None, now: float | None = None
    ) -> CycleSummary | None:
        try:
            return self._cycle(generation, frame, now)
        finally:
            self._end_cycle()

    def _cycle(self, generation: int, frame: Frame | None, now: float | None) -> CycleSummary | None:
        if frame is None and self.source is not None:
            frame = self.source.read()
        if frame is None:
            logger.debug("No frame available; skipping cycle")
            return None
        image = encode_jpeg(frame, self.settings.jpeg_quality)
        if image is None:
            logger.warning("JPEG encoding failed; skipping cycle")
            return None

        try:
            if self.detector is None:
                self.detector = self._make_detector()
            result = self.detector.detect(image)
        except RateLimitError:
            return self._on_rate_limited(generation)
        except DetectionError:
            logger.warning("Detection failed; abandoning cycle", exc_info=True)
            return self._on_failed(generation, ANALYSIS_FAILED_MESSAGE)
        except Exception:
            logger.exception("Detector raised unexpectedly; abandoning cycle")
            return self._on_failed(generation, ANALYSIS_FAILED_MESSAGE)

        # Held from the generation check through publish; stop() takes it too.
        with self._cycle_lock:
            with self._lock:
                if generation != self._generation:
                    logger.debug("Discarding result of a cycle started before the last reset")
                    return None
                self._state = SessionState.RECONCILING

            now = self._clock() if now is None else now
            faces = self.reconciler.reconcile(result.faces, now)
            self.debouncer.process(faces, self.enrollment, self.attendance, now)
            summary = CycleSummary(
                cycle_id=next(self._cycle_ids),
                timestamp=now,
                faces=faces,
                hands=result.hands,
                active_tracks=len(self.reconciler.snapshot()),
            )
            with self._lock:
                self._latest_summary = summary
                self._cycles += 1
                self.last_error = None
        return summary

    def _on_failed(self, generation: int, message: str) -> CycleSummary | None:
        with self._cycle_lock, self._lock:
            if generation != self._generation:
                return None
            self.last_error = message
            summary = CycleSummary(
                cycle_id=next(self._cycle_ids),
                timestamp=self._clock(),
                faces=[],
                hands=[],
                active_tracks=len(self.reconciler.snapshot()),
                error=message,
            )
            self._latest_summary = summary
        return summary

    def _on_rate_limited(self, generation: int) -> CycleSummary | None:
        pause = self.settings.rate_limit_pause_s
        with self._cycle_lock:
            summary = self._on_failed(generation, RATE_LIMIT_MESSAGE)
            if summary is None:
                return None
            with self._lock:
                self._paused_until = self._clock() + pause
                self._state = SessionState.RATE_LIMIT_PAUSED
        # The scheduler may be sleeping a full interval; make it re-arm for the pause end.
        self._wake.set()
        logger.warning("Detector rate limited; pausing analysis for %.0fs", pause)
        return summary

    def latest_summary(self) -> CycleSummary | None:
        """Return the most recently published cycle summary."""

        with self._lock:
            return self._latest_summary

    def tracks(self) -> dict[int, Track]:
        return self.reconciler.snapshot()

    def status(self) -> SessionStatus:
        active = len(self.reconciler.snapshot())
        with self._lock:
            return SessionStatus(
                state=self._state,
                running=self.running,
                busy=self._busy,
                paused_until=self._paused_until,
                active_tracks=active,
                cycles=self._cycles,
                error=self.last_error,
            )

    async def metadata_stream(self) -> AsyncGenerator[CycleSummary, None]:
        """Yield each new cycle summary for WebSocket streaming."""

        last_id = -1
        while True:
            summary = self.latest_summary()
            if summary and summary.cycle_id != last_id:
                last_id = summary.cycle_id
                yield summary
            await asyncio.sleep(0.1)

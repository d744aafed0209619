"""Video source abstractions.

The session consumes frames through a small interface (`VideoSource`) so the
capture implementation (webcam/file) can be swapped without affecting the
analysis cycle.
"""

from __future__ import annotations

import logging
import threading
import time
from abc import ABC, abstractmethod

import cv2

from rollcall.core.types import Frame

logger = logging.getLogger(__name__)


class VideoSource(ABC):
    """Base interface for anything that can produce video frames."""

    @abstractmethod
    def read(self) -> Frame | None:
        """Return the next frame, or `None` when unavailable."""

        raise NotImplementedError

    @abstractmethod
    def close(self) -> None:
        """Release any underlying resources."""

        raise NotImplementedError


class OpenCVSource(VideoSource):
    """A `VideoSource` backed by `cv2.VideoCapture`."""

    def __init__(self, source: str | int) -> None:
        self.cap = cv2.VideoCapture(source)
        if not self.cap.isOpened():
            raise RuntimeError(f"Failed to open video source: {source}")

    def read(self) -> Frame | None:
        """Read the next frame from the underlying OpenCV capture."""

        ok, frame = self.cap.read()
        if not ok:
            return None
        return frame

    def close(self) -> None:
        """Release the underlying OpenCV capture."""

        self.cap.release()


class WebcamSource(OpenCVSource):
    """Webcam capture that always hands out the most recent frame.

    Analysis cycles are seconds apart, so a reader thread keeps draining the
    driver buffer and only the newest frame is kept.
    """

    def __init__(self, index: int = 0, width: int = 1280, height: int = 720) -> None:
        super().__init__(index)
        self.cap.set(cv2.CAP_PROP_FRAME_WIDTH, width)
        self.cap.set(cv2.CAP_PROP_FRAME_HEIGHT, height)
        try:
            self.cap.set(cv2.CAP_PROP_BUFFERSIZE, 1)
        except Exception:
            pass
        logger.info("Opened camera index=%s", index)

        self._lock = threading.Lock()
        self._running = True
        self._latest_frame: Frame | None = None
        self._reader_thread = threading.Thread(target=self._reader_loop, daemon=True)
        self._reader_thread.start()

    def _reader_loop(self) -> None:
        """Continuously drain the driver buffer and keep only the newest frame."""

        while self._running:
            ok, frame = self.cap.read()
            if ok:
                with self._lock:
                    self._latest_frame = frame
            else:
                time.sleep(0.01)

    def read(self) -> Frame | None:
        """Return the most recent frame captured by the background reader."""

        with self._lock:
            return self._latest_frame

    def close(self) -> None:
        """Stop the background reader thread and release the camera."""

        self._running = False
        try:
            if self._reader_thread.is_alive():
                self._reader_thread.join(timeout=1)
        finally:
            self.cap.release()


class FileSource(OpenCVSource):
    """Video file source; rewinds to the first frame at EOF."""

    def __init__(self, path: str) -> None:
        self._path = path
        super().__init__(path)

    def read(self) -> Frame | None:
        """Read the next frame; when EOF is reached, rewind and continue."""

        ok, frame = self.cap.read()
        if ok:
            return frame
        if not self.cap.set(cv2.CAP_PROP_POS_FRAMES, 0):
            return None
        ok, frame = self.cap.read()
        if not ok:
            return None
        return frame


def encode_jpeg(frame: Frame, quality: int = 80) -> bytes | None:
    """JPEG-encode a frame for the detection provider (`None` if encoding fails)."""

    ok, buf = cv2.imencode(".jpg", frame, [int(cv2.IMWRITE_JPEG_QUALITY), int(quality)])
    if not ok:
        return None
    return buf.tobytes()

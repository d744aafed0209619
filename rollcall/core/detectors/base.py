"""Detection provider contract.

The session only depends on `FaceDetector.detect()` and on the two error
kinds below; how detection is done is up to the provider.
"""

from __future__ import annotations

from typing import Protocol

from rollcall.core.types import DetectionResult


class DetectionError(RuntimeError):
    """The provider could not produce a result for this frame."""


class RateLimitError(DetectionError):
    """The provider rejected the request because of its rate limit."""


class FaceDetector(Protocol):
    def detect(self, image: bytes) -> DetectionResult:
        """Detect faces and hands in a JPEG-encoded frame."""
        ...

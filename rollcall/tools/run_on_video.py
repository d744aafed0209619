from __future__ import annotations

import argparse
import json
import logging
from dataclasses import asdict
from pathlib import Path

import cv2

from rollcall.api.services.session import CaptureSession
from rollcall.core.config.settings import AppSettings
from rollcall.core.detectors.gemini import GeminiFaceDetector
from rollcall.core.types import DetectionResult, FaceDetection, Region


class _MockDetector:
    """Reports one face in the middle of every frame (no API calls)."""

    def detect(self, image: bytes) -> DetectionResult:
        face = FaceDetection(region=Region(0.25, 0.25, 0.5, 0.5), label="Person", confidence=1.0)
        return DetectionResult(faces=[face])


def run(args):
    cap = cv2.VideoCapture(args.input)
    if not cap.isOpened():
        raise SystemExit(f"Cannot open video {args.input}")
    settings = AppSettings(
        match_threshold=args.match_threshold,
        max_inactivity_s=args.max_inactivity,
    )
    detector = (
        _MockDetector()
        if args.mock
        else GeminiFaceDetector(args.api_key or settings.gemini_api_key or "", model_name=args.model)
    )
    session = CaptureSession(settings, detector=detector)
    fps = cap.get(cv2.CAP_PROP_FPS) or 25.0
    every = max(1, args.every)
    outputs = []
    index = 0
    while True:
        ok, frame = cap.read()
        if not ok:
            break
        if index % every == 0:
            # Video time stands in for wall-clock time so expiry follows the clip.
            summary = session.run_cycle(frame=frame, now=index / fps)
            if summary is not None:
                outputs.append(asdict(summary))
            if args.max_cycles and len(outputs) >= args.max_cycles:
                break
        index += 1
    cap.release()
    out_path = Path(args.output)
    out_path.parent.mkdir(parents=True, exist_ok=True)
    with open(out_path, "w", encoding="utf-8") as f:
        json.dump(outputs, f, indent=2)
    print(f"Wrote {len(outputs)} cycle summaries to {out_path}")


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO)
    parser = argparse.ArgumentParser(description="Run face tracking cycles on a video")
    parser.add_argument("--input", required=True, help="Path to video file")
    parser.add_argument("--output", required=True, help="Where to save JSON output")
    parser.add_argument("--every", type=int, default=30, help="Analyze one frame out of N")
    parser.add_argument("--model", default="gemini-2.5-flash")
    parser.add_argument("--api-key", default=None, help="Gemini API key (or RCV_GEMINI_API_KEY)")
    parser.add_argument("--match-threshold", type=float, default=0.4)
    parser.add_argument("--max-inactivity", type=float, default=20.0, help="Seconds")
    parser.add_argument("--max-cycles", type=int, default=0, help="Limit cycles for quick tests")
    parser.add_argument(
        "--mock", action="store_true", help="Use a fixed dummy detector (no API calls)"
    )
    run(parser.parse_args())

"""Gemini multimodal detector integration.

Frames are sent inline to the `generateContent` REST endpoint together with a
JSON response schema, so the model answers with faces (label, emotion,
confidence, normalized bounding box) and hand signs.
"""

from __future__ import annotations

import base64
import logging
from typing import Any

import requests
from pydantic import BaseModel, ValidationError

from rollcall.core.detectors.base import DetectionError, RateLimitError
from rollcall.core.types import (
    DetectionResult,
    Emotion,
    FaceDetection,
    HandDetection,
    HandSign,
    Region,
)

logger = logging.getLogger(__name__)

GEMINI_DEFAULT_MODEL = "gemini-2.5-flash"
GEMINI_DEFAULT_ENDPOINT = "https://generativelanguage.googleapis.com/v1beta"

PROMPT = """
Analyze the provided image to identify all human faces and a variety of nuanced hand gestures.
Your response must strictly adhere to the defined JSON schema.
- Identify each person with a short, descriptive identifier (e.g., 'Person with glasses'). Be consistent for the same person if possible.
- Detect the dominant emotion for each face.
- Classify any visible hand signs.
- Provide a confidence score and a normalized bounding box for each detection.
If no faces or hands are detected, return empty arrays for "faces" and "hands" respectively.
"""

_BOX_SCHEMA: dict[str, Any] = {
    "type": "OBJECT",
    "properties": {
        "x": {"type": "NUMBER"},
        "y": {"type": "NUMBER"},
        "width": {"type": "NUMBER"},
        "height": {"type": "NUMBER"},
    },
    "required": ["x", "y", "width", "height"],
}

RESPONSE_SCHEMA: dict[str, Any] = {
    "type": "OBJECT",
    "properties": {
        "faces": {
            "type": "ARRAY",
            "items": {
                "type": "OBJECT",
                "properties": {
                    "personId": {
                        "type": "STRING",
                        "description": "A short, descriptive identifier for the person.",
                    },
                    "emotion": {
                        "type": "STRING",
                        "enum": [e.value for e in Emotion],
                        "description": "The detected dominant emotion.",
                    },
                    "confidence": {
                        "type": "NUMBER",
                        "description": "Confidence score from 0.0 to 1.0.",
                    },
                    "boundingBox": _BOX_SCHEMA,
                },
                "required": ["personId", "emotion", "confidence", "boundingBox"],
            },
        },
        "hands": {
            "type": "ARRAY",
            "items": {
                "type": "OBJECT",
                "properties": {
                    "sign": {
                        "type": "STRING",
                        "enum": [s.value for s in HandSign],
                        "description": "The classification of the hand sign.",
                    },
                    "confidence": {
                        "type": "NUMBER",
                        "description": "Confidence score from 0.0 to 1.0.",
                    },
                    "boundingBox": _BOX_SCHEMA,
                },
                "required": ["sign", "confidence", "boundingBox"],
            },
        },
    },
    "required": ["faces", "hands"],
}


class _BoxPayload(BaseModel):
    x: float
    y: float
    width: float
    height: float


class _FacePayload(BaseModel):
    personId: str
    emotion: str | None = None
    confidence: float = 0.0
    boundingBox: _BoxPayload


class _HandPayload(BaseModel):
    sign: str
    confidence: float = 0.0
    boundingBox: _BoxPayload


class _ResultPayload(BaseModel):
    faces: list[_FacePayload]
    hands: list[_HandPayload]


def _region(box: _BoxPayload) -> Region:
    return Region(x=box.x, y=box.y, width=box.width, height=box.height)


def _emotion(value: str | None) -> Emotion | None:
    if value is None:
        return None
    try:
        return Emotion(value)
    except ValueError:
        return None


def parse_detection_payload(text: str) -> DetectionResult:
    """Parse the model's JSON answer into a `DetectionResult`.

    Unknown emotions become `None` and unknown hand signs are dropped. A payload
    that does not match the schema raises `DetectionError`.
    """

    try:
        payload = _ResultPayload.model_validate_json(text.strip())
    except ValidationError as exc:
        raise DetectionError("Invalid response structure from API after parsing") from exc

    faces = [
        FaceDetection(
            region=_region(face.boundingBox),
            label=face.personId,
            emotion=_emotion(face.emotion),
            confidence=face.confidence,
        )
        for face in payload.faces
    ]
    hands: list[HandDetection] = []
    for hand in payload.hands:
        try:
            sign = HandSign(hand.sign)
        except ValueError:
            logger.debug("Dropping unknown hand sign %r", hand.sign)
            continue
        hands.append(HandDetection(sign=sign, confidence=hand.confidence, region=_region(hand.boundingBox)))
    return DetectionResult(faces=faces, hands=hands)


def _is_rate_limited(status_code: int, body: str) -> bool:
    return status_code == 429 or "RESOURCE_EXHAUSTED" in body


class GeminiFaceDetector:
    """Face/hand detector backed by the Gemini REST API.

    Raises `RateLimitError` when the API reports quota exhaustion and
    `DetectionError` for every other failure.
    """

    def __init__(
        self,
        api_key: str,
        model_name: str = GEMINI_DEFAULT_MODEL,
        endpoint: str = GEMINI_DEFAULT_ENDPOINT,
        timeout_s: float = 30.0,
    ) -> None:
        if not api_key:
            raise ValueError("A Gemini API key is required")
        self.api_key = api_key
        self.model_name = model_name
        self.endpoint = endpoint.rstrip("/")
        self.timeout_s = timeout_s

    @property
    def url(self) -> str:
        return f"{self.endpoint}/models/{self.model_name}:generateContent"

    def _request_body(self, image: bytes) -> dict[str, Any]:
        return {
            "contents": [
                {
                    "parts": [
                        {
                            "inline_data": {
                                "mime_type": "image/jpeg",
                                "data": base64.b64encode(image).decode("ascii"),
                            }
                        },
                        {"text": PROMPT},
                    ]
                }
            ],
            "generationConfig": {
                "responseMimeType": "application/json",
                "responseSchema": RESPONSE_SCHEMA,
            },
        }

    def detect(self, image: bytes) -> DetectionResult:
        """Send one JPEG frame to Gemini and parse the structured answer."""

        try:
            response = requests.post(
                self.url,
                headers={"x-goog-api-key": self.api_key, "Content-Type": "application/json"},
                json=self._request_body(image),
                timeout=self.timeout_s,
            )
        except requests.RequestException as exc:
            raise DetectionError("Failed to get detection result from the API.") from exc

        if response.status_code != 200:
            body = response.text or ""
            if _is_rate_limited(response.status_code, body):
                logger.error("Gemini API error: rate limit exceeded")
                raise RateLimitError("RATE_LIMIT")
            logger.error("Gemini API error: HTTP %s", response.status_code)
            raise DetectionError("Failed to get detection result from the API.")

        try:
            data = response.json()
            text = data["candidates"][0]["content"]["parts"][0]["text"]
        except (ValueError, KeyError, IndexError, TypeError) as exc:
            raise DetectionError("Unexpected response envelope from the API") from exc
        if not isinstance(text, str):
            raise DetectionError("Unexpected response envelope from the API")
        return parse_detection_payload(text)

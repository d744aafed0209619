import json

import pytest
import requests

import rollcall.core.detectors.gemini as gemini
from rollcall.core.detectors.base import DetectionError, RateLimitError
from rollcall.core.types import Emotion, HandSign, Region


class _Response:
    def __init__(self, status_code=200, payload=None, text=None):
        self.status_code = status_code
        self._payload = payload
        self.text = text if text is not None else json.dumps(payload)

    def json(self):
        if self._payload is None:
            raise ValueError("no json")
        return self._payload


def _envelope(model_answer: dict) -> dict:
    return {"candidates": [{"content": {"parts": [{"text": json.dumps(model_answer)}]}}]}


ANSWER = {
    "faces": [
        {
            "personId": "Person with glasses",
            "emotion": "Happy",
            "confidence": 0.93,
            "boundingBox": {"x": 0.1, "y": 0.2, "width": 0.15, "height": 0.2},
        },
        {
            "personId": "Person in red",
            "emotion": "Bored",
            "confidence": 0.7,
            "boundingBox": {"x": 0.6, "y": 0.2, "width": 0.1, "height": 0.15},
        },
    ],
    "hands": [
        {"sign": "Thumbs Up", "confidence": 0.8, "boundingBox": {"x": 0.3, "y": 0.5, "width": 0.05, "height": 0.05}},
        {"sign": "Jazz Hands", "confidence": 0.4, "boundingBox": {"x": 0.0, "y": 0.0, "width": 0.1, "height": 0.1}},
    ],
}


def test_parse_detection_payload_maps_faces_and_hands():
    result = gemini.parse_detection_payload(json.dumps(ANSWER))

    assert len(result.faces) == 2
    first = result.faces[0]
    assert first.label == "Person with glasses"
    assert first.emotion is Emotion.HAPPY
    assert first.region == Region(0.1, 0.2, 0.15, 0.2)
    assert first.track_id is None
    # Unknown emotion degrades to None; unknown hand sign is dropped.
    assert result.faces[1].emotion is None
    assert [h.sign for h in result.hands] == [HandSign.THUMBS_UP]


def test_parse_detection_payload_rejects_bad_structure():
    with pytest.raises(DetectionError):
        gemini.parse_detection_payload('{"faces": []}')
    with pytest.raises(DetectionError):
        gemini.parse_detection_payload("not json")


def test_detector_requires_api_key():
    with pytest.raises(ValueError):
        gemini.GeminiFaceDetector(api_key="")


def test_detect_posts_frame_and_parses_answer(monkeypatch: pytest.MonkeyPatch):
    calls = {}

    def _post(url, headers=None, json=None, timeout=None):
        calls["url"] = url
        calls["headers"] = headers
        calls["json"] = json
        calls["timeout"] = timeout
        return _Response(payload=_envelope(ANSWER))

    monkeypatch.setattr(gemini.requests, "post", _post)
    detector = gemini.GeminiFaceDetector(api_key="k", timeout_s=5.0)
    result = detector.detect(b"\xff\xd8jpeg")

    assert len(result.faces) == 2
    assert calls["url"].endswith("/models/gemini-2.5-flash:generateContent")
    assert calls["headers"]["x-goog-api-key"] == "k"
    assert calls["timeout"] == 5.0
    parts = calls["json"]["contents"][0]["parts"]
    assert parts[0]["inline_data"]["mime_type"] == "image/jpeg"
    assert calls["json"]["generationConfig"]["responseSchema"] is gemini.RESPONSE_SCHEMA


@pytest.mark.parametrize(
    "response",
    [
        _Response(status_code=429, payload={"error": {"code": 429}}),
        _Response(status_code=400, text='{"error": {"status": "RESOURCE_EXHAUSTED"}}'),
    ],
)
def test_detect_maps_quota_errors_to_rate_limit(monkeypatch: pytest.MonkeyPatch, response):
    monkeypatch.setattr(gemini.requests, "post", lambda *_a, **_k: response)
    detector = gemini.GeminiFaceDetector(api_key="k")
    with pytest.raises(RateLimitError):
        detector.detect(b"jpeg")


def test_detect_maps_other_failures_to_detection_error(monkeypatch: pytest.MonkeyPatch):
    detector = gemini.GeminiFaceDetector(api_key="k")

    monkeypatch.setattr(gemini.requests, "post", lambda *_a, **_k: _Response(status_code=500, text="boom"))
    with pytest.raises(DetectionError) as exc_info:
        detector.detect(b"jpeg")
    assert not isinstance(exc_info.value, RateLimitError)

    def _raise(*_a, **_k):
        raise requests.ConnectionError("offline")

    monkeypatch.setattr(gemini.requests, "post", _raise)
    with pytest.raises(DetectionError):
        detector.detect(b"jpeg")

    monkeypatch.setattr(gemini.requests, "post", lambda *_a, **_k: _Response(payload={"candidates": []}))
    with pytest.raises(DetectionError):
        detector.detect(b"jpeg")

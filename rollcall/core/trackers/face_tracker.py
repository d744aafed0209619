from __future__ import annotations

import itertools
import logging
import threading
from dataclasses import replace

from rollcall.core.trackers.similarity import overlap_score
from rollcall.core.types import FaceDetection, Track

logger = logging.getLogger(__name__)

DEFAULT_MATCH_THRESHOLD = 0.4
DEFAULT_MAX_INACTIVITY_S = 20.0


class FaceTrackReconciler:
    """Keeps durable track ids for faces across analysis cycles.

    Each existing track, in table insertion order, greedily takes the unused
    detection with the highest overlap score strictly above `match_threshold`.
    Older tracks therefore get first pick of ambiguous detections. Leftover
    detections open new tracks; unmatched tracks survive until they have not
    been seen for more than `max_inactivity_s` seconds. Ids are never reused
    until `reset()`.
    """

    def __init__(
        self,
        match_threshold: float = DEFAULT_MATCH_THRESHOLD,
        max_inactivity_s: float = DEFAULT_MAX_INACTIVITY_S,
    ) -> None:
        self.match_threshold = match_threshold
        self.max_inactivity_s = max_inactivity_s
        self.tracks: dict[int, Track] = {}
        self._id_iter = itertools.count(1)
        self._lock = threading.Lock()

    def reconcile(self, detections: list[FaceDetection], now: float) -> list[FaceDetection]:
        """Stamp `track_id` on every detection and replace the track table."""

        detections_list = detections if isinstance(detections, list) else list(detections)

        with self._lock:
            previous = self.tracks
            used: set[int] = set()
            matched: list[tuple[int, int]] = []

            for tid, track in previous.items():
                best_index = -1
                best_score = 0.0
                for di, det in enumerate(detections_list):
                    if di in used:
                        continue
                    score = overlap_score(track.region, det.region)
                    if score > best_score and score > self.match_threshold:
                        best_score = score
                        best_index = di
                if best_index != -1:
                    matched.append((tid, best_index))
                    used.add(best_index)

            new_tracks: dict[int, Track] = {}
            for tid, di in matched:
                det = detections_list[di]
                new_tracks[tid] = Track(
                    track_id=tid, region=det.region, last_seen=now, label=det.label
                )
                det.track_id = tid

            for di, det in enumerate(detections_list):
                if di in used:
                    continue
                new_id = next(self._id_iter)
                new_tracks[new_id] = Track(
                    track_id=new_id, region=det.region, last_seen=now, label=det.label
                )
                det.track_id = new_id
                logger.debug("Track %s created (label=%r)", new_id, det.label)

            for tid, track in previous.items():
                if tid in new_tracks:
                    continue
                if now - track.last_seen <= self.max_inactivity_s:
                    new_tracks[tid] = track
                else:
                    logger.debug("Track %s expired", tid)

            self.tracks = new_tracks

        return detections_list

    def reset(self) -> None:
        """Forget every track and restart ids at 1."""

        with self._lock:
            self.tracks = {}
            self._id_iter = itertools.count(1)

    def snapshot(self) -> dict[int, Track]:
        """Return a copy of the current track table."""

        with self._lock:
            return {tid: replace(track) for tid, track in self.tracks.items()}

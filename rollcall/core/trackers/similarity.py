from __future__ import annotations

import math

from rollcall.core.types import Region


def overlap_score(a: Region, b: Region) -> float:
    """Compute the intersection-over-union (IoU) of two axis-aligned regions.

    Regions with a non-positive width or height score 0.0, and so does any
    ratio that does not come out finite.
    """

    if a.width <= 0 or a.height <= 0 or b.width <= 0 or b.height <= 0:
        return 0.0

    xA = max(a.x, b.x)
    yA = max(a.y, b.y)
    xB = min(a.x + a.width, b.x + b.width)
    yB = min(a.y + a.height, b.y + b.height)
    interArea = max(0.0, xB - xA) * max(0.0, yB - yA)
    union = a.width * a.height + b.width * b.height - interArea
    if union <= 0:
        return 0.0
    score = interArea / float(union)
    if not math.isfinite(score):
        return 0.0
    return score

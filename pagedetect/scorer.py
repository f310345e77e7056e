"""
Confidence Scorer

Combines one detector's matches into a single 0-100 confidence.
Separated from engine.py so strategies can be swapped per run.

Strategies:
  max       highest single match confidence
  average   unweighted mean of match confidences
  weighted  mean weighted by how reliable each channel is:
            cookies 1.2, headers 1.1, content 1.0, urls 0.95, dom 0.9

Matches without a confidence are ignored by all three. Results are
rounded half-up to an int. An empty match list scores 0.

This averages MATCHES within one detection. The cache's
overall_confidence() averages DETECTIONS within one page.
"""

from __future__ import annotations

import logging
import math
from dataclasses import replace
from enum import Enum
from typing import Iterable, Sequence, Union

from pagedetect.results import Match

logger = logging.getLogger(__name__)


class ConfidenceMethod(str, Enum):
    MAX = "max"
    AVERAGE = "average"
    WEIGHTED = "weighted"


CHANNEL_WEIGHTS: dict[str, float] = {
    "cookies": 1.2,
    "headers": 1.1,
    "content": 1.0,
    "urls": 0.95,
    "dom": 0.9,
}
DEFAULT_CHANNEL_WEIGHT = 1.0


def round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def resolve_method(method: Union[str, ConfidenceMethod, None]) -> ConfidenceMethod:
    """Parse a method name, falling back to max for anything unknown."""
    if isinstance(method, ConfidenceMethod):
        return method
    if method is None:
        return ConfidenceMethod.MAX
    try:
        return ConfidenceMethod(str(method).lower())
    except ValueError:
        logger.warning("Unknown confidence method %r, using max", method,
                       extra={"method": str(method)})
        return ConfidenceMethod.MAX


def max_confidence(matches: Iterable[Match]) -> int:
    return max((m.confidence for m in matches if m.confidence), default=0)


def average_confidence(matches: Iterable[Match]) -> int:
    scores = [m.confidence for m in matches if m.confidence]
    if not scores:
        return 0
    return round_half_up(sum(scores) / len(scores))


def weighted_confidence(matches: Iterable[Match]) -> int:
    weighted_sum = 0.0
    total_weight = 0.0
    for m in matches:
        if not m.confidence or not m.channel:
            continue
        weight = CHANNEL_WEIGHTS.get(m.channel, DEFAULT_CHANNEL_WEIGHT)
        weighted_sum += m.confidence * weight
        total_weight += weight
    if total_weight == 0:
        return 0
    return round_half_up(weighted_sum / total_weight)


_STRATEGIES = {
    ConfidenceMethod.MAX: max_confidence,
    ConfidenceMethod.AVERAGE: average_confidence,
    ConfidenceMethod.WEIGHTED: weighted_confidence,
}


def aggregate(
    matches: Sequence[Match],
    method: Union[str, ConfidenceMethod, None] = ConfidenceMethod.MAX,
) -> int:
    """Overall confidence (0-100) of one detection's matches."""
    if not matches:
        return 0
    return _STRATEGIES[resolve_method(method)](matches)


def confidence_level(score: int) -> str:
    """Bucket a score: >=90 high, >=70 medium, else low."""
    if score >= 90:
        return "high"
    if score >= 70:
        return "medium"
    return "low"


def adjust_confidence(matches: Sequence[Match], factor: float) -> list[Match]:
    """Scale every match confidence by factor, clamped to [0, 100]."""
    return [
        replace(m, confidence=max(0, min(100, round_half_up((m.confidence or 0) * factor))))
        for m in matches
    ]

"""
Detection Engine — Rule Catalog x Signal Bundle -> Detections

For every enabled detector, in catalog order (categories, then
detectors within each category):
  1. run the five channel evaluators
  2. aggregate the matches into one confidence
  3. emit a Detection if confidence > 0

The engine is synchronous and does no I/O. It never mutates the
catalog or the bundle. Output keeps catalog order; use
rank_detections() when a ranked list is needed.
"""

from __future__ import annotations

import logging
import time
from typing import Any, Mapping, Optional, Sequence, Union

from pagedetect.catalog import RuleCatalog
from pagedetect.channels import CHANNEL_EVALUATORS
from pagedetect.config import settings
from pagedetect.errors import NotConfigured
from pagedetect.results import Detection, DetectorMeta, Match
from pagedetect.schemas.rules import Detector
from pagedetect.schemas.signals import SignalBundle
from pagedetect.scorer import ConfidenceMethod, aggregate, resolve_method

logger = logging.getLogger(__name__)


def _as_bundle(bundle: Union[SignalBundle, Mapping[str, Any]]) -> SignalBundle:
    if isinstance(bundle, SignalBundle):
        return bundle
    return SignalBundle.model_validate(bundle or {})


class DetectionEngine:
    """Runs a rule catalog against signal bundles."""

    def __init__(self, method: Union[str, ConfidenceMethod, None] = None):
        self._catalog: Optional[RuleCatalog] = None
        self._method = resolve_method(method or settings.CONFIDENCE_METHOD)

    @property
    def method(self) -> ConfidenceMethod:
        return self._method

    @property
    def catalog(self) -> Optional[RuleCatalog]:
        return self._catalog

    def set_method(self, method: Union[str, ConfidenceMethod]) -> None:
        """Switch the aggregation strategy. Unknown names keep the current one."""
        if isinstance(method, ConfidenceMethod):
            self._method = method
            return
        try:
            self._method = ConfidenceMethod(str(method).lower())
        except ValueError:
            logger.warning(
                "Unknown confidence method %r, keeping %s", method, self._method.value,
                extra={"method": str(method)},
            )

    def set_detectors(self, catalog: Union[RuleCatalog, Mapping[str, Mapping[str, Any]]]) -> None:
        """Install the rule catalog. Raw dicts are validated first."""
        if not isinstance(catalog, RuleCatalog):
            catalog = RuleCatalog.from_dict(catalog)
        self._catalog = catalog

    def run_detector(
        self,
        detector: Detector,
        bundle: Union[SignalBundle, Mapping[str, Any]],
        category: str = "",
        detector_id: str = "",
        method: Union[str, ConfidenceMethod, None] = None,
    ) -> Detection:
        """Evaluate one detector against a bundle. Always returns a Detection."""
        bundle = _as_bundle(bundle)
        matches: list[Match] = []
        for channel, evaluate in CHANNEL_EVALUATORS.items():
            matches.extend(evaluate(getattr(detector.detection, channel), bundle))

        confidence = aggregate(matches, method or self._method)
        meta = DetectorMeta(
            id=detector.id or detector_id,
            name=detector.name or detector_id,
            category=category or detector.category,
            color=detector.color,
            icon=detector.icon,
            description=detector.description,
        )
        return Detection(detector=meta, matches=matches, confidence=confidence)

    def run(self, bundle: Union[SignalBundle, Mapping[str, Any]]) -> list[Detection]:
        """
        Run every enabled detector against the bundle.

        Raises:
            NotConfigured: set_detectors() has not been called.
        """
        if self._catalog is None:
            logger.error("Detection run requested before detectors were set")
            raise NotConfigured()

        bundle = _as_bundle(bundle)
        started = time.monotonic()
        detections: list[Detection] = []

        for category, detector_id, detector in self._catalog.iter_detectors():
            if not detector.enabled:
                logger.debug("Skipping disabled detector %s", detector_id,
                             extra={"detector": detector_id})
                continue

            detection = self.run_detector(detector, bundle, category, detector_id)
            if detection.detected:
                logger.debug(
                    "Detected %s (confidence %d)", detection.detector.name, detection.confidence,
                    extra={"detector": detector_id, "category": category,
                           "confidence": detection.confidence},
                )
                detections.append(detection)

        logger.info(
            "Detection run complete: %d detections", len(detections),
            extra={
                "url": bundle.url,
                "count": len(detections),
                "method": self._method.value,
                "duration_ms": round((time.monotonic() - started) * 1000, 2),
            },
        )
        return detections


def rank_detections(
    detections: Sequence[Detection], catalog: Optional[RuleCatalog] = None,
) -> list[Detection]:
    """
    Sort detections by detector priority, then confidence, both descending.

    Without a catalog (or for detectors no longer in it) priority
    counts as 0, so the order falls back to confidence.
    """
    def priority(detection: Detection) -> int:
        if catalog is None:
            return 0
        detector = catalog.get(detection.category, detection.detector.id)
        return detector.priority if detector is not None else 0

    return sorted(detections, key=lambda d: (-priority(d), -d.confidence))

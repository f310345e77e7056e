"""
PageDetect — Rule-Based Page Technology Detection

Classifies a page's observable signals (URL, cookies, headers,
scripts, HTML, DOM snapshot) against a user-editable catalog of
detectors (anti-bot vendors, CAPTCHAs, fingerprinting, CDNs) and
returns confidence-scored detections.

Public API:
  - RuleCatalog:      Validated detector catalog (dict or rules directory)
  - DetectionEngine:  Runs a catalog against a SignalBundle
  - DetectionCache:   12h per-URL result cache over a KeyValueStore
  - analyze_page:     Cache-aware single-page analysis
  - match_pattern:    Literal / regex / whole-word matcher
  - match_selector:   Small CSS-selector subset over element records
  - aggregate:        max / average / weighted confidence

Usage:
    from pagedetect import RuleCatalog, DetectionEngine, SignalBundle
    engine = DetectionEngine()
    engine.set_detectors(RuleCatalog.load_directory("detectors"))
    detections = engine.run(SignalBundle.model_validate(page_data))
"""

__version__ = "1.0.0"

from pagedetect.cache import CacheEntry, DetectionCache, hash_url, overall_confidence
from pagedetect.catalog import RuleCatalog
from pagedetect.detector import AnalysisResult, DetectionContext, analyze_page
from pagedetect.engine import DetectionEngine, rank_detections
from pagedetect.errors import (
    CatalogError,
    NotConfigured,
    PageDetectError,
    PatternError,
    StorageError,
)
from pagedetect.matcher import MatchOptions, match_pattern
from pagedetect.results import Detection, DetectorMeta, Match
from pagedetect.schemas.rules import Detector
from pagedetect.schemas.signals import ElementRecord, PageMeta, SignalBundle
from pagedetect.scorer import (
    ConfidenceMethod,
    adjust_confidence,
    aggregate,
    confidence_level,
)
from pagedetect.selector import match_selector
from pagedetect.storage import KeyValueStore, MemoryStore, SQLiteStore
from pagedetect.throttle import RequestThrottle

__all__ = [
    "CacheEntry",
    "DetectionCache",
    "hash_url",
    "overall_confidence",
    "RuleCatalog",
    "AnalysisResult",
    "DetectionContext",
    "analyze_page",
    "DetectionEngine",
    "rank_detections",
    "CatalogError",
    "NotConfigured",
    "PageDetectError",
    "PatternError",
    "StorageError",
    "MatchOptions",
    "match_pattern",
    "Detection",
    "DetectorMeta",
    "Match",
    "Detector",
    "ElementRecord",
    "PageMeta",
    "SignalBundle",
    "ConfidenceMethod",
    "adjust_confidence",
    "aggregate",
    "confidence_level",
    "match_selector",
    "KeyValueStore",
    "MemoryStore",
    "SQLiteStore",
    "RequestThrottle",
]

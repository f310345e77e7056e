"""
Tests for the detection engine: catalog x bundle -> detections.
"""

import logging
import time

import pytest

from pagedetect.catalog import RuleCatalog
from pagedetect.engine import DetectionEngine, rank_detections
from pagedetect.errors import NotConfigured
from pagedetect.schemas.signals import SignalBundle


@pytest.fixture
def engine(catalog_data):
    eng = DetectionEngine(method="max")
    eng.set_detectors(catalog_data)
    return eng


class TestConfiguration:

    def test_run_without_detectors_raises(self):
        with pytest.raises(NotConfigured):
            DetectionEngine().run({"url": "https://shop.example/"})

    def test_set_detectors_accepts_catalog(self, catalog_data):
        eng = DetectionEngine()
        eng.set_detectors(RuleCatalog.from_dict(catalog_data))
        assert len(eng.catalog) == 3

    def test_unknown_method_falls_back_to_max(self):
        assert DetectionEngine(method="median").method.value == "max"

    def test_set_method_unknown_keeps_current(self, caplog):
        eng = DetectionEngine(method="weighted")
        with caplog.at_level(logging.WARNING, logger="pagedetect.engine"):
            eng.set_method("median")
        assert eng.method.value == "weighted"
        assert caplog.records

        eng.set_method("Average")
        assert eng.method.value == "average"


class TestRun:

    def test_single_cookie_detection(self, engine):
        bundle = {
            "url": "https://shop.example/",
            "cookies": [{"name": "CF_Clearance", "value": "abc"}],
        }
        detections = engine.run(bundle)

        assert len(detections) == 1
        detection = detections[0]
        assert detection.detector.name == "Cloudflare"
        assert detection.category == "antibot"
        assert detection.confidence == 90
        assert len(detection.matches) == 1
        assert detection.matches[0].channel == "cookies"
        assert detection.matches[0].to_dict()["type"] == "cookies"

    def test_no_signals_no_detections(self, engine):
        assert engine.run(SignalBundle(url="https://shop.example/")) == []

    def test_catalog_order_kept(self, engine):
        bundle = {
            "url": "https://shop.example/",
            "cookies": [{"name": "_abck", "value": "1"}, {"name": "cf_clearance", "value": "x"}],
            "content": [{"type": "external", "src": "https://www.google.com/recaptcha/api.js"}],
        }
        names = [d.detector.id for d in engine.run(bundle)]
        assert names == ["cloudflare", "akamai", "recaptcha"]

    def test_disabled_detector_skipped(self, catalog_data):
        catalog_data["antibot"]["cloudflare"]["enabled"] = False
        eng = DetectionEngine()
        eng.set_detectors(catalog_data)
        detections = eng.run({"cookies": [{"name": "cf_clearance", "value": "x"}]})
        assert detections == []

    def test_bundle_not_mutated(self, engine):
        bundle = SignalBundle.model_validate({
            "url": "https://shop.example/",
            "headers": {"cf-ray": "1"},
        })
        before = bundle.model_dump()
        engine.run(bundle)
        assert bundle.model_dump() == before

    def test_multi_channel_confidence_by_method(self, catalog_data):
        bundle = {
            "url": "https://shop.example/",
            "cookies": [{"name": "cf_clearance", "value": "x"}],
            "headers": {"cf-ray": "8a1b"},
        }
        eng = DetectionEngine(method="average")
        eng.set_detectors(catalog_data)
        # (90 + 85) / 2 = 87.5
        assert eng.run(bundle)[0].confidence == 88

        eng.set_method("max")
        assert eng.run(bundle)[0].confidence == 90

    def test_bad_regex_does_not_abort_run(self, catalog_data, caplog):
        catalog_data["antibot"]["akamai"]["detection"]["cookies"].insert(
            0, {"name": "([", "nameRegex": True, "confidence": 50},
        )
        eng = DetectionEngine()
        eng.set_detectors(catalog_data)
        with caplog.at_level(logging.WARNING, logger="pagedetect.matcher"):
            detections = eng.run({"cookies": [{"name": "_abck", "value": "1"}]})
        assert [d.detector.id for d in detections] == ["akamai"]
        assert detections[0].confidence == 95
        assert caplog.records

    def test_runaway_regex_is_bounded(self, catalog_data, caplog):
        catalog_data["antibot"]["akamai"]["detection"]["cookies"].insert(
            0, {"name": "(x+x+)+y", "nameRegex": True, "confidence": 50},
        )
        eng = DetectionEngine()
        eng.set_detectors(catalog_data)
        bundle = {"cookies": [{"name": "x" * 5000, "value": "1"}, {"name": "_abck", "value": "1"}]}

        started = time.monotonic()
        with caplog.at_level(logging.WARNING, logger="pagedetect.matcher"):
            detections = eng.run(bundle)
        elapsed = time.monotonic() - started

        assert [d.detector.id for d in detections] == ["akamai"]
        assert detections[0].confidence == 95
        assert elapsed < 5
        assert any("exceeded" in r.getMessage() for r in caplog.records)

    def test_zero_or_null_confidence_takes_channel_default(self):
        eng = DetectionEngine()
        eng.set_detectors({"antibot": {
            "cf": {"detection": {"cookies": [{"name": "cf_clearance", "confidence": 0}]}},
            "hc": {"detection": {"dom": [{"selector": "#challenge", "confidence": None}]}},
            "px": {"detection": {"urls": [{"pattern": "px-cdn", "confidence": None}]}},
        }})
        detections = eng.run({
            "url": "https://px-cdn.example/",
            "cookies": [{"name": "cf_clearance", "value": "x"}],
            "dom": [{"selector": "div", "id": "challenge"}],
        })
        assert {d.detector.id: d.confidence for d in detections} == {"cf": 80, "hc": 85}

    def test_run_detector_reports_zero(self, engine):
        detector = engine.catalog.get("antibot", "akamai")
        detection = engine.run_detector(detector, {"url": "https://x.example/"}, "antibot", "akamai")
        assert detection.confidence == 0
        assert detection.detected is False


class TestRanking:

    def test_priority_then_confidence(self, engine):
        bundle = {
            "url": "https://shop.example/",
            "cookies": [{"name": "_abck", "value": "1"}, {"name": "cf_clearance", "value": "x"}],
            "content": [{"type": "external", "src": "https://www.google.com/recaptcha/api.js"}],
        }
        ranked = rank_detections(engine.run(bundle), engine.catalog)
        # cloudflare priority 90, recaptcha 60, akamai default 50
        assert [d.detector.id for d in ranked] == ["cloudflare", "recaptcha", "akamai"]

    def test_without_catalog_uses_confidence(self, engine):
        bundle = {
            "cookies": [{"name": "_abck", "value": "1"}, {"name": "cf_clearance", "value": "x"}],
        }
        ranked = rank_detections(engine.run(bundle))
        assert [d.confidence for d in ranked] == [95, 90]

"""
Tests for rule catalog loading, validation and editing.
"""

import json
import logging
import re

import pytest

from pagedetect.catalog import RuleCatalog, normalize_category, parse_detector
from pagedetect.config import settings
from pagedetect.errors import CatalogError


def write_rules(root, index, detectors):
    (root / "categories.json").write_text(json.dumps(index), encoding="utf-8")
    for (category, detector_id), body in detectors.items():
        folder = root / category
        folder.mkdir(exist_ok=True)
        (folder / f"{detector_id}.json").write_text(body, encoding="utf-8")


class TestFromDict:

    def test_loads_and_fills_keys(self, catalog_data):
        catalog = RuleCatalog.from_dict(catalog_data)
        assert catalog.categories() == ["antibot", "captcha"]
        assert len(catalog) == 3

        cloudflare = catalog.get("antibot", "cloudflare")
        assert cloudflare.id == "cloudflare"
        assert cloudflare.category == "antibot"
        assert cloudflare.enabled is True
        assert cloudflare.detection.headers[0].confidence == 85

    def test_defaults(self):
        catalog = RuleCatalog.from_dict({"antibot": {"x": {"name": "X"}}})
        detector = catalog.get("antibot", "x")
        assert detector.priority == 50
        assert detector.detection.is_empty()

    def test_out_of_range_confidence_rejected(self):
        data = {"antibot": {"x": {"detection": {"cookies": [{"name": "a", "confidence": 150}]}}}}
        with pytest.raises(CatalogError):
            RuleCatalog.from_dict(data)

    def test_unknown_pattern_option_rejected(self):
        data = {"antibot": {"x": {"detection": {"cookies": [{"name": "a", "nameRegx": True}]}}}}
        with pytest.raises(CatalogError):
            RuleCatalog.from_dict(data)

    def test_legacy_option_keys_map_to_name_flags(self):
        detector = parse_detector("antibot", "px", {"detection": {
            "cookies": [{"name": "^_px\\d$", "regex": True, "caseSensitive": True}],
            "headers": [{"name": "x-px", "wholeWord": True}],
            "dom": [{"selector": "#px-captcha", "regex": True}],
        }})
        cookie = detector.detection.cookies[0]
        assert cookie.name_regex is True
        assert cookie.name_case_sensitive is True
        assert cookie.name_whole_word is False
        assert detector.detection.headers[0].name_whole_word is True
        assert detector.detection.dom[0].selector == "#px-captcha"

    def test_legacy_key_does_not_override_current_key(self):
        detector = parse_detector("antibot", "px", {"detection": {
            "cookies": [{"name": "a", "regex": False, "nameRegex": True}],
        }})
        assert detector.detection.cookies[0].name_regex is True

    def test_zero_and_null_confidence(self):
        detector = parse_detector("antibot", "px", {"detection": {
            "cookies": [{"name": "a", "confidence": 0}],
            "headers": [{"name": "b", "confidence": None}],
            "dom": [{"selector": "c", "confidence": 0}, {"selector": "d", "confidence": None}],
            "urls": [{"pattern": "e", "confidence": None}, {"pattern": "f", "confidence": 0}],
            "content": [{"content": "g", "confidence": None}],
        }})
        d = detector.detection
        assert d.cookies[0].confidence == 80
        assert d.headers[0].confidence == 80
        assert [p.confidence for p in d.dom] == [85, 85]
        assert [p.confidence for p in d.urls] == [0, 0]
        assert d.content[0].confidence == 0

    def test_string_channel_coerced(self, caplog):
        data = {"antibot": {"x": {"detection": {"cookies": "[object Object]", "urls": None}}}}
        with caplog.at_level(logging.WARNING, logger="pagedetect.schemas.rules"):
            catalog = RuleCatalog.from_dict(data)
        detector = catalog.get("antibot", "x")
        assert detector.detection.cookies == []
        assert detector.detection.urls == []
        assert caplog.records

    def test_date_only_last_updated_padded(self):
        detector = parse_detector("antibot", "x", {"lastUpdated": "2024-03-01"})
        assert detector.last_updated == "2024-03-01 00:00:00"

    def test_not_a_mapping(self):
        with pytest.raises(CatalogError):
            RuleCatalog.from_dict({"antibot": ["cloudflare"]})


class TestLoadDirectory:

    def test_loads_listed_detectors(self, tmp_path):
        write_rules(
            tmp_path,
            {
                "antibot": {"detectors": ["cloudflare"]},
                "tags": {"colors": ["red"]},
            },
            {("antibot", "cloudflare"): json.dumps({
                "name": "Cloudflare",
                "detection": {"cookies": [{"name": "cf_clearance", "confidence": 90}]},
            })},
        )
        catalog = RuleCatalog.load_directory(tmp_path)
        assert catalog.categories() == ["antibot"]
        assert catalog.get("antibot", "cloudflare").name == "Cloudflare"

    def test_bad_files_skipped(self, tmp_path):
        write_rules(
            tmp_path,
            {"antibot": {"detectors": ["good", "broken", "invalid", "missing"]}},
            {
                ("antibot", "good"): json.dumps({"name": "Good"}),
                ("antibot", "broken"): "{not json",
                ("antibot", "invalid"): json.dumps({"priority": "high"}),
            },
        )
        catalog = RuleCatalog.load_directory(tmp_path)
        assert list(catalog.by_category("antibot")) == ["good"]

    def test_missing_index(self, tmp_path):
        with pytest.raises(CatalogError):
            RuleCatalog.load_directory(tmp_path)

    def test_defaults_to_rules_dir(self, tmp_path, monkeypatch):
        root = tmp_path / settings.RULES_DIR
        root.mkdir(parents=True)
        write_rules(
            root,
            {"antibot": {"detectors": ["akamai"]}},
            {("antibot", "akamai"): json.dumps({"name": "Akamai"})},
        )
        monkeypatch.chdir(tmp_path)
        catalog = RuleCatalog.load_directory()
        assert catalog.get("antibot", "akamai").name == "Akamai"


class TestEditing:

    def test_add_stamps_last_updated(self, catalog_data):
        catalog = RuleCatalog.from_dict(catalog_data)
        added = catalog.add("fingerprint", "fpjs", {"name": "FingerprintJS"})
        assert re.match(r"^\d{4}-\d{2}-\d{2} \d{2}:\d{2}:\d{2}$", added.last_updated)
        assert catalog.get("fingerprint", "fpjs").category == "fingerprint"

    def test_remove_and_set_enabled(self, catalog_data):
        catalog = RuleCatalog.from_dict(catalog_data)
        assert catalog.set_enabled("antibot", "akamai", False) is True
        assert catalog.get("antibot", "akamai").enabled is False
        assert catalog.remove("antibot", "akamai") is True
        assert catalog.remove("antibot", "akamai") is False
        assert catalog.set_enabled("antibot", "akamai", True) is False

    def test_find_by_name(self, catalog_data):
        catalog = RuleCatalog.from_dict(catalog_data)
        assert catalog.find_by_name("Anti-Bot", "Cloudflare").id == "cloudflare"
        assert catalog.find_by_name("antibot", "Nope") is None


class TestImportExport:

    def test_export_shape(self, catalog_data):
        exported = RuleCatalog.from_dict(catalog_data).export()
        assert exported["version"] == "1.0"
        assert "timestamp" in exported
        cookies = exported["detectors"]["antibot"]["cloudflare"]["detection"]["cookies"]
        assert cookies[0]["name"] == "cf_clearance"

    def test_export_reimports(self, catalog_data):
        source = RuleCatalog.from_dict(catalog_data)
        restored = RuleCatalog()
        restored.import_data(source.export())
        assert restored.to_dict() == source.to_dict()

    def test_import_replace(self, catalog_data):
        catalog = RuleCatalog.from_dict(catalog_data)
        catalog.import_data({"detectors": {"cdn": {"fastly": {"name": "Fastly"}}}})
        assert catalog.categories() == ["cdn"]

    def test_import_merge(self, catalog_data):
        catalog = RuleCatalog.from_dict(catalog_data)
        catalog.import_data(
            {"detectors": {"antibot": {"akamai": {"name": "Akamai v2"}, "kasada": {"name": "Kasada"}}}},
            merge=True,
        )
        assert catalog.get("antibot", "akamai").name == "Akamai v2"
        assert catalog.get("antibot", "kasada") is not None
        assert catalog.get("captcha", "recaptcha") is not None

    def test_invalid_import_leaves_catalog(self, catalog_data):
        catalog = RuleCatalog.from_dict(catalog_data)
        with pytest.raises(CatalogError):
            catalog.import_data({"nope": {}})
        with pytest.raises(CatalogError):
            catalog.import_data({"detectors": {"antibot": {"x": {"priority": "high"}}}}, merge=True)
        assert len(catalog) == 3


class TestNormalizeCategory:

    def test_aliases(self):
        assert normalize_category("Anti-Bot") == "antibot"
        assert normalize_category("Fingerprinting") == "fingerprint"
        assert normalize_category("CAPTCHA") == "captcha"
        assert normalize_category("") == ""

"""
Rule Catalog — Loading and Managing Detectors

The catalog is a two-level map: category -> detector id -> Detector,
kept in insertion order (the engine iterates it as-is).

Sources:
  - a plain dict (what a rule editor or a stored export holds)
  - a rules directory:
        <dir>/categories.json          {"antibot": {"detectors": ["cloudflare", ...]}, ...}
        <dir>/<category>/<id>.json     one Detector per file

Every detector is validated on the way in. A malformed detector
raises CatalogError from from_dict(); in a rules directory it is
logged and skipped so one bad file does not hide the rest.
"""

from __future__ import annotations

import json
import logging
import re
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Iterator, Mapping, Optional, Union

from pydantic import ValidationError

from pagedetect.config import settings
from pagedetect.errors import CatalogError
from pagedetect.schemas.rules import Detector

logger = logging.getLogger(__name__)

EXPORT_VERSION = "1.0"

_CATEGORY_ALIASES = {
    "antibot": "antibot",
    "captcha": "captcha",
    "fingerprint": "fingerprint",
    "fingerprinting": "fingerprint",
}

_DATE_ONLY = re.compile(r"^\d{4}-\d{2}-\d{2}$")


def normalize_category(category: str) -> str:
    """'Anti-Bot' -> 'antibot', 'Fingerprinting' -> 'fingerprint'."""
    if not category:
        return ""
    normalized = re.sub(r"[^a-z]", "", category.lower())
    return _CATEGORY_ALIASES.get(normalized, normalized)


def _timestamp() -> str:
    return datetime.now().strftime("%Y-%m-%d %H:%M:%S")


def parse_detector(
    category: str, detector_id: str, raw: Union[Detector, Mapping[str, Any]],
) -> Detector:
    """Validate one raw detector, filling id/category from its map keys."""
    if isinstance(raw, Detector):
        updates = {}
        if not raw.id:
            updates["id"] = detector_id
        if not raw.category:
            updates["category"] = category
        return raw.model_copy(update=updates) if updates else raw

    if not isinstance(raw, Mapping):
        raise CatalogError(f"{category}/{detector_id}: detector must be an object")

    data = dict(raw)
    if not data.get("id"):
        data["id"] = detector_id
    if not data.get("category"):
        data["category"] = category
    last_updated = data.get("lastUpdated")
    if isinstance(last_updated, str) and _DATE_ONLY.match(last_updated):
        data["lastUpdated"] = f"{last_updated} 00:00:00"

    try:
        return Detector.model_validate(data)
    except ValidationError as exc:
        raise CatalogError(f"{category}/{detector_id}: {exc}") from exc


class RuleCatalog:
    """Validated detectors grouped by category."""

    def __init__(self, detectors: Optional[dict[str, dict[str, Detector]]] = None):
        self._detectors: dict[str, dict[str, Detector]] = detectors or {}

    # --------------------------------------------------------
    # Construction
    # --------------------------------------------------------

    @classmethod
    def from_dict(cls, data: Mapping[str, Mapping[str, Any]]) -> "RuleCatalog":
        if not isinstance(data, Mapping):
            raise CatalogError("catalog must map category -> detector id -> detector")
        detectors: dict[str, dict[str, Detector]] = {}
        for category, category_detectors in data.items():
            if not isinstance(category_detectors, Mapping):
                raise CatalogError(f"category {category!r} must map detector id -> detector")
            detectors[category] = {
                detector_id: parse_detector(category, detector_id, raw)
                for detector_id, raw in category_detectors.items()
            }
        return cls(detectors)

    @classmethod
    def load_directory(cls, path: Union[str, Path, None] = None) -> "RuleCatalog":
        """Load categories.json and each <category>/<id>.json under path (default RULES_DIR)."""
        root = Path(path if path is not None else settings.RULES_DIR)
        index_path = root / "categories.json"
        try:
            index = json.loads(index_path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as exc:
            raise CatalogError(f"cannot read category index {index_path}: {exc}") from exc

        catalog = cls()
        for category, info in index.items():
            # Entries without a detectors list (e.g. tag definitions) are not categories
            if not isinstance(info, dict) or not isinstance(info.get("detectors"), list):
                logger.debug("Skipping %s - not a detector category", category)
                continue
            catalog._detectors.setdefault(category, {})
            for detector_id in info["detectors"]:
                detector = cls._load_detector_file(root, category, detector_id)
                if detector is not None:
                    catalog._detectors[category][detector_id] = detector

        logger.info(
            "Loaded %d detectors from %s", catalog.count(), root,
            extra={"count": catalog.count()},
        )
        return catalog

    @staticmethod
    def _load_detector_file(root: Path, category: str, detector_id: str) -> Optional[Detector]:
        detector_path = root / category / f"{detector_id}.json"
        try:
            raw = json.loads(detector_path.read_text(encoding="utf-8"))
            return parse_detector(category, detector_id, raw)
        except (OSError, json.JSONDecodeError) as exc:
            logger.warning("Detector file unreadable: %s (%s)", detector_path, exc)
        except CatalogError as exc:
            logger.error("Invalid detector %s: %s", detector_path, exc,
                         extra={"detector": detector_id, "category": category})
        return None

    # --------------------------------------------------------
    # Lookup
    # --------------------------------------------------------

    def categories(self) -> list[str]:
        return list(self._detectors)

    def by_category(self, category: str) -> dict[str, Detector]:
        return dict(self._detectors.get(category, {}))

    def get(self, category: str, detector_id: str) -> Optional[Detector]:
        return self._detectors.get(category, {}).get(detector_id)

    def find_by_name(self, category: str, display_name: str) -> Optional[Detector]:
        """Find a detector by display name; category may be a display name too."""
        for detector in self._detectors.get(normalize_category(category), {}).values():
            if detector.name == display_name:
                return detector
        return None

    def iter_detectors(self) -> Iterator[tuple[str, str, Detector]]:
        """(category, detector id, detector) in catalog order."""
        for category, category_detectors in self._detectors.items():
            for detector_id, detector in category_detectors.items():
                yield category, detector_id, detector

    def count(self) -> int:
        return sum(len(d) for d in self._detectors.values())

    def __len__(self) -> int:
        return self.count()

    # --------------------------------------------------------
    # Editing
    # --------------------------------------------------------

    def add(
        self, category: str, detector_id: str, detector: Union[Detector, Mapping[str, Any]],
    ) -> Detector:
        """Add or replace a detector, stamping lastUpdated."""
        parsed = parse_detector(category, detector_id, detector)
        parsed = parsed.model_copy(update={"last_updated": _timestamp()})
        self._detectors.setdefault(category, {})[detector_id] = parsed
        logger.info("Detector %s added to %s", detector_id, category,
                    extra={"detector": detector_id, "category": category})
        return parsed

    def remove(self, category: str, detector_id: str) -> bool:
        return self._detectors.get(category, {}).pop(detector_id, None) is not None

    def set_enabled(self, category: str, detector_id: str, enabled: bool) -> bool:
        detector = self.get(category, detector_id)
        if detector is None:
            return False
        self._detectors[category][detector_id] = detector.model_copy(update={"enabled": enabled})
        return True

    # --------------------------------------------------------
    # Import / export
    # --------------------------------------------------------

    def to_dict(self) -> dict[str, dict[str, dict]]:
        return {
            category: {
                detector_id: detector.model_dump(by_alias=True, exclude_none=True)
                for detector_id, detector in category_detectors.items()
            }
            for category, category_detectors in self._detectors.items()
        }

    def export(self) -> dict[str, Any]:
        return {
            "version": EXPORT_VERSION,
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "detectors": self.to_dict(),
        }

    def import_data(self, data: Mapping[str, Any], merge: bool = False) -> None:
        """
        Import an export() payload.

        With merge=True, imported detectors are added to (and override)
        the existing ones per category; otherwise the catalog is replaced.
        The catalog is untouched if any imported detector is invalid.
        """
        if not isinstance(data, Mapping) or not isinstance(data.get("detectors"), Mapping):
            raise CatalogError("Invalid detector data format")

        imported = RuleCatalog.from_dict(data["detectors"])
        if not merge:
            self._detectors = imported._detectors
            return
        for category, category_detectors in imported._detectors.items():
            self._detectors.setdefault(category, {}).update(category_detectors)

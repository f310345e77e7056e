"""
Detection results produced by the engine and persisted by the cache.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Optional

# JSON key naming the matched pattern, per channel
_PATTERN_KEYS = {
    "urls": "pattern",
    "content": "pattern",
    "cookies": "name",
    "headers": "name",
    "dom": "selector",
}


@dataclass(frozen=True)
class Match:
    """One successful pattern hit within a channel."""
    channel: str           # "urls", "headers", "cookies", "content", "dom"
    pattern: str           # pattern text, cookie/header name, or selector
    value: str             # what was hit (URL, "name=value", location, ...)
    confidence: int
    description: Optional[str] = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "type": self.channel,
            _PATTERN_KEYS.get(self.channel, "pattern"): self.pattern,
            "value": self.value,
            "confidence": self.confidence,
            "description": self.description,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Match":
        channel = data.get("type") or data.get("channel") or ""
        pattern = data.get("pattern") or data.get("name") or data.get("selector") or ""
        return cls(
            channel=channel,
            pattern=pattern,
            value=data.get("value", ""),
            confidence=int(data.get("confidence") or 0),
            description=data.get("description"),
        )


@dataclass(frozen=True)
class DetectorMeta:
    """Identity and presentation fields of the detector that fired."""
    id: str
    name: str
    category: str = ""
    color: Optional[str] = None
    icon: Optional[str] = None
    description: Optional[str] = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "category": self.category,
            "color": self.color,
            "icon": self.icon,
            "description": self.description,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "DetectorMeta":
        return cls(
            id=data.get("id") or data.get("name") or "",
            name=data.get("name") or data.get("id") or "",
            category=data.get("category") or "",
            color=data.get("color"),
            icon=data.get("icon"),
            description=data.get("description"),
        )


@dataclass
class Detection:
    """Aggregate result of one detector: its matches and overall confidence."""
    detector: DetectorMeta
    matches: list[Match] = field(default_factory=list)
    confidence: int = 0

    @property
    def detected(self) -> bool:
        return self.confidence > 0

    @property
    def category(self) -> str:
        return self.detector.category

    def to_dict(self) -> dict[str, Any]:
        return {
            "detector": self.detector.to_dict(),
            "category": self.category,
            "matches": [m.to_dict() for m in self.matches],
            "confidence": self.confidence,
            "detected": self.detected,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Detection":
        meta = dict(data.get("detector") or {})
        meta.setdefault("category", data.get("category") or "")
        return cls(
            detector=DetectorMeta.from_dict(meta),
            matches=[Match.from_dict(m) for m in data.get("matches") or []],
            confidence=int(data.get("confidence") or 0),
        )

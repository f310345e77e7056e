"""
Rule Schemas — Detectors and Their Channel Patterns

Pydantic models for the user-editable rule catalog. Each channel
has its own pattern type (UrlPattern, HeaderPattern, CookiePattern,
ContentPattern, DomPattern) so a misspelled option or an
out-of-range confidence is rejected when the catalog is loaded,
not silently ignored during a run.

Field names follow the catalog's JSON (camelCase) through aliases.
The unprefixed option keys of older rule editors (regex, wholeWord,
caseSensitive) are read as their name-side equivalents.

A zero or null confidence on a header, cookie or dom rule takes the
channel default (80 / 80 / 85); url and content rules keep 0.
"""

from __future__ import annotations

import logging
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from pagedetect.matcher import MatchOptions

logger = logging.getLogger(__name__)

CHANNELS = ("urls", "headers", "cookies", "content", "dom")

_PATTERN_CONFIG = ConfigDict(frozen=True, populate_by_name=True, extra="forbid")

# Unprefixed option keys written by older rule editors -> name-side flag
_LEGACY_OPTION_KEYS = {
    "regex": "nameRegex",
    "wholeWord": "nameWholeWord",
    "caseSensitive": "nameCaseSensitive",
}


def _upgrade_legacy_options(data: Any, keep: bool = True) -> Any:
    """Fold legacy option keys into their nameX equivalents (or drop them)."""
    if not isinstance(data, dict) or not any(k in data for k in _LEGACY_OPTION_KEYS):
        return data
    data = dict(data)
    for legacy, current in _LEGACY_OPTION_KEYS.items():
        if legacy not in data:
            continue
        flag = data.pop(legacy)
        if keep:
            data[current] = bool(data.get(current)) or bool(flag)
    return data


class _NameOptions(BaseModel):
    """Name-side matching flags shared by every text pattern."""
    model_config = _PATTERN_CONFIG

    description: Optional[str] = None
    name_regex: bool = Field(False, alias="nameRegex")
    name_whole_word: bool = Field(False, alias="nameWholeWord")
    name_case_sensitive: bool = Field(False, alias="nameCaseSensitive")

    @model_validator(mode="before")
    @classmethod
    def _legacy_keys(cls, data: Any) -> Any:
        return _upgrade_legacy_options(data)

    @property
    def name_options(self) -> MatchOptions:
        return MatchOptions(
            regex=self.name_regex,
            whole_word=self.name_whole_word,
            case_sensitive=self.name_case_sensitive,
        )


class _ValueOptions(_NameOptions):
    """Adds value-side matching flags (headers, cookies)."""
    value: Optional[str] = None
    value_regex: bool = Field(False, alias="valueRegex")
    value_whole_word: bool = Field(False, alias="valueWholeWord")
    value_case_sensitive: bool = Field(False, alias="valueCaseSensitive")

    @property
    def value_options(self) -> MatchOptions:
        return MatchOptions(
            regex=self.value_regex,
            whole_word=self.value_whole_word,
            case_sensitive=self.value_case_sensitive,
        )


class UrlPattern(_NameOptions):
    """Matched against the page URL and every script src."""
    pattern: str
    confidence: int = Field(0, ge=0, le=100)

    @field_validator("confidence", mode="before")
    @classmethod
    def _null_confidence(cls, value: Any) -> Any:
        return 0 if value is None else value


class HeaderPattern(_ValueOptions):
    """Response header name (and optionally value)."""
    name: str
    confidence: int = Field(80, ge=0, le=100)

    @field_validator("confidence", mode="before")
    @classmethod
    def _falsy_confidence(cls, value: Any) -> Any:
        return value or 80


class CookiePattern(_ValueOptions):
    """Cookie name (and optionally value), both on the same cookie."""
    name: str
    confidence: int = Field(80, ge=0, le=100)

    @field_validator("confidence", mode="before")
    @classmethod
    def _falsy_confidence(cls, value: Any) -> Any:
        return value or 80


class ContentPattern(_NameOptions):
    """
    Text searched in the page.

    With no scope flag the whole page HTML and the fetched external
    resources are searched. Any scope flag restricts the search to
    script bodies, class attribute values, or value/data-* values.
    """
    content: str
    confidence: int = Field(0, ge=0, le=100)
    check_scripts: bool = Field(False, alias="checkScripts")
    check_classes: bool = Field(False, alias="checkClasses")
    check_values: bool = Field(False, alias="checkValues")

    @field_validator("confidence", mode="before")
    @classmethod
    def _null_confidence(cls, value: Any) -> Any:
        return 0 if value is None else value

    @property
    def restricted(self) -> bool:
        return self.check_scripts or self.check_classes or self.check_values


class DomPattern(BaseModel):
    """A selector from the supported CSS subset."""
    model_config = _PATTERN_CONFIG

    selector: str
    confidence: int = Field(85, ge=0, le=100)
    description: Optional[str] = None

    @model_validator(mode="before")
    @classmethod
    def _legacy_keys(cls, data: Any) -> Any:
        # Matching flags mean nothing for selectors
        return _upgrade_legacy_options(data, keep=False)

    @field_validator("confidence", mode="before")
    @classmethod
    def _falsy_confidence(cls, value: Any) -> Any:
        return value or 85


class DetectionRules(BaseModel):
    """Per-channel pattern lists of one detector."""
    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="ignore")

    urls: list[UrlPattern] = Field(default_factory=list)
    headers: list[HeaderPattern] = Field(default_factory=list)
    cookies: list[CookiePattern] = Field(default_factory=list)
    content: list[ContentPattern] = Field(default_factory=list)
    dom: list[DomPattern] = Field(default_factory=list)

    @field_validator(*CHANNELS, mode="before")
    @classmethod
    def _coerce_corrupted(cls, value: Any, info) -> Any:
        # Stored catalogs have been seen with a channel saved as a string
        if value is None:
            return []
        if isinstance(value, str):
            logger.warning(
                "Channel data is a string, not a list; ignoring it",
                extra={"channel": info.field_name},
            )
            return []
        return value

    def is_empty(self) -> bool:
        return not any(getattr(self, channel) for channel in CHANNELS)


class Detector(BaseModel):
    """A named classifier: presentation fields plus per-channel rules."""
    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="ignore")

    id: str = ""
    name: str = ""
    category: str = ""
    color: Optional[str] = None
    icon: Optional[str] = None
    description: Optional[str] = None
    enabled: bool = True
    priority: int = 50
    last_updated: Optional[str] = Field(None, alias="lastUpdated")
    detection: DetectionRules = Field(default_factory=DetectionRules)

    @field_validator("detection", mode="before")
    @classmethod
    def _none_as_empty_rules(cls, value: Any) -> Any:
        return {} if value is None else value

    @field_validator("enabled", mode="before")
    @classmethod
    def _missing_enabled_is_true(cls, value: Any) -> Any:
        return True if value is None else value

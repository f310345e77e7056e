"""
Signal Schemas — The Per-Page Snapshot

Pydantic models for everything the collector observes on a page.
A SignalBundle is built once per analysis and never mutated by the
engine; all models here are frozen.
"""

from __future__ import annotations

from typing import Any, Literal, Optional
from urllib.parse import urlparse

from pydantic import BaseModel, ConfigDict, Field, field_validator

_SIGNAL_CONFIG = ConfigDict(frozen=True, populate_by_name=True, extra="ignore")


class Cookie(BaseModel):
    model_config = _SIGNAL_CONFIG

    name: str
    value: str = ""
    domain: str = ""

    @field_validator("value", "domain", mode="before")
    @classmethod
    def _none_as_empty(cls, value: Any) -> Any:
        return "" if value is None else value


class ScriptRecord(BaseModel):
    """An inline or external <script> seen on the page."""
    model_config = _SIGNAL_CONFIG

    type: Literal["external", "inline"] = "inline"
    src: Optional[str] = None
    content: str = ""

    @field_validator("content", mode="before")
    @classmethod
    def _none_as_empty(cls, value: Any) -> Any:
        return "" if value is None else value


class ExternalResource(BaseModel):
    """Body of an external JS/CSS resource, fetched by the caller."""
    model_config = _SIGNAL_CONFIG

    url: str
    type: str = "javascript"
    content: str = ""
    size: int = 0

    @field_validator("content", mode="before")
    @classmethod
    def _none_as_empty(cls, value: Any) -> Any:
        return "" if value is None else value


class ElementRecord(BaseModel):
    """
    Flattened descriptor of one DOM element.

    `selector` holds the tag name (iframe, form, div, meta, ...).
    Collectors may attach further top-level fields; they are kept
    and reachable through field().
    """
    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="allow")

    selector: str = ""
    id: Optional[str] = None
    class_: Optional[str] = Field(None, alias="class")
    src: Optional[str] = None
    action: Optional[str] = None
    text: Optional[str] = None
    attributes: dict[str, str] = Field(default_factory=dict)

    @field_validator("attributes", mode="before")
    @classmethod
    def _stringify_attributes(cls, value: Any) -> Any:
        if value is None:
            return {}
        if isinstance(value, dict):
            return {str(k): "" if v is None else str(v) for k, v in value.items()}
        return value

    def field(self, name: str) -> str:
        """Top-level field by its collector name ('class' included), or ''."""
        if name == "class":
            value = self.class_
        elif name in type(self).model_fields and name != "attributes":
            value = getattr(self, name)
        else:
            value = (self.model_extra or {}).get(name)
        if value is None or isinstance(value, (dict, list)):
            return ""
        return str(value)


class SignalBundle(BaseModel):
    """Immutable snapshot of the page signals fed to the engine."""
    model_config = _SIGNAL_CONFIG

    url: str = ""
    cookies: list[Cookie] = Field(default_factory=list)
    content: list[ScriptRecord] = Field(default_factory=list)
    dom: list[ElementRecord] = Field(default_factory=list)
    page_html: str = Field("", alias="pageHTML")
    external_content: list[ExternalResource] = Field(
        default_factory=list, alias="externalContent",
    )
    headers: dict[str, str] = Field(default_factory=dict)

    @field_validator("cookies", "content", "dom", "external_content", mode="before")
    @classmethod
    def _none_as_empty_list(cls, value: Any) -> Any:
        return [] if value is None else value

    @field_validator("page_html", mode="before")
    @classmethod
    def _none_as_empty_html(cls, value: Any) -> Any:
        return "" if value is None else value

    @field_validator("headers", mode="before")
    @classmethod
    def _normalize_headers(cls, value: Any) -> Any:
        # Collectors send either a name -> value map or a list of
        # {"name", "value"} pairs (webRequest style); empty list means none.
        if not value:
            return {}
        if isinstance(value, list):
            headers: dict[str, str] = {}
            for item in value:
                if isinstance(item, dict) and item.get("name"):
                    headers[str(item["name"])] = str(item.get("value") or "")
            return headers
        return value


class PageMeta(BaseModel):
    """Presentation data stored alongside cached results."""
    model_config = _SIGNAL_CONFIG

    url: str = ""
    hostname: str = ""
    title: str = ""
    favicon: str = ""

    @classmethod
    def from_url(cls, url: str) -> "PageMeta":
        return cls(url=url, hostname=urlparse(url).hostname or "")

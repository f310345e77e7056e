from pagedetect.schemas.rules import (
    CHANNELS,
    ContentPattern,
    CookiePattern,
    DetectionRules,
    Detector,
    DomPattern,
    HeaderPattern,
    UrlPattern,
)
from pagedetect.schemas.signals import (
    Cookie,
    ElementRecord,
    ExternalResource,
    PageMeta,
    ScriptRecord,
    SignalBundle,
)

__all__ = [
    "CHANNELS",
    "ContentPattern",
    "CookiePattern",
    "DetectionRules",
    "Detector",
    "DomPattern",
    "HeaderPattern",
    "UrlPattern",
    "Cookie",
    "ElementRecord",
    "ExternalResource",
    "PageMeta",
    "ScriptRecord",
    "SignalBundle",
]

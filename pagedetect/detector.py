"""
Detector — Page Analysis Orchestrator

Ties the engine, the result cache and the request throttle together
for one page:
  1. skip the request if the same key was just analyzed
  2. return the cached result if the URL has a live entry
  3. otherwise run the engine and store the result

Collaborators travel in an explicit DetectionContext; there is no
module-level engine or cache.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Hashable, Mapping, Optional, Union

from pagedetect.cache import CacheEntry, DetectionCache
from pagedetect.engine import DetectionEngine
from pagedetect.results import Detection
from pagedetect.schemas.signals import PageMeta, SignalBundle
from pagedetect.throttle import RequestThrottle

logger = logging.getLogger(__name__)


@dataclass
class DetectionContext:
    """Handles needed to analyze a page."""
    engine: DetectionEngine
    cache: Optional[DetectionCache] = None
    throttle: Optional[RequestThrottle] = None


@dataclass
class AnalysisResult:
    """Outcome of analyze_page()."""
    url: str
    detections: list[Detection] = field(default_factory=list)
    from_cache: bool = False
    skipped: bool = False
    entry: Optional[CacheEntry] = None

    @property
    def count(self) -> int:
        return len(self.detections)


async def analyze_page(
    ctx: DetectionContext,
    bundle: Union[SignalBundle, Mapping[str, Any]],
    page_meta: Optional[PageMeta] = None,
    *,
    use_cache: bool = True,
    request_key: Optional[Hashable] = None,
) -> AnalysisResult:
    """
    Analyze one page, using the cache when possible.

    Args:
        ctx: Engine, cache and throttle to use.
        bundle: The page signals.
        page_meta: Hostname/favicon stored with the cache entry.
        use_cache: False forces a fresh run (the result is still stored).
        request_key: Throttle key (e.g. a tab id). None disables throttling.

    Raises:
        NotConfigured: the engine has no rule catalog.
    """
    if not isinstance(bundle, SignalBundle):
        bundle = SignalBundle.model_validate(bundle or {})
    url = bundle.url

    if request_key is not None and ctx.throttle is not None:
        if ctx.throttle.should_skip(request_key):
            logger.info("Skipping duplicate analysis request", extra={"url": url})
            return AnalysisResult(url=url, skipped=True)

    if use_cache and ctx.cache is not None:
        cached = await ctx.cache.get(url)
        if cached is not None:
            return AnalysisResult(
                url=url, detections=cached.detections, from_cache=True, entry=cached,
            )

    detections = ctx.engine.run(bundle)

    entry = None
    if ctx.cache is not None:
        entry = await ctx.cache.put(url, page_meta or PageMeta.from_url(url), detections)

    return AnalysisResult(url=url, detections=detections, entry=entry)

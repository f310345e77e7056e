"""
Channel Evaluators — Apply One Detector's Rules to a Signal Bundle

One evaluator per channel. Each takes the detector's pattern list
for that channel plus the bundle, and returns the Matches found.
Channels are independent: a hit in one never short-circuits another.

Per-pattern stopping rules (these shape the results, keep them):
  - urls:    a pattern contributes at most one script-src match
  - cookies: first cookie satisfying name (and value) wins
  - headers: first header satisfying name (and value) wins, in
             header-map order, even if a later header would differ
  - content: first location hit wins
  - dom:     first element satisfying the selector wins
"""

from __future__ import annotations

import logging
import re
from typing import Callable, Iterator, Sequence

from pagedetect.matcher import match_pattern
from pagedetect.results import Match
from pagedetect.schemas.rules import (
    ContentPattern,
    CookiePattern,
    DomPattern,
    HeaderPattern,
    UrlPattern,
)
from pagedetect.schemas.signals import SignalBundle
from pagedetect.selector import element_preview, match_selector

logger = logging.getLogger(__name__)

# Attribute extractors for restricted content search
_CLASS_ATTRIBUTE = re.compile(r'class="([^"]*)"', re.IGNORECASE)
_VALUE_ATTRIBUTE = re.compile(r'(?:value|data-[^=]*)="([^"]*)"', re.IGNORECASE)


# ============================================================
# URLS
# ============================================================

def evaluate_urls(patterns: Sequence[UrlPattern], bundle: SignalBundle) -> list[Match]:
    """Match the page URL and every script src."""
    matches: list[Match] = []
    for rule in patterns:
        options = rule.name_options

        if match_pattern(bundle.url, rule.pattern, options):
            matches.append(Match(
                channel="urls",
                pattern=rule.pattern,
                value=bundle.url,
                confidence=rule.confidence,
                description=rule.description,
            ))

        for script in bundle.content:
            src = script.src or ""
            if not src or not match_pattern(src, rule.pattern, options):
                continue
            if any(m.pattern == rule.pattern for m in matches):
                continue
            matches.append(Match(
                channel="urls",
                pattern=rule.pattern,
                value=src,
                confidence=rule.confidence,
                description=rule.description,
            ))
    return matches


# ============================================================
# CONTENT
# ============================================================

def _attribute_values(html: str, extractor: re.Pattern) -> Iterator[str]:
    for found in extractor.finditer(html):
        yield found.group(1)


def _find_content(rule: ContentPattern, bundle: SignalBundle) -> str | None:
    """Where the content pattern was found, or None."""
    options = rule.name_options
    needle = rule.content

    if not rule.restricted:
        if match_pattern(bundle.page_html, needle, options):
            return "page content"
        for resource in bundle.external_content:
            if match_pattern(resource.content, needle, options):
                return resource.url
        return None

    if rule.check_scripts:
        for script in bundle.content:
            if match_pattern(script.content or script.src or "", needle, options):
                return script.src or "inline script"

    if rule.check_classes:
        for value in _attribute_values(bundle.page_html, _CLASS_ATTRIBUTE):
            if match_pattern(value, needle, options):
                return "class attribute"

    if rule.check_values:
        for value in _attribute_values(bundle.page_html, _VALUE_ATTRIBUTE):
            if match_pattern(value, needle, options):
                return "attribute value"

    return None


def evaluate_content(patterns: Sequence[ContentPattern], bundle: SignalBundle) -> list[Match]:
    """Search page HTML / external resources, or the scoped locations."""
    if not patterns or not bundle.page_html:
        return []

    matches: list[Match] = []
    for rule in patterns:
        found_in = _find_content(rule, bundle)
        if found_in is None:
            continue
        matches.append(Match(
            channel="content",
            pattern=rule.content,
            value=found_in,
            confidence=rule.confidence,
            description=rule.description,
        ))
    return matches


# ============================================================
# COOKIES
# ============================================================

def evaluate_cookies(patterns: Sequence[CookiePattern], bundle: SignalBundle) -> list[Match]:
    """Match cookie names, and values when the rule has one, on the same cookie."""
    if not patterns or not bundle.cookies:
        return []

    matches: list[Match] = []
    for rule in patterns:
        for cookie in bundle.cookies:
            if not match_pattern(cookie.name, rule.name, rule.name_options):
                continue
            if rule.value and not match_pattern(cookie.value, rule.value, rule.value_options):
                continue
            matches.append(Match(
                channel="cookies",
                pattern=rule.name,
                value=f"{cookie.name}={cookie.value}",
                confidence=rule.confidence,
                description=rule.description,
            ))
            break
    return matches


# ============================================================
# HEADERS
# ============================================================

def evaluate_headers(patterns: Sequence[HeaderPattern], bundle: SignalBundle) -> list[Match]:
    """Match response headers; the first satisfying header per rule wins."""
    if not patterns or not bundle.headers:
        return []

    matches: list[Match] = []
    for rule in patterns:
        for header_name, header_value in bundle.headers.items():
            if not match_pattern(header_name, rule.name, rule.name_options):
                continue
            if rule.value and not match_pattern(header_value, rule.value, rule.value_options):
                continue
            matches.append(Match(
                channel="headers",
                pattern=rule.name,
                value=f"{header_name}: {header_value}",
                confidence=rule.confidence,
                description=rule.description,
            ))
            break
    return matches


# ============================================================
# DOM
# ============================================================

def evaluate_dom(patterns: Sequence[DomPattern], bundle: SignalBundle) -> list[Match]:
    """Find the first element record satisfying each selector."""
    if not patterns or not bundle.dom:
        return []

    matches: list[Match] = []
    for rule in patterns:
        element = next(
            (el for el in bundle.dom if match_selector(el, rule.selector)), None,
        )
        if element is None:
            continue
        matches.append(Match(
            channel="dom",
            pattern=rule.selector,
            value=f"{rule.selector}={element_preview(element)}",
            confidence=rule.confidence,
            description=rule.description,
        ))
    return matches


Evaluator = Callable[[Sequence, SignalBundle], list[Match]]

# Evaluation order: urls, content, cookies, headers, dom
CHANNEL_EVALUATORS: dict[str, Evaluator] = {
    "urls": evaluate_urls,
    "content": evaluate_content,
    "cookies": evaluate_cookies,
    "headers": evaluate_headers,
    "dom": evaluate_dom,
}

"""
Pattern Matcher — Literal / Regex / Whole-Word Text Matching

Every rule pattern in the catalog is matched through this module.
Three modes, chosen per pattern:
  - regex:      the pattern is a user-written regular expression
  - whole word: the pattern is a literal bounded by word boundaries
  - substring:  plain containment (the default)

Matching is case-insensitive unless the pattern asks otherwise.
In regex mode only the text is lower-cased; the pattern is compiled
as written with IGNORECASE, so uppercase escapes such as \\S, \\W or
\\D keep their meaning. Rules migrated from engines that lower-case
the pattern itself (turning \\S into \\s) may match differently.

Rule patterns are user-editable, so regexes are untrusted input.
They run on the `regex` engine with a per-search timeout; a pattern
that fails to compile or exceeds the timeout is a PatternError,
which match_pattern() logs and treats as "no match".
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from functools import lru_cache
from typing import Optional, Union

import regex

from pagedetect.config import settings
from pagedetect.errors import PatternError

logger = logging.getLogger(__name__)

# Characters escaped before building a whole-word expression
_SPECIAL_CHARS = re.compile(r"[.*+?^${}()|\[\]\\]")


@dataclass(frozen=True)
class MatchOptions:
    """Matching flags shared by every pattern field."""
    regex: bool = False
    whole_word: bool = False
    case_sensitive: bool = False


DEFAULT_OPTIONS = MatchOptions()


def escape_pattern(text: str) -> str:
    """Escape regex special characters for literal matching."""
    return _SPECIAL_CHARS.sub(lambda m: "\\" + m.group(0), text)


@lru_cache(maxsize=1024)
def _compile(source: str, case_sensitive: bool) -> "regex.Pattern":
    flags = 0 if case_sensitive else regex.IGNORECASE
    return regex.compile(source, flags)


def try_match(
    text: Optional[str],
    pattern: Optional[str],
    options: MatchOptions = DEFAULT_OPTIONS,
    timeout: Optional[float] = None,
) -> Union[bool, PatternError]:
    """
    Match a pattern against text, returning the failure instead of raising.

    Returns True / False for a completed match, or a PatternError when
    the pattern is an invalid regex or the search ran out of time.
    """
    if not text or not pattern:
        return False

    case_sensitive = options.case_sensitive
    haystack = text if case_sensitive else text.lower()

    if options.regex:
        source = pattern
    elif options.whole_word:
        needle = pattern if case_sensitive else pattern.lower()
        source = rf"\b{escape_pattern(needle)}\b"
    else:
        needle = pattern if case_sensitive else pattern.lower()
        return needle in haystack

    if timeout is None:
        timeout = settings.REGEX_TIMEOUT

    try:
        compiled = _compile(source, case_sensitive)
    except regex.error as exc:
        return PatternError(pattern, f"invalid regex ({exc})")

    try:
        return compiled.search(haystack, timeout=timeout) is not None
    except TimeoutError:
        return PatternError(pattern, f"regex exceeded {timeout}s")


def match_pattern(
    text: Optional[str],
    pattern: Optional[str],
    options: MatchOptions = DEFAULT_OPTIONS,
) -> bool:
    """
    Match a pattern against text. Never raises for a bad user pattern.

    Args:
        text: The text to search in.
        pattern: The literal or regex pattern.
        options: regex / whole-word / case-sensitivity flags.

    Returns:
        True if the pattern matches. An invalid or runaway regex is
        logged as a warning and reported as False.
    """
    result = try_match(text, pattern, options)
    if isinstance(result, PatternError):
        logger.warning(
            "Skipping pattern: %s", result,
            extra={"pattern": pattern, "error": result.reason},
        )
        return False
    return result

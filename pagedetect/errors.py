"""
Exceptions raised across the detection pipeline.

Only NotConfigured and CatalogError are meant to reach callers.
PatternError is returned by the matcher's inspectable path and
StorageError is absorbed at the cache boundary.
"""

from __future__ import annotations


class PageDetectError(Exception):
    """Base class for all pagedetect errors."""


class NotConfigured(PageDetectError):
    """The engine was asked to run before a rule catalog was set."""

    def __init__(self, message: str = "Detectors not set. Call set_detectors() first."):
        super().__init__(message)


class PatternError(PageDetectError):
    """A user-supplied regex could not be compiled or evaluated in time."""

    def __init__(self, pattern: str, reason: str):
        super().__init__(f"{reason}: {pattern!r}")
        self.pattern = pattern
        self.reason = reason


class CatalogError(PageDetectError):
    """The rule catalog is malformed."""


class StorageError(PageDetectError):
    """The key/value backend behind the cache failed."""

"""Snowfall analysis exception hierarchy.

Per-site and per-source failures raise a specific error type so the
pipeline can skip what failed and keep going with what succeeded.
"""

from __future__ import annotations


class SnowfallError(Exception):
    """Base exception for all snowfall analysis failures."""


class SourceUnavailable(SnowfallError):
    """Raised when a download collaborator cannot supply a site or index."""


class DataFormatError(SnowfallError):
    """Raised when source text has no parseable rows or a non-numeric value."""


class UndefinedBaseline(SnowfallError):
    """Raised when a site has no observations in the baseline phase."""

    def __init__(self, site_id: str, baseline: str) -> None:
        super().__init__(f"Site {site_id!r} has no {baseline} seasons; percentage deviation is undefined")
        self.site_id = site_id
        self.baseline = baseline

"""
Keyword-based security pre-check for submitted source.

A conservative first layer of defense in front of container isolation.
The container (no network, no capabilities, pid/memory/cpu limits) is the
real boundary; this filter rejects direct use of APIs that reach the OS,
reflection, unsafe memory, process spawning, or unmanaged threads before
anything touches disk or a container.

The scan is purely textual: a forbidden token inside a comment or string
literal is still rejected.
"""

from __future__ import annotations

from collections.abc import Iterable

from structlog import get_logger

from compilebox.config import DEFAULT_FORBIDDEN_KEYWORDS
from compilebox.sandbox.errors import SecurityViolation

logger = get_logger()


class CodeValidator:
    """Substring scan against an ordered forbidden-keyword list."""

    def __init__(self, forbidden_keywords: Iterable[str] | None = None) -> None:
        self.forbidden_keywords: tuple[str, ...] = tuple(
            forbidden_keywords if forbidden_keywords is not None else DEFAULT_FORBIDDEN_KEYWORDS
        )

    def validate(self, source: str) -> None:
        """Raise ``SecurityViolation`` for the first forbidden keyword found."""
        for keyword in self.forbidden_keywords:
            if keyword in source:
                logger.warning("Code blocked by security checker", keyword=keyword)
                raise SecurityViolation(keyword)

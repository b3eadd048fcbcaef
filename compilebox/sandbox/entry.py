"""
Entry-point detection for single-file Java submissions.

The class that owns ``public static void main(`` decides the source file
name (``<Name>.java``) and the launcher target.  This is a textual
heuristic, not a parse: the owner is the last ``class <Name>`` declaration
that appears before the entry point.
"""

from __future__ import annotations

import re

from compilebox.sandbox.errors import ResolutionError, ResolutionReason

ENTRY_POINT_PATTERN = re.compile(r"public\s+static\s+void\s+main\s*\(")
OWNING_UNIT_PATTERN = re.compile(r"(public\s+)?class\s+(\w+)")


class EntryUnitResolver:
    """Resolve the name of the class that owns the program entry point."""

    def __init__(
        self,
        entry_pattern: re.Pattern[str] = ENTRY_POINT_PATTERN,
        unit_pattern: re.Pattern[str] = OWNING_UNIT_PATTERN,
    ) -> None:
        self.entry_pattern = entry_pattern
        self.unit_pattern = unit_pattern

    def resolve(self, source: str) -> str:
        entries = list(self.entry_pattern.finditer(source))
        if not entries:
            raise ResolutionError(ResolutionReason.NO_ENTRY_POINT)
        if len(entries) > 1:
            raise ResolutionError(ResolutionReason.AMBIGUOUS_ENTRY_POINT)

        before_entry = source[: entries[0].start()]
        owner: str | None = None
        for match in self.unit_pattern.finditer(before_entry):
            owner = match.group(2)

        if owner is None:
            raise ResolutionError(ResolutionReason.NO_OWNING_UNIT)
        return owner

"""Startup snapshot of the source map and house notes.

Both tables are loaded once, before the first request, into a frozen
GroundingSnapshot. Request handlers only read it, so concurrent requests
need no locking. There is no reload path; restart the process to pick up
an edited source map or new notes.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from functools import lru_cache
from pathlib import Path

from canine import config
from canine.house_notes import (
    DEFAULT_MAX_NOTES,
    GuidanceNote,
    format_house_context,
    load_house_notes,
    select_house_notes,
)
from canine.source_map import SourceMap, load_source_map

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class GroundingPayload:
    """Everything the completion request needs besides the question."""
    links: tuple[str, ...]
    notes: tuple[GuidanceNote, ...] = ()

    @property
    def house_context(self) -> str:
        return format_house_context(self.notes)


@dataclass(frozen=True)
class GroundingSnapshot:
    source_map: SourceMap
    notes: tuple[GuidanceNote, ...] = field(default_factory=tuple)

    def select_links(self, query: str | None) -> list[str]:
        return self.source_map.select_links(query)

    def select_notes(self, query: str | None, max_notes: int = DEFAULT_MAX_NOTES) -> list[GuidanceNote]:
        return select_house_notes(query, max_notes, notes=self.notes)

    def build(self, query: str | None, max_notes: int = DEFAULT_MAX_NOTES) -> GroundingPayload:
        """Run both selectors for one question and merge the results."""
        return GroundingPayload(
            links=tuple(self.select_links(query)),
            notes=tuple(self.select_notes(query, max_notes)),
        )


def init_grounding(
    source_map_path: Path | None = None,
    notes_dir: Path | None = None,
) -> GroundingSnapshot:
    """Load and validate both tables.

    Raises:
        ConfigurationError: If the source map is missing or invalid.
    """
    smap = load_source_map(source_map_path or config.source_map_path())
    notes = load_house_notes(notes_dir or config.house_notes_dir())
    logger.info(
        "Grounding ready: %d buckets, %d house notes",
        len(smap.buckets), len(notes),
    )
    return GroundingSnapshot(source_map=smap, notes=notes)


@lru_cache(maxsize=1)
def get_grounding() -> GroundingSnapshot:
    """Get the process-wide snapshot, built from configured paths."""
    return init_grounding()

"""Curated source map: pick approved citation links for a question.

Topic buckets, fallback pools and tilt hints live in a versioned JSON
file (data/source_map.json) so the rule set can be diffed and extended
without touching the matcher. The file is loaded and validated once at
startup; a broken table raises ConfigurationError and the service does
not start.

Matching is plain substring presence on the lowercased question, not
word-boundary tokenizing. "ate" matches inside "grate", and that is the
observable behavior the rule set is written against.

Example:
    >>> smap = load_source_map(Path("data/source_map.json"))
    >>> smap.select_links("my dog ate xylitol gum")
    ['https://www.petpoisonhelpline.com/', 'https://www.fda.gov/animal-veterinary']
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from types import MappingProxyType
from typing import Any, Iterable, Mapping

from canine.errors import ConfigurationError

logger = logging.getLogger(__name__)

MAX_LINKS = 4
DEFAULT_FALLBACK_CAP = 3

HEALTH = "health"
TRAINING = "training"
FALLBACK_DOMAINS = (HEALTH, TRAINING)


# ---------------------------------------------------------------------------
# Data structures
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class TopicBucket:
    """A named rule: any keyword hit pulls in all of the bucket's URLs."""
    tag: str
    keywords: tuple[str, ...]
    urls: tuple[str, ...]
    domain: str = HEALTH

    def matches(self, text: str) -> bool:
        """True if any keyword is a substring of the (lowercased) text."""
        return any(k in text for k in self.keywords)


@dataclass(frozen=True)
class FallbackPool:
    """Default citations for one domain tilt when no bucket matched."""
    name: str
    urls: tuple[str, ...]
    cap: int = DEFAULT_FALLBACK_CAP

    def links(self) -> list[str]:
        return _dedupe(self.urls)[: self.cap]


@dataclass(frozen=True)
class SourceMap:
    """Immutable snapshot of the bucket/fallback/tilt tables."""
    buckets: tuple[TopicBucket, ...]
    fallbacks: Mapping[str, FallbackPool] = field(default_factory=dict)
    tilt_hints: tuple[str, ...] = ()
    version: str = ""

    def match_buckets(self, query: str | None) -> list[TopicBucket]:
        """Return the buckets whose keywords hit, in definition order."""
        text = _normalize(query)
        return [b for b in self.buckets if b.matches(text)]

    def is_training(self, query: str | None) -> bool:
        """Tilt rule: any training hint in the question means training."""
        text = _normalize(query)
        return any(h in text for h in self.tilt_hints)

    def select_links(self, query: str | None) -> list[str]:
        """Pick up to MAX_LINKS unique approved URLs for a question.

        Matched buckets contribute all of their URLs in bucket-definition
        order; duplicates keep their first position. With no bucket hit,
        the tilt hints decide between the training and health fallback
        pools. Never returns an empty list for a validated map.
        """
        chosen: list[str] = []
        for bucket in self.match_buckets(query):
            chosen.extend(bucket.urls)

        unique = _dedupe(chosen)
        if unique:
            return unique[:MAX_LINKS]

        pool = self.fallbacks[TRAINING if self.is_training(query) else HEALTH]
        return pool.links()[:MAX_LINKS]

    def all_urls(self) -> set[str]:
        """Every URL the map can ever return."""
        urls: set[str] = set()
        for b in self.buckets:
            urls.update(b.urls)
        for pool in self.fallbacks.values():
            urls.update(pool.urls)
        return urls


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _normalize(query: str | None) -> str:
    return (query or "").lower()


def _dedupe(items: Iterable[str]) -> list[str]:
    """Deduplicate, keeping first-occurrence order."""
    seen: set[str] = set()
    result: list[str] = []
    for item in items:
        if item not in seen:
            seen.add(item)
            result.append(item)
    return result


def _string_list(value: Any, what: str) -> list[str]:
    if not isinstance(value, list):
        raise ConfigurationError(f"{what} must be a list, got {type(value).__name__}")
    items = []
    for item in value:
        if not isinstance(item, str) or not item.strip():
            raise ConfigurationError(f"{what} contains a blank or non-string entry: {item!r}")
        items.append(item)
    return items


def _url_list(value: Any, what: str) -> list[str]:
    urls = [u.strip() for u in _string_list(value, what)]
    for url in urls:
        if not url.startswith(("http://", "https://")):
            raise ConfigurationError(f"{what} has a non-absolute URL: {url!r}")
    return urls


# ---------------------------------------------------------------------------
# Loading / validation
# ---------------------------------------------------------------------------

def _parse_bucket(raw: Any, index: int) -> TopicBucket:
    if not isinstance(raw, dict):
        raise ConfigurationError(f"bucket #{index} is not an object")

    tag = raw.get("tag")
    if not isinstance(tag, str) or not tag.strip():
        raise ConfigurationError(f"bucket #{index} is missing 'tag'")
    tag = tag.strip()

    keywords = _string_list(raw.get("keywords"), f"bucket {tag!r} keywords")
    if not keywords:
        raise ConfigurationError(f"bucket {tag!r} has no keywords")

    # Older configs call the field "links"
    url_field = raw.get("urls", raw.get("links"))
    if url_field is None:
        raise ConfigurationError(f"bucket {tag!r} has no 'urls'")
    urls = _url_list(url_field, f"bucket {tag!r} urls")
    if not urls:
        raise ConfigurationError(f"bucket {tag!r} has no urls")

    domain = raw.get("domain", HEALTH)
    if domain not in FALLBACK_DOMAINS:
        raise ConfigurationError(f"bucket {tag!r} has unknown domain {domain!r}")

    return TopicBucket(
        tag=tag,
        keywords=tuple(k.lower() for k in keywords),
        urls=tuple(urls),
        domain=domain,
    )


def _parse_fallback(name: str, raw: Any) -> FallbackPool:
    # Accept either {"cap": 3, "urls": [...]} or a bare list of URLs
    if isinstance(raw, list):
        raw = {"urls": raw}
    if not isinstance(raw, dict):
        raise ConfigurationError(f"fallback {name!r} is not an object")

    urls = _url_list(raw.get("urls", raw.get("links", [])), f"fallback {name!r} urls")
    if not urls:
        raise ConfigurationError(f"fallback pool {name!r} is empty")

    cap = raw.get("cap", DEFAULT_FALLBACK_CAP)
    if not isinstance(cap, int) or isinstance(cap, bool) or cap < 1:
        raise ConfigurationError(f"fallback {name!r} cap must be a positive integer, got {cap!r}")

    return FallbackPool(name=name, urls=tuple(urls), cap=cap)


def parse_source_map(data: Any) -> SourceMap:
    """Validate an already-decoded source map document.

    Raises:
        ConfigurationError: On any shape problem. Nothing is repaired.
    """
    if not isinstance(data, dict):
        raise ConfigurationError("source map must be a JSON object")

    raw_buckets = data.get("buckets", [])
    if not isinstance(raw_buckets, list):
        raise ConfigurationError("'buckets' must be a list")
    buckets = [_parse_bucket(b, i) for i, b in enumerate(raw_buckets)]

    tags = [b.tag for b in buckets]
    dupes = sorted({t for t in tags if tags.count(t) > 1})
    if dupes:
        raise ConfigurationError(f"duplicate bucket tags: {', '.join(dupes)}")

    raw_fallbacks = data.get("fallbacks")
    if not isinstance(raw_fallbacks, dict):
        raise ConfigurationError("'fallbacks' must be an object keyed by domain")
    unknown = sorted(set(raw_fallbacks) - set(FALLBACK_DOMAINS))
    if unknown:
        raise ConfigurationError(f"unknown fallback domains: {', '.join(unknown)}")
    fallbacks = {}
    for name in FALLBACK_DOMAINS:
        if name not in raw_fallbacks:
            raise ConfigurationError(f"fallback pool {name!r} is missing")
        fallbacks[name] = _parse_fallback(name, raw_fallbacks[name])

    tilt_hints = _string_list(data.get("tilt_hints", []), "tilt_hints")

    return SourceMap(
        buckets=tuple(buckets),
        fallbacks=MappingProxyType(fallbacks),
        tilt_hints=tuple(h.lower() for h in tilt_hints),
        version=str(data.get("version", "")),
    )


def load_source_map(path: Path) -> SourceMap:
    """Load and validate the source map JSON file at path.

    Unlike the house notes, a missing or unreadable source map is fatal.
    """
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)
    except FileNotFoundError as e:
        raise ConfigurationError(f"source map not found: {path}") from e
    except (OSError, json.JSONDecodeError) as e:
        raise ConfigurationError(f"could not read source map {path}: {e}") from e

    smap = parse_source_map(data)
    logger.info(
        "Loaded source map %s (version=%s): %d buckets, %d tilt hints",
        path, smap.version or "unversioned", len(smap.buckets), len(smap.tilt_hints),
    )
    return smap


def select_links(query: str | None, source_map: SourceMap | None = None) -> list[str]:
    """Module-level entry point; defaults to the process-wide snapshot."""
    if source_map is None:
        from canine.grounding import get_grounding
        source_map = get_grounding().source_map
    return source_map.select_links(query)

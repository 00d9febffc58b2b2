"""House notes: first-party guidance used as private grounding context.

Each note is a markdown file with an optional leading front-matter block:

    ---
    title: Crate Training Basics
    tags: [training, crate]
    keywords: ["crate", 'whining at night']
    ---
    Body text...

Only ``title``, ``tags`` and ``keywords`` are recognized. A missing block
means title = filename stem and no tags/keywords. A malformed block never
aborts the load: the note keeps whatever parsed cleanly, falls back to
defaults for the rest, and the problem is logged.

Notes are scored per question by keyword/tag/title overlap and the top
few bodies are handed to the model without attribution.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from pathlib import Path

from canine.errors import CorpusLoadWarning

logger = logging.getLogger(__name__)

NOTE_SUFFIX = ".md"
DEFAULT_MAX_NOTES = 2

KEYWORD_WEIGHT = 3
TAG_WEIGHT = 2
TITLE_WEIGHT = 1
BODY_FALLBACK_WEIGHT = 1

_FRONT_MATTER_RE = re.compile(
    r"\A---[ \t]*\r?\n(.*?)^---[ \t]*\r?$\n?(.*)\Z",
    re.MULTILINE | re.DOTALL,
)
_OPENING_FENCE_RE = re.compile(r"\A---[ \t]*\r?$", re.MULTILINE)
_META_LINE_RE = re.compile(r"^([A-Za-z_][\w-]*)\s*:\s*(.*)$")
_LIST_RE = re.compile(r"^\[(.*)\]$")
_WHITESPACE_RE = re.compile(r"\s+")

_LIST_KEYS = ("tags", "keywords")


# ---------------------------------------------------------------------------
# Data structures
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class GuidanceNote:
    """One parsed house note. ``id`` is the source filename."""
    id: str
    title: str
    tags: tuple[str, ...] = ()
    keywords: tuple[str, ...] = ()
    body: str = ""


@dataclass(frozen=True)
class ScoredNote:
    note: GuidanceNote
    score: int


# ---------------------------------------------------------------------------
# Front-matter parsing
# ---------------------------------------------------------------------------

def _unquote(value: str) -> str:
    value = value.strip()
    if len(value) >= 2 and value[0] == value[-1] and value[0] in ("'", '"'):
        return value[1:-1].strip()
    return value


def _dedupe(items: list[str]) -> tuple[str, ...]:
    seen: set[str] = set()
    result = []
    for item in items:
        if item not in seen:
            seen.add(item)
            result.append(item)
    return tuple(result)


def _parse_list(value: str) -> list[str] | None:
    """Parse ``[a, "b", 'c']``. Returns None if the brackets are missing."""
    m = _LIST_RE.match(value.strip())
    if not m:
        return None
    items = (_unquote(part) for part in m.group(1).split(","))
    return [item for item in items if item]


def parse_front_matter(
    raw: str, default_title: str
) -> tuple[dict, str, list[CorpusLoadWarning]]:
    """Split a note into (meta, body, problems).

    meta always has ``title``, ``tags`` and ``keywords``; anything that
    did not parse keeps its default. problems is empty for a clean note.
    """
    meta: dict = {"title": default_title, "tags": (), "keywords": ()}
    problems: list[CorpusLoadWarning] = []
    text = raw.lstrip("\ufeff")

    m = _FRONT_MATTER_RE.match(text)
    if not m:
        if _OPENING_FENCE_RE.match(text):
            problems.append(CorpusLoadWarning("front matter has no closing '---'"))
        return meta, text.strip(), problems

    block, body = m.group(1), m.group(2)
    seen_keys: set[str] = set()

    for lineno, line in enumerate(block.splitlines(), start=2):
        stripped = line.strip()
        if not stripped or stripped.startswith("#"):
            continue
        lm = _META_LINE_RE.match(stripped)
        if not lm:
            problems.append(CorpusLoadWarning(f"line {lineno}: not a 'key: value' pair"))
            continue

        key, value = lm.group(1).lower(), lm.group(2)
        if key in seen_keys:
            problems.append(CorpusLoadWarning(f"line {lineno}: duplicate key {key!r} ignored"))
            continue
        seen_keys.add(key)

        if key == "title":
            title = _unquote(value)
            if title:
                meta["title"] = title
            else:
                problems.append(CorpusLoadWarning(f"line {lineno}: empty title"))
        elif key in _LIST_KEYS:
            items = _parse_list(value)
            if items is None:
                problems.append(CorpusLoadWarning(
                    f"line {lineno}: {key} must be a bracketed list"
                ))
            else:
                meta[key] = _dedupe(items)
        # Other keys (author, date, ...) are allowed and ignored

    return meta, body.strip(), problems


def parse_note(note_id: str, raw: str) -> tuple[GuidanceNote, list[CorpusLoadWarning]]:
    """Build a GuidanceNote from raw file text."""
    default_title = Path(note_id).stem
    meta, body, problems = parse_front_matter(raw, default_title)
    note = GuidanceNote(
        id=note_id,
        title=meta["title"],
        tags=tuple(meta["tags"]),
        keywords=tuple(meta["keywords"]),
        body=body,
    )
    return note, problems


# ---------------------------------------------------------------------------
# Corpus loading
# ---------------------------------------------------------------------------

def load_house_notes(notes_dir: Path) -> tuple[GuidanceNote, ...]:
    """Load every ``*.md`` note in notes_dir, in sorted filename order.

    A missing or empty directory gives an empty corpus. Unreadable files
    are skipped; parse problems are logged and the note is kept.
    """
    notes_dir = Path(notes_dir)
    if not notes_dir.is_dir():
        logger.info("House notes directory %s not found; no house guidance", notes_dir)
        return ()

    notes: list[GuidanceNote] = []
    for path in sorted(notes_dir.iterdir(), key=lambda p: p.name):
        if path.suffix != NOTE_SUFFIX or not path.is_file():
            continue
        try:
            raw = path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as e:
            logger.warning("Could not read house note %s: %s", path.name, e)
            continue

        note, problems = parse_note(path.name, raw)
        for problem in problems:
            logger.warning("House note %s: %s (using defaults)", path.name, problem)
        notes.append(note)

    logger.info("Loaded %d house notes from %s", len(notes), notes_dir)
    return tuple(notes)


# ---------------------------------------------------------------------------
# Scoring / selection
# ---------------------------------------------------------------------------

def _first_token(text: str) -> str:
    # Leading whitespace yields an empty first token, which never matches
    return _WHITESPACE_RE.split(text, maxsplit=1)[0]


def score_note(note: GuidanceNote, query: str | None) -> int:
    """Score a note against a question.

    +3 per keyword found in the question, +2 per tag, +1 if the title
    appears. A note that scored nothing gets +1 when the question's first
    word appears anywhere in its body. That last rule is deliberately
    loose: it trades precision for surfacing *something* on short
    questions.
    """
    q = (query or "").lower()
    score = 0
    for keyword in note.keywords:
        if keyword.lower() in q:
            score += KEYWORD_WEIGHT
    for tag in note.tags:
        if tag.lower() in q:
            score += TAG_WEIGHT
    if note.title and note.title.lower() in q:
        score += TITLE_WEIGHT

    if score == 0 and q:
        first = _first_token(q)
        if first and first in note.body.lower():
            score += BODY_FALLBACK_WEIGHT
    return score


def rank_house_notes(query: str | None, notes: tuple[GuidanceNote, ...]) -> list[ScoredNote]:
    """Non-zero scored notes, best first; ties keep corpus order."""
    scored = [ScoredNote(note=n, score=score_note(n, query)) for n in notes]
    scored = [s for s in scored if s.score > 0]
    # sorted() is stable, so equal scores stay in load order
    return sorted(scored, key=lambda s: s.score, reverse=True)


def select_house_notes(
    query: str | None,
    max_notes: int = DEFAULT_MAX_NOTES,
    notes: tuple[GuidanceNote, ...] | None = None,
) -> list[GuidanceNote]:
    """Return up to max_notes best-matching notes for a question."""
    if notes is None:
        from canine.grounding import get_grounding
        notes = get_grounding().notes
    if max_notes <= 0:
        return []
    return [s.note for s in rank_house_notes(query, notes)[:max_notes]]


select_notes = select_house_notes


def format_house_context(notes: list[GuidanceNote] | tuple[GuidanceNote, ...]) -> str:
    """Join note bodies into one guidance block. Titles are left out."""
    return "\n\n---\n\n".join(n.body for n in notes if n.body)

"""Root-level test conftest: fixtures shared across all test files.

Resets in-memory rate buckets between tests and keeps the Redis path off
unless a test patches it in explicitly.
"""
from pathlib import Path

import pytest

from canine.source_map import load_source_map

ROOT = Path(__file__).resolve().parent.parent
SOURCE_MAP_PATH = ROOT / "data" / "source_map.json"


@pytest.fixture(autouse=True)
def _reset_rate_limits():
    """Clear rate buckets and force the in-memory limiter."""
    import web.helpers as helpers_mod

    helpers_mod._rate_buckets.clear()
    original = (helpers_mod._redis_client, helpers_mod._redis_checked)
    helpers_mod._redis_client, helpers_mod._redis_checked = None, True
    yield
    helpers_mod._rate_buckets.clear()
    helpers_mod._redis_client, helpers_mod._redis_checked = original


@pytest.fixture(scope="session")
def source_map():
    """The shipped source map, loaded once."""
    return load_source_map(SOURCE_MAP_PATH)


@pytest.fixture
def write_note(tmp_path):
    """Write a note file into a temp corpus directory and return the dir."""
    notes_dir = tmp_path / "house_notes"
    notes_dir.mkdir()

    def _write(name: str, text: str) -> Path:
        (notes_dir / name).write_text(text, encoding="utf-8")
        return notes_dir

    _write.dir = notes_dir
    return _write

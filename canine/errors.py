"""Error types for the curated source router.

ConfigurationError is fatal: the service must not start serving traffic
with a broken source map. CorpusLoadWarning is only ever logged.
"""

from __future__ import annotations


class ConfigurationError(Exception):
    """The bucket/fallback table failed validation at startup."""


class CorpusLoadWarning(UserWarning):
    """A house note could not be parsed cleanly and fell back to defaults."""

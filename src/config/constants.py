"""
Application constants and compiler limits.

These are values that don't change based on environment but may need
to be tuned or referenced across the codebase.
"""

from dataclasses import dataclass


# =============================================================================
# Database Layout
# =============================================================================

# Generated tsvector column holding the full-text document of each row.
# Created by the index bootstrap DDL; never returned to clients.
VECTOR_COLUMN = "pg_searchbox_doc"

# Prefix for the per-attribute highlight columns selected alongside hits.
# These only live between the database and the reshaper.
HIGHLIGHT_COLUMN_PREFIX = "pg_searchbox_highlight__"

# Text search configuration used when an index does not set one
DEFAULT_LANGUAGE = "english"


# =============================================================================
# Request Limits
# =============================================================================

@dataclass(frozen=True)
class Limits:
    """Hard ceilings applied regardless of per-index configuration."""

    MAX_REQUESTS_PER_BATCH: int = 15
    MAX_HITS_PER_PAGE: int = 100
    MAX_PAGES: int = 100
    MAX_HITS_TOTAL: int = 3000
    MAX_INDEX_NAME_LENGTH: int = 200

    # ts_headline fragment budget
    HIGHLIGHT_MAX_FRAGMENTS: int = 2


LIMITS = Limits()


# =============================================================================
# Defaults
# =============================================================================

DEFAULT_HIGHLIGHT_PRE_TAG = "__ais-highlight__"
DEFAULT_HIGHLIGHT_POST_TAG = "__/ais-highlight__"

DEFAULT_PAGE = 0
DEFAULT_HITS_PER_PAGE = 20
DEFAULT_LENGTH = 20

DEFAULT_MAX_VALUES_PER_FACET = 10
DEFAULT_MAX_FACET_HITS = 100

# Index identifiers are table names plus an optional "?sort=..." suffix
INDEX_NAME_PATTERN = r"^[a-z0-9_?,=+]+$"

# Wildcard accepted by allow-lists and attribute lists
WILDCARD = "*"

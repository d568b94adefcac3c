"""Search and keyword scoring constants.

These settings control hybrid search (vector similarity + keyword scoring).
Both result sets are normalized against their own maximum and blended with
a caller-supplied alpha.
"""

# =============================================================================
# Result Limits
# =============================================================================
# Public query surface bounds. Requests outside these ranges are rejected by
# the API schema before they reach the search engine.

DEFAULT_SEARCH_LIMIT = 10
MAX_SEARCH_LIMIT = 100
MAX_QUERY_LENGTH = 300
DEFAULT_HYBRID_ALPHA = 0.5

# =============================================================================
# Candidate Overfetch
# =============================================================================
# Each side of the hybrid search asks for limit * OVERFETCH_FACTOR candidates
# so that filtering and merging still leave `limit` results. The ANN query
# itself asks for ANN_FILTER_HEADROOM times more neighbours because
# framework/version filters are applied after the ANN lookup.

OVERFETCH_FACTOR = 2
ANN_FILTER_HEADROOM = 4

# =============================================================================
# Score Normalization
# =============================================================================
# Floor for the per-set maximum used when normalizing scores into [0, 1].

SCORE_EPSILON = 0.00001

# =============================================================================
# Keyword Scoring
# =============================================================================
# A query term found in the title weighs three times a content match. Repeated
# content occurrences add a bonus of occurrences / DIVISOR, capped per term so
# scores grow sub-linearly.

MIN_TERM_LENGTH = 3
TITLE_MATCH_WEIGHT = 0.6
CONTENT_MATCH_WEIGHT = 0.2
OCCURRENCE_BONUS_DIVISOR = 10
OCCURRENCE_BONUS_CAP = 0.2

# =============================================================================
# Keyword Extraction
# =============================================================================

KEYWORD_TOP_N = 50

STOP_WORDS = frozenset(
    {
        "a", "an", "the", "and", "or", "but", "in", "on", "at", "to", "for", "with",
        "is", "are", "was", "were", "be", "been", "being",
        "this", "that", "these", "those", "it", "its", "it's", "of", "from",
    }
)

# =============================================================================
# Snippets
# =============================================================================
# Snippets are a SNIPPET_LENGTH window centered on the earliest query term.
# Without a match the leading SNIPPET_FALLBACK_LENGTH characters are used.

SNIPPET_LENGTH = 300
SNIPPET_FALLBACK_LENGTH = 200
ELLIPSIS = "..."

"""Configuration constants.

Re-exports all constants for convenient importing:
    from docsearch.constants import EMBEDDING_DIMENSIONS, SNIPPET_LENGTH
"""

from docsearch.constants.index import *  # noqa: F403
from docsearch.constants.search import *  # noqa: F403

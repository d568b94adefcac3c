"""Keyword scoring over the document store.

The keyword index keeps no state of its own: scores and keyword sets are
derived from document content every time they are needed.
"""

import re
from collections import Counter
from dataclasses import dataclass
from typing import Iterable

from docsearch.constants import (
    CONTENT_MATCH_WEIGHT,
    ELLIPSIS,
    KEYWORD_TOP_N,
    MIN_TERM_LENGTH,
    OCCURRENCE_BONUS_CAP,
    OCCURRENCE_BONUS_DIVISOR,
    SNIPPET_FALLBACK_LENGTH,
    SNIPPET_LENGTH,
    STOP_WORDS,
    TITLE_MATCH_WEIGHT,
)
from docsearch.store.documents import Document, DocumentStore

_NON_WORD = re.compile(r"[^\w\s]")


@dataclass
class KeywordHit:
    """A document matched by keyword scoring."""

    id: str
    score: float
    snippet: str


def tokenize_query(query: str) -> list[str]:
    """Split a query into lowercase terms of at least MIN_TERM_LENGTH chars."""
    return [term for term in query.lower().split() if len(term) >= MIN_TERM_LENGTH]


def extract_keywords(content: str, top_n: int = KEYWORD_TOP_N) -> list[str]:
    """Most frequent non-stopword tokens in content, most frequent first."""
    words = _NON_WORD.sub(" ", content.lower()).split()
    counts = Counter(
        word for word in words if len(word) >= MIN_TERM_LENGTH and word not in STOP_WORDS
    )
    return [word for word, _ in counts.most_common(top_n)]


def score_document(terms: Iterable[str], title: str, content: str) -> float:
    """Score a document against query terms.

    Each term found in the title adds TITLE_MATCH_WEIGHT; each term found in
    the content adds CONTENT_MATCH_WEIGHT plus, for repeated occurrences, a
    bonus of occurrences / OCCURRENCE_BONUS_DIVISOR capped at
    OCCURRENCE_BONUS_CAP.
    """
    title_lower = title.lower()
    content_lower = content.lower()
    score = 0.0

    for term in terms:
        if term in title_lower:
            score += TITLE_MATCH_WEIGHT

        occurrences = content_lower.count(term)
        if occurrences:
            score += CONTENT_MATCH_WEIGHT
            if occurrences > 1:
                score += min(occurrences / OCCURRENCE_BONUS_DIVISOR, OCCURRENCE_BONUS_CAP)

    return score


def generate_snippet(content: str, terms: Iterable[str], length: int = SNIPPET_LENGTH) -> str:
    """Extract a window of content around the earliest query term.

    The window starts half its length before the match and is clamped to the
    content bounds; ellipses mark the sides where content was cut. Without a
    match the leading SNIPPET_FALLBACK_LENGTH characters are returned, with
    an ellipsis when content was cut.
    """
    content_lower = content.lower()
    positions = [content_lower.find(term.lower()) for term in terms]
    positions = [pos for pos in positions if pos != -1]

    if not positions:
        truncated = len(content) > SNIPPET_FALLBACK_LENGTH
        return content[:SNIPPET_FALLBACK_LENGTH] + (ELLIPSIS if truncated else "")

    earliest = min(positions)
    start = max(0, earliest - length // 2)
    end = min(len(content), start + length)

    snippet = content[start:end]
    if start > 0:
        snippet = ELLIPSIS + snippet
    if end < len(content):
        snippet = snippet + ELLIPSIS
    return snippet


def matches_filters(document: Document, framework: str | None, version: str | None) -> bool:
    if framework and document.framework != framework:
        return False
    if version and document.version != version:
        return False
    return True


class KeywordIndex:
    """Lexical search over a DocumentStore."""

    def __init__(
        self,
        store: DocumentStore,
        snippet_length: int = SNIPPET_LENGTH,
        top_n: int = KEYWORD_TOP_N,
    ) -> None:
        self._store = store
        self._snippet_length = snippet_length
        self._top_n = top_n

    def keywords_for(self, document_id: str) -> list[str]:
        """Keyword set of a stored document (empty for unknown IDs)."""
        document = self._store.get(document_id)
        if document is None:
            return []
        return extract_keywords(document.content, self._top_n)

    def snippet(self, document: Document, query: str) -> str:
        return generate_snippet(document.content, tokenize_query(query), self._snippet_length)

    def search(
        self,
        query: str,
        framework: str | None = None,
        version: str | None = None,
        limit: int = 10,
    ) -> list[KeywordHit]:
        """Score every matching document and return the best `limit` hits.

        Documents scoring zero are excluded.
        """
        terms = tokenize_query(query)
        if not terms or len(self._store) == 0:
            return []

        hits: list[KeywordHit] = []
        for document in self._store:
            if not matches_filters(document, framework, version):
                continue
            score = score_document(terms, document.title, document.content)
            if score <= 0:
                continue
            hits.append(
                KeywordHit(
                    id=document.id,
                    score=score,
                    snippet=generate_snippet(document.content, terms, self._snippet_length),
                )
            )

        hits.sort(key=lambda hit: hit.score, reverse=True)
        return hits[:limit]

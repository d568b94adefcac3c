"""Exception hierarchy for the search core."""


class DocSearchError(Exception):
    """Base exception for search core errors."""

    pass


class EmbeddingError(DocSearchError):
    """Raised when the embedding provider is unavailable or rejects the input."""

    pass


class IndexNotInitializedError(DocSearchError):
    """Raised when the search service could not be initialized."""

    pass


class StorageError(DocSearchError):
    """Raised when reading or writing index or metadata files fails."""

    pass


class DimensionMismatchError(DocSearchError):
    """Raised when a vector or persisted index has the wrong dimensionality."""

    def __init__(self, expected: int, actual: int, source: str = "vector") -> None:
        self.expected = expected
        self.actual = actual
        super().__init__(f"{source} has dimension {actual}, expected {expected}")


class SearchError(DocSearchError):
    """Raised when a query fails in every available search mode."""

    pass

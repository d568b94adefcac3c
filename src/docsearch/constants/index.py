"""Vector index and embedding constants.

Defaults match the all-MiniLM-L6-v2 sentence embedding model (384
dimensions). A persisted index must be loaded with the same dimensionality
it was built with.
"""

# =============================================================================
# HNSW Parameters
# =============================================================================

EMBEDDING_DIMENSIONS = 384
MAX_ELEMENTS = 100_000
HNSW_M = 16
HNSW_EF_CONSTRUCTION = 200
HNSW_EF_SEARCH = 50
HNSW_SPACE = "cosine"

# =============================================================================
# Embedding Input
# =============================================================================
# Text longer than this is truncated before embedding. The same limit applies
# at indexing and at query time.

EMBEDDING_MAX_CHARS = 8000

# =============================================================================
# Persistence
# =============================================================================

METADATA_FILE = "metadata.json"
INDEX_FILE = "vector-index.bin"
MAPPING_FILE = "id-mapping.json"

# Documents ingested between intermediate saves during batch ingestion.
BATCH_SAVE_SIZE = 10

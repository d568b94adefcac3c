"""HNSW vector index with an explicit document ID mapping.

hnswlib labels every vector with an integer. Labels are handed out as
monotonically increasing slots and mapped to document IDs in both
directions. hnswlib has no true delete, so removing a document only drops
its ``id_to_slot`` entry; the vector stays in the index as a dead slot until
the next rebuild. Dead slots are skipped at query time.

On disk the index is two files written together:

- ``vector-index.bin``: hnswlib's own serialization
- ``id-mapping.json``: ``idToIndex``, ``indexToId``, ``currentIndex`` and
  ``dimensions``
"""

import json
import logging
import struct
from pathlib import Path
from typing import Any, Sequence

import hnswlib
import numpy as np

from docsearch.constants import (
    EMBEDDING_DIMENSIONS,
    HNSW_EF_CONSTRUCTION,
    HNSW_EF_SEARCH,
    HNSW_M,
    HNSW_SPACE,
    MAX_ELEMENTS,
)
from docsearch.errors import DimensionMismatchError, IndexNotInitializedError, StorageError

logger = logging.getLogger(__name__)

# hnswlib index header: offsetLevel0, max_elements, cur_element_count,
# size_data_per_element, label_offset, offsetData (all size_t)
_HEADER = struct.Struct("<6Q")
_FLOAT_BYTES = 4


def read_index_dimensions(index_path: Path) -> int | None:
    """Read the vector dimensionality from an hnswlib index file header.

    The per-element data block sits between ``offsetData`` and
    ``label_offset`` and holds ``dim`` float32 values.

    Returns:
        Dimensionality, or None if the header cannot be read.
    """
    try:
        with open(index_path, "rb") as f:
            header = f.read(_HEADER.size)
    except OSError:
        return None
    if len(header) < _HEADER.size:
        return None
    _, _, _, _, label_offset, offset_data = _HEADER.unpack(header)
    data_size = label_offset - offset_data
    if data_size <= 0 or data_size % _FLOAT_BYTES:
        return None
    return data_size // _FLOAT_BYTES


class VectorIndex:
    """Approximate nearest-neighbour index over document embeddings."""

    def __init__(
        self,
        index_path: Path,
        mapping_path: Path,
        dimensions: int = EMBEDDING_DIMENSIONS,
        max_elements: int = MAX_ELEMENTS,
        m: int = HNSW_M,
        ef_construction: int = HNSW_EF_CONSTRUCTION,
        ef_search: int = HNSW_EF_SEARCH,
    ) -> None:
        """Initialize an unloaded vector index.

        Args:
            index_path: Path of the hnswlib binary file.
            mapping_path: Path of the JSON ID mapping sidecar.
            dimensions: Vector dimensionality D.
            max_elements: Initial capacity; grown automatically when full.
            m: HNSW neighbour count.
            ef_construction: Construction-time search breadth.
            ef_search: Query-time search breadth (raised to k when smaller).
        """
        self._index_path = Path(index_path)
        self._mapping_path = Path(mapping_path)
        self._dimensions = dimensions
        self._max_elements = max_elements
        self._m = m
        self._ef_construction = ef_construction
        self._ef_search = ef_search

        self._index: hnswlib.Index | None = None
        self._id_to_slot: dict[str, int] = {}
        self._slot_to_id: dict[int, str] = {}
        self._next_slot = 0

    @property
    def dimensions(self) -> int:
        return self._dimensions

    @property
    def is_ready(self) -> bool:
        """True once an index has been created or loaded."""
        return self._index is not None

    @property
    def element_count(self) -> int:
        """Vectors stored in the ANN structure, dead slots included."""
        if self._index is None:
            return 0
        return int(self._index.get_current_count())

    @property
    def live_count(self) -> int:
        """Vectors that still map to a live document."""
        return len(self._id_to_slot)

    @property
    def next_slot(self) -> int:
        return self._next_slot

    @property
    def id_to_slot(self) -> dict[str, int]:
        return dict(self._id_to_slot)

    @property
    def slot_to_id(self) -> dict[int, str]:
        return dict(self._slot_to_id)

    def contains(self, document_id: str) -> bool:
        return document_id in self._id_to_slot

    def exists_on_disk(self) -> bool:
        return self._index_path.exists()

    def create(self) -> None:
        """Replace the index with a new empty one and reset the mapping."""
        logger.info(f"Creating new vector index (dim={self._dimensions})")
        index = hnswlib.Index(space=HNSW_SPACE, dim=self._dimensions)
        index.init_index(
            max_elements=self._max_elements,
            ef_construction=self._ef_construction,
            M=self._m,
        )
        index.set_ef(self._ef_search)
        self._index = index
        self._id_to_slot = {}
        self._slot_to_id = {}
        self._next_slot = 0

    def load(self) -> bool:
        """Load the index and its ID mapping from disk.

        Returns:
            True if the blob and the mapping agree with each other. False
            means the mapping is missing or its counts do not match the
            index, and the caller should rebuild from the document store.

        Raises:
            DimensionMismatchError: If the persisted index was built with a
                different dimensionality.
            StorageError: If either file cannot be read.
        """
        mapping = self._read_mapping()

        recorded = mapping.get("dimensions") if mapping else None
        if recorded is not None and int(recorded) != self._dimensions:
            raise DimensionMismatchError(self._dimensions, int(recorded), "persisted index")
        on_disk = read_index_dimensions(self._index_path)
        if on_disk is not None and on_disk != self._dimensions:
            raise DimensionMismatchError(self._dimensions, on_disk, "persisted index")

        logger.info(f"Loading vector index from {self._index_path}")
        index = hnswlib.Index(space=HNSW_SPACE, dim=self._dimensions)
        try:
            index.load_index(str(self._index_path), max_elements=self._max_elements)
        except (RuntimeError, OSError, ValueError) as e:
            raise StorageError(f"Failed to read {self._index_path}: {e}") from e
        index.set_ef(self._ef_search)
        self._index = index

        count = self.element_count
        logger.info(f"Vector index loaded with {count} vectors")

        if mapping is None:
            logger.warning("No ID mapping found next to the vector index")
            self._id_to_slot = {}
            self._slot_to_id = {}
            self._next_slot = count
            return False

        self._id_to_slot = {str(k): int(v) for k, v in mapping.get("idToIndex", {}).items()}
        self._slot_to_id = {int(k): str(v) for k, v in mapping.get("indexToId", {}).items()}
        self._next_slot = int(mapping.get("currentIndex", count))
        logger.info(f"ID mapping loaded with {len(self._id_to_slot)} entries")

        consistent = self._next_slot == count and len(self._slot_to_id) == count
        if not consistent:
            logger.warning(
                f"Vector index holds {count} vectors but the ID mapping records "
                f"{len(self._slot_to_id)} slots (next slot {self._next_slot})"
            )
            # Never hand out a slot that is already occupied.
            self._next_slot = max(self._next_slot, count)
        return consistent

    def _read_mapping(self) -> dict[str, Any] | None:
        if not self._mapping_path.exists():
            return None
        try:
            with open(self._mapping_path, encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, ValueError) as e:
            raise StorageError(f"Failed to read {self._mapping_path}: {e}") from e
        if not isinstance(data, dict):
            raise StorageError(f"Malformed ID mapping in {self._mapping_path}")
        return data

    def _require_index(self) -> hnswlib.Index:
        if self._index is None:
            raise IndexNotInitializedError("Vector index has not been created or loaded")
        return self._index

    def _as_array(self, vector: Sequence[float]) -> np.ndarray:
        if len(vector) != self._dimensions:
            raise DimensionMismatchError(self._dimensions, len(vector))
        return np.asarray([vector], dtype=np.float32)

    def insert(self, document_id: str, vector: Sequence[float]) -> int:
        """Add a vector under the next free slot.

        The mapping and slot counter only change after hnswlib accepted the
        vector.

        Returns:
            The slot assigned to the document.
        """
        index = self._require_index()
        data = self._as_array(vector)

        slot = self._next_slot
        if slot >= index.get_max_elements():
            new_size = max(index.get_max_elements() * 2, slot + 1)
            logger.info(f"Growing vector index capacity to {new_size}")
            index.resize_index(new_size)

        index.add_items(data, np.asarray([slot], dtype=np.int64))

        self._next_slot = slot + 1
        self._id_to_slot[document_id] = slot
        self._slot_to_id[slot] = document_id
        return slot

    def remove(self, document_id: str) -> bool:
        """Forget a document's slot. The vector itself stays until a rebuild."""
        return self._id_to_slot.pop(document_id, None) is not None

    def query(self, vector: Sequence[float], k: int) -> list[tuple[str, float]]:
        """Find the k nearest live documents.

        Returns:
            ``(document_id, similarity)`` pairs, most similar first, where
            similarity is ``1 - cosine distance``. Dead slots are dropped, so
            fewer than k pairs may come back.
        """
        index = self._require_index()
        data = self._as_array(vector)

        k = min(k, self.element_count)
        if k <= 0:
            return []

        index.set_ef(max(self._ef_search, k))
        labels, distances = index.knn_query(data, k=k)

        results: list[tuple[str, float]] = []
        for label, distance in zip(labels[0], distances[0]):
            slot = int(label)
            document_id = self._slot_to_id.get(slot)
            if document_id is None or self._id_to_slot.get(document_id) != slot:
                continue
            results.append((document_id, 1.0 - float(distance)))
        return results

    def save(self) -> None:
        """Write the binary index and the ID mapping.

        Raises:
            StorageError: If either file cannot be written.
        """
        index = self._require_index()
        mapping = {
            "idToIndex": self._id_to_slot,
            "indexToId": {str(slot): doc_id for slot, doc_id in self._slot_to_id.items()},
            "currentIndex": self._next_slot,
            "dimensions": self._dimensions,
        }
        try:
            self._index_path.parent.mkdir(parents=True, exist_ok=True)
            index.save_index(str(self._index_path))
            with open(self._mapping_path, "w", encoding="utf-8") as f:
                json.dump(mapping, f, indent=2)
        except (OSError, RuntimeError) as e:
            raise StorageError(f"Failed to write vector index: {e}") from e
        logger.debug(f"Vector index saved to {self._index_path}")

    def close(self) -> None:
        """Release the in-memory index."""
        self._index = None
        self._id_to_slot = {}
        self._slot_to_id = {}
        self._next_slot = 0

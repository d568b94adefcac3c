"""Vector index tests."""

import json

import pytest

from docsearch.errors import DimensionMismatchError, IndexNotInitializedError, StorageError
from docsearch.vectorstore import VectorIndex, read_index_dimensions

from conftest import TEST_DIMENSIONS, bag_of_words_vector


def make_index(tmp_path, dimensions: int = TEST_DIMENSIONS, max_elements: int = 8) -> VectorIndex:
    return VectorIndex(
        tmp_path / "vector-index.bin",
        tmp_path / "id-mapping.json",
        dimensions=dimensions,
        max_elements=max_elements,
    )


@pytest.fixture
def index(tmp_path):
    index = make_index(tmp_path)
    index.create()
    yield index
    index.close()


def test_insert_then_query_finds_document(index):
    vector = bag_of_words_vector("react hooks usestate")
    index.insert("doc-1", vector)
    index.insert("doc-2", bag_of_words_vector("vue composition api"))

    results = index.query(vector, 1)

    assert results[0][0] == "doc-1"
    assert results[0][1] == pytest.approx(1.0, abs=1e-4)


def test_slots_increase_monotonically(index):
    slots = [index.insert(f"doc-{i}", bag_of_words_vector(f"text {i}")) for i in range(3)]

    assert slots == [0, 1, 2]
    assert index.next_slot == 3
    assert index.slot_to_id == {0: "doc-0", 1: "doc-1", 2: "doc-2"}


def test_remove_leaves_dead_slot(index):
    index.insert("doc-1", bag_of_words_vector("alpha beta"))
    index.insert("doc-2", bag_of_words_vector("gamma delta"))

    assert index.remove("doc-1") is True
    assert index.remove("doc-1") is False

    assert index.element_count == 2
    assert index.live_count == 1
    assert 0 in index.slot_to_id
    ids = [doc_id for doc_id, _ in index.query(bag_of_words_vector("alpha beta"), 2)]
    assert ids == ["doc-2"]


def test_slots_never_reused_after_remove(index):
    index.insert("doc-1", bag_of_words_vector("one"))
    index.remove("doc-1")

    assert index.insert("doc-2", bag_of_words_vector("two")) == 1


def test_query_k_larger_than_count(index):
    index.insert("doc-1", bag_of_words_vector("only document"))

    assert len(index.query(bag_of_words_vector("only document"), 50)) == 1


def test_query_empty_index(index):
    assert index.query(bag_of_words_vector("anything"), 5) == []


def test_wrong_dimension_rejected_without_touching_mapping(index):
    with pytest.raises(DimensionMismatchError):
        index.insert("doc-1", [0.1, 0.2])

    assert index.next_slot == 0
    assert not index.contains("doc-1")


def test_capacity_grows_when_full(tmp_path):
    index = make_index(tmp_path, max_elements=2)
    index.create()

    for i in range(5):
        index.insert(f"doc-{i}", bag_of_words_vector(f"document number {i}"))

    assert index.element_count == 5


def test_unloaded_index_raises(tmp_path):
    index = make_index(tmp_path)

    with pytest.raises(IndexNotInitializedError):
        index.insert("doc-1", bag_of_words_vector("text"))
    assert not index.is_ready


def test_save_and_load_round_trip(tmp_path, index):
    index.insert("doc-1", bag_of_words_vector("react hooks"))
    index.insert("doc-2", bag_of_words_vector("vue refs"))
    index.remove("doc-2")
    index.save()

    loaded = make_index(tmp_path)
    assert loaded.load() is True

    assert loaded.id_to_slot == {"doc-1": 0}
    assert loaded.slot_to_id == {0: "doc-1", 1: "doc-2"}
    assert loaded.next_slot == 2
    assert loaded.query(bag_of_words_vector("react hooks"), 1)[0][0] == "doc-1"


def test_mapping_file_shape(tmp_path, index):
    index.insert("doc-1", bag_of_words_vector("text"))
    index.save()

    mapping = json.loads((tmp_path / "id-mapping.json").read_text())

    assert mapping == {
        "idToIndex": {"doc-1": 0},
        "indexToId": {"0": "doc-1"},
        "currentIndex": 1,
        "dimensions": TEST_DIMENSIONS,
    }


def test_load_without_mapping_reports_inconsistent(tmp_path, index):
    index.insert("doc-1", bag_of_words_vector("text"))
    index.save()
    (tmp_path / "id-mapping.json").unlink()

    loaded = make_index(tmp_path)

    assert loaded.load() is False
    assert loaded.next_slot == 1


def test_load_with_stale_mapping_reports_inconsistent(tmp_path, index):
    index.insert("doc-1", bag_of_words_vector("one"))
    index.insert("doc-2", bag_of_words_vector("two"))
    index.save()
    mapping_path = tmp_path / "id-mapping.json"
    mapping = json.loads(mapping_path.read_text())
    mapping["currentIndex"] = 1
    del mapping["indexToId"]["1"]
    mapping_path.write_text(json.dumps(mapping))

    loaded = make_index(tmp_path)

    assert loaded.load() is False
    assert loaded.next_slot == 2


def test_dimension_change_detected_from_mapping(tmp_path, index):
    index.insert("doc-1", bag_of_words_vector("text"))
    index.save()

    with pytest.raises(DimensionMismatchError):
        make_index(tmp_path, dimensions=TEST_DIMENSIONS * 2).load()


def test_dimension_change_detected_from_index_header(tmp_path, index):
    index.insert("doc-1", bag_of_words_vector("text"))
    index.save()
    (tmp_path / "id-mapping.json").unlink()

    assert read_index_dimensions(tmp_path / "vector-index.bin") == TEST_DIMENSIONS
    with pytest.raises(DimensionMismatchError):
        make_index(tmp_path, dimensions=TEST_DIMENSIONS * 2).load()


def test_corrupt_mapping_raises_storage_error(tmp_path, index):
    index.save()
    (tmp_path / "id-mapping.json").write_text("[1, 2")

    with pytest.raises(StorageError):
        make_index(tmp_path).load()


def test_read_dimensions_of_missing_file(tmp_path):
    assert read_index_dimensions(tmp_path / "nope.bin") is None

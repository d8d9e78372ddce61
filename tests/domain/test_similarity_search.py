import pytest

from context_engine.domain.context.memory.similarity_search import (
    cosine_similarity,
    find_similar_memories,
    rank_candidates,
)
from context_engine.domain.errors import DataIntegrityError, DimensionMismatchError
from context_engine.domain.models import MemoryRecord


def make_memory(memory_id, embedding, key_point=None):
    return MemoryRecord(
        id=memory_id,
        agent_id=1,
        user_id="user-1",
        key_point=key_point or f"memory {memory_id}",
        embedding=embedding
    )


class TestCosineSimilarity:

    @pytest.mark.parametrize("vector", [[1.0, 0.0, 0.0], [0.3, -2.0, 5.5], [1e-3, 1e-3, 1e-3]])
    def test_self_similarity_is_one(self, vector):
        assert cosine_similarity(vector, vector) == pytest.approx(1.0)

    def test_symmetric(self):
        a = [0.2, 0.7, -0.1]
        b = [0.9, -0.3, 0.4]
        assert cosine_similarity(a, b) == pytest.approx(cosine_similarity(b, a))

    def test_orthogonal_and_opposite(self):
        assert cosine_similarity([1.0, 0.0], [0.0, 1.0]) == pytest.approx(0.0)
        assert cosine_similarity([1.0, 0.0], [-1.0, 0.0]) == pytest.approx(-1.0)

    def test_zero_norm_is_zero(self):
        assert cosine_similarity([0.0, 0.0], [1.0, 1.0]) == 0.0
        assert cosine_similarity([1.0, 1.0], [0.0, 0.0]) == 0.0

    def test_dimension_mismatch_raises(self):
        with pytest.raises(DimensionMismatchError) as exc_info:
            cosine_similarity([1.0, 0.0], [1.0, 0.0, 0.0])
        assert exc_info.value.expected == 2
        assert exc_info.value.actual == 3

    def test_dimension_mismatch_is_value_error(self):
        with pytest.raises(ValueError):
            cosine_similarity([1.0], [1.0, 2.0])
        assert issubclass(DimensionMismatchError, DataIntegrityError)


class TestRankCandidates:

    def test_orders_by_similarity_and_applies_threshold(self):
        candidates = [
            ("far", [0.0, 1.0]),
            ("close", [1.0, 0.1]),
            ("exact", [1.0, 0.0]),
            ("middle", [1.0, 1.0]),
        ]
        ranked = rank_candidates([1.0, 0.0], candidates, top_k=10, threshold=0.5)

        assert [name for name, _ in ranked] == ["exact", "close", "middle"]
        assert all(score >= 0.5 for _, score in ranked)

    def test_never_more_than_top_k(self):
        candidates = [(i, [1.0, i / 100]) for i in range(20)]
        ranked = rank_candidates([1.0, 0.0], candidates, top_k=5, threshold=0.0)
        assert len(ranked) == 5

    def test_top_k_zero_returns_nothing(self):
        assert rank_candidates([1.0], [("a", [1.0])], top_k=0, threshold=0.0) == []

    def test_ties_keep_insertion_order(self):
        candidates = [("first", [2.0, 0.0]), ("second", [1.0, 0.0]), ("third", [5.0, 0.0])]
        ranked = rank_candidates([1.0, 0.0], candidates, top_k=3, threshold=0.0)
        assert [name for name, _ in ranked] == ["first", "second", "third"]

    def test_skips_missing_and_zero_vectors(self):
        candidates = [("none", None), ("zero", [0.0, 0.0]), ("ok", [1.0, 0.0])]
        ranked = rank_candidates([1.0, 0.0], candidates, top_k=3, threshold=-1.0)
        assert [name for name, _ in ranked] == ["ok"]

    def test_zero_query_matches_nothing(self):
        ranked = rank_candidates([0.0, 0.0], [("a", [1.0, 0.0])], top_k=3, threshold=-1.0)
        assert ranked == []

    def test_mismatched_candidate_raises(self):
        with pytest.raises(DimensionMismatchError):
            rank_candidates([1.0, 0.0], [("bad", [1.0, 0.0, 0.0])], top_k=3, threshold=0.0)

    def test_threshold_is_inclusive(self):
        ranked = rank_candidates([1.0, 0.0], [("a", [1.0, 0.0])], top_k=1, threshold=1.0)
        assert len(ranked) == 1


def test_find_similar_memories_wraps_records():
    memories = [
        make_memory(1, [1.0, 0.0, 0.0]),
        make_memory(2, None),
        make_memory(3, [0.9, 0.1, 0.0]),
    ]

    results = find_similar_memories([1.0, 0.0, 0.0], memories, top_k=5, threshold=0.5)

    assert [r.record.id for r in results] == [1, 3]
    assert results[0].similarity == pytest.approx(1.0)
    assert results[0].similarity >= results[1].similarity

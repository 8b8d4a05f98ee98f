"""
Tests for molsim_toolkit.similarity.engine.

Run with: pytest tests/test_similarity.py -v
"""

import numpy as np
import pandas as pd
import pytest

from molsim_toolkit.config import SimilarityConfig
from molsim_toolkit.similarity import (
    InMemoryIndex,
    SearchResults,
    SimilarityEngine,
    new_bit_fingerprint,
    new_dense_fingerprint,
)
from molsim_toolkit.similarity.engine import RESULT_COLUMNS
from molsim_toolkit.similarity.errors import (
    DimensionMismatchError,
    EmptyScoresError,
    IndexNotConfiguredError,
    NilFingerprintError,
    TypeMismatchError,
    UnsupportedMetricError,
)
from molsim_toolkit.similarity.types import FingerprintType, SimilarityMetric


def _morgan(payload):
    return new_bit_fingerprint("morgan", payload, len(payload) * 8, radius=2)


def _maccs(on_bits):
    arr = bytearray(21)
    for i in on_bits:
        arr[i // 8] |= 1 << (i % 8)
    return new_bit_fingerprint("maccs", bytes(arr), 166)


QUERY = _morgan(b"\x0f")
LIBRARY = {
    "CPD-1": _morgan(b"\x0f"),  # 1.0
    "CPD-2": _morgan(b"\x07"),  # 0.75
    "CPD-3": _morgan(b"\x03"),  # 0.5
    "CPD-4": _morgan(b"\xf0"),  # 0.0
    "CPD-0": _morgan(b"\x07"),  # 0.75, ties with CPD-2
}


@pytest.fixture
def engine():
    return SimilarityEngine()


class TestSimilarity:
    """Tests for pairwise and batch scoring."""

    def test_default_metric_is_tanimoto(self, engine):
        assert engine.similarity(QUERY, LIBRARY["CPD-2"]) == pytest.approx(0.75)

    def test_metric_by_name(self, engine):
        assert engine.similarity(QUERY, LIBRARY["CPD-3"], metric="dice") == pytest.approx(2 / 3)
        assert engine.similarity(QUERY, LIBRARY["CPD-3"], SimilarityMetric.COSINE) > 0.5

    def test_unsupported_metric(self, engine):
        with pytest.raises(UnsupportedMetricError):
            engine.similarity(QUERY, QUERY, metric="hamming")

    def test_calculator_lookup(self, engine):
        assert engine.calculator("Dice").metric is SimilarityMetric.DICE

    def test_tversky_parameters(self):
        engine = SimilarityEngine(tversky_alpha=1.0, tversky_beta=0.0)
        assert engine.similarity(LIBRARY["CPD-3"], QUERY, "tversky") == pytest.approx(1.0)

    def test_batch(self, engine):
        scores = engine.batch_similarity(QUERY, list(LIBRARY.values()))
        assert isinstance(scores, np.ndarray)
        np.testing.assert_allclose(scores, [1.0, 0.75, 0.5, 0.0, 0.75])

    def test_batch_empty(self, engine):
        assert engine.batch_similarity(QUERY, []).shape == (0,)

    def test_batch_aborts_on_first_failure(self, engine):
        bad = new_bit_fingerprint("morgan", bytes(2), 16, radius=2)
        with pytest.raises(DimensionMismatchError):
            engine.batch_similarity(QUERY, [LIBRARY["CPD-1"], bad, None])


class TestRank:
    """Tests for ranking a candidate set."""

    def test_order_and_ties(self, engine):
        results = engine.rank(QUERY, LIBRARY)
        assert isinstance(results, SearchResults)
        assert [r.candidate_id for r in results] == ["CPD-1", "CPD-0", "CPD-2", "CPD-3", "CPD-4"]
        assert [r.rank for r in results] == [1, 2, 3, 4, 5]
        assert results.n_searched == 5

    def test_threshold_inclusive(self, engine):
        results = engine.rank(QUERY, LIBRARY, threshold=0.5)
        assert [r.candidate_id for r in results] == ["CPD-1", "CPD-0", "CPD-2", "CPD-3"]

    def test_top_n(self, engine):
        results = engine.rank(QUERY, LIBRARY, top_n=2, query_id="Q")
        assert len(results) == 2
        assert results.query_id == "Q"

    def test_top_n_zero(self, engine):
        assert len(engine.rank(QUERY, LIBRARY, top_n=0)) == 0
        assert len(engine.rank(QUERY, LIBRARY, top_n=-1)) == 0
        assert len(engine.rank_fused({"morgan": QUERY}, {"A": {"morgan": QUERY}}, top_n=0)) == 0

    def test_none_query(self, engine):
        with pytest.raises(NilFingerprintError):
            engine.rank(None, LIBRARY)

    def test_to_dataframe(self, engine):
        df = engine.rank(QUERY, LIBRARY, top_n=1).to_dataframe()
        assert list(df.columns) == RESULT_COLUMNS
        row = df.iloc[0]
        assert row["Candidate_ID"] == "CPD-1"
        assert row["Metric"] == "tanimoto"
        assert row["Fingerprint_Type"] == "morgan"

    def test_empty_dataframe(self, engine):
        df = engine.rank(QUERY, {}).to_dataframe()
        assert df.empty
        assert list(df.columns) == RESULT_COLUMNS

    def test_to_csv(self, engine, tmp_path):
        path = tmp_path / "hits.csv"
        engine.rank(QUERY, LIBRARY).to_csv(str(path))
        df = pd.read_csv(path)
        assert len(df) == 5


class TestFused:
    """Tests for multi-fingerprint scoring."""

    def test_fused_similarity(self, engine):
        query = {"morgan": QUERY, "maccs": _maccs([1, 2, 3, 4])}
        cand = {"morgan": LIBRARY["CPD-2"], "maccs": _maccs([1, 2])}
        # (0.75 + 0.5) / 2
        assert engine.fused_similarity(query, cand) == pytest.approx(0.625)

    def test_only_shared_types(self, engine):
        query = {"morgan": QUERY, "maccs": _maccs([1])}
        cand = {FingerprintType.MORGAN: LIBRARY["CPD-3"]}
        assert engine.per_type_scores(query, cand) == {FingerprintType.MORGAN: 0.5}

    def test_weights_and_strategy(self, engine):
        query = {"morgan": QUERY, "maccs": _maccs([1, 2, 3, 4])}
        cand = {"morgan": LIBRARY["CPD-2"], "maccs": _maccs([1, 2])}
        assert engine.fused_similarity(query, cand, fusion="max") == pytest.approx(0.75)
        weighted = engine.fused_similarity(query, cand, weights={"morgan": 3.0})
        assert weighted == pytest.approx((0.75 * 3 + 0.5) / 4)

    def test_no_shared_types(self, engine):
        with pytest.raises(EmptyScoresError):
            engine.fused_similarity({"morgan": QUERY}, {"maccs": _maccs([1])})

    def test_rank_fused(self, engine):
        query = {"morgan": QUERY, "maccs": _maccs([1, 2])}
        candidates = {
            "A": {"morgan": LIBRARY["CPD-1"], "maccs": _maccs([1, 2])},
            "B": {"morgan": LIBRARY["CPD-3"], "maccs": _maccs([1, 2])},
            "C": {"maccs": _maccs([5])},
            "D": {"gnn": new_dense_fingerprint([0.1] * 32, "v1")},
        }
        results = engine.rank_fused(query, candidates)
        assert [r.candidate_id for r in results] == ["A", "B", "C"]
        assert results.results[1].score == pytest.approx(0.75)
        assert results.n_searched == 4
        assert results.results[0].to_dict()["Fingerprint_Type"] == "fused"


class TestSearch:
    """Tests for index-backed search."""

    def test_requires_index(self, engine):
        with pytest.raises(IndexNotConfiguredError):
            engine.search(QUERY)

    def test_search(self):
        index = InMemoryIndex(LIBRARY)
        index.add("MAC-1", _maccs([1]))
        engine = SimilarityEngine(index=index)
        results = engine.search(QUERY, limit=3, threshold=0.1)
        assert [r.candidate_id for r in results] == ["CPD-1", "CPD-0", "CPD-2"]
        assert results.n_searched == 5

    def test_zero_limit(self):
        engine = SimilarityEngine(index=InMemoryIndex(LIBRARY))
        results = engine.search(QUERY, limit=0)
        assert len(results) == 0
        assert results.n_searched == 5

    def test_none_query(self):
        engine = SimilarityEngine(index=InMemoryIndex())
        with pytest.raises(NilFingerprintError):
            engine.search(None)

    def test_index_add_remove(self):
        index = InMemoryIndex()
        index.add("X", QUERY)
        assert "X" in index and len(index) == 1
        assert index.remove("X") is True
        assert index.remove("X") is False
        with pytest.raises(NilFingerprintError):
            index.add("Y", None)

    def test_from_config(self):
        config = SimilarityConfig(tversky_alpha=1.0, tversky_beta=0.0, fusion="min")
        engine = SimilarityEngine.from_config(config)
        assert engine.fusion.name == "min"
        assert engine.similarity(LIBRARY["CPD-3"], QUERY, "tversky") == pytest.approx(1.0)

    def test_type_mismatch_candidate(self, engine):
        with pytest.raises(TypeMismatchError):
            engine.rank(QUERY, {"M": _maccs([1])})

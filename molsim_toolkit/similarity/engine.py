"""
Similarity engine facade.

Selects a calculator by metric name, scores single pairs and batches, ranks
candidate sets, fuses multi-fingerprint scores and delegates large-scale
search to a pluggable candidate index.

The metric -> calculator table is built once in ``__init__`` and never
mutated afterwards, so one engine can be shared across threads; batch
scoring is a sequential loop that callers may split across workers.
"""

import logging
from dataclasses import dataclass
from typing import (
    Any,
    Dict,
    Iterable,
    Iterator,
    List,
    Mapping,
    Optional,
    Protocol,
    Sequence,
    Tuple,
    Union,
)

import numpy as np
import pandas as pd

from .errors import IndexNotConfiguredError, NilFingerprintError
from .fingerprints import Fingerprint
from .fusion import FusionStrategy, get_fusion_strategy
from .metrics import SimilarityCalculator, get_calculator
from .types import FingerprintType, SimilarityMetric

logger = logging.getLogger(__name__)

MetricKey = Union[str, SimilarityMetric]
TypeKey = Union[str, FingerprintType]

RESULT_COLUMNS = ["Rank", "Candidate_ID", "Score", "Metric", "Fingerprint_Type"]


@dataclass
class SimilarityResult:
    """Container for a single scored candidate."""

    candidate_id: str
    score: float
    metric: SimilarityMetric
    fp_type: Optional[FingerprintType] = None
    rank: Optional[int] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "Rank": self.rank,
            "Candidate_ID": self.candidate_id,
            "Score": self.score,
            "Metric": self.metric.value,
            "Fingerprint_Type": self.fp_type.value if self.fp_type is not None else "fused",
        }


@dataclass
class SearchResults:
    """Container for ranked similarity results."""

    query_id: Optional[str]
    metric: SimilarityMetric
    fp_type: Optional[FingerprintType]
    threshold: float
    results: List[SimilarityResult]
    n_searched: int

    def to_dataframe(self) -> pd.DataFrame:
        """Convert results to pandas DataFrame."""
        if not self.results:
            return pd.DataFrame(columns=RESULT_COLUMNS)
        return pd.DataFrame([r.to_dict() for r in self.results], columns=RESULT_COLUMNS)

    def to_csv(self, path: str, **kwargs):
        """Save results to CSV file."""
        df = self.to_dataframe()
        df.to_csv(path, index=False, **kwargs)

    def __len__(self):
        return len(self.results)

    def __iter__(self) -> Iterator[SimilarityResult]:
        return iter(self.results)


class CandidateIndex(Protocol):
    """
    Candidate generator for large-scale search (e.g. an ANN vector index).

    Returns ``(candidate_id, fingerprint)`` pairs likely to be close to the
    query; the engine re-scores them exactly.
    """

    def candidates(
        self, fingerprint: Fingerprint, limit: int
    ) -> Iterable[Tuple[str, Fingerprint]]:
        ...


class InMemoryIndex:
    """
    Brute-force candidate index.

    Every stored fingerprint of the query's type is returned as a candidate;
    ``limit`` is left to the engine's exact re-ranking. Suitable for small
    libraries and tests.
    """

    def __init__(self, items: Optional[Mapping[str, Fingerprint]] = None):
        self._items: Dict[str, Fingerprint] = {}
        for candidate_id, fp in (items or {}).items():
            self.add(candidate_id, fp)

    def add(self, candidate_id: str, fingerprint: Fingerprint) -> None:
        if fingerprint is None:
            raise NilFingerprintError(f"Cannot index None for candidate {candidate_id}")
        self._items[str(candidate_id)] = fingerprint

    def remove(self, candidate_id: str) -> bool:
        return self._items.pop(str(candidate_id), None) is not None

    def candidates(self, fingerprint: Fingerprint, limit: int) -> List[Tuple[str, Fingerprint]]:
        return [
            (cid, fp)
            for cid, fp in self._items.items()
            if fp.fp_type == fingerprint.fp_type and fp.encoding == fingerprint.encoding
        ]

    def __len__(self) -> int:
        return len(self._items)

    def __contains__(self, candidate_id: object) -> bool:
        return str(candidate_id) in self._items


def _sorted_results(
    scored: Iterable[Tuple[str, float]],
    metric: SimilarityMetric,
    fp_type: Optional[FingerprintType],
    threshold: float,
    top_n: Optional[int],
) -> List[SimilarityResult]:
    results: List[SimilarityResult] = []
    # Sort descending by score, ties broken by candidate id
    for candidate_id, score in sorted(scored, key=lambda item: (-item[1], item[0])):
        if score < threshold or (top_n is not None and len(results) >= top_n):
            break
        results.append(
            SimilarityResult(
                candidate_id=candidate_id,
                score=float(score),
                metric=metric,
                fp_type=fp_type,
                rank=len(results) + 1,
            )
        )
    return results


class SimilarityEngine:
    """
    Facade over the similarity calculators and fusion strategies.

    Parameters
    ----------
    tversky_alpha, tversky_beta : float
        Weights bound into the Tversky calculator
    fusion : str or FusionStrategy
        Default strategy for multi-fingerprint scoring
    weights : mapping, optional
        Default per-type fusion weights
    index : CandidateIndex, optional
        Backend used by ``search``

    Examples
    --------
    >>> engine = SimilarityEngine()
    >>> engine.similarity(fp_a, fp_b, metric="dice")
    >>> engine.rank(query_fp, {"CPD-1": fp_1, "CPD-2": fp_2}, top_n=10)
    """

    def __init__(
        self,
        tversky_alpha: float = 1.0,
        tversky_beta: float = 1.0,
        fusion: Union[str, FusionStrategy] = "weighted_average",
        weights: Optional[Mapping[TypeKey, float]] = None,
        index: Optional[CandidateIndex] = None,
    ):
        self._calculators: Dict[SimilarityMetric, SimilarityCalculator] = {
            metric: get_calculator(metric, alpha=tversky_alpha, beta=tversky_beta)
            for metric in SimilarityMetric
        }
        self.fusion = get_fusion_strategy(fusion)
        self.weights = dict(weights) if weights else None
        self.index = index

    @classmethod
    def from_config(cls, config, index: Optional[CandidateIndex] = None) -> "SimilarityEngine":
        """Build an engine from a ``SimilarityConfig``."""
        return cls(
            tversky_alpha=config.tversky_alpha,
            tversky_beta=config.tversky_beta,
            fusion=config.fusion,
            weights=config.weights,
            index=index,
        )

    def calculator(self, metric: MetricKey) -> SimilarityCalculator:
        """Return the calculator for ``metric``; unknown names raise UnsupportedMetricError."""
        return self._calculators[SimilarityMetric.parse(metric)]

    def similarity(self, fp1: Fingerprint, fp2: Fingerprint, metric: MetricKey = "tanimoto") -> float:
        """Score a single pair."""
        return self.calculator(metric).calculate(fp1, fp2)

    def batch_similarity(
        self,
        query: Fingerprint,
        candidates: Sequence[Fingerprint],
        metric: MetricKey = "tanimoto",
    ) -> np.ndarray:
        """
        Score one query against many candidates, in order.

        The first failing candidate aborts the batch with the calculator's
        own exception.
        """
        calc = self.calculator(metric)
        logger.debug("Scoring %d candidates with %s", len(candidates), calc.metric.value)
        return np.array([calc.calculate(query, fp) for fp in candidates], dtype=np.float64)

    def rank(
        self,
        query: Fingerprint,
        candidates: Mapping[str, Fingerprint],
        metric: MetricKey = "tanimoto",
        threshold: float = 0.0,
        top_n: Optional[int] = None,
        query_id: Optional[str] = None,
    ) -> SearchResults:
        """
        Rank a candidate set against a query.

        Results are sorted by descending score (ties by candidate id), filtered
        by ``score >= threshold`` and truncated to ``top_n``.
        """
        if query is None:
            raise NilFingerprintError("Query fingerprint cannot be None")
        calc = self.calculator(metric)
        ids = [str(cid) for cid in candidates.keys()]
        scores = self.batch_similarity(query, list(candidates.values()), calc.metric)

        results = _sorted_results(
            zip(ids, scores.tolist()), calc.metric, query.fp_type, threshold, top_n
        )
        return SearchResults(
            query_id=query_id,
            metric=calc.metric,
            fp_type=query.fp_type,
            threshold=threshold,
            results=results,
            n_searched=len(ids),
        )

    def fused_similarity(
        self,
        query_fps: Mapping[TypeKey, Fingerprint],
        candidate_fps: Mapping[TypeKey, Fingerprint],
        metric: MetricKey = "tanimoto",
        fusion: Optional[Union[str, FusionStrategy]] = None,
        weights: Optional[Mapping[TypeKey, float]] = None,
    ) -> float:
        """
        Score two multi-fingerprint sets and fuse the per-type scores.

        Only types present on both sides are scored; if none are shared the
        fusion strategy raises EmptyScoresError.
        """
        scores = self.per_type_scores(query_fps, candidate_fps, metric)
        strategy = get_fusion_strategy(fusion) if fusion is not None else self.fusion
        return strategy.fuse(scores, weights if weights is not None else self.weights)

    def per_type_scores(
        self,
        query_fps: Mapping[TypeKey, Fingerprint],
        candidate_fps: Mapping[TypeKey, Fingerprint],
        metric: MetricKey = "tanimoto",
    ) -> Dict[FingerprintType, float]:
        calc = self.calculator(metric)
        query = {FingerprintType.parse(k): fp for k, fp in query_fps.items()}
        candidate = {FingerprintType.parse(k): fp for k, fp in candidate_fps.items()}
        return {
            fp_type: calc.calculate(query[fp_type], candidate[fp_type])
            for fp_type in query
            if fp_type in candidate
        }

    def rank_fused(
        self,
        query_fps: Mapping[TypeKey, Fingerprint],
        candidates: Mapping[str, Mapping[TypeKey, Fingerprint]],
        metric: MetricKey = "tanimoto",
        threshold: float = 0.0,
        top_n: Optional[int] = None,
        fusion: Optional[Union[str, FusionStrategy]] = None,
        weights: Optional[Mapping[TypeKey, float]] = None,
        query_id: Optional[str] = None,
    ) -> SearchResults:
        """
        Rank candidates by fused multi-fingerprint score.

        Candidates sharing no fingerprint type with the query are skipped
        rather than failing the whole ranking.
        """
        resolved = SimilarityMetric.parse(metric)
        query_types = {FingerprintType.parse(k) for k in query_fps}
        scored = []
        for cid, fps in candidates.items():
            if not query_types.intersection(FingerprintType.parse(k) for k in fps):
                logger.debug("Candidate %s shares no fingerprint type with the query", cid)
                continue
            scored.append(
                (str(cid), self.fused_similarity(query_fps, fps, resolved, fusion=fusion, weights=weights))
            )
        logger.debug("Fused %d of %d candidates with %s", len(scored), len(candidates), resolved.value)
        return SearchResults(
            query_id=query_id,
            metric=resolved,
            fp_type=None,
            threshold=threshold,
            results=_sorted_results(scored, resolved, None, threshold, top_n),
            n_searched=len(candidates),
        )

    def search(
        self,
        query: Fingerprint,
        limit: int = 10,
        metric: MetricKey = "tanimoto",
        threshold: float = 0.0,
        query_id: Optional[str] = None,
    ) -> SearchResults:
        """
        Large-scale search: fetch candidates from the configured index and
        re-rank them exactly.
        """
        if self.index is None:
            raise IndexNotConfiguredError("search() requires an engine built with a candidate index")
        if query is None:
            raise NilFingerprintError("Query fingerprint cannot be None")

        candidates = dict(self.index.candidates(query, limit))
        logger.info(
            "Index returned %d candidates for %s query", len(candidates), query.fp_type.value
        )
        return self.rank(
            query, candidates, metric=metric, threshold=threshold, top_n=limit, query_id=query_id
        )

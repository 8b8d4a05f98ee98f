"""
Score fusion strategies.

Combine per-fingerprint-type similarity scores (e.g. Morgan + MACCS) into a
single ranking score. Strategies are stateless; scores and weights are
mappings keyed by ``FingerprintType`` (or its string value).
"""

from abc import ABC, abstractmethod
from typing import Dict, Mapping, Optional, Union

from .errors import EmptyScoresError, UnknownFusionStrategyError
from .types import FingerprintType

TypeKey = Union[str, FingerprintType]


def _normalize(mapping: Optional[Mapping[TypeKey, float]]) -> Dict[FingerprintType, float]:
    if not mapping:
        return {}
    return {FingerprintType.parse(k): float(v) for k, v in mapping.items()}


class FusionStrategy(ABC):
    """Combine a mapping of per-type scores into one score."""

    name: str = ""

    @abstractmethod
    def fuse(
        self,
        scores: Mapping[TypeKey, float],
        weights: Optional[Mapping[TypeKey, float]] = None,
    ) -> float:
        ...

    def __repr__(self) -> str:
        return f"{type(self).__name__}()"


class WeightedAverageFusion(FusionStrategy):
    """
    Weighted mean of the scores, clamped to [0, 1].

    Types missing from ``weights`` (or all types, when ``weights`` is None)
    get weight 1.0. A total weight of 0 yields 0.0.
    """

    name = "weighted_average"

    def fuse(self, scores, weights=None) -> float:
        norm_scores = _normalize(scores)
        if not norm_scores:
            raise EmptyScoresError("Cannot fuse an empty score set")
        norm_weights = _normalize(weights)

        total_score = 0.0
        total_weight = 0.0
        for fp_type, score in norm_scores.items():
            w = norm_weights.get(fp_type, 1.0)
            total_score += score * w
            total_weight += w

        if total_weight == 0:
            return 0.0
        return min(1.0, max(0.0, total_score / total_weight))


class MaxFusion(FusionStrategy):
    """Best score across types; weights are ignored."""

    name = "max"

    def fuse(self, scores, weights=None) -> float:
        norm_scores = _normalize(scores)
        if not norm_scores:
            raise EmptyScoresError("Cannot fuse an empty score set")
        return max(norm_scores.values())


class MinFusion(FusionStrategy):
    """Worst score across types; weights are ignored."""

    name = "min"

    def fuse(self, scores, weights=None) -> float:
        norm_scores = _normalize(scores)
        if not norm_scores:
            raise EmptyScoresError("Cannot fuse an empty score set")
        return min(norm_scores.values())


FUSION_STRATEGIES: Dict[str, FusionStrategy] = {
    s.name: s for s in (WeightedAverageFusion(), MaxFusion(), MinFusion())
}


def get_fusion_strategy(name: Union[str, FusionStrategy]) -> FusionStrategy:
    """Look up a fusion strategy by name (``weighted_average``, ``max``, ``min``)."""
    if isinstance(name, FusionStrategy):
        return name
    key = str(name).strip().lower().replace("-", "_")
    if key not in FUSION_STRATEGIES:
        raise UnknownFusionStrategyError(
            f"Unknown fusion strategy: {name}. "
            f"Available: {list(FUSION_STRATEGIES.keys())}"
        )
    return FUSION_STRATEGIES[key]

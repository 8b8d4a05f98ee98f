"""
Similarity metrics for molecular fingerprint comparison.

Provides implementations of common similarity coefficients used in
cheminformatics for comparing molecular fingerprints, plus the
``SimilarityCalculator`` registry the engine dispatches through.

Every metric is a pure function of its two inputs and shares one validation
sequence:

1. either fingerprint absent            -> NilFingerprintError
2. algorithm types differ               -> TypeMismatchError
3. encoding not handled by the metric   -> EncodingUnsupportedError
4. encodings differ                     -> EncodingMismatchError
5. bit length / dimension differ        -> DimensionMismatchError

Edge-case policy
----------------
- Tanimoto with an empty union returns 0.0, so an all-zero bit vector is
  *not* self-similar under Tanimoto.
- Dice and Tversky treat two all-zero bit vectors as identical (1.0).
- Cosine returns 0.0 when either operand has zero norm; otherwise the cosine
  is rescaled to [0, 1] via (cos + 1) / 2.
"""

from dataclasses import dataclass
from functools import partial
from typing import Callable, Dict, FrozenSet, Optional, Union

import numpy as np

from .bitops import and_count, bit_and, bit_or, mask_to_length, popcount
from .errors import (
    DimensionMismatchError,
    EncodingMismatchError,
    EncodingUnsupportedError,
    InvalidFingerprintTypeError,
    NegativeParameterError,
    NilFingerprintError,
    TypeMismatchError,
)
from .fingerprints import Fingerprint
from .types import SIMILARITY_METRICS, FingerprintEncoding, SimilarityMetric

BIT = FingerprintEncoding.BIT_VECTOR
COUNT = FingerprintEncoding.COUNT_VECTOR
DENSE = FingerprintEncoding.DENSE_VECTOR

# Encodings each metric accepts
METRIC_ENCODINGS: Dict[SimilarityMetric, FrozenSet[FingerprintEncoding]] = {
    SimilarityMetric.TANIMOTO: frozenset({BIT, COUNT, DENSE}),
    SimilarityMetric.DICE: frozenset({BIT}),
    SimilarityMetric.COSINE: frozenset({BIT, COUNT, DENSE}),
    SimilarityMetric.TVERSKY: frozenset({BIT}),
    SimilarityMetric.EUCLIDEAN: frozenset({DENSE}),
    SimilarityMetric.MANHATTAN: frozenset({DENSE}),
}


def _validate_pair(fp1: Fingerprint, fp2: Fingerprint, metric: SimilarityMetric) -> None:
    if fp1 is None or fp2 is None:
        raise NilFingerprintError("Fingerprints cannot be None")

    if fp1.fp_type != fp2.fp_type:
        raise TypeMismatchError(
            f"Fingerprints must have the same type: "
            f"fp1={fp1.fp_type.value}, fp2={fp2.fp_type.value}"
        )

    supported = METRIC_ENCODINGS[metric]
    for fp in (fp1, fp2):
        if fp.encoding not in supported:
            raise EncodingUnsupportedError(
                f"{metric.value} does not support {fp.encoding.value} fingerprints. "
                f"Supported: {sorted(e.value for e in supported)}"
            )

    if fp1.encoding != fp2.encoding:
        raise EncodingMismatchError(
            f"Fingerprints must have the same encoding: "
            f"fp1={fp1.encoding.value}, fp2={fp2.encoding.value}"
        )

    if fp1.num_bits != fp2.num_bits:
        raise DimensionMismatchError(
            f"Fingerprints must have the same length: fp1={fp1.num_bits}, fp2={fp2.num_bits}"
        )

    if fp1.encoding is COUNT and fp1.num_bytes != fp2.num_bytes:
        raise DimensionMismatchError(
            f"Count vectors must have the same number of slots: "
            f"fp1={fp1.num_bytes}, fp2={fp2.num_bytes}"
        )


def _packed(fp: Fingerprint) -> bytes:
    """Payload trimmed to ``num_bits`` with trailing padding bits cleared."""
    return mask_to_length(fp.bits, fp.num_bits)


def _ruzicka(a: np.ndarray, b: np.ndarray) -> float:
    a = a.astype(np.float64)
    b = b.astype(np.float64)
    denominator = np.sum(np.maximum(a, b))
    if denominator == 0:
        return 0.0
    return float(np.sum(np.minimum(a, b)) / denominator)


def tanimoto_similarity(fp1: Fingerprint, fp2: Fingerprint) -> float:
    """
    Calculate Tanimoto coefficient (Jaccard index) between two fingerprints.

    Tc = c / (a + b - c)

    Where:
    - a = bits on in fp1
    - b = bits on in fp2
    - c = bits on in both

    Count and dense vectors use the generalized (Ruzicka) form
    sum(min(a_i, b_i)) / sum(max(a_i, b_i)). That form assumes non-negative
    values; embeddings with negative components can score outside [0, 1].

    Parameters
    ----------
    fp1, fp2 : Fingerprint
        Fingerprints of the same type, encoding and length

    Returns
    -------
    float
        Tanimoto coefficient; 0.0 when the union is empty
    """
    _validate_pair(fp1, fp2, SimilarityMetric.TANIMOTO)

    if fp1.encoding is BIT:
        a, b = _packed(fp1), _packed(fp2)
        union = popcount(bit_or(a, b))
        if union == 0:
            return 0.0
        return popcount(bit_and(a, b)) / union

    return _ruzicka(fp1.to_numpy(), fp2.to_numpy())


def dice_similarity(fp1: Fingerprint, fp2: Fingerprint) -> float:
    """
    Calculate Dice coefficient between two bit-vector fingerprints.

    Dc = 2c / (a + b)

    Two all-zero fingerprints are considered identical (1.0).
    """
    _validate_pair(fp1, fp2, SimilarityMetric.DICE)

    a, b = _packed(fp1), _packed(fp2)
    count_a = popcount(a)
    count_b = popcount(b)
    if count_a == 0 and count_b == 0:
        return 1.0

    return 2.0 * and_count(a, b) / (count_a + count_b)


def cosine_similarity(fp1: Fingerprint, fp2: Fingerprint) -> float:
    """
    Calculate cosine similarity between two fingerprints, rescaled to [0, 1].

    cos = (fp1 · fp2) / (||fp1|| × ||fp2||)
    score = (cos + 1) / 2, clamped to [0, 1]

    Bit vectors are expanded to 0/1 per position. A zero-norm operand yields
    0.0 directly (not the rescaled midpoint 0.5).
    """
    _validate_pair(fp1, fp2, SimilarityMetric.COSINE)

    v1 = fp1.to_numpy().astype(np.float64)
    v2 = fp2.to_numpy().astype(np.float64)

    norm1 = np.linalg.norm(v1)
    norm2 = np.linalg.norm(v2)
    if norm1 == 0 or norm2 == 0:
        return 0.0

    cosine = float(np.dot(v1, v2) / (norm1 * norm2))
    return float(np.clip((cosine + 1.0) / 2.0, 0.0, 1.0))


def _check_tversky_params(alpha: float, beta: float) -> None:
    if alpha < 0 or beta < 0:
        raise NegativeParameterError(
            f"alpha and beta must be non-negative: alpha={alpha}, beta={beta}"
        )


def tversky_similarity(
    fp1: Fingerprint, fp2: Fingerprint, alpha: float = 1.0, beta: float = 1.0
) -> float:
    """
    Calculate Tversky index (asymmetric similarity).

    Tv = c / (c + α(a-c) + β(b-c))

    Parameters
    ----------
    fp1 : query fingerprint
    fp2 : target fingerprint
    alpha : weight for query-only bits (default=1.0)
    beta : weight for target-only bits (default=1.0)

    With alpha=beta=1, equals Tanimoto.
    With alpha=beta=0.5, equals Dice.
    With alpha=1, beta=0, measures substructure similarity.
    """
    _validate_pair(fp1, fp2, SimilarityMetric.TVERSKY)
    _check_tversky_params(alpha, beta)

    a, b = _packed(fp1), _packed(fp2)
    count_a = popcount(a)
    count_b = popcount(b)
    c = and_count(a, b)

    denominator = c + alpha * (count_a - c) + beta * (count_b - c)
    if denominator == 0:
        if count_a == 0 and count_b == 0:
            return 1.0
        return 0.0

    return float(c / denominator)


def euclidean_similarity(fp1: Fingerprint, fp2: Fingerprint) -> float:
    """1 / (1 + Euclidean distance) between two dense fingerprints."""
    _validate_pair(fp1, fp2, SimilarityMetric.EUCLIDEAN)

    diff = fp1.to_numpy().astype(np.float64) - fp2.to_numpy().astype(np.float64)
    return float(1.0 / (1.0 + np.sqrt(np.sum(diff * diff))))


def manhattan_similarity(fp1: Fingerprint, fp2: Fingerprint) -> float:
    """1 / (1 + Manhattan distance) between two dense fingerprints."""
    _validate_pair(fp1, fp2, SimilarityMetric.MANHATTAN)

    diff = fp1.to_numpy().astype(np.float64) - fp2.to_numpy().astype(np.float64)
    return float(1.0 / (1.0 + np.sum(np.abs(diff))))


ScoreFunction = Callable[[Fingerprint, Fingerprint], float]


@dataclass(frozen=True)
class SimilarityCalculator:
    """A metric bound to its scoring function and supported encodings."""

    metric: SimilarityMetric
    score: ScoreFunction
    encodings: FrozenSet[FingerprintEncoding]

    @property
    def description(self) -> str:
        return SIMILARITY_METRICS[self.metric.value]

    def supports_encoding(self, encoding: Union[str, FingerprintEncoding]) -> bool:
        try:
            return FingerprintEncoding.parse(encoding) in self.encodings
        except InvalidFingerprintTypeError:
            return False

    def calculate(self, fp1: Fingerprint, fp2: Fingerprint) -> float:
        return self.score(fp1, fp2)


_SCORE_FUNCTIONS: Dict[SimilarityMetric, ScoreFunction] = {
    SimilarityMetric.TANIMOTO: tanimoto_similarity,
    SimilarityMetric.DICE: dice_similarity,
    SimilarityMetric.COSINE: cosine_similarity,
    SimilarityMetric.TVERSKY: tversky_similarity,
    SimilarityMetric.EUCLIDEAN: euclidean_similarity,
    SimilarityMetric.MANHATTAN: manhattan_similarity,
}


def get_calculator(
    metric: Union[str, SimilarityMetric],
    alpha: Optional[float] = None,
    beta: Optional[float] = None,
) -> SimilarityCalculator:
    """
    Get a calculator by metric name.

    Parameters
    ----------
    metric : str or SimilarityMetric
        Name of similarity metric
    alpha, beta : float, optional
        Tversky weights (ignored by the other metrics); default 1.0

    Returns
    -------
    SimilarityCalculator
    """
    resolved = SimilarityMetric.parse(metric)
    score = _SCORE_FUNCTIONS[resolved]

    if resolved is SimilarityMetric.TVERSKY:
        alpha = 1.0 if alpha is None else float(alpha)
        beta = 1.0 if beta is None else float(beta)
        _check_tversky_params(alpha, beta)
        score = partial(tversky_similarity, alpha=alpha, beta=beta)

    return SimilarityCalculator(
        metric=resolved, score=score, encodings=METRIC_ENCODINGS[resolved]
    )


def get_similarity_function(metric: Union[str, SimilarityMetric]) -> ScoreFunction:
    """Get the plain scoring function for a metric (Tversky with alpha=beta=1)."""
    return get_calculator(metric).score

"""MolSim Toolkit - Similarity Module.

This subpackage provides fingerprint values + bit-set primitives + similarity
metrics + score fusion + the engine facade used for ranking.

Design notes
------------
- Importing this package does not require RDKit; RDKit is only required when
  converting RDKit bit vectors with `fingerprint_from_rdkit`.
- Fingerprints are immutable and every metric is a pure function, so values
  and engines can be shared across threads.
"""

from __future__ import annotations

from .bitops import and_count, bit_and, bit_or, popcount
from .engine import (
    CandidateIndex,
    InMemoryIndex,
    SearchResults,
    SimilarityEngine,
    SimilarityResult,
)
from .errors import FingerprintError
from .fingerprints import (
    Fingerprint,
    fingerprint_from_array,
    fingerprint_from_rdkit,
    fingerprint_from_record,
    new_bit_fingerprint,
    new_count_fingerprint,
    new_dense_fingerprint,
)
from .fusion import (
    FUSION_STRATEGIES,
    FusionStrategy,
    MaxFusion,
    MinFusion,
    WeightedAverageFusion,
    get_fusion_strategy,
)
from .metrics import (
    SimilarityCalculator,
    cosine_similarity,
    dice_similarity,
    euclidean_similarity,
    get_calculator,
    get_similarity_function,
    manhattan_similarity,
    tanimoto_similarity,
    tversky_similarity,
)
from .types import (
    FINGERPRINT_TYPES,
    SIMILARITY_METRICS,
    FingerprintEncoding,
    FingerprintType,
    SimilarityMetric,
)

__all__ = [
    # types
    "FingerprintEncoding",
    "FingerprintType",
    "SimilarityMetric",
    "FINGERPRINT_TYPES",
    "SIMILARITY_METRICS",
    "FingerprintError",
    # fingerprints
    "Fingerprint",
    "new_bit_fingerprint",
    "new_count_fingerprint",
    "new_dense_fingerprint",
    "fingerprint_from_record",
    "fingerprint_from_array",
    "fingerprint_from_rdkit",
    # bit-set primitives
    "popcount",
    "bit_and",
    "bit_or",
    "and_count",
    # metrics
    "SimilarityCalculator",
    "tanimoto_similarity",
    "dice_similarity",
    "cosine_similarity",
    "tversky_similarity",
    "euclidean_similarity",
    "manhattan_similarity",
    "get_calculator",
    "get_similarity_function",
    # fusion
    "FusionStrategy",
    "WeightedAverageFusion",
    "MaxFusion",
    "MinFusion",
    "FUSION_STRATEGIES",
    "get_fusion_strategy",
    # engine
    "SimilarityEngine",
    "SimilarityResult",
    "SearchResults",
    "CandidateIndex",
    "InMemoryIndex",
]

"""
Enumerations shared by the fingerprint and similarity modules.

Fingerprint types name the algorithm that produced a fingerprint; encodings
name its storage form; metrics name the similarity coefficient applied to a
pair of fingerprints.
"""

from enum import Enum
from typing import Union

from .errors import InvalidFingerprintTypeError, UnsupportedMetricError


class FingerprintEncoding(str, Enum):
    BIT_VECTOR = "bit_vector"
    COUNT_VECTOR = "count_vector"
    DENSE_VECTOR = "dense_vector"

    @classmethod
    def parse(cls, value: Union[str, "FingerprintEncoding"]) -> "FingerprintEncoding":
        if isinstance(value, cls):
            return value
        key = str(value).strip().lower()
        for enc in cls:
            if key in (enc.value, enc.name.lower()):
                return enc
        raise InvalidFingerprintTypeError(
            f"Unknown fingerprint encoding: {value}. "
            f"Available: {[e.value for e in cls]}"
        )


class FingerprintType(str, Enum):
    MACCS = "maccs"
    MORGAN = "morgan"
    RDKIT = "rdkit"
    ATOM_PAIR = "atompair"
    FCFP = "fcfp"
    GNN = "gnn"

    @classmethod
    def parse(cls, value: Union[str, "FingerprintType"]) -> "FingerprintType":
        """Resolve a type from a member, value or name (case-insensitive)."""
        if isinstance(value, cls):
            return value
        if value is None:
            raise InvalidFingerprintTypeError("Fingerprint type cannot be empty")
        key = str(value).strip().lower().replace("-", "_")
        for fp_type in cls:
            if key in (fp_type.value, fp_type.name.lower()):
                return fp_type
        raise InvalidFingerprintTypeError(
            f"Unknown fingerprint type: {value}. "
            f"Available: {[t.value for t in cls]}"
        )


class SimilarityMetric(str, Enum):
    TANIMOTO = "tanimoto"
    DICE = "dice"
    COSINE = "cosine"
    TVERSKY = "tversky"
    EUCLIDEAN = "euclidean"
    MANHATTAN = "manhattan"

    @classmethod
    def parse(cls, value: Union[str, "SimilarityMetric"]) -> "SimilarityMetric":
        """Resolve a metric from a member or its name (case-insensitive)."""
        if isinstance(value, cls):
            return value
        key = str(value).strip().lower()
        for metric in cls:
            if key == metric.value:
                return metric
        raise UnsupportedMetricError(
            f"Unknown similarity metric: {value}. "
            f"Available: {[m.value for m in cls]}"
        )


# Fingerprint type catalogue
FINGERPRINT_TYPES = {
    "maccs": "MACCS 166-bit structural keys (bit vector, radius 0)",
    "morgan": "Morgan circular fingerprint, ECFP-like (radius 1-6)",
    "rdkit": "RDKit topological path fingerprint (radius 0)",
    "atompair": "Atom pair fingerprint (radius 0)",
    "fcfp": "Morgan fingerprint with pharmacophoric features, FCFP-like (radius 1-6)",
    "gnn": "Learned dense embedding from a graph neural network (32-4096 dims)",
}

# Available similarity metrics
SIMILARITY_METRICS = {
    "tanimoto": "Tanimoto coefficient (Jaccard index); Ruzicka form for counts/dense",
    "dice": "Dice coefficient - weights matches more heavily (bit vectors)",
    "cosine": "Cosine similarity rescaled to [0, 1] via (cos + 1) / 2",
    "tversky": "Tversky index - asymmetric, tunable alpha/beta (bit vectors)",
    "euclidean": "1 / (1 + Euclidean distance) (dense vectors)",
    "manhattan": "1 / (1 + Manhattan distance) (dense vectors)",
}

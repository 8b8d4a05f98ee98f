"""
Fingerprint value objects and their validating constructors.

Three encodings are supported:
- bit vectors (MACCS, Morgan, RDKit, AtomPair, FCFP), packed LSB-first,
- count vectors (Morgan, RDKit, AtomPair, FCFP), one saturating 8-bit count
  per payload byte,
- dense vectors (GNN embeddings), 32-bit floats tagged with a model version.

Fingerprints are validated once, at construction, and are immutable afterwards:
byte payloads are copied into ``bytes`` and dense vectors into a tuple of
float32-rounded values, so the caller's buffers can be reused freely.

Raw bits are produced upstream (e.g. by RDKit); ``fingerprint_from_rdkit`` is
the bridge from an RDKit bit vector to a validated ``Fingerprint``.
"""

import dataclasses
from dataclasses import dataclass, field
from datetime import datetime, timezone
from functools import cached_property
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple, Union

import numpy as np

from .bitops import mask_to_length, popcount, unpack_bits
from .errors import (
    EmptyPayloadError,
    InsufficientPayloadError,
    InvalidBitCountError,
    InvalidDimensionError,
    InvalidFingerprintTypeError,
    InvalidInputError,
    InvalidMACCSLengthError,
    InvalidRadiusError,
    MissingModelVersionError,
)
from .types import FingerprintEncoding, FingerprintType

try:
    from rdkit import DataStructs

    HAS_RDKIT = True
except ImportError:
    HAS_RDKIT = False


MACCS_NUM_BITS = 166
MIN_CIRCULAR_RADIUS = 1
MAX_CIRCULAR_RADIUS = 6
MIN_DENSE_DIMENSION = 32
MAX_DENSE_DIMENSION = 4096

CIRCULAR_TYPES = (FingerprintType.MORGAN, FingerprintType.FCFP)

# Encodings each algorithm may be stored as
ALLOWED_ENCODINGS = {
    FingerprintType.MACCS: (FingerprintEncoding.BIT_VECTOR,),
    FingerprintType.MORGAN: (FingerprintEncoding.BIT_VECTOR, FingerprintEncoding.COUNT_VECTOR),
    FingerprintType.FCFP: (FingerprintEncoding.BIT_VECTOR, FingerprintEncoding.COUNT_VECTOR),
    FingerprintType.RDKIT: (FingerprintEncoding.BIT_VECTOR, FingerprintEncoding.COUNT_VECTOR),
    FingerprintType.ATOM_PAIR: (FingerprintEncoding.BIT_VECTOR, FingerprintEncoding.COUNT_VECTOR),
    FingerprintType.GNN: (FingerprintEncoding.DENSE_VECTOR,),
}


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class Fingerprint:
    """
    Immutable encoded representation of a molecular structure.

    Use ``new_bit_fingerprint``, ``new_count_fingerprint`` or
    ``new_dense_fingerprint`` to build one; they enforce the per-type rules.

    Attributes
    ----------
    fp_type : FingerprintType
        Algorithm that produced the fingerprint
    encoding : FingerprintEncoding
        Storage form of the payload
    num_bits : int
        Bit count for bit/count vectors, dimension for dense vectors
    bits : bytes or None
        Packed payload for bit/count vectors
    vector : tuple of float or None
        Float32 values for dense vectors
    radius : int
        Circular neighbourhood size (0 when not applicable)
    model_version : str
        Embedding model version (dense vectors only)
    computed_at : datetime
        UTC construction timestamp
    """

    fp_type: FingerprintType
    encoding: FingerprintEncoding
    num_bits: int
    bits: Optional[bytes] = field(default=None, repr=False)
    vector: Optional[Tuple[float, ...]] = field(default=None, repr=False)
    radius: int = 0
    model_version: str = ""
    computed_at: datetime = field(default_factory=_utcnow)

    def __post_init__(self):
        # Frozen: copy payloads through object.__setattr__
        if self.bits is not None:
            object.__setattr__(self, "bits", bytes(self.bits))
        if self.vector is not None:
            object.__setattr__(self, "vector", tuple(float(v) for v in self.vector))

    @property
    def is_dense(self) -> bool:
        return self.encoding is FingerprintEncoding.DENSE_VECTOR

    @property
    def num_bytes(self) -> int:
        return len(self.bits) if self.bits is not None else 0

    @cached_property
    def num_on_bits(self) -> int:
        """Number of set bits (bit vectors) or non-zero slots (count/dense)."""
        if self.encoding is FingerprintEncoding.BIT_VECTOR:
            return popcount(mask_to_length(self.bits, self.num_bits))
        return int(np.count_nonzero(self.to_numpy()))

    def get_bit(self, index: int) -> bool:
        """Return True if bit ``index`` is set; out-of-range indices read False."""
        if self.is_dense or index < 0 or index >= self.num_bits:
            return False
        byte_idx, bit_idx = divmod(index, 8)
        if byte_idx >= len(self.bits):
            return False
        return bool(self.bits[byte_idx] & (1 << bit_idx))

    def on_bits(self) -> List[int]:
        """Indices of set bits (bit vectors) or non-zero slots."""
        return np.flatnonzero(self.to_numpy()).tolist()

    def density(self) -> float:
        """Fraction of positions that are set / non-zero."""
        size = self.to_numpy().size
        return self.num_on_bits / size if size else 0.0

    def to_numpy(self) -> np.ndarray:
        """
        Return the fingerprint as a numeric array.

        Bit vectors expand to a 0/1 float64 array of length ``num_bits``;
        count vectors yield one float64 per payload byte; dense vectors
        yield their float32 values.
        """
        if self.encoding is FingerprintEncoding.BIT_VECTOR:
            return unpack_bits(self.bits, self.num_bits).astype(np.float64)
        if self.encoding is FingerprintEncoding.COUNT_VECTOR:
            return np.frombuffer(self.bits, dtype=np.uint8).astype(np.float64)
        return np.asarray(self.vector, dtype=np.float32)

    def to_record(self) -> Dict[str, Any]:
        """Serialize to a plain record; bytes and float32 values are kept exact."""
        return {
            "type": self.fp_type.value,
            "encoding": self.encoding.value,
            "bits": self.bits,
            "vector": list(self.vector) if self.vector is not None else None,
            "num_bits": self.num_bits,
            "radius": self.radius,
            "model_version": self.model_version,
            "computed_at": self.computed_at.isoformat(),
        }


def _check_payload(payload, num_bits: int) -> bytes:
    if payload is None or len(payload) == 0:
        raise EmptyPayloadError("Fingerprint payload cannot be empty")
    data = bytes(payload)
    required = -(-num_bits // 8)
    if len(data) < required:
        raise InsufficientPayloadError(
            f"Payload of {len(data)} bytes is too short for {num_bits} bits "
            f"(need at least {required})"
        )
    if num_bits <= 0:
        raise InvalidBitCountError(f"num_bits must be positive, got {num_bits}")
    return data


def _check_radius(fp_type: FingerprintType, radius: int) -> None:
    if fp_type in CIRCULAR_TYPES:
        if not MIN_CIRCULAR_RADIUS <= radius <= MAX_CIRCULAR_RADIUS:
            raise InvalidRadiusError(
                f"{fp_type.value} radius must be in "
                f"[{MIN_CIRCULAR_RADIUS}, {MAX_CIRCULAR_RADIUS}], got {radius}"
            )
    elif radius != 0:
        raise InvalidRadiusError(f"{fp_type.value} radius must be 0, got {radius}")


def _resolve_type(fp_type, encoding: FingerprintEncoding) -> FingerprintType:
    resolved = FingerprintType.parse(fp_type)
    if encoding not in ALLOWED_ENCODINGS[resolved]:
        raise InvalidFingerprintTypeError(
            f"{resolved.value} fingerprints cannot be encoded as {encoding.value}"
        )
    return resolved


def new_bit_fingerprint(
    fp_type: Union[str, FingerprintType],
    payload: Union[bytes, bytearray, memoryview, Sequence[int]],
    num_bits: int,
    radius: int = 0,
) -> Fingerprint:
    """
    Build a validated bit-vector fingerprint.

    Parameters
    ----------
    fp_type : str or FingerprintType
        Any type except GNN
    payload : bytes-like
        Packed bits, LSB-first; copied on construction
    num_bits : int
        Number of meaningful bits; payload must hold ceil(num_bits / 8) bytes
    radius : int
        1..6 for Morgan/FCFP, 0 for everything else

    Returns
    -------
    Fingerprint

    Examples
    --------
    >>> fp = new_bit_fingerprint("morgan", bytes(256), 2048, radius=2)
    >>> fp.get_bit(0)
    False
    """
    resolved = _resolve_type(fp_type, FingerprintEncoding.BIT_VECTOR)
    data = _check_payload(payload, num_bits)
    _check_radius(resolved, radius)
    if resolved is FingerprintType.MACCS and num_bits != MACCS_NUM_BITS:
        raise InvalidMACCSLengthError(
            f"MACCS fingerprints have exactly {MACCS_NUM_BITS} bits, got {num_bits}"
        )
    return Fingerprint(
        fp_type=resolved,
        encoding=FingerprintEncoding.BIT_VECTOR,
        num_bits=int(num_bits),
        bits=data,
        radius=int(radius),
    )


def new_count_fingerprint(
    fp_type: Union[str, FingerprintType],
    payload: Union[bytes, bytearray, memoryview, Sequence[int]],
    num_bits: int,
    radius: int = 0,
) -> Fingerprint:
    """
    Build a validated count-vector fingerprint.

    Same rules as ``new_bit_fingerprint`` except that MACCS and GNN are not
    available as count vectors. Each payload byte is one feature count.
    """
    resolved = _resolve_type(fp_type, FingerprintEncoding.COUNT_VECTOR)
    data = _check_payload(payload, num_bits)
    _check_radius(resolved, radius)
    return Fingerprint(
        fp_type=resolved,
        encoding=FingerprintEncoding.COUNT_VECTOR,
        num_bits=int(num_bits),
        bits=data,
        radius=int(radius),
    )


def new_dense_fingerprint(vector: Sequence[float], model_version: str) -> Fingerprint:
    """
    Build a validated dense (GNN embedding) fingerprint.

    The vector length must be within [32, 4096] and ``model_version`` must be
    non-empty. Values are stored as float32.
    """
    values = np.asarray(vector if vector is not None else [], dtype=np.float32).ravel()
    if not MIN_DENSE_DIMENSION <= values.size <= MAX_DENSE_DIMENSION:
        raise InvalidDimensionError(
            f"Dense vector dimension must be in "
            f"[{MIN_DENSE_DIMENSION}, {MAX_DENSE_DIMENSION}], got {values.size}"
        )
    if not model_version or not str(model_version).strip():
        raise MissingModelVersionError("Dense fingerprints require a model version")
    return Fingerprint(
        fp_type=FingerprintType.GNN,
        encoding=FingerprintEncoding.DENSE_VECTOR,
        num_bits=int(values.size),
        vector=tuple(float(v) for v in values),
        model_version=str(model_version),
    )


def _payload_from_record(raw) -> Optional[bytes]:
    if raw is None:
        return None
    if isinstance(raw, str):
        try:
            return bytes.fromhex(raw)
        except ValueError as err:
            raise InvalidInputError(f"bits field is not valid hex: {raw[:32]}") from err
    return bytes(raw)


def _timestamp_from_record(raw) -> Optional[datetime]:
    if raw is None or raw == "":
        return None
    if isinstance(raw, datetime):
        ts = raw
    else:
        ts = datetime.fromisoformat(str(raw))
    if ts.tzinfo is None:
        ts = ts.replace(tzinfo=timezone.utc)
    return ts


def fingerprint_from_record(record: Mapping[str, Any]) -> Fingerprint:
    """
    Rebuild a fingerprint from the record produced by ``Fingerprint.to_record``.

    The record passes through the regular constructors, so invalid records
    fail exactly like invalid constructor input. ``bits`` may be raw bytes or
    a hex string. The recorded ``computed_at`` is restored when present.
    """
    encoding = FingerprintEncoding.parse(record.get("encoding", FingerprintEncoding.BIT_VECTOR))
    if encoding is FingerprintEncoding.DENSE_VECTOR:
        fp = new_dense_fingerprint(record.get("vector"), record.get("model_version", ""))
    else:
        payload = _payload_from_record(record.get("bits"))
        builder = (
            new_bit_fingerprint
            if encoding is FingerprintEncoding.BIT_VECTOR
            else new_count_fingerprint
        )
        fp = builder(
            record.get("type"),
            payload,
            int(record.get("num_bits", 0)),
            int(record.get("radius", 0) or 0),
        )

    computed_at = _timestamp_from_record(record.get("computed_at"))
    if computed_at is not None:
        fp = dataclasses.replace(fp, computed_at=computed_at)
    return fp


def fingerprint_from_array(
    fp_type: Union[str, FingerprintType],
    bits: np.ndarray,
    radius: int = 0,
) -> Fingerprint:
    """Pack a 0/1 numpy array (one element per bit) into a bit-vector fingerprint."""
    arr = (np.asarray(bits).ravel() > 0).astype(np.uint8)
    packed = np.packbits(arr, bitorder="little").tobytes()
    return new_bit_fingerprint(fp_type, packed, int(arr.size), radius)


def _check_rdkit():
    """Raise ImportError if RDKit is not available."""
    if not HAS_RDKIT:
        raise ImportError(
            "RDKit is required to convert RDKit fingerprints. "
            "Install with: conda install -c conda-forge rdkit"
        )


def fingerprint_from_rdkit(
    fp_type: Union[str, FingerprintType],
    bitvect: "DataStructs.ExplicitBitVect",
    radius: int = 0,
) -> Fingerprint:
    """
    Convert an RDKit ``ExplicitBitVect`` into a bit-vector fingerprint.

    RDKit's MACCS keys are 167 bits long with bit 0 unused; that bit is
    dropped so the result has the canonical 166 keys.

    Examples
    --------
    >>> from rdkit import Chem
    >>> from rdkit.Chem import MACCSkeys
    >>> fp = fingerprint_from_rdkit("maccs", MACCSkeys.GenMACCSKeys(Chem.MolFromSmiles("CCO")))
    >>> fp.num_bits
    166
    """
    _check_rdkit()
    resolved = FingerprintType.parse(fp_type)

    arr = np.zeros((bitvect.GetNumBits(),), dtype=np.int8)
    DataStructs.ConvertToNumpyArray(bitvect, arr)
    if resolved is FingerprintType.MACCS and arr.size == MACCS_NUM_BITS + 1:
        arr = arr[1:]

    return fingerprint_from_array(resolved, arr, radius)

"""
Bit-set primitives over packed byte buffers.

Bit i of a packed buffer lives in byte i // 8 at bit position i % 8
(least-significant bit first). All functions are pure: they never mutate
their inputs and always return freshly allocated results.
"""

from typing import Optional, Union

import numpy as np

from .errors import LengthMismatchError

ByteLike = Union[bytes, bytearray, memoryview]


def _as_uint8(data: Optional[ByteLike]) -> np.ndarray:
    if data is None:
        return np.zeros(0, dtype=np.uint8)
    return np.frombuffer(bytes(data), dtype=np.uint8)


def popcount(data: Optional[ByteLike]) -> int:
    """
    Count the set bits in a packed byte buffer.

    Empty or absent input yields 0.

    Examples
    --------
    >>> popcount(b"\\xff")
    8
    """
    arr = _as_uint8(data)
    if arr.size == 0:
        return 0
    return int(np.unpackbits(arr).sum())


def _check_lengths(a: np.ndarray, b: np.ndarray) -> None:
    if a.size != b.size:
        raise LengthMismatchError(
            f"Byte buffers must have the same length: {a.size} vs {b.size}"
        )


def bit_and(a: Optional[ByteLike], b: Optional[ByteLike]) -> bytes:
    """Byte-wise AND of two equally long buffers."""
    arr_a = _as_uint8(a)
    arr_b = _as_uint8(b)
    _check_lengths(arr_a, arr_b)
    return np.bitwise_and(arr_a, arr_b).tobytes()


def bit_or(a: Optional[ByteLike], b: Optional[ByteLike]) -> bytes:
    """Byte-wise OR of two equally long buffers."""
    arr_a = _as_uint8(a)
    arr_b = _as_uint8(b)
    _check_lengths(arr_a, arr_b)
    return np.bitwise_or(arr_a, arr_b).tobytes()


def and_count(a: Optional[ByteLike], b: Optional[ByteLike]) -> int:
    """Size of the intersection of two packed bit sets."""
    return popcount(bit_and(a, b))


def unpack_bits(data: Optional[ByteLike], num_bits: int) -> np.ndarray:
    """
    Expand a packed buffer into a 0/1 uint8 array of length ``num_bits``.

    Bits beyond the end of the buffer read as 0; bytes beyond ``num_bits``
    are ignored.
    """
    bits = np.unpackbits(_as_uint8(data), bitorder="little")
    if bits.size >= num_bits:
        return bits[:num_bits].copy()
    out = np.zeros(num_bits, dtype=np.uint8)
    out[: bits.size] = bits
    return out


def mask_to_length(data: ByteLike, num_bits: int) -> bytes:
    """
    Return the first ``ceil(num_bits / 8)`` bytes with bits at positions
    ``>= num_bits`` cleared.
    """
    n_bytes = (num_bits + 7) // 8
    arr = _as_uint8(data)[:n_bytes].copy()
    spare = n_bytes * 8 - num_bits
    if arr.size and spare:
        arr[-1] &= np.uint8(0xFF >> spare)
    return arr.tobytes()

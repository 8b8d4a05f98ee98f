"""
Exceptions raised by the fingerprint and similarity core.

Every failure here is a deterministic validation failure caused by the
caller's input. The classes are grouped by failure kind so callers can catch
broadly (``DimensionMismatchError``) or precisely (``LengthMismatchError``).
All of them are also ``ValueError`` subclasses.
"""


class FingerprintError(ValueError):
    """Base exception for fingerprint and similarity errors"""
    pass


# Invalid input (empty / absent / too short / out of range)

class InvalidInputError(FingerprintError):
    """Payload or parameter is empty, absent, too short or out of range"""
    pass

class EmptyPayloadError(InvalidInputError):
    pass

class InsufficientPayloadError(InvalidInputError):
    pass

class InvalidBitCountError(InvalidInputError):
    pass

class InvalidRadiusError(InvalidInputError):
    pass

class InvalidMACCSLengthError(InvalidInputError):
    pass

class InvalidDimensionError(InvalidInputError):
    pass

class MissingModelVersionError(InvalidInputError):
    pass

class NilFingerprintError(InvalidInputError):
    pass

class NegativeParameterError(InvalidInputError):
    pass

class UnknownFusionStrategyError(InvalidInputError):
    pass


# Type / encoding mismatch

class TypeOrEncodingMismatchError(FingerprintError):
    """Operation invoked on an unsupported algorithm/encoding combination"""
    pass

class InvalidFingerprintTypeError(TypeOrEncodingMismatchError):
    pass

class TypeMismatchError(TypeOrEncodingMismatchError):
    pass

class EncodingUnsupportedError(TypeOrEncodingMismatchError):
    pass

class EncodingMismatchError(TypeOrEncodingMismatchError):
    pass


# Dimension mismatch

class DimensionMismatchError(FingerprintError):
    """Two fingerprints or buffers compared with incompatible lengths"""
    pass

class LengthMismatchError(DimensionMismatchError):
    pass


class UnsupportedMetricError(FingerprintError):
    """Unknown similarity metric requested"""
    pass


class EmptyScoresError(FingerprintError):
    """Score fusion invoked with no scores"""
    pass


class IndexNotConfiguredError(FingerprintError):
    """Large-scale search requested from an engine without a candidate index"""
    pass


class MissingFingerprintError(FingerprintError):
    """Molecule does not hold a fingerprint of the requested type"""
    pass


class MoleculeStateError(FingerprintError):
    """Illegal molecule lifecycle transition"""
    pass

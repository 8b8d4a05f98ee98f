"""Molecule aggregate.

A molecule owns at most one fingerprint per algorithm type. Storing a new
fingerprint of a type supersedes the previous one. Similarity between
molecules delegates to the shared `SimilarityEngine`.

Lifecycle: pending -> active -> archived; `delete()` is allowed from any
state except deleted.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional, Set, Union

from .similarity.engine import SimilarityEngine
from .similarity.errors import MissingFingerprintError, MoleculeStateError, NilFingerprintError
from .similarity.fingerprints import Fingerprint, fingerprint_from_record
from .similarity.types import FingerprintType, SimilarityMetric

logger = logging.getLogger(__name__)

_DEFAULT_ENGINE = SimilarityEngine()


class MoleculeStatus(str, Enum):
    PENDING = "pending"
    ACTIVE = "active"
    ARCHIVED = "archived"
    DELETED = "deleted"


_TRANSITIONS = {
    MoleculeStatus.PENDING: {MoleculeStatus.ACTIVE, MoleculeStatus.DELETED},
    MoleculeStatus.ACTIVE: {MoleculeStatus.ARCHIVED, MoleculeStatus.DELETED},
    MoleculeStatus.ARCHIVED: {MoleculeStatus.ACTIVE, MoleculeStatus.DELETED},
    MoleculeStatus.DELETED: set(),
}


@dataclass(frozen=True)
class MoleculeEvent:
    """Domain event recorded by the aggregate; cleared after publishing."""

    event_type: str
    molecule_id: str
    payload: Dict[str, Any] = field(default_factory=dict)
    occurred_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


@dataclass
class Molecule:
    molecule_id: str
    smiles: str
    canonical_smiles: str = ""
    inchi_key: str = ""
    status: MoleculeStatus = MoleculeStatus.PENDING
    tags: Set[str] = field(default_factory=set)
    metadata: Dict[str, Any] = field(default_factory=dict)
    fingerprints: Dict[FingerprintType, Fingerprint] = field(default_factory=dict)
    _events: List[MoleculeEvent] = field(default_factory=list, repr=False, compare=False)

    def __post_init__(self) -> None:
        self.status = MoleculeStatus(self.status)
        self.tags = {self._normalize_tag(t) for t in self.tags if str(t).strip()}

    # lifecycle

    def _transition(self, target: MoleculeStatus) -> None:
        if target not in _TRANSITIONS[self.status]:
            raise MoleculeStateError(
                f"Molecule {self.molecule_id} cannot move from {self.status.value} to {target.value}"
            )
        self.status = target
        self._events.append(
            MoleculeEvent("molecule.status_changed", self.molecule_id, {"status": target.value})
        )

    def activate(self) -> None:
        self._transition(MoleculeStatus.ACTIVE)

    def archive(self) -> None:
        self._transition(MoleculeStatus.ARCHIVED)

    def delete(self) -> None:
        self._transition(MoleculeStatus.DELETED)

    @property
    def is_active(self) -> bool:
        return self.status is MoleculeStatus.ACTIVE

    # tags

    @staticmethod
    def _normalize_tag(tag: str) -> str:
        return str(tag).strip().lower()

    def add_tag(self, tag: str) -> None:
        t = self._normalize_tag(tag)
        if t:
            self.tags.add(t)

    def remove_tag(self, tag: str) -> None:
        self.tags.discard(self._normalize_tag(tag))

    # fingerprints

    def set_fingerprint(self, fingerprint: Fingerprint) -> Optional[Fingerprint]:
        """Store a fingerprint under its type; returns the superseded one, if any."""
        if fingerprint is None:
            raise NilFingerprintError("Cannot store a None fingerprint")
        if self.status is MoleculeStatus.DELETED:
            raise MoleculeStateError(f"Molecule {self.molecule_id} is deleted")

        previous = self.fingerprints.get(fingerprint.fp_type)
        self.fingerprints[fingerprint.fp_type] = fingerprint
        if previous is not None:
            logger.debug(
                "Molecule %s: %s fingerprint superseded", self.molecule_id, fingerprint.fp_type.value
            )
        self._events.append(
            MoleculeEvent(
                "molecule.fingerprint_calculated",
                self.molecule_id,
                {"fingerprint_type": fingerprint.fp_type.value},
            )
        )
        return previous

    def get_fingerprint(self, fp_type: Union[str, FingerprintType]) -> Fingerprint:
        resolved = FingerprintType.parse(fp_type)
        try:
            return self.fingerprints[resolved]
        except KeyError:
            raise MissingFingerprintError(
                f"Molecule {self.molecule_id} has no {resolved.value} fingerprint"
            ) from None

    def has_fingerprint(self, fp_type: Union[str, FingerprintType]) -> bool:
        return FingerprintType.parse(fp_type) in self.fingerprints

    def similarity_to(
        self,
        other: "Molecule",
        fp_type: Union[str, FingerprintType],
        metric: Union[str, SimilarityMetric] = "tanimoto",
        engine: Optional[SimilarityEngine] = None,
    ) -> float:
        """Similarity to another molecule using one fingerprint type."""
        engine = engine or _DEFAULT_ENGINE
        return engine.similarity(self.get_fingerprint(fp_type), other.get_fingerprint(fp_type), metric)

    def fused_similarity_to(
        self,
        other: "Molecule",
        metric: Union[str, SimilarityMetric] = "tanimoto",
        weights: Optional[Mapping[Union[str, FingerprintType], float]] = None,
        engine: Optional[SimilarityEngine] = None,
    ) -> float:
        """Fused similarity over every fingerprint type both molecules hold."""
        engine = engine or _DEFAULT_ENGINE
        return engine.fused_similarity(self.fingerprints, other.fingerprints, metric, weights=weights)

    # events

    def events(self) -> List[MoleculeEvent]:
        return list(self._events)

    def clear_events(self) -> None:
        self._events.clear()

    # serialization

    def to_dict(self) -> Dict[str, Any]:
        return {
            "molecule_id": self.molecule_id,
            "smiles": self.smiles,
            "canonical_smiles": self.canonical_smiles,
            "inchi_key": self.inchi_key,
            "status": self.status.value,
            "tags": sorted(self.tags),
            "metadata": dict(self.metadata),
            "fingerprints": [fp.to_record() for fp in self.fingerprints.values()],
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Molecule":
        fps = [fingerprint_from_record(r) for r in data.get("fingerprints") or []]
        return cls(
            molecule_id=str(data["molecule_id"]),
            smiles=str(data.get("smiles", "")),
            canonical_smiles=str(data.get("canonical_smiles", "")),
            inchi_key=str(data.get("inchi_key", "")),
            status=MoleculeStatus(data.get("status", MoleculeStatus.PENDING.value)),
            tags=set(data.get("tags") or []),
            metadata=dict(data.get("metadata") or {}),
            fingerprints={fp.fp_type: fp for fp in fps},
        )

import pytest

from molsim_toolkit.molecule import Molecule, MoleculeStatus
from molsim_toolkit.similarity.errors import (
    MissingFingerprintError,
    MoleculeStateError,
    NilFingerprintError,
)
from molsim_toolkit.similarity.fingerprints import new_bit_fingerprint
from molsim_toolkit.similarity.types import FingerprintType


def _morgan(payload):
    return new_bit_fingerprint("morgan", payload, len(payload) * 8, radius=2)


def _rdkit(payload):
    return new_bit_fingerprint("rdkit", payload, len(payload) * 8)


@pytest.fixture
def mol():
    return Molecule("MOL-1", "CCO", tags={" Lead ", "kinase"})


class TestLifecycle:
    def test_defaults(self, mol):
        assert mol.status is MoleculeStatus.PENDING
        assert mol.tags == {"lead", "kinase"}

    def test_transitions(self, mol):
        mol.activate()
        assert mol.is_active
        mol.archive()
        assert mol.status is MoleculeStatus.ARCHIVED
        mol.activate()
        mol.delete()
        assert mol.status is MoleculeStatus.DELETED

    def test_illegal_transition(self, mol):
        with pytest.raises(MoleculeStateError):
            mol.archive()
        mol.delete()
        with pytest.raises(MoleculeStateError):
            mol.activate()

    def test_status_event(self, mol):
        mol.activate()
        events = mol.events()
        assert events[-1].event_type == "molecule.status_changed"
        assert events[-1].payload == {"status": "active"}
        mol.clear_events()
        assert mol.events() == []

    def test_tags(self, mol):
        mol.add_tag("  HIT ")
        mol.add_tag("   ")
        mol.remove_tag("KINASE")
        assert mol.tags == {"lead", "hit"}


class TestFingerprints:
    def test_set_and_get(self, mol):
        fp = _morgan(b"\x0f")
        assert mol.set_fingerprint(fp) is None
        assert mol.get_fingerprint("morgan") is fp
        assert mol.has_fingerprint(FingerprintType.MORGAN)
        assert not mol.has_fingerprint("maccs")
        assert mol.events()[-1].payload == {"fingerprint_type": "morgan"}

    def test_supersede(self, mol):
        old = _morgan(b"\x0f")
        new = _morgan(b"\x01")
        mol.set_fingerprint(old)
        assert mol.set_fingerprint(new) is old
        assert mol.get_fingerprint("morgan") is new
        assert len(mol.fingerprints) == 1

    def test_missing(self, mol):
        with pytest.raises(MissingFingerprintError):
            mol.get_fingerprint("maccs")

    def test_none(self, mol):
        with pytest.raises(NilFingerprintError):
            mol.set_fingerprint(None)

    def test_deleted_refuses(self, mol):
        mol.delete()
        with pytest.raises(MoleculeStateError):
            mol.set_fingerprint(_morgan(b"\x01"))


class TestSimilarity:
    def test_similarity_to(self, mol):
        other = Molecule("MOL-2", "CCCO")
        mol.set_fingerprint(_morgan(b"\x0f"))
        other.set_fingerprint(_morgan(b"\x03"))
        assert mol.similarity_to(other, "morgan") == pytest.approx(0.5)
        assert mol.similarity_to(other, "morgan", metric="dice") == pytest.approx(2 / 3)

    def test_similarity_missing_type(self, mol):
        other = Molecule("MOL-2", "CCCO")
        mol.set_fingerprint(_morgan(b"\x0f"))
        with pytest.raises(MissingFingerprintError):
            mol.similarity_to(other, "morgan")

    def test_fused(self, mol):
        other = Molecule("MOL-2", "CCCO")
        for m, morgan, rdkit in ((mol, b"\x0f", b"\x01"), (other, b"\x03", b"\x01")):
            m.set_fingerprint(_morgan(morgan))
            m.set_fingerprint(_rdkit(rdkit))
        assert mol.fused_similarity_to(other) == pytest.approx(0.75)
        weighted = mol.fused_similarity_to(other, weights={"rdkit": 0.0})
        assert weighted == pytest.approx(0.5)


class TestSerialization:
    def test_roundtrip(self, mol):
        mol.activate()
        mol.metadata["source"] = "vendor"
        mol.set_fingerprint(_morgan(b"\x0f\x01"))
        restored = Molecule.from_dict(mol.to_dict())
        assert restored == mol
        assert restored.events() == []

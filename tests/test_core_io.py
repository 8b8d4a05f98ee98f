from __future__ import annotations

import json

import numpy as np
import pandas as pd
import pytest

from molsim_toolkit.core.io import (
    detect_table_format,
    fingerprints_from_frame,
    fingerprints_to_frame,
    read_fingerprint_table,
    write_fingerprint_table,
)
from molsim_toolkit.core.metadata import metadata_sidecar_path, write_run_metadata
from molsim_toolkit.similarity.errors import InvalidInputError, InvalidMACCSLengthError
from molsim_toolkit.similarity.fingerprints import (
    new_bit_fingerprint,
    new_count_fingerprint,
    new_dense_fingerprint,
)
from molsim_toolkit.similarity.types import FingerprintType


def _library():
    return {
        "CPD-1": {
            FingerprintType.MORGAN: new_bit_fingerprint("morgan", b"\x00\x0f", 16, radius=2),
            FingerprintType.GNN: new_dense_fingerprint(np.linspace(-1, 1, 32), "gnn-v2"),
        },
        "007": {
            FingerprintType.ATOM_PAIR: new_count_fingerprint("atompair", bytes([0, 3]), 16),
        },
    }


def test_detect_table_format() -> None:
    assert detect_table_format("a.parquet") == "parquet"
    assert detect_table_format("a.tsv") == "tsv"
    assert detect_table_format("a.txt") == "csv"
    assert detect_table_format("a.csv", "parquet") == "parquet"
    with pytest.raises(ValueError):
        detect_table_format("a.csv", "xlsx")


def test_frame_layout() -> None:
    df = fingerprints_to_frame(_library())
    assert list(df.columns)[:3] == ["Compound_ID", "FP_Type", "Encoding"]
    row = df[df["FP_Type"] == "morgan"].iloc[0]
    assert row["Bits"] == "000f"
    assert row["Vector"] == ""


@pytest.mark.parametrize("suffix", [".csv", ".tsv"])
def test_roundtrip_text_tables(tmp_path, suffix) -> None:
    lib = _library()
    path = tmp_path / f"fps{suffix}"
    write_fingerprint_table(lib, str(path))

    restored = read_fingerprint_table(str(path))
    assert set(restored) == {"CPD-1", "007"}
    for mol_id, fps in lib.items():
        assert restored[mol_id] == fps


def test_later_row_supersedes() -> None:
    first = new_bit_fingerprint("rdkit", b"\x01", 8)
    second = new_bit_fingerprint("rdkit", b"\x03", 8)
    df = pd.concat(
        [fingerprints_to_frame({"A": {"rdkit": first}}), fingerprints_to_frame({"A": {"rdkit": second}})]
    )
    assert fingerprints_from_frame(df)["A"][FingerprintType.RDKIT].bits == b"\x03"


def test_missing_columns() -> None:
    with pytest.raises(InvalidInputError):
        fingerprints_from_frame(pd.DataFrame({"Compound_ID": ["A"], "FP_Type": ["rdkit"]}))


def test_invalid_row_fails_like_constructor() -> None:
    df = pd.DataFrame(
        {
            "Compound_ID": ["A"],
            "FP_Type": ["maccs"],
            "Encoding": ["bit_vector"],
            "Bits": ["00" * 21],
            "Num_Bits": [100],
        }
    )
    with pytest.raises(InvalidMACCSLengthError):
        fingerprints_from_frame(df)


def test_run_metadata(tmp_path) -> None:
    inp = tmp_path / "in.csv"
    inp.write_text("a\n1\n", encoding="utf-8")
    out = tmp_path / "hits.csv"
    out.write_text("x\n", encoding="utf-8")

    sidecar = write_run_metadata(
        tool="molsim-similarity", output_table_path=out, inputs=[inp], parameters={"metric": "dice"}
    )
    assert sidecar == metadata_sidecar_path(out) == tmp_path / "hits.metadata.json"
    payload = json.loads(sidecar.read_text(encoding="utf-8"))
    assert payload["tool"] == "molsim-similarity"
    assert payload["parameters"] == {"metric": "dice"}
    assert payload["inputs"][0]["sha256"] is not None


def test_roundtrip_parquet(tmp_path) -> None:
    pytest.importorskip("pyarrow")
    lib = _library()
    path = tmp_path / "fps.parquet"
    write_fingerprint_table(lib, str(path))
    assert read_fingerprint_table(str(path)) == lib

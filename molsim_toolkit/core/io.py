"""Table IO for fingerprint records (CSV/TSV/Parquet).

Fingerprints are exchanged as one row per (molecule, fingerprint type):

    Compound_ID, FP_Type, Encoding, Bits, Vector, Num_Bits, Radius,
    Model_Version, Computed_At

`Bits` holds the packed payload as lowercase hex and `Vector` holds dense
values as a JSON list, so both survive CSV unchanged. Rows are rebuilt
through the regular fingerprint constructors, so a malformed table fails
with the same errors as malformed constructor input.

Parquet support requires `pyarrow` (install the `parquet` extra).
"""

from __future__ import annotations

import json
import math
from collections import defaultdict
from pathlib import Path
from typing import Any, Dict, Literal, Mapping, Optional

import pandas as pd

from ..similarity.errors import InvalidInputError
from ..similarity.fingerprints import Fingerprint, fingerprint_from_record
from ..similarity.types import FingerprintType
from .columns import detect_id_column, missing_fingerprint_columns

TableFormat = Literal["csv", "tsv", "parquet"]

FRAME_COLUMNS = [
    "FP_Type",
    "Encoding",
    "Bits",
    "Vector",
    "Num_Bits",
    "Radius",
    "Model_Version",
    "Computed_At",
]

# Read as text so hex payloads such as "0000" are not parsed as numbers
_TEXT_COLUMNS = ("Bits", "Vector", "Model_Version", "Computed_At")

FingerprintLibrary = Dict[str, Dict[FingerprintType, Fingerprint]]


def detect_table_format(path: str, fmt: Optional[str] = None) -> TableFormat:
    """Detect table format from `fmt` (unless 'auto') or the file extension."""

    if fmt and fmt.lower() != "auto":
        f = fmt.lower()
        if f in ("csv", "tsv", "parquet"):
            return f  # type: ignore[return-value]
        raise ValueError(f"Unknown table format: {fmt}")

    ext = Path(path).suffix.lower()
    if ext in (".parquet", ".pq"):
        return "parquet"
    if ext in (".tsv", ".tab"):
        return "tsv"
    return "csv"


_PARQUET_HINT = (
    "Parquet requires pyarrow. Install with: pip install pyarrow\n"
    "or install molsim-toolkit with the parquet extra: pip install 'molsim-toolkit[parquet]'"
)


def read_table(path: str, *, fmt: Optional[str] = None, **kwargs: Any) -> pd.DataFrame:
    f = detect_table_format(path, fmt)
    if f == "parquet":
        try:
            return pd.read_parquet(path, **kwargs)
        except ImportError as e:  # pragma: no cover
            raise RuntimeError(_PARQUET_HINT) from e
    if f == "tsv":
        kwargs.setdefault("sep", "\t")
    return pd.read_csv(path, **kwargs)


def write_table(df: pd.DataFrame, path: str, *, fmt: Optional[str] = None, **kwargs: Any) -> None:
    """Write a table, creating parent directories; the index is never stored."""

    Path(path).parent.mkdir(parents=True, exist_ok=True)
    f = detect_table_format(path, fmt)
    if f == "parquet":
        try:
            df.to_parquet(path, index=False, **kwargs)
        except ImportError as e:  # pragma: no cover
            raise RuntimeError(_PARQUET_HINT) from e
        return
    if f == "tsv":
        kwargs.setdefault("sep", "\t")
    df.to_csv(path, index=False, **kwargs)


def fingerprints_to_frame(
    library: Mapping[str, Mapping[Any, Fingerprint]],
    id_col: str = "Compound_ID",
) -> pd.DataFrame:
    """Flatten `{molecule_id: {type: Fingerprint}}` into one row per fingerprint."""

    rows = []
    for mol_id, fps in library.items():
        for fp in fps.values():
            rec = fp.to_record()
            rows.append(
                {
                    id_col: str(mol_id),
                    "FP_Type": rec["type"],
                    "Encoding": rec["encoding"],
                    "Bits": rec["bits"].hex() if rec["bits"] is not None else "",
                    "Vector": json.dumps(rec["vector"]) if rec["vector"] is not None else "",
                    "Num_Bits": rec["num_bits"],
                    "Radius": rec["radius"],
                    "Model_Version": rec["model_version"],
                    "Computed_At": rec["computed_at"],
                }
            )
    return pd.DataFrame(rows, columns=[id_col] + FRAME_COLUMNS)


def _cell(value: Any) -> Any:
    # Empty CSV cells come back as NaN.
    if value is None:
        return None
    if isinstance(value, float) and math.isnan(value):
        return None
    if isinstance(value, str) and value == "":
        return None
    return value


def fingerprints_from_frame(df: pd.DataFrame, id_col: Optional[str] = None) -> FingerprintLibrary:
    """Rebuild `{molecule_id: {FingerprintType: Fingerprint}}` from a fingerprint table.

    A later row for the same (molecule, type) supersedes an earlier one.
    """

    missing = missing_fingerprint_columns(df)
    if missing:
        raise InvalidInputError(f"Fingerprint table is missing columns: {missing}")

    id_col = id_col or detect_id_column(df)
    if id_col not in df.columns:
        raise InvalidInputError(f"ID column not found: {id_col}")

    library: FingerprintLibrary = defaultdict(dict)
    for row in df.to_dict(orient="records"):
        vector = _cell(row.get("Vector"))
        record = {
            "type": row["FP_Type"],
            "encoding": row["Encoding"],
            "bits": _cell(row.get("Bits")),
            "vector": json.loads(vector) if isinstance(vector, str) else vector,
            "num_bits": int(row["Num_Bits"]),
            "radius": int(_cell(row.get("Radius")) or 0),
            "model_version": _cell(row.get("Model_Version")) or "",
            "computed_at": _cell(row.get("Computed_At")),
        }
        fp = fingerprint_from_record(record)
        library[str(row[id_col])][fp.fp_type] = fp

    return dict(library)


def read_fingerprint_table(
    path: str, *, id_col: Optional[str] = None, fmt: Optional[str] = None
) -> FingerprintLibrary:
    f = detect_table_format(path, fmt)
    if f == "parquet":
        df = read_table(path, fmt=f)
    else:
        header = read_table(path, fmt=f, nrows=0)
        text_cols = [c for c in _TEXT_COLUMNS if c in header.columns]
        text_cols.append(id_col or detect_id_column(header))
        df = read_table(path, fmt=f, dtype={c: str for c in text_cols}, keep_default_na=False)
    return fingerprints_from_frame(df, id_col=id_col)


def write_fingerprint_table(
    library: Mapping[str, Mapping[Any, Fingerprint]],
    path: str,
    *,
    id_col: str = "Compound_ID",
    fmt: Optional[str] = None,
) -> None:
    write_table(fingerprints_to_frame(library, id_col=id_col), path, fmt=fmt)

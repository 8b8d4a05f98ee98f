"""Column detection helpers for fingerprint tables.

Fingerprint tables arrive from several upstream exports, so the identifier
column is looked up among a few common names.
"""

from __future__ import annotations

from typing import List, Sequence, Union

ID_CANDIDATES: Sequence[str] = (
    "Compound_ID",
    "compound_id",
    "Molecule_ID",
    "molecule_id",
    "Candidate_ID",
    "Name",
    "name",
    "ID",
    "id",
)

# Columns every fingerprint table must carry
FINGERPRINT_COLUMNS: Sequence[str] = ("FP_Type", "Encoding", "Num_Bits")


def _as_columns(df_or_columns: Union[Sequence[str], object]) -> list[str]:
    # Accept a DataFrame or a plain list of names.
    cols = getattr(df_or_columns, "columns", df_or_columns)
    return [str(c) for c in cols]  # type: ignore[union-attr]


def detect_id_column(df_or_columns: Union[Sequence[str], object]) -> str:
    """Detect a molecule identifier column.

    Falls back to the first column when none of the known names is present.
    """

    cols = _as_columns(df_or_columns)
    for c in ID_CANDIDATES:
        if c in cols:
            return c
    return cols[0] if cols else "Compound_ID"


def missing_fingerprint_columns(df_or_columns: Union[Sequence[str], object]) -> List[str]:
    cols = set(_as_columns(df_or_columns))
    return [c for c in FINGERPRINT_COLUMNS if c not in cols]

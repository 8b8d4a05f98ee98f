# ruff: noqa: F401

"""Shared utilities for MolSim Toolkit.

Table IO for fingerprint records, column detection and run-metadata sidecars.
"""

from __future__ import annotations

from .columns import detect_id_column, missing_fingerprint_columns
from .io import (
    detect_table_format,
    fingerprints_from_frame,
    fingerprints_to_frame,
    read_fingerprint_table,
    read_table,
    write_fingerprint_table,
    write_table,
)
from .metadata import metadata_sidecar_path, sha256_file, write_run_metadata

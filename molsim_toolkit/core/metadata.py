"""Run metadata helpers.

Every command that writes a result table also writes a small JSON sidecar
capturing provenance (input hashes, parameters, versions).

Convention: for an output table `results.csv` the sidecar is
`results.metadata.json` in the same directory.
"""

from __future__ import annotations

import hashlib
import json
import os
import sys
from datetime import datetime, timezone
from importlib import metadata as importlib_metadata
from pathlib import Path
from typing import Any, Dict, Optional, Sequence


def _dist_version(name: str) -> str:
    try:
        return importlib_metadata.version(name)
    except importlib_metadata.PackageNotFoundError:
        return "not_installed"


def sha256_file(path: Path, *, max_bytes: int = 200 * 1024 * 1024) -> Optional[str]:
    """SHA256 of a file, or None if it is missing or larger than `max_bytes`."""

    if not path.is_file() or path.stat().st_size > max_bytes:
        return None
    h = hashlib.sha256()
    with path.open("rb") as f:
        for chunk in iter(lambda: f.read(1024 * 1024), b""):
            h.update(chunk)
    return h.hexdigest()


def metadata_sidecar_path(output_table_path: str | Path) -> Path:
    p = Path(output_table_path)
    return p.with_name(f"{p.stem}.metadata.json")


def _describe_input(path: Path) -> Dict[str, Any]:
    exists = path.exists()
    return {
        "path": str(path.resolve()),
        "name": path.name,
        "sha256": sha256_file(path),
        "size_bytes": int(path.stat().st_size) if exists else None,
    }


def write_run_metadata(
    *,
    tool: str,
    output_table_path: str | Path,
    inputs: Sequence[str | Path] = (),
    parameters: Optional[Dict[str, Any]] = None,
    notes: Optional[str] = None,
) -> Path:
    """Write the JSON sidecar next to `output_table_path` and return its path."""

    out_p = Path(output_table_path)
    payload: Dict[str, Any] = {
        "tool": str(tool),
        "created_at": datetime.now(timezone.utc).isoformat(timespec="seconds"),
        "cwd": os.getcwd(),
        "argv": list(sys.argv),
        "versions": {
            "molsim_toolkit": _dist_version("molsim-toolkit"),
            "python": sys.version.split()[0],
            "numpy": _dist_version("numpy"),
            "pandas": _dist_version("pandas"),
        },
        "inputs": [_describe_input(Path(p)) for p in inputs],
        "output": {
            "path": str(out_p.resolve()),
            "name": out_p.name,
            "format": out_p.suffix.lower().lstrip(".") or "unknown",
            "size_bytes": int(out_p.stat().st_size) if out_p.exists() else None,
        },
        "parameters": parameters or {},
    }
    if notes:
        payload["notes"] = str(notes)

    sidecar = metadata_sidecar_path(out_p)
    sidecar.write_text(json.dumps(payload, indent=2) + "\n", encoding="utf-8")
    return sidecar

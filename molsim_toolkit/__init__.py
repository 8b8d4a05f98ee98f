"""MolSim Toolkit (importable package).

Fingerprint representation and similarity scoring for chemical-structure
similarity search.

The numeric core lives in `molsim_toolkit.similarity`; shared table IO and
run-metadata helpers live in `molsim_toolkit.core`; the molecule aggregate that
owns fingerprints lives in `molsim_toolkit.molecule`.
"""

from __future__ import annotations

__version__ = "0.3.0"

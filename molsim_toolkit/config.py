"""
Configuration for similarity scoring.

Values come from (lowest to highest precedence) the dataclass defaults, a
JSON/YAML config file and ``MOLSIM_*`` environment variables.

Example YAML::

    metric: tversky
    threshold: 0.6
    top_n: 50
    tversky_alpha: 0.9
    tversky_beta: 0.1
    fusion: weighted_average
    weights:
      morgan: 2.0
      maccs: 1.0
"""

from __future__ import annotations

import json
import logging
import os
from dataclasses import asdict, dataclass, field, fields
from pathlib import Path
from typing import Any, Dict, Mapping, Optional

from .similarity.errors import InvalidInputError, NegativeParameterError
from .similarity.fusion import get_fusion_strategy
from .similarity.types import FingerprintType, SimilarityMetric

logger = logging.getLogger(__name__)

ENV_PREFIX = "MOLSIM_"


@dataclass
class SimilarityConfig:
    """Scoring and ranking parameters"""
    metric: str = "tanimoto"
    threshold: float = 0.0
    top_n: Optional[int] = None
    tversky_alpha: float = 1.0
    tversky_beta: float = 1.0
    fusion: str = "weighted_average"
    weights: Dict[str, float] = field(default_factory=dict)

    def __post_init__(self):
        self.metric = SimilarityMetric.parse(self.metric).value
        self.fusion = get_fusion_strategy(self.fusion).name
        self.threshold = float(self.threshold)
        if not 0.0 <= self.threshold <= 1.0:
            raise InvalidInputError(f"threshold must be in [0, 1], got {self.threshold}")
        if self.top_n is not None:
            self.top_n = int(self.top_n)
            if self.top_n <= 0:
                raise InvalidInputError(f"top_n must be positive, got {self.top_n}")
        self.tversky_alpha = float(self.tversky_alpha)
        self.tversky_beta = float(self.tversky_beta)
        if self.tversky_alpha < 0 or self.tversky_beta < 0:
            raise NegativeParameterError(
                f"tversky_alpha and tversky_beta must be non-negative: "
                f"alpha={self.tversky_alpha}, beta={self.tversky_beta}"
            )
        self.weights = {
            FingerprintType.parse(k).value: float(v) for k, v in (self.weights or {}).items()
        }

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


def _load_json_or_yaml(path: str | Path) -> Dict[str, Any]:
    p = Path(path)
    txt = p.read_text(encoding="utf-8")

    if p.suffix.lower() in (".yaml", ".yml"):
        import yaml

        data = yaml.safe_load(txt)
        return data or {}

    return json.loads(txt)


def _env_overrides(environ: Mapping[str, str]) -> Dict[str, Any]:
    out: Dict[str, Any] = {}
    for name in ("metric", "threshold", "top_n", "fusion", "tversky_alpha", "tversky_beta"):
        raw = environ.get(ENV_PREFIX + name.upper())
        if raw is not None and raw.strip() != "":
            out[name] = raw.strip()
    return out


def load_config(
    path: Optional[str | Path] = None,
    environ: Optional[Mapping[str, str]] = None,
) -> SimilarityConfig:
    """Load a SimilarityConfig from an optional JSON/YAML file plus environment overrides.

    Unknown keys in the file are ignored with a warning. The config file may
    nest its values under a top-level ``similarity`` key.
    """

    values: Dict[str, Any] = {}
    if path is not None:
        raw = _load_json_or_yaml(path)
        if isinstance(raw.get("similarity"), dict):
            raw = raw["similarity"]
        known = {f.name for f in fields(SimilarityConfig)}
        for key, value in raw.items():
            if key in known:
                values[key] = value
            else:
                logger.warning("Ignoring unknown config key %r in %s", key, path)
        logger.debug("Loaded similarity config from %s", path)

    values.update(_env_overrides(os.environ if environ is None else environ))
    return SimilarityConfig(**values)

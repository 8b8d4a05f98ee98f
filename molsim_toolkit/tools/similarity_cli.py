#!/usr/bin/env python
"""
molsim-similarity: Rank a fingerprint library against query fingerprints.

Both inputs are fingerprint tables (CSV/TSV/Parquet) with one row per
(molecule, fingerprint type), as written by
`molsim_toolkit.core.io.write_fingerprint_table`.

Examples
--------
# Rank the library against every query by Morgan Tanimoto
molsim-similarity queries.csv library.csv -o hits.csv

# One query, Dice on MACCS keys, top 20 above 0.7
molsim-similarity queries.csv library.csv --query-id CPD-7 --fp maccs --metric dice -t 0.7 -n 20

# Fuse Morgan + MACCS scores with custom weights
molsim-similarity queries.csv library.parquet --fused --weight morgan=2 --weight maccs=1

# Settings from a config file (JSON/YAML); flags override it
molsim-similarity queries.csv library.csv --config similarity.yaml

# List available fingerprint types and metrics
molsim-similarity --list-fps
molsim-similarity --list-metrics
"""

import argparse
import logging
import sys
from pathlib import Path
from typing import Dict, List, Optional

import pandas as pd

from molsim_toolkit.config import SimilarityConfig, load_config
from molsim_toolkit.core.io import read_fingerprint_table, write_table
from molsim_toolkit.core.metadata import write_run_metadata
from molsim_toolkit.similarity.engine import RESULT_COLUMNS, SimilarityEngine
from molsim_toolkit.similarity.errors import FingerprintError, InvalidInputError
from molsim_toolkit.similarity.types import (
    FINGERPRINT_TYPES,
    SIMILARITY_METRICS,
    FingerprintType,
)

logger = logging.getLogger("molsim_toolkit.similarity_cli")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="molsim-similarity",
        description="Fingerprint similarity ranking",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__,
    )

    parser.add_argument("query", nargs="?", help="Query fingerprint table")
    parser.add_argument("library", nargs="?", help="Library fingerprint table to rank")

    parser.add_argument(
        "-o", "--output",
        help="Output table (.csv/.tsv/.parquet); default: print to stdout",
    )
    parser.add_argument(
        "--id-col",
        default=None,
        help="Molecule ID column in both tables (default: auto-detect)",
    )
    parser.add_argument(
        "--query-id",
        action="append",
        default=None,
        help="Only run this query molecule (repeatable; default: all)",
    )

    parser.add_argument(
        "--fp", "--fingerprint",
        dest="fp_type",
        default="morgan",
        help="Fingerprint type to compare (default: morgan)",
    )
    parser.add_argument(
        "--fused",
        action="store_true",
        help="Score every fingerprint type both sides share and fuse the scores",
    )

    # Scoring options; unset values fall back to the config file / environment
    parser.add_argument("--metric", default=None, help="Similarity metric (default: tanimoto)")
    parser.add_argument("-t", "--threshold", type=float, default=None, help="Minimum score")
    parser.add_argument("-n", "--top", type=int, default=None, help="Keep only top N per query")
    parser.add_argument("--alpha", type=float, default=None, help="Tversky alpha")
    parser.add_argument("--beta", type=float, default=None, help="Tversky beta")
    parser.add_argument(
        "--fusion",
        default=None,
        help="Fusion strategy: weighted_average, max, min (default: weighted_average)",
    )
    parser.add_argument(
        "--weight",
        action="append",
        default=None,
        metavar="TYPE=W",
        help="Fusion weight for a fingerprint type (repeatable)",
    )
    parser.add_argument("--config", help="JSON/YAML config file")

    parser.add_argument("--list-fps", action="store_true", help="List fingerprint types")
    parser.add_argument("--list-metrics", action="store_true", help="List similarity metrics")
    parser.add_argument("-v", "--verbose", action="store_true", help="Verbose logging")
    return parser


def _setup_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        handlers=[logging.StreamHandler(sys.stderr)],
    )


def _list_fingerprints():
    """Print available fingerprint types."""
    print("\nAvailable fingerprint types:\n")
    print(f"{'Type':<15} {'Description'}")
    print("-" * 70)
    for fp_type, desc in FINGERPRINT_TYPES.items():
        print(f"{fp_type:<15} {desc}")
    print()


def _list_metrics():
    """Print available similarity metrics."""
    print("\nAvailable similarity metrics:\n")
    print(f"{'Metric':<15} {'Description'}")
    print("-" * 70)
    for metric, desc in SIMILARITY_METRICS.items():
        print(f"{metric:<15} {desc}")
    print()


def _parse_weights(items: Optional[List[str]]) -> Dict[str, float]:
    weights: Dict[str, float] = {}
    for item in items or []:
        key, sep, value = item.partition("=")
        if not sep:
            raise InvalidInputError(f"--weight expects TYPE=W, got {item!r}")
        try:
            weights[FingerprintType.parse(key).value] = float(value)
        except ValueError as err:
            raise InvalidInputError(f"Invalid weight {item!r}: {err}") from err
    return weights


def _resolve_config(args) -> SimilarityConfig:
    """Config file / environment first, then explicit command-line flags."""
    config = load_config(args.config)
    overrides = {
        "metric": args.metric,
        "threshold": args.threshold,
        "top_n": args.top,
        "tversky_alpha": args.alpha,
        "tversky_beta": args.beta,
        "fusion": args.fusion,
    }
    values = config.to_dict()
    values.update({k: v for k, v in overrides.items() if v is not None})
    weights = _parse_weights(args.weight)
    if weights:
        values["weights"] = weights
    return SimilarityConfig(**values)


def run_search(args, config: SimilarityConfig) -> pd.DataFrame:
    """Rank the library against each selected query and return one combined table."""
    engine = SimilarityEngine.from_config(config)
    queries = read_fingerprint_table(args.query, id_col=args.id_col)
    library = read_fingerprint_table(args.library, id_col=args.id_col)
    logger.info("Loaded %d queries and %d library molecules", len(queries), len(library))

    query_ids = args.query_id or list(queries.keys())
    fp_type = None if args.fused else FingerprintType.parse(args.fp_type)

    frames = []
    for query_id in query_ids:
        if query_id not in queries:
            raise InvalidInputError(f"Query molecule not found: {query_id}")
        query_fps = queries[query_id]

        if fp_type is None:
            results = engine.rank_fused(
                query_fps,
                library,
                metric=config.metric,
                threshold=config.threshold,
                top_n=config.top_n,
                query_id=query_id,
            )
        else:
            if fp_type not in query_fps:
                logger.warning("Query %s has no %s fingerprint; skipped", query_id, fp_type.value)
                continue
            candidates = {cid: fps[fp_type] for cid, fps in library.items() if fp_type in fps}
            results = engine.rank(
                query_fps[fp_type],
                candidates,
                metric=config.metric,
                threshold=config.threshold,
                top_n=config.top_n,
                query_id=query_id,
            )

        logger.debug("Query %s: %d of %d candidates kept", query_id, len(results), results.n_searched)
        df = results.to_dataframe()
        df.insert(0, "Query_ID", query_id)
        frames.append(df)

    if not frames:
        return pd.DataFrame(columns=["Query_ID"] + RESULT_COLUMNS)
    return pd.concat(frames, ignore_index=True)


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.list_fps:
        _list_fingerprints()
        return 0

    if args.list_metrics:
        _list_metrics()
        return 0

    if not args.query or not args.library:
        parser.error("Query and library fingerprint tables are required")

    _setup_logging(args.verbose)

    try:
        config = _resolve_config(args)
        df = run_search(args, config)
    except FingerprintError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    except (OSError, ValueError) as e:
        print(f"Error reading input: {e}", file=sys.stderr)
        return 1

    if args.output:
        output_path = Path(args.output)
        write_table(df, str(output_path))
        write_run_metadata(
            tool="molsim-similarity",
            output_table_path=output_path,
            inputs=[args.query, args.library],
            parameters={**config.to_dict(), "fp_type": None if args.fused else args.fp_type},
        )
        logger.info("Results saved to %s (%d rows)", output_path, len(df))
    else:
        print(df.to_string(index=False))

    return 0


if __name__ == "__main__":
    sys.exit(main())

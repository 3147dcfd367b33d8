"""Command-line entry point: PCA, retention guidance and metadata correlation.

Usage::

    pcaguide --data expr.csv --metadata samples.csv --remove-var 0.1 \\
        --permutations 100 --seed 1 --correction BH

``--data`` is a .npy array or a .csv whose first column holds feature labels
and whose header holds sample labels (features x samples).  ``--metadata`` is
a .csv whose first column holds sample labels.
"""

import argparse
import sys

import numpy as np
import pandas as pd

from pcaguide.analysis import analyze_matrix
from pcaguide.config import (
    CORRECTION_METHODS, CORRELATION_METHODS, N_PERMUTATIONS, AnalysisConfig,
)
from pcaguide.errors import PCAGuideError


def load_matrix(path: str):
    if path.endswith(".npy"):
        return np.load(path)
    if path.endswith(".csv"):
        return pd.read_csv(path, index_col=0)
    raise ValueError(f"Unsupported file format: {path}")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Exploratory PCA with component-retention guidance."
    )
    parser.add_argument("--data", required=True, help="Features x samples matrix (.npy or .csv)")
    parser.add_argument("--metadata", default=None, help="Sample metadata (.csv, first column = sample)")
    parser.add_argument("--remove-var", type=float, default=None,
                        help="Fraction of lowest-variance features to drop")
    parser.add_argument("--scale", action="store_true", help="Scale features to unit variance")
    parser.add_argument("--no-center", action="store_true", help="Do not center features")
    parser.add_argument("--components", type=int, default=None, help="Number of components")
    parser.add_argument("--permutations", type=int, default=N_PERMUTATIONS,
                        help=f"Parallel analysis iterations (default: {N_PERMUTATIONS})")
    parser.add_argument("--seed", type=int, default=None, help="Random seed for parallel analysis")
    parser.add_argument("--method", choices=CORRELATION_METHODS, default="pearson",
                        help="Correlation method (default: pearson)")
    parser.add_argument("--correction", choices=sorted(CORRECTION_METHODS), default="none",
                        help="Multiple-testing correction (default: none)")
    parser.add_argument("--jobs", type=int, default=1, help="Parallel workers (-1 = all cores)")
    parser.add_argument("--quiet", action="store_true", help="Only print the summaries")
    return parser


def main(argv=None):
    args = build_parser().parse_args(argv)

    try:
        X = load_matrix(args.data)
        metadata = pd.read_csv(args.metadata, index_col=0) if args.metadata else None
    except (OSError, ValueError) as exc:
        print(str(exc), file=sys.stderr)
        sys.exit(1)

    try:
        config = AnalysisConfig(
            remove_var=args.remove_var,
            center=not args.no_center,
            scale=args.scale,
            components=args.components,
            n_permutations=args.permutations,
            seed=args.seed,
            correlation_method=args.method,
            multiple_test_correction=args.correction,
            n_jobs=args.jobs,
        )
        results = analyze_matrix(X, metadata, config, verbose=not args.quiet)
    except PCAGuideError as exc:
        print(f"error: {exc}", file=sys.stderr)
        sys.exit(1)

    print(results["pca"].summary())
    print()
    print(results["parallel"].summary())
    print()
    print(f"Elbow point: {results['elbow']}")
    if results["correlation"] is not None:
        print()
        print(results["correlation"].summary())


if __name__ == "__main__":
    main()

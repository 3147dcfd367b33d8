"""Exploratory PCA -- thin wrapper around pcaguide.cli.

Lets ``python scripts/run_pca.py`` work from a source checkout without
installing the console script.

CLI usage::

    python scripts/run_pca.py --data data/expr.csv --metadata data/samples.csv --seed 1
"""

import os
import sys

# Ensure the repo root is importable when run from a checkout.
REPO_ROOT = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
sys.path.insert(0, REPO_ROOT)

from pcaguide.cli import main  # noqa: E402

if __name__ == "__main__":
    main()

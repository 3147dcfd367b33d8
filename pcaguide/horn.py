"""Horn's parallel analysis: how many components rise above noise?

For each of ``n_permutations`` iterations a null matrix of the same shape is
built by permuting (or resampling) every feature independently across
samples, and its top-k eigenvalues are computed.  The null eigenvalues are
aggregated per rank (a percentile, 95th by default, or the mean) and the
observed eigenvalues are compared against them in rank order:

    n = number of leading ranks with observed > null

Scanning stops at the first rank where observed <= null (ties reject).

Iterations are independent, so they run as a joblib parallel map; every
iteration writes one slot of the output list and aggregation happens only
after all of them have finished.  Each iteration gets its own child
``SeedSequence`` spawned from the run seed, so results do not depend on
``n_jobs``.  Without a seed the run is not reproducible; the result records
this (``reproducible=False``) together with the generated entropy, which can
be passed back as ``seed`` to replay the run.
"""

from dataclasses import dataclass
from typing import Callable, Optional, Union

import numpy as np
from joblib import Parallel, delayed

from pcaguide.config import (
    MIN_SAMPLES_PERMUTATION, N_JOBS, N_PERMUTATIONS, NULL_METHODS,
    NULL_PERCENTILE, SEED, VERBOSE, check_choice, check_percentile,
)
from pcaguide.decomposition import default_n_components
from pcaguide.errors import (
    AnalysisCancelled, InsufficientSamples, InvalidParameter, PermutationFailed,
)
from pcaguide.null_models import null_eigenvalues
from pcaguide.utils import (
    as_feature_matrix, center_and_scale, check_decomposable,
    eigenvalues_from_singular, percent_variance, resolve_n_jobs, svd_top_k,
)

ERROR_POLICIES = ("raise", "skip")
CANCEL_POLICIES = ("raise", "partial")


@dataclass
class ParallelAnalysisResult:
    """Result of Horn's parallel analysis."""

    n: int
    observed: np.ndarray
    null: np.ndarray
    pvalues: np.ndarray
    observed_variance: np.ndarray
    null_percentile: Union[float, str]
    null_method: str
    n_permutations: int
    n_completed: int
    n_failed: int
    partial: bool
    seed: Optional[int]
    seed_entropy: int
    reproducible: bool

    def summary(self, max_rows: int = 10) -> str:
        """Return a readable summary table."""
        agg = "mean" if self.null_percentile == "mean" else f"{float(self.null_percentile):g}th percentile"
        lines = [
            f"Parallel analysis  (retained n={self.n}, null={self.null_method}, {agg}, "
            f"{self.n_completed}/{self.n_permutations} iterations)",
        ]
        if self.n_failed:
            lines.append(f"  {self.n_failed} failed iteration(s) excluded")
        if self.partial:
            lines.append("  PARTIAL: run was cancelled before all iterations completed")
        if not self.reproducible:
            lines.append(f"  not seeded; replay with seed={self.seed_entropy}")
        lines += [
            "",
            f"{'rank':>6s}  {'observed':>12s}  {'null':>12s}  {'pval':>8s}  kept",
            "-" * 52,
        ]
        for i in range(min(max_rows, len(self.observed))):
            lines.append(
                f"{i + 1:6d}  {self.observed[i]:12.5g}  {self.null[i]:12.5g}  "
                f"{self.pvalues[i]:8.4f}  {'yes' if i < self.n else ''}"
            )
        return "\n".join(lines)


def aggregate_null(null_runs: np.ndarray, null_percentile: Union[float, str] = NULL_PERCENTILE) -> np.ndarray:
    """Component-wise summary of an (iterations x k) stack of null eigenvalues."""
    check_percentile(null_percentile)
    null_runs = np.asarray(null_runs, dtype=np.float64)
    if null_percentile == "mean":
        return null_runs.mean(axis=0)
    return np.percentile(null_runs, float(null_percentile), axis=0)


def retained_count(observed: np.ndarray, null: np.ndarray) -> int:
    """Length of the leading run of ranks where observed strictly exceeds null."""
    above = np.asarray(observed) > np.asarray(null)
    if above.all():
        return int(above.size)
    return int(np.argmin(above))


def _null_run(M, k, child_seed, method, center, scale, solver):
    """One iteration; returns (eigenvalues, None) or (None, exception)."""
    try:
        return null_eigenvalues(
            M, k, child_seed, method=method, center=center, scale=scale, solver=solver,
        ), None
    except (np.linalg.LinAlgError, ValueError, FloatingPointError) as exc:
        return None, exc


def parallel_analysis(
    X,
    *,
    components: Optional[int] = None,
    n_permutations: int = N_PERMUTATIONS,
    null_percentile: Union[float, str] = NULL_PERCENTILE,
    null_method: str = "permute",
    center: bool = True,
    scale: bool = False,
    seed: Optional[int] = None,
    svd_solver: str = "auto",
    n_jobs: int = N_JOBS,
    on_error: str = "raise",
    should_stop: Optional[Callable[[], bool]] = None,
    on_cancel: str = "raise",
    batch_size: Optional[int] = None,
    verbose: bool = VERBOSE,
) -> ParallelAnalysisResult:
    """Horn's parallel analysis on a features x samples matrix.

    Parameters
    ----------
    X : DataFrame or 2-D array
        Features x samples (already filtered, if filtering is wanted).
    components : int, optional
        Number of ranks compared; defaults to min(features, samples) - 1.
    n_permutations : int
        Null iterations (>= 1).
    null_percentile : float or "mean"
        Aggregation of the null eigenvalues per rank.
    null_method : {"permute", "resample"}
    center, scale : bool
        Preprocessing applied identically to observed and null matrices.
    seed : int, optional
        Root seed.  Without it results vary run to run and the result is
        flagged ``reproducible=False``.
    n_jobs : int
        joblib workers (-1 = all cores).
    on_error : {"raise", "skip"}
        "raise" fails the whole call if any iteration fails; "skip" reports
        and excludes failed iterations and counts them in ``n_failed``.
    should_stop : callable, optional
        Polled before each batch of iterations is launched; returning True
        stops launching further iterations.
    on_cancel : {"raise", "partial"}
        After a stop request, raise ``AnalysisCancelled`` or return a result
        aggregated over the completed iterations with ``partial=True``.
    batch_size : int, optional
        Iterations launched per batch (defaults to all at once, or to the
        worker count when ``should_stop`` is given).

    Returns
    -------
    ParallelAnalysisResult
    """
    if int(n_permutations) < 1:
        raise InvalidParameter("n_permutations must be >= 1", n_permutations)
    n_permutations = int(n_permutations)
    check_percentile(null_percentile)
    check_choice("null_method", null_method, NULL_METHODS)
    check_choice("on_error", on_error, ERROR_POLICIES)
    check_choice("on_cancel", on_cancel, CANCEL_POLICIES)
    if seed is not None and int(seed) < 0:
        raise InvalidParameter("seed must be a non-negative integer", seed)
    workers = resolve_n_jobs(n_jobs)
    if batch_size is None:
        batch_size = workers if should_stop is not None else n_permutations
    if int(batch_size) < 1:
        raise InvalidParameter("batch_size must be >= 1", batch_size)

    df = as_feature_matrix(X)
    n_features, n_samples = df.shape
    if n_samples < MIN_SAMPLES_PERMUTATION:
        raise InsufficientSamples(
            f"parallel analysis needs at least {MIN_SAMPLES_PERMUTATION} samples", n_samples,
        )
    check_decomposable(n_samples, n_features, centered=center)
    k = default_n_components(n_features, n_samples, center=center) if components is None else int(components)

    # 1. Observed eigenvalues.
    M = df.to_numpy().T
    Mp, _, _ = center_and_scale(
        M, center=center, scale=scale, feature_names=df.index, reject_duplicates=scale,
    )
    _, s, _ = svd_top_k(Mp, k, solver=svd_solver, seed=SEED, centered=center, compute_vectors=False)
    observed = eigenvalues_from_singular(s, n_samples)
    observed_variance = percent_variance(s, float(np.sum(Mp ** 2)))

    # 2. Independent child seeds, one per iteration.
    root = np.random.SeedSequence(None if seed is None else int(seed))
    children = root.spawn(n_permutations)
    if seed is None and verbose:
        print(f"[parallel] no seed given; results are not reproducible "
              f"(replay with seed={root.entropy})")
    if verbose:
        print(f"[parallel] {n_permutations} x {null_method} null, k={k}, "
              f"n={n_samples}, p={n_features}, workers={workers}")

    # 3. Parallel map into per-iteration slots, polled for cancellation
    #    between batches.
    slots = [None] * n_permutations
    n_launched = 0
    cancelled = False
    with Parallel(n_jobs=n_jobs) as parallel:
        while n_launched < n_permutations:
            if should_stop is not None and should_stop():
                cancelled = True
                break
            batch = range(n_launched, min(n_launched + int(batch_size), n_permutations))
            outputs = parallel(
                delayed(_null_run)(M, k, children[i], null_method, center, scale, svd_solver)
                for i in batch
            )
            for i, out in zip(batch, outputs):
                slots[i] = out
            n_launched = batch.stop

    # 4. Barrier passed: single-threaded reduce.
    failures = [(i, out[1]) for i, out in enumerate(slots[:n_launched]) if out[1] is not None]
    if failures and on_error == "raise":
        i, exc = failures[0]
        raise PermutationFailed(
            "permutation iteration failed", i, f"{type(exc).__name__}: {exc}",
        ) from exc
    for i, exc in failures:
        print(f"[parallel] iteration {i} failed and was excluded: {type(exc).__name__}: {exc}")

    completed = [out[0] for out in slots[:n_launched] if out[1] is None]
    if not completed:
        if cancelled:
            raise AnalysisCancelled("parallel analysis cancelled before any iteration completed", 0)
        raise PermutationFailed("every permutation iteration failed", len(failures))
    if cancelled and on_cancel == "raise":
        raise AnalysisCancelled(
            "parallel analysis cancelled before completion", n_launched,
            f"{n_launched} of {n_permutations} iterations launched",
        )

    null_runs = np.vstack(completed)
    null = aggregate_null(null_runs, null_percentile)
    # Add-one empirical p-value per rank: (1 + #null >= observed) / (m + 1)
    pvalues = (1.0 + np.sum(null_runs >= observed, axis=0)) / (null_runs.shape[0] + 1.0)
    n_completed = null_runs.shape[0]
    del null_runs, completed, slots

    n = retained_count(observed, null)
    if verbose:
        print(f"[parallel] retained {n} component(s) from {n_completed} iteration(s)"
              + (" [PARTIAL]" if cancelled else ""))

    return ParallelAnalysisResult(
        n=n,
        observed=observed,
        null=null,
        pvalues=pvalues,
        observed_variance=observed_variance,
        null_percentile=null_percentile,
        null_method=null_method,
        n_permutations=n_permutations,
        n_completed=n_completed,
        n_failed=len(failures),
        partial=cancelled,
        seed=None if seed is None else int(seed),
        seed_entropy=int(root.entropy),
        reproducible=seed is not None,
    )

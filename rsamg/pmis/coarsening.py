"""PMIS coarse/fine splitting.

The splitting is computed by a fixed-point loop over three passes that each
read a consistent snapshot of the labels left by the previous pass:

1) promote-or-reject
   UNDECIDED rows with omega >= 1 become COARSE and are flagged as new in
   this iteration; UNDECIDED rows with omega < 1 influence nobody and are
   final FINE points.

2) correct
   For every strong edge (i, j) whose endpoints were both promoted in this
   iteration, the endpoint with the strictly smaller weight goes back to
   UNDECIDED. Equal weights keep both endpoints COARSE.

3) fine closure
   UNDECIDED rows with at least one strongly connected COARSE neighbor
   become FINE.

The loop repeats while any row is UNDECIDED. Every round that promotes
anything keeps at least the heaviest new point of each strongly connected
cluster, so the undecided set shrinks; the iteration cap only guards against
pathological inputs and its exhaustion is reported, not raised.
"""

from __future__ import annotations

from warnings import warn

import numpy as np

from .csr import row_ids
from .types import (
    COARSE,
    DEFAULT_PMIS_MAX_ITER,
    FINE,
    UNDECIDED,
    PMISConvergenceWarning,
    Splitting,
)


def _pmis_unassigned_to_coarse(*, omega: np.ndarray, cf: np.ndarray, workspace: np.ndarray) -> None:
    """Promote undecided rows with omega >= 1 to COARSE, finalize the rest as FINE.

    `workspace` is overwritten with the "promoted in this iteration" flags.
    """
    undecided = cf == UNDECIDED
    promote = undecided & (omega >= 1.0)

    cf[promote] = COARSE
    cf[undecided & ~promote] = FINE

    workspace[:] = promote


def _pmis_correct_coarse(
    *,
    rows: np.ndarray,
    indices: np.ndarray,
    omega: np.ndarray,
    S: np.ndarray,
    cf: np.ndarray,
    workspace: np.ndarray,
) -> None:
    """Revert the lighter endpoint of every strong edge between two new coarse points."""
    edges = S & workspace[rows] & workspace[indices]
    r = rows[edges]
    c = indices[edges]

    w_r = omega[r]
    w_c = omega[c]

    cf[c[w_r > w_c]] = UNDECIDED
    cf[r[w_r < w_c]] = UNDECIDED


def _pmis_coarse_edges_to_fine(*, rows: np.ndarray, indices: np.ndarray, S: np.ndarray, cf: np.ndarray) -> None:
    """Mark undecided rows with a strong coarse neighbor as FINE."""
    edges = S & (cf[rows] == UNDECIDED) & (cf[indices] == COARSE)
    cf[rows[edges]] = FINE


def _pmis_check_undecided(cf: np.ndarray) -> bool:
    """Return True if any row is still UNDECIDED."""
    return bool(np.any(cf == UNDECIDED))


def coarsen(
    A,
    S: np.ndarray,
    omega: np.ndarray,
    *,
    max_iter: int | None = DEFAULT_PMIS_MAX_ITER,
) -> Splitting:
    """Compute a PMIS coarse/fine splitting.

    Parameters
    ----------
    A
        CSR sparse array of shape (n, n); only its sparsity pattern is used.
    S
        Strength flags aligned with `A.indices` (from `compute_strength`).
    omega
        Influence weights (from `compute_strength`). Read only.
    max_iter
        Maximum number of promote/correct/closure rounds. None loops until
        no row is undecided.

    Returns
    -------
    splitting
        `Splitting` with the labels, the number of rounds executed, and
        whether every row was decided. When the cap is hit a
        `PMISConvergenceWarning` is issued and `converged` is False.

    Examples
    --------
    >>> from pyamg.gallery import poisson
    >>> from rsamg.pmis.strength import compute_strength
    >>> from rsamg.pmis.coarsening import coarsen
    >>> A = poisson((7,), format='csr')
    >>> S, omega = compute_strength(A, 0.25)
    >>> coarsen(A, S, omega).converged
    True
    """
    if max_iter is not None and max_iter < 1:
        raise ValueError("max_iter must be >= 1 or None")

    n = A.shape[0]
    indices = A.indices
    rows = row_ids(A.indptr)

    cf = np.full(n, UNDECIDED, dtype=np.int32)
    workspace = np.zeros(n, dtype=bool)

    iterations = 0
    undecided = n > 0
    while undecided:
        if max_iter is not None and iterations >= max_iter:
            break

        _pmis_unassigned_to_coarse(omega=omega, cf=cf, workspace=workspace)
        _pmis_correct_coarse(rows=rows, indices=indices, omega=omega, S=S, cf=cf, workspace=workspace)
        _pmis_coarse_edges_to_fine(rows=rows, indices=indices, S=S, cf=cf)

        iterations += 1
        undecided = _pmis_check_undecided(cf)

    if undecided:
        warn(
            f"PMIS coarsening did not converge in {iterations} iterations; "
            f"{int(np.count_nonzero(cf == UNDECIDED))} rows remain undecided",
            PMISConvergenceWarning,
        )

    return Splitting(cf=cf, iterations=iterations, converged=not undecided)

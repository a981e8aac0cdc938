"""Prolongator assembly and hierarchy extension for the PMIS setup.

This module provides:
  - `pmis_prolongator`: the full one-level pipeline
        strength -> PMIS -> interpolation sizing -> prefix sums
        -> interpolation fill -> optional truncation,
  - Galerkin coarsening of the operator (A_c = R A P with R = P^T),
  - appending the next multigrid level,
  - the orchestration routine that builds one additional level.

The public entrypoint used by `rsamg.pmis_solver` is `_pmis_extend_hierarchy`.
"""

from __future__ import annotations

from typing import Any

from pyamg.multilevel import MultilevelSolver

from .coarsening import coarsen
from .csr import coarse_index_map, exclusive_scan
from .direct import fill_direct_interpolation, size_direct_interpolation
from .extended import (
    extended_interpolation_row_max,
    fill_extended_interpolation,
    select_hash_capacity,
    size_extended_interpolation,
)
from .stats import PMISLevelStats, _pmis_finalize_level_stats, _pmis_print_level_summary
from .strength import compute_strength, initial_weights
from .truncation import truncate
from .types import PMISConfig, SparseLike


def pmis_prolongator(A, config: PMISConfig | None = None, *, stats: PMISLevelStats | None = None):
    """Build a PMIS splitting and the matching prolongator for one level.

    Parameters
    ----------
    A
        CSR sparse array of shape (n, n) with sorted indices.
    config
        Parameters; defaults to `PMISConfig()`.
    stats
        Optional per-level stats collector; timings are recorded under
        "strength", "coarsen", "interp_nnz", "interp_fill" and "truncate".

    Returns
    -------
    P, splitting
        P is a CSR sparse array of shape (n, n_coarse); splitting is the
        `Splitting` returned by `coarsen`.

    Examples
    --------
    >>> from pyamg.gallery import poisson
    >>> from rsamg.pmis.hierarchy import pmis_prolongator
    >>> from rsamg.pmis.types import PMISConfig
    >>> A = poisson((9,), format='csr')
    >>> P, splitting = pmis_prolongator(A, PMISConfig(interpolation='direct'))
    >>> P.shape[0]
    9
    """
    if config is None:
        config = PMISConfig()
    if stats is None:
        stats = PMISLevelStats(level=0, n_fine=A.shape[0])

    n = A.shape[0]

    with stats.timeit("strength"):
        omega = initial_weights(n, random_tiebreak=config.random_tiebreak, seed=config.seed)
        S, omega = compute_strength(A, config.eps, omega=omega)

    with stats.timeit("coarsen"):
        splitting = coarsen(A, S, omega, max_iter=config.max_iter)
    cf = splitting.cf

    if config.interpolation == "direct":
        with stats.timeit("interp_nnz"):
            row_nnz, f2c, amin, amax = size_direct_interpolation(A, S, cf)
            P_indptr = exclusive_scan(row_nnz)
            f2c, n_coarse = coarse_index_map(f2c)
        with stats.timeit("interp_fill"):
            P = fill_direct_interpolation(
                A, S, cf, f2c, P_indptr, amin=amin, amax=amax, n_coarse=n_coarse
            )
    else:
        with stats.timeit("interp_nnz"):
            capacity = config.capacity
            if capacity is None:
                capacity = select_hash_capacity(
                    extended_interpolation_row_max(A, S, cf, config.FF1)
                )
            row_nnz, state = size_extended_interpolation(A, S, cf, config.FF1, capacity=capacity)
            P_indptr = exclusive_scan(row_nnz)
            f2c, n_coarse = coarse_index_map(state)
        stats.extra["hash_capacity"] = int(capacity)
        with stats.timeit("interp_fill"):
            P = fill_extended_interpolation(
                A,
                S,
                cf,
                f2c,
                A.diagonal(),
                P_indptr,
                config.FF1,
                capacity=capacity,
                n_coarse=n_coarse,
            )

    nnz_untruncated = None
    if config.trunc > 0.0:
        nnz_untruncated = int(P.nnz)
        with stats.timeit("truncate"):
            P = truncate(P, config.trunc)

    _pmis_finalize_level_stats(stats=stats, splitting=splitting, P=P, nnz_untruncated=nnz_untruncated)
    return P, splitting


def _pmis_coarsen_operator(*, A: SparseLike, P: SparseLike) -> tuple[SparseLike, SparseLike]:
    """Form the restriction and the Galerkin coarse operator.

    Returns
    -------
    A_c, R
        R = P^T (CSR) and A_c = R @ A @ P (CSR, sorted indices).
    """
    R = P.T.tocsr()
    A_c = (R @ A @ P).tocsr()
    A_c.sort_indices()
    return A_c, R


def _pmis_append_next_level(*, levels: list[Any], A: SparseLike) -> MultilevelSolver.Level:
    """Append a new multigrid level holding the coarse operator `A`."""
    levels.append(MultilevelSolver.Level())
    nxt = levels[-1]
    nxt.A = A
    nxt.density = len(nxt.A.data) / (nxt.A.shape[0] ** 2)
    return nxt


def _pmis_extend_hierarchy(*, levels: list[Any], config: PMISConfig) -> bool:
    """Extend the multigrid hierarchy by one level.

    Parameters
    ----------
    levels
        List of `MultilevelSolver.Level` objects. The routine reads the finest
        level as `levels[-1]` and appends a new coarse level at the end.
    config
        Parameters for this level.

    Returns
    -------
    extended
        False if the splitting produced no coarse point or did not reduce the
        problem size; the hierarchy is then left unchanged.

    Side effects
    ------------
    - Sets `splitting`, `P`, `R` and `pmis_stats` on `levels[-1]`.
    - Appends a new coarse level via `_pmis_append_next_level`.
    """
    level = levels[-1]
    A = level.A

    stats = PMISLevelStats(level=len(levels) - 1, n_fine=A.shape[0])

    P, splitting = pmis_prolongator(A, config, stats=stats)
    level.pmis_stats = stats

    n_coarse = P.shape[1]
    if n_coarse == 0 or n_coarse >= A.shape[0]:
        _pmis_print_level_summary(stats, print_info=config.print_info)
        return False

    with stats.timeit("galerkin"):
        A_c, R = _pmis_coarsen_operator(A=A, P=P)

    level.splitting = splitting.splitting
    level.P = P
    level.R = R

    _pmis_print_level_summary(stats, print_info=config.print_info)

    _pmis_append_next_level(levels=levels, A=A_c)
    return True


def _pmis_levelize(value, max_levels: int) -> list:
    """Expand a scalar or per-level list into a list of length `max_levels`.

    A shorter list is padded with its last entry.
    """
    if isinstance(value, (list, tuple)):
        if len(value) == 0:
            raise ValueError("per-level parameter list must not be empty")
        out = list(value)[:max_levels]
        return out + [out[-1]] * (max_levels - len(out))
    return [value] * max_levels


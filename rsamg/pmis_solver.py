"""Classical AMG setup with PMIS coarsening and direct / extended+i interpolation.

PYAMG-style entrypoint: builds a `pyamg.multilevel.MultilevelSolver` whose
prolongators come from `rsamg.pmis`. Cycling, smoothing and the coarse solve
are PyAMG's.
"""

from __future__ import annotations

from dataclasses import replace
import time

from pyamg.multilevel import MultilevelSolver
from pyamg.relaxation.smoothing import change_smoothers
from pyamg.util.utils import asfptype

from .pmis.csr import as_csr
from .pmis.hierarchy import _pmis_extend_hierarchy, _pmis_levelize
from .pmis.smoothers import pmis_make_smoother_spec
from .pmis.stats import _pmis_print_setup_summary
from .pmis.types import DEFAULT_PMIS_MAX_ITER, PMISConfig


def pmis_solver(A,
                eps=0.25,
                interpolation='extpi',
                FF1=False,
                trunc=0.0,
                presmoother='gs',
                postsmoother='gs',
                max_levels=10,
                max_coarse=100,
                max_iter=DEFAULT_PMIS_MAX_ITER,
                random_tiebreak=True,
                seed=0,
                capacity=None,
                print_info=False,
                **kwargs):
    """Create a multilevel solver using PMIS coarsening.

    Parameters
    ----------
    A : csr_array
        Square matrix in CSR format. Other formats are converted with a
        `SparseEfficiencyWarning`.
    eps : float or list of float
        Strength tolerance in (0, 1], or one value per level (the last entry
        is reused on deeper levels).
    interpolation : {'extpi', 'direct'}
        Interpolation formula.
    FF1 : bool
        Limit extended+i interpolation to one coarse point per strong fine
        neighbor.
    trunc : float
        Truncation ratio in [0, 1] applied to every prolongator; 0 disables it.
    presmoother, postsmoother : str or None
        Short-hand smoother names, see `rsamg.pmis.smoothers`.
    max_levels : int
        Maximum number of levels.
    max_coarse : int
        Stop coarsening once a level has at most this many rows.
    max_iter : int or None
        PMIS iteration cap per level.
    random_tiebreak, seed
        Random initialization of the influence weights (see `PMISConfig`).
        The seed is offset by the level index.
    capacity : int or None
        Hash table capacity for extended+i interpolation.
    print_info : bool
        Print per-level setup summaries.
    kwargs
        Passed on to `MultilevelSolver` (e.g. `coarse_solver`).

    Returns
    -------
    ml : MultilevelSolver
        Multigrid hierarchy. Every level but the last carries `P`, `R`,
        `splitting` and `pmis_stats`.

    Examples
    --------
    >>> import numpy as np
    >>> from pyamg.gallery import poisson
    >>> from rsamg import pmis_solver
    >>> A = poisson((50, 50), format='csr')
    >>> ml = pmis_solver(A, max_coarse=10)
    >>> b = np.ones(A.shape[0])
    >>> x = ml.solve(b, tol=1e-8)
    """
    A = as_csr(A)
    A = asfptype(A)
    A.eliminate_zeros()
    A.sort_indices()

    eps = _pmis_levelize(eps, max_levels)

    levels = []
    levels.append(MultilevelSolver.Level())
    levels[-1].A = A
    levels[-1].density = len(levels[-1].A.data) / (levels[-1].A.shape[0] ** 2)

    base = PMISConfig(
        eps=eps[0],
        interpolation=interpolation,
        FF1=FF1,
        trunc=trunc,
        max_iter=max_iter,
        random_tiebreak=random_tiebreak,
        seed=seed,
        capacity=capacity,
        print_info=print_info,
    )

    pre_smooth = []
    post_smooth = []
    while len(levels) < max_levels and levels[-1].A.shape[0] > max_coarse:
        lvl = len(levels) - 1
        config = replace(
            base,
            eps=eps[lvl],
            seed=None if seed is None else seed + lvl,
        )
        if not _pmis_extend_hierarchy(levels=levels, config=config):
            break

        pre_smooth.append(pmis_make_smoother_spec(presmoother))
        post_smooth.append(pmis_make_smoother_spec(postsmoother))

    ml = MultilevelSolver(levels, **kwargs)

    t0 = time.perf_counter()
    if pre_smooth:
        change_smoothers(ml, pre_smooth, post_smooth)
    _pmis_print_setup_summary(smoother_setup_time=time.perf_counter() - t0, print_info=print_info)

    return ml

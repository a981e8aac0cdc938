"""Timing and diagnostic reporting for the PMIS setup.

This module provides:
  - A small per-level timing collector (`PMISLevelStats`) that supports labeled timers.
  - Helpers to summarize P row lengths and the coarse/fine splitting.
  - A compact, human-readable per-level summary printer.

Typical usage
-------------
Within hierarchy construction, create a `PMISLevelStats` for the current level:

    stats = PMISLevelStats(level=ell, n_fine=A.shape[0])
    with stats.timeit("strength"):
        ... compute strength ...
    with stats.timeit("coarsen"):
        ... run PMIS ...
    _pmis_finalize_level_stats(stats=stats, splitting=splitting, P=P, ...)
    _pmis_print_level_summary(stats, print_info=print_info)

The caller decides which timer keys are used; this module simply stores them.
It is the only module of the package that prints.
"""

from __future__ import annotations

from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Any
import time

import numpy as np

from .types import Splitting


@dataclass(slots=True)
class PMISLevelStats:
    """Per-level setup timings and summary statistics.

    Attributes
    ----------
    level
        Multigrid level index (0 = finest).
    n_fine
        Fine dimension on this level.
    n_coarse
        Coarse dimension produced by this level (filled in finalize).
    timings
        Dict mapping timer keys to elapsed seconds.
    extra
        Dict for derived metrics (coarsening ratio, PMIS iterations, P nnz, ...).
    """

    level: int
    n_fine: int
    n_coarse: int | None = None
    timings: dict[str, float] = field(default_factory=dict)
    extra: dict[str, Any] = field(default_factory=dict)

    @contextmanager
    def timeit(self, key: str):
        """Context manager that accumulates elapsed time under `timings[key]`."""
        t0 = time.perf_counter()
        try:
            yield
        finally:
            self.timings[key] = self.timings.get(key, 0.0) + (time.perf_counter() - t0)


def _store_mmx(extra: dict[str, Any], base: str, arr) -> None:
    """Store min/mean/max of an array-like into `extra` under `<base>_{min,mean,max}`."""
    a = np.asarray(arr, dtype=float)
    if a.size == 0:
        return
    extra[f"{base}_min"] = float(np.min(a))
    extra[f"{base}_mean"] = float(np.mean(a))
    extra[f"{base}_max"] = float(np.max(a))


def _pmis_finalize_level_stats(
    *,
    stats: PMISLevelStats,
    splitting: Splitting,
    P,
    nnz_untruncated: int | None = None,
) -> None:
    """Populate derived diagnostics for a completed prolongator build.

    Parameters
    ----------
    stats
        The stats object for this level (mutated in-place).
    splitting
        Result of the PMIS coarsening on this level.
    P
        Final (possibly truncated) prolongator of this level.
    nnz_untruncated
        nnz of P before truncation, if truncation ran.
    """
    n_coarse = int(P.shape[1])
    stats.n_coarse = n_coarse
    stats.extra["cr"] = float(stats.n_fine / n_coarse) if n_coarse > 0 else float("inf")
    stats.extra["pmis_iters"] = int(splitting.iterations)
    stats.extra["pmis_converged"] = bool(splitting.converged)
    stats.extra["n_fine_pts"] = splitting.n_fine

    stats.extra["P_nnz"] = int(P.nnz)
    if nnz_untruncated is not None:
        stats.extra["P_nnz_untruncated"] = int(nnz_untruncated)

    _store_mmx(stats.extra, "P_row", np.diff(P.indptr))


def _fmt(x) -> str:
    """Format a scalar for compact printing."""
    try:
        x = float(x)
    except Exception:
        return str(x)
    ax = abs(x)
    if ax != 0.0 and (ax < 1e-2 or ax >= 1e4):
        return f"{x:.2e}"
    return f"{x:.3g}"


def _mmx(extra: dict[str, Any], base: str) -> str:
    """Return `min/mean/max` string for `base` as stored in `extra`."""
    a = extra.get(f"{base}_min")
    b = extra.get(f"{base}_mean")
    c = extra.get(f"{base}_max")
    if a is None or b is None or c is None:
        return "n/a"
    return f"{_fmt(a)}/{_fmt(b)}/{_fmt(c)}"


def _fmt_ms(t: float) -> str:
    """Format a duration in seconds as either milliseconds or seconds."""
    return f"{t*1e3:7.1f}ms" if t < 1.0 else f"{t:7.2f}s"


def _pmis_print_level_summary(
    stats: PMISLevelStats,
    *,
    print_info: bool,
    prefix: str = "PMIS",
    indent: str = "",
) -> None:
    """Print a compact per-level summary of setup diagnostics and timings.

    Parameters
    ----------
    stats
        Per-level stats object that has already been finalized.
    print_info
        If False, does nothing.
    prefix
        Short label prefix printed per level.
    indent
        Optional indentation string (useful if caller nests printing).
    """
    if not print_info:
        return

    n_c = stats.n_coarse if stats.n_coarse is not None else "?"
    cr = _fmt(stats.extra.get("cr", "n/a"))
    print(f"{indent}{prefix:<4}  level={stats.level:<2d}  n={stats.n_fine:<7d} -> {n_c:<7}  cr={cr}")

    iters = stats.extra.get("pmis_iters", "n/a")
    conv = stats.extra.get("pmis_converged")
    flag = "" if conv is None or conv else "  (NOT converged)"
    print(f"{indent}      coarsening:")
    print(f"{indent}        iters : {iters}{flag}")

    print(f"{indent}      prolongator:")
    print(f"{indent}        nnz   : {stats.extra.get('P_nnz', 'n/a')}")
    print(f"{indent}        row   : {_mmx(stats.extra, 'P_row')} (min/mean/max)")

    nb = stats.extra.get("P_nnz_untruncated")
    na = stats.extra.get("P_nnz")
    if nb is not None and na is not None and nb > 0:
        drop = 1.0 - (na / nb)
        print(f"{indent}        trunc : {nb} -> {na}  drop={_fmt(drop)}")

    order = [
        "strength",
        "coarsen",
        "interp_nnz",
        "interp_fill",
        "truncate",
        "galerkin",
    ]
    total = 0.0
    print(f"{indent}      timing:")
    for k in order:
        if k in stats.timings:
            v = stats.timings[k]
            total += v
            print(f"{indent}        {k:<11} {_fmt_ms(v)}")
    print(f"{indent}        {'total':<11} {_fmt_ms(total)}")


def _pmis_print_setup_summary(*, smoother_setup_time: float, print_info: bool, indent: str = "") -> None:
    """Print non-level-specific setup timings.

    Parameters
    ----------
    smoother_setup_time
        Total wall time spent constructing / attaching smoothers (seconds).
    print_info
        If False, does nothing.
    indent
        Optional indentation prefix.
    """
    if not print_info:
        return
    print(f"{indent}PMIS  smoother_setup  {_fmt_ms(float(smoother_setup_time))}")

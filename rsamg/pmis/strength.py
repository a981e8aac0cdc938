"""Strength-of-connection for PMIS coarsening.

For every row i the extremal off-diagonal value is chosen according to the
sign of the diagonal:

    a_ext = max_{k != i} a_ik   if a_ii < 0
    a_ext = min_{k != i} a_ik   otherwise

with both extrema starting from 0. An off-diagonal entry a_ij is strong if

    a_ij < eps * a_ext

Every strong entry increments the influence weight omega[j] of its column,
so the integer part of omega[j] counts how many rows strongly depend on j.
That count is the PMIS priority. By default omega starts from uniform values
in [0, 1), which orders neighbors with equal counts. The increments are
applied with an unbuffered scatter-add, which gives the same result as
concurrent atomic adds.
"""

from __future__ import annotations

import numpy as np

from .csr import row_ids


def initial_weights(n: int, *, random_tiebreak: bool = True, seed: int | None = 0) -> np.ndarray:
    """Allocate the float32 influence weights that `compute_strength` accumulates into.

    Parameters
    ----------
    n
        Number of rows of the operator.
    random_tiebreak
        If True, start from uniform values in [0, 1). The fractional part then
        orders neighbors with equal strong-dependent counts while leaving the
        "omega >= 1" test of the promote pass unchanged.
    seed
        Seed passed to `numpy.random.default_rng`.
    """
    if not random_tiebreak:
        return np.zeros(n, dtype=np.float32)
    rng = np.random.default_rng(seed)
    return rng.random(n, dtype=np.float32)


def compute_strength(
    A,
    eps: float,
    *,
    omega: np.ndarray | None = None,
    random_tiebreak: bool = True,
    seed: int | None = 0,
) -> tuple[np.ndarray, np.ndarray]:
    """Mark strong connections and accumulate influence weights.

    Parameters
    ----------
    A
        CSR sparse array of shape (n, n). Only `indptr`, `indices`, `data` are read.
    eps
        Strength tolerance in (0, 1].
    omega
        Optional float32 array of length n accumulated into in place. If None,
        it is allocated with `initial_weights`.
    random_tiebreak, seed
        Passed to `initial_weights` when `omega` is None. With
        `random_tiebreak=False` omega holds the pure strong-dependent counts.

    Returns
    -------
    S, omega
        `S` is a bool array aligned with `A.indices` (never True on the
        diagonal); `omega` is the accumulated influence weight per column.

    Raises
    ------
    ValueError
        If eps is outside (0, 1] or omega has the wrong length.

    Notes
    -----
    A row without a stored diagonal is treated as having a non-negative
    diagonal.
    """
    if not 0.0 < eps <= 1.0:
        raise ValueError(f"eps must lie in (0, 1], got {eps}")

    n = A.shape[0]
    indices = A.indices
    data = A.data
    rows = row_ids(A.indptr)

    if omega is None:
        omega = initial_weights(n, random_tiebreak=random_tiebreak, seed=seed)
    elif omega.shape != (n,):
        raise ValueError(f"omega must have shape ({n},), got {omega.shape}")

    offdiag = indices != rows
    is_diag = ~offdiag

    neg_diag = np.zeros(n, dtype=bool)
    neg_diag[rows[is_diag]] = data[is_diag] < 0

    amin = np.zeros(n, dtype=data.dtype)
    amax = np.zeros(n, dtype=data.dtype)
    np.minimum.at(amin, rows[offdiag], data[offdiag])
    np.maximum.at(amax, rows[offdiag], data[offdiag])

    cond = np.where(neg_diag, amax, amin) * eps

    S = offdiag & (data < cond[rows])

    np.add.at(omega, indices[S], np.float32(1.0))

    return S, omega

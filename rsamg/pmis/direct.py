"""Direct interpolation from strongly connected coarse neighbors.

The prolongator is built in two passes, like any CSR construction here:

1) `size_direct_interpolation`
   Coarse rows get one entry. For a fine row i the strong coarse entries
   are scanned for

       amin_i = 0.2 * min(0, min a_ij),   amax_i = 0.2 * max(0, max a_ij)

   and an entry is eligible (kept in P) iff a_ij <= amin_i or a_ij >= amax_i.

2) `fill_direct_interpolation`
   Entries inside the band (amin_i, amax_i) are dropped, and the weights of
   the eligible ones are scaled up so that the row still interpolates
   constants:

       cf_neg = a_den / (a_den - d_neg),  cf_pos = b_den / (b_den - d_pos)
       alpha  = -cf_neg * a_num / (a_ii * a_den)
       beta   = -cf_pos * b_num / (a_ii * b_den)
       w_ij   = alpha * a_ij  (a_ij < 0),   beta * a_ij  (a_ij >= 0)

   where a_num/b_num sum all negative/non-negative off-diagonals of row i,
   a_den/b_den sum the strong coarse ones, and d_neg/d_pos sum the strong
   coarse ones inside the band. Positive mass that has no strong coarse
   partner is lumped into the diagonal.

Between the passes the caller turns `row_nnz` into a row pointer and `f2c`
flags into coarse indices (see `pmis.csr`).
"""

from __future__ import annotations

import numpy as np

try:
    from scipy.sparse import csr_array  # type: ignore
except Exception:  # pragma: no cover
    from scipy.sparse import csr_matrix as csr_array  # type: ignore

from .csr import row_ids, scatter_positions, value_dtype
from .types import COARSE, DIRECT_BAND, DIV_EPS


def _direct_band(A, S: np.ndarray, cf: np.ndarray, rows: np.ndarray) -> tuple[np.ndarray, np.ndarray, np.ndarray]:
    """Return (strong-coarse mask, amin, amax) for every row."""
    n = A.shape[0]
    data = A.data
    dtype = value_dtype(A)

    strong_c = S & (cf[A.indices] == COARSE)

    amin = np.zeros(n, dtype=dtype)
    amax = np.zeros(n, dtype=dtype)
    np.minimum.at(amin, rows[strong_c], data[strong_c])
    np.maximum.at(amax, rows[strong_c], data[strong_c])
    amin *= DIRECT_BAND
    amax *= DIRECT_BAND

    coarse_row = cf == COARSE
    amin[coarse_row] = 0
    amax[coarse_row] = 0

    return strong_c, amin, amax


def size_direct_interpolation(A, S: np.ndarray, cf: np.ndarray) -> tuple[np.ndarray, np.ndarray, np.ndarray, np.ndarray]:
    """Count the entries of each row of the direct-interpolation prolongator.

    Parameters
    ----------
    A
        CSR sparse array of shape (n, n).
    S
        Strength flags aligned with `A.indices`.
    cf
        Coarse/fine labels from `coarsen`.

    Returns
    -------
    row_nnz
        int32 array; 1 for coarse rows, number of eligible strong coarse
        entries for fine rows.
    f2c
        int32 array with 1 on coarse rows, 0 elsewhere.
    amin, amax
        Scaled band limits per row, reused by `fill_direct_interpolation`.
    """
    n = A.shape[0]
    data = A.data
    rows = row_ids(A.indptr)

    strong_c, amin, amax = _direct_band(A, S, cf, rows)
    coarse_row = cf == COARSE

    eligible = strong_c & ~coarse_row[rows] & ((data <= amin[rows]) | (data >= amax[rows]))

    row_nnz = np.bincount(rows[eligible], minlength=n).astype(np.int32)
    row_nnz[coarse_row] = 1

    f2c = coarse_row.astype(np.int32)

    return row_nnz, f2c, amin, amax


def fill_direct_interpolation(
    A,
    S: np.ndarray,
    cf: np.ndarray,
    f2c: np.ndarray,
    P_indptr: np.ndarray,
    *,
    amin: np.ndarray | None = None,
    amax: np.ndarray | None = None,
    n_coarse: int | None = None,
):
    """Fill the direct-interpolation prolongator.

    Parameters
    ----------
    A
        CSR sparse array of shape (n, n).
    S
        Strength flags aligned with `A.indices`.
    cf
        Coarse/fine labels from `coarsen`.
    f2c
        Coarse-space index of every coarse row (the prefix-summed flags from
        `size_direct_interpolation`).
    P_indptr
        Row pointer of P (the prefix-summed `row_nnz`).
    amin, amax
        Band limits from `size_direct_interpolation`. Recomputed if omitted.
    n_coarse
        Number of columns of P. Defaults to the number of coarse rows.

    Returns
    -------
    P
        CSR sparse array of shape (n, n_coarse).

    Raises
    ------
    ValueError
        If `P_indptr` does not match the eligible entry counts.

    Notes
    -----
    Every division is guarded: a denominator with magnitude below 1e-32
    turns the correction factor into 1 and alpha/beta into 0.
    """
    n = A.shape[0]
    indices = A.indices
    data = A.data
    dtype = value_dtype(A)
    rows = row_ids(A.indptr)

    strong_c, amin_, amax_ = _direct_band(A, S, cf, rows)
    if amin is None:
        amin = amin_
    if amax is None:
        amax = amax_
    if n_coarse is None:
        n_coarse = int(np.count_nonzero(cf == COARSE))

    coarse_row = cf == COARSE

    is_diag = indices == rows
    diag = np.zeros(n, dtype=dtype)
    diag[rows[is_diag]] = data[is_diag]

    neg = ~is_diag & (data < 0)
    pos = ~is_diag & (data >= 0)
    in_band_neg = data > amin[rows]
    in_band_pos = data < amax[rows]

    def _rowsum(mask: np.ndarray) -> np.ndarray:
        return np.bincount(rows[mask], weights=data[mask], minlength=n).astype(dtype, copy=False)

    a_num = _rowsum(neg)
    a_den = _rowsum(neg & strong_c)
    d_neg = _rowsum(neg & strong_c & in_band_neg)
    b_num = _rowsum(pos)
    b_den = _rowsum(pos & strong_c)
    d_pos = _rowsum(pos & strong_c & in_band_pos)

    cf_neg = np.ones(n, dtype=dtype)
    m = np.abs(a_den - d_neg) > DIV_EPS
    cf_neg[m] = a_den[m] / (a_den[m] - d_neg[m])

    cf_pos = np.ones(n, dtype=dtype)
    m = np.abs(b_den - d_pos) > DIV_EPS
    cf_pos[m] = b_den[m] / (b_den[m] - d_pos[m])

    lump = (b_num > 0) & (np.abs(b_den) < DIV_EPS)
    diag[lump] += b_num[lump]

    ok_diag = np.abs(diag) > DIV_EPS

    alpha = np.zeros(n, dtype=dtype)
    m = ok_diag & (np.abs(a_den) > DIV_EPS)
    alpha[m] = -cf_neg[m] * a_num[m] / (diag[m] * a_den[m])

    beta = np.zeros(n, dtype=dtype)
    m = ok_diag & (np.abs(b_den) > DIV_EPS)
    beta[m] = -cf_pos[m] * b_num[m] / (diag[m] * b_den[m])

    keep = strong_c & ~coarse_row[rows] & ~(in_band_neg & in_band_pos)

    nnz = int(P_indptr[-1])
    P_indices = np.empty(nnz, dtype=np.int32)
    P_data = np.empty(nnz, dtype=dtype)

    pos_fine = scatter_positions(keep, A.indptr, P_indptr, reserved=coarse_row.astype(np.int64))
    r = rows[keep]
    v = data[keep]
    P_indices[pos_fine] = f2c[indices[keep]]
    P_data[pos_fine] = np.where(v < 0, alpha[r], beta[r]) * v

    c_rows = np.flatnonzero(coarse_row)
    P_indices[P_indptr[c_rows]] = f2c[c_rows]
    P_data[P_indptr[c_rows]] = 1

    return csr_array((P_data, P_indices, P_indptr), shape=(n, n_coarse))

"""Truncation of small prolongator entries with row-sum preserving rescaling.

For every row i of P:

    threshold_i = trunc * max_j |p_ij|
    keep p_ij  iff |p_ij| >= threshold_i
    scale_i     = (sum_j p_ij) / (sum_{kept j} p_ij)

and the kept entries are multiplied by scale_i, so P still maps the constant
coarse vector to the same fine vector. If the kept entries sum to (almost)
zero the scale is undefined; the kept entries are then copied unscaled.

Like the interpolation builders this is a two-pass CSR rebuild:
`truncate_nnz` counts, `truncate_fill` writes. `truncate` runs both.
"""

from __future__ import annotations

import numpy as np

try:
    from scipy.sparse import csr_array  # type: ignore
except Exception:  # pragma: no cover
    from scipy.sparse import csr_matrix as csr_array  # type: ignore

from .csr import exclusive_scan, row_ids, scatter_positions
from .types import DIV_EPS


def _check_trunc(trunc: float) -> None:
    """Raise ValueError unless 0 <= trunc <= 1."""
    if not 0.0 <= trunc <= 1.0:
        raise ValueError(f"trunc must lie in [0, 1], got {trunc}")


def _truncate_keep(P, trunc: float, rows: np.ndarray) -> np.ndarray:
    """Return the bool mask of entries of P that survive truncation."""
    absval = np.abs(P.data)
    row_max = np.zeros(P.shape[0], dtype=np.float64)
    np.maximum.at(row_max, rows, absval)
    return absval >= (row_max * trunc)[rows]


def truncate_nnz(P, trunc: float) -> np.ndarray:
    """Count the surviving entries of every row of P."""
    _check_trunc(trunc)
    rows = row_ids(P.indptr)
    keep = _truncate_keep(P, trunc, rows)
    return np.bincount(rows[keep], minlength=P.shape[0]).astype(np.int32)


def truncate_fill(P, trunc: float, P_indptr: np.ndarray):
    """Copy the surviving entries of P into a matrix with row pointer `P_indptr`.

    Parameters
    ----------
    P
        CSR sparse array, typically a prolongator.
    trunc
        Truncation ratio in [0, 1].
    P_indptr
        Row pointer of the result (the prefix-summed `truncate_nnz`).

    Returns
    -------
    P_trunc
        CSR sparse array of the same shape as P with rescaled surviving entries.
    """
    _check_trunc(trunc)
    n = P.shape[0]
    rows = row_ids(P.indptr)
    keep = _truncate_keep(P, trunc, rows)

    row_sum = np.bincount(rows, weights=P.data, minlength=n)
    kept_sum = np.bincount(rows[keep], weights=P.data[keep], minlength=n)

    scale = np.ones(n, dtype=np.float64)
    m = np.abs(kept_sum) > DIV_EPS
    scale[m] = row_sum[m] / kept_sum[m]

    nnz = int(P_indptr[-1])
    indices = np.empty(nnz, dtype=P.indices.dtype)
    data = np.empty(nnz, dtype=P.data.dtype)

    pos = scatter_positions(keep, P.indptr, P_indptr)
    indices[pos] = P.indices[keep]
    data[pos] = P.data[keep] * scale[rows[keep]]

    return csr_array((data, indices, P_indptr), shape=P.shape)


def truncate(P, trunc: float):
    """Drop entries below `trunc` times the row's largest magnitude and rescale.

    Parameters
    ----------
    P
        CSR sparse array.
    trunc
        Truncation ratio in [0, 1]. With 0 every entry is kept and the scale
        factor is 1, so the result equals P.

    Returns
    -------
    P_trunc
        CSR sparse array of the same shape as P.

    Examples
    --------
    >>> import numpy as np
    >>> from scipy.sparse import csr_array
    >>> from rsamg.pmis.truncation import truncate
    >>> P = csr_array(np.array([[0.5, 0.45, 0.05]]))
    >>> truncate(P, 0.2).toarray()
    array([[0.52631579, 0.47368421, 0.        ]])
    """
    P_indptr = exclusive_scan(truncate_nnz(P, trunc))
    return truncate_fill(P, trunc, P_indptr)

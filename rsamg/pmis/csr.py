"""CSR helpers shared by the two-pass (count, then fill) builders.

The interpolation and truncation builders first count entries per row and
then write into preallocated arrays. The pieces in between live here:

- `exclusive_scan`    : per-row counts -> CSR row pointer
- `coarse_index_map`  : 0/1 coarse flags -> coarse-space column index per row
- `row_ids`           : expand a row pointer into one row id per stored entry
- `scatter_positions` : destination slots of selected entries in a compacted CSR
- `value_dtype`       : floating dtype for weights built from an operator
- `as_csr`            : input validation / conversion for operator arguments
"""

from __future__ import annotations

from warnings import warn

import numpy as np

try:
    from scipy.sparse import csr_array, issparse, SparseEfficiencyWarning  # type: ignore
except Exception:  # pragma: no cover
    from scipy.sparse import csr_matrix as csr_array  # type: ignore
    from scipy.sparse import issparse, SparseEfficiencyWarning  # type: ignore


def exclusive_scan(row_nnz: np.ndarray) -> np.ndarray:
    """Turn per-row counts into a CSR row pointer of length n + 1."""
    indptr = np.zeros(row_nnz.shape[0] + 1, dtype=np.int32)
    np.cumsum(row_nnz, out=indptr[1:])
    return indptr


def coarse_index_map(f2c: np.ndarray) -> tuple[np.ndarray, int]:
    """Rewrite 0/1 coarse flags into coarse-space indices.

    Parameters
    ----------
    f2c
        int32 array with 1 for rows that are their own coarse point, else 0.

    Returns
    -------
    f2c_map, n_coarse
        `f2c_map[i]` is the exclusive prefix sum of `f2c` at i, i.e. the coarse
        index of row i when `f2c[i] == 1`. `n_coarse` is the total flag count.
    """
    scan = exclusive_scan(f2c)
    return scan[:-1].copy(), int(scan[-1])


def row_ids(indptr: np.ndarray) -> np.ndarray:
    """Return the row index of every stored entry of a CSR structure."""
    n = indptr.shape[0] - 1
    return np.repeat(np.arange(n, dtype=np.int32), np.diff(indptr))


def as_csr(A, *, name: str = "A", square: bool = True):
    """Return `A` as a CSR sparse array with sorted indices.

    Non-CSR input is converted with a `SparseEfficiencyWarning`, like the
    PyAMG solver entrypoints do.

    Raises
    ------
    TypeError
        If `A` cannot be converted to CSR.
    ValueError
        If `square` is requested and `A` is not square.
    """
    if not issparse(A) or A.format != "csr":
        try:
            A = csr_array(A)
            warn(f"Implicit conversion of {name} to CSR", SparseEfficiencyWarning)
        except Exception as e:
            raise TypeError(f"Argument {name} must have type csr_array, "
                            "or be convertible to csr_array") from e
    if square and A.shape[0] != A.shape[1]:
        raise ValueError("expected square matrix")
    if not A.has_sorted_indices:
        A = A.copy()
        A.sort_indices()
    return A


def value_dtype(A) -> np.dtype:
    """Floating dtype used for interpolation weights built from `A`."""
    return np.result_type(A.data.dtype, np.float32) if A.data.dtype.kind == "f" else np.dtype(np.float64)


def scatter_positions(
    mask: np.ndarray,
    indptr: np.ndarray,
    out_indptr: np.ndarray,
    *,
    reserved: np.ndarray | None = None,
) -> np.ndarray:
    """Destination slots of the selected entries when rows are compacted.

    Parameters
    ----------
    mask
        bool array over the stored entries of a CSR structure with row pointer
        `indptr`, selecting entries to keep.
    indptr
        Row pointer of the source structure.
    out_indptr
        Row pointer of the destination structure (from `exclusive_scan`).
    reserved
        Optional per-row number of destination slots that precede the selected
        entries and are filled by the caller (e.g. the single identity entry of
        a coarse row).

    Returns
    -------
    pos
        For every selected entry, in storage order, its slot in the destination
        arrays. Entries keep their relative order within a row.

    Raises
    ------
    ValueError
        If the number of selected plus reserved entries in some row disagrees
        with `out_indptr`.
    """
    n = indptr.shape[0] - 1
    if reserved is None:
        reserved = np.zeros(n, dtype=np.int64)

    counts = np.zeros(mask.shape[0] + 1, dtype=np.int64)
    np.cumsum(mask, out=counts[1:])
    per_row = counts[indptr[1:]] - counts[indptr[:-1]] + reserved
    if not np.array_equal(per_row, np.diff(out_indptr)):
        raise ValueError("selected entries per row do not match the destination row pointer")

    sel = np.flatnonzero(mask)
    r = row_ids(indptr)[sel]
    return out_indptr[r] + reserved[r] + (counts[sel] - counts[indptr[r]])

"""Extended+i interpolation.

A fine row i interpolates from the coarse set

    C^hat_i = C^s_i  U  ( U_{k in F^s_i} C^s_k )

where C^s_i / F^s_i are the strongly connected coarse / fine neighbors of i.
With `FF1=True` only the first strong coarse neighbor of each k in F^s_i is
taken, which limits fill-in.

Two-hop traversal reaches the same coarse column several times, so every
fine row deduplicates its columns in a row-private table from
`pmis.hashtable`:

1) `size_extended_interpolation`
   inserts the reachable coarse columns into a `RowHashSet`; the occupancy is
   the row length of P.

2) `fill_extended_interpolation`
   rebuilds the same key set in a `RowHashMap` and then accumulates

       a^_il  = a_il + sum_{k in F^s_i} a_ik * abar_kl / sum_{m in C^hat_i U {i}} abar_km
       a^_ii  = a_ii + sum_{k in F^s_i} a_ik * abar_ki / sum_{m in C^hat_i U {i}} abar_km
                     + sum_{n not in C^hat_i U F^s_i} a_in
       w_il   = -a^_il / a^_ii

   where abar_km is a_km if its sign differs from the relevant diagonal and 0
   otherwise. Columns are written in ascending order using the pairwise rank
   of each populated slot.

Any denominator with magnitude below 1e-32 contributes 0 instead of inf/NaN.
"""

from __future__ import annotations

import numpy as np

try:
    from scipy.sparse import csr_array  # type: ignore
except Exception:  # pragma: no cover
    from scipy.sparse import csr_matrix as csr_array  # type: ignore

from .csr import row_ids, value_dtype
from .hashtable import RowHashMap, RowHashSet
from .types import COARSE, DIV_EPS, FINE

MIN_HASH_CAPACITY = 32


def extended_interpolation_row_max(A, S: np.ndarray, cf: np.ndarray, FF1: bool = False) -> np.ndarray:
    """Upper bound on the row lengths of the extended+i prolongator.

    Counts every coarse point reached by the two-hop traversal, duplicates
    included, so it bounds the number of distinct keys a row table has to hold.

    Returns
    -------
    row_max
        int32 array of length n; 1 on coarse rows.
    """
    n = A.shape[0]
    indices = A.indices
    rows = row_ids(A.indptr)
    coarse_col = cf[indices] == COARSE

    n_strong_c = np.bincount(rows[S & coarse_col], minlength=n)
    per_fine = np.minimum(n_strong_c, 1) if FF1 else n_strong_c

    strong_f = S & ~coarse_col
    two_hop = np.bincount(rows[strong_f], weights=per_fine[indices[strong_f]], minlength=n)

    row_max = (n_strong_c + two_hop).astype(np.int32)
    row_max[cf == COARSE] = 1
    return row_max


def select_hash_capacity(row_max: np.ndarray) -> int:
    """Smallest power of two (at least 32) strictly greater than `max(row_max)`."""
    m = int(row_max.max()) if row_max.size else 0
    capacity = MIN_HASH_CAPACITY
    while capacity <= m:
        capacity *= 2
    return capacity


def _extpi_insert_coarse(
    row: int,
    *,
    indptr: list,
    indices: list,
    S: list,
    cf: list,
    FF1: bool,
    table: RowHashSet,
) -> None:
    """Insert every coarse column reachable from `row` in at most two strong hops."""
    for j in range(indptr[row], indptr[row + 1]):
        if not S[j]:
            continue
        col_j = indices[j]
        if col_j == row:
            continue

        if cf[col_j] == COARSE:
            table.insert(col_j)
            continue

        for k in range(indptr[col_j], indptr[col_j + 1]):
            if not S[k]:
                continue
            col_k = indices[k]
            if col_k == col_j:
                continue
            if cf[col_k] == COARSE:
                table.insert(col_k)
                if FF1:
                    break


def size_extended_interpolation(
    A,
    S: np.ndarray,
    cf: np.ndarray,
    FF1: bool = False,
    *,
    capacity: int | None = None,
) -> tuple[np.ndarray, np.ndarray]:
    """Count the entries of each row of the extended+i prolongator.

    Parameters
    ----------
    A
        CSR sparse array of shape (n, n).
    S
        Strength flags aligned with `A.indices`.
    cf
        Coarse/fine labels from `coarsen`.
    FF1
        Take at most one coarse point per strongly connected fine neighbor.
    capacity
        Slots of each row table. None selects one from
        `extended_interpolation_row_max`, which cannot overflow.

    Returns
    -------
    row_nnz
        int32 array of distinct coarse columns per row (1 on coarse rows).
    state
        int32 array with 1 on coarse rows, 0 elsewhere (coarse-space flags).

    Raises
    ------
    HashTableFullError
        If a row reaches more distinct coarse columns than `capacity`.
    """
    n = A.shape[0]
    if capacity is None:
        capacity = select_hash_capacity(extended_interpolation_row_max(A, S, cf, FF1))

    indptr = A.indptr.tolist()
    indices = A.indices.tolist()
    S_ = S.tolist()
    cf_ = cf.tolist()

    row_nnz = np.ones(n, dtype=np.int32)
    state = (cf == COARSE).astype(np.int32)

    for row in range(n):
        if cf_[row] == COARSE:
            continue
        table = RowHashSet(capacity, row=row)
        _extpi_insert_coarse(row, indptr=indptr, indices=indices, S=S_, cf=cf_, FF1=FF1, table=table)
        row_nnz[row] = len(table)

    return row_nnz, state


def _extpi_row_weights(
    row: int,
    *,
    indptr: list,
    indices: list,
    data: list,
    S: list,
    cf: list,
    diag: list,
    table: RowHashMap,
) -> float:
    """Accumulate the numerators a^_il into `table` and return -1 / a^_ii."""
    val_ii = diag[row]
    pos_ii = val_ii >= 0

    sum_k = 0.0
    sum_n = 0.0

    for k in range(indptr[row], indptr[row + 1]):
        col_ik = indices[k]
        if col_ik == row:
            continue
        val_ik = data[k]

        # k in F^s_i: distribute a_ik over C^hat_i and i
        if S[k] and cf[col_ik] == FINE:
            val_kk = diag[col_ik]
            val_ki = 0.0
            sum_l = 0.0

            k_begin = indptr[col_ik]
            k_end = indptr[col_ik + 1]

            for l in range(k_begin, k_end):
                col_kl = indices[l]
                val_kl = data[l]
                pos_kl = val_kl >= 0
                if col_kl == row:
                    if pos_ii != pos_kl:
                        sum_l += val_kl
                    val_ki = val_kl
                elif cf[col_kl] == COARSE and pos_ii != pos_kl and table.contains(col_kl):
                    sum_l += val_kl

            sum_l = val_ik / sum_l if abs(sum_l) > DIV_EPS else 0.0

            pos_kk = val_kk >= 0
            for l in range(k_begin, k_end):
                col_kl = indices[l]
                if cf[col_kl] != COARSE:
                    continue
                val_kl = data[l]
                if pos_kk != (val_kl >= 0):
                    table.add(col_kl, val_kl * sum_l)

            if pos_kk != (val_ki >= 0):
                sum_k += val_ki * sum_l

        in_c_hat = cf[col_ik] == COARSE and table.add(col_ik, val_ik)

        if not in_c_hat and not S[k]:
            sum_n += val_ik

    den = sum_n + sum_k + val_ii
    return -1.0 / den if abs(den) > DIV_EPS else 0.0


def fill_extended_interpolation(
    A,
    S: np.ndarray,
    cf: np.ndarray,
    f2c: np.ndarray,
    diag: np.ndarray,
    P_indptr: np.ndarray,
    FF1: bool = False,
    *,
    capacity: int | None = None,
    n_coarse: int | None = None,
):
    """Fill the extended+i prolongator.

    Parameters
    ----------
    A
        CSR sparse array of shape (n, n).
    S
        Strength flags aligned with `A.indices`.
    cf
        Coarse/fine labels from `coarsen`.
    f2c
        Coarse-space index of every coarse row (the prefix-summed `state`).
    diag
        Diagonal of A.
    P_indptr
        Row pointer of P (the prefix-summed `row_nnz`).
    FF1
        Must match the value used for `size_extended_interpolation`.
    capacity
        Slots of each row table; None selects it as the sizing pass does.
    n_coarse
        Number of columns of P. Defaults to the number of coarse rows.

    Returns
    -------
    P
        CSR sparse array of shape (n, n_coarse) with ascending column indices
        in every row.

    Raises
    ------
    HashTableFullError
        If a row reaches more distinct coarse columns than `capacity`.
    ValueError
        If the number of coarse columns of a row disagrees with `P_indptr`.
    """
    n = A.shape[0]
    dtype = value_dtype(A)
    if capacity is None:
        capacity = select_hash_capacity(extended_interpolation_row_max(A, S, cf, FF1))
    if n_coarse is None:
        n_coarse = int(np.count_nonzero(cf == COARSE))

    indptr = A.indptr.tolist()
    indices = A.indices.tolist()
    data = A.data.tolist()
    S_ = S.tolist()
    cf_ = cf.tolist()
    diag_ = np.asarray(diag).tolist()

    nnz = int(P_indptr[-1])
    P_indices = np.empty(nnz, dtype=np.int32)
    P_data = np.empty(nnz, dtype=dtype)

    for row in range(n):
        aj = int(P_indptr[row])

        if cf_[row] == COARSE:
            P_indices[aj] = f2c[row]
            P_data[aj] = 1
            continue

        table = RowHashMap(capacity, row=row, dtype=dtype)
        _extpi_insert_coarse(row, indptr=indptr, indices=indices, S=S_, cf=cf_, FF1=FF1, table=table)

        a_ii_tilde = _extpi_row_weights(
            row,
            indptr=indptr,
            indices=indices,
            data=data,
            S=S_,
            cf=cf_,
            diag=diag_,
            table=table,
        )

        if len(table) != int(P_indptr[row + 1]) - aj:
            raise ValueError(
                f"row {row} reaches {len(table)} coarse columns but P_indptr "
                f"reserves {int(P_indptr[row + 1]) - aj}"
            )

        slots = table.occupied()
        idx = aj + table.ranks()
        P_indices[idx] = f2c[table.keys[slots]]
        P_data[idx] = a_ii_tilde * table.vals[slots]

    return csr_array((P_data, P_indices, P_indptr), shape=(n, n_coarse))

"""Tests for extended+i interpolation."""

from __future__ import annotations

import numpy as np
import pytest
from scipy import sparse

from pyamg.gallery import poisson

from rsamg.pmis.coarsening import coarsen
from rsamg.pmis.csr import coarse_index_map, exclusive_scan
from rsamg.pmis.direct import fill_direct_interpolation, size_direct_interpolation
from rsamg.pmis.extended import (
    extended_interpolation_row_max,
    fill_extended_interpolation,
    select_hash_capacity,
    size_extended_interpolation,
)
from rsamg.pmis.strength import compute_strength, initial_weights
from rsamg.pmis.types import COARSE, FINE, HashTableFullError

C, F = COARSE, FINE


def _extpi(A, cf, *, FF1=False, capacity=None, eps=0.25):
    cf = np.asarray(cf, dtype=np.int32)
    S, _ = compute_strength(A, eps)
    row_nnz, state = size_extended_interpolation(A, S, cf, FF1, capacity=capacity)
    P_indptr = exclusive_scan(row_nnz)
    f2c, n_coarse = coarse_index_map(state)
    return fill_extended_interpolation(
        A, S, cf, f2c, A.diagonal(), P_indptr, FF1, capacity=capacity, n_coarse=n_coarse
    )


def _neumann_laplacian(grid):
    A = poisson(grid, format="csr")
    rs = np.asarray(A.sum(axis=1)).ravel()
    A = (A - sparse.diags(rs)).tocsr()
    A.sort_indices()
    return A


def _pmis_cf(A, seed=0):
    omega = initial_weights(A.shape[0], seed=seed)
    S, omega = compute_strength(A, 0.25, omega=omega)
    return coarsen(A, S, omega).cf


def _fork_graph():
    """0 - 1, 0 - 4, 1 - 2, 1 - 3 with splitting F F C C C."""
    edges = [(0, 1), (0, 4), (1, 2), (1, 3)]
    A = 3.0 * np.eye(5)
    for i, j in edges:
        A[i, j] = A[j, i] = -1.0
    return sparse.csr_matrix(A), np.array([F, F, C, C, C], dtype=np.int32)


def test_poisson_1d_matches_direct():
    A = poisson((5,), format="csr")
    cf = np.array([C, F, C, F, C], dtype=np.int32)
    S, _ = compute_strength(A, 0.25)

    row_nnz, state = size_extended_interpolation(A, S, cf)
    np.testing.assert_array_equal(row_nnz, [1, 2, 1, 2, 1])
    np.testing.assert_array_equal(state, [1, 0, 1, 0, 1])

    P = _extpi(A, cf)

    d_nnz, d_f2c, _, _ = size_direct_interpolation(A, S, cf)
    d_f2c, n_coarse = coarse_index_map(d_f2c)
    P_d = fill_direct_interpolation(A, S, cf, d_f2c, exclusive_scan(d_nnz), n_coarse=n_coarse)

    np.testing.assert_allclose(P.toarray(), P_d.toarray())
    np.testing.assert_allclose(P.toarray()[1], [0.5, 0.5, 0.0])


def test_two_hop_coarse_points():
    # C F F C: each fine point reaches the far coarse point through its
    # fine neighbor, which recovers linear interpolation
    A = poisson((4,), format="csr")
    P = _extpi(A, [C, F, F, C])

    expected = np.array([
        [1.0, 0.0],
        [2.0 / 3.0, 1.0 / 3.0],
        [1.0 / 3.0, 2.0 / 3.0],
        [0.0, 1.0],
    ])
    np.testing.assert_allclose(P.toarray(), expected)


def test_FF1_limits_fill():
    A, cf = _fork_graph()
    S, _ = compute_strength(A, 0.25)

    nnz, _ = size_extended_interpolation(A, S, cf, False)
    nnz_ff1, _ = size_extended_interpolation(A, S, cf, True)
    np.testing.assert_array_equal(nnz, [3, 3, 1, 1, 1])
    np.testing.assert_array_equal(nnz_ff1, [2, 3, 1, 1, 1])

    np.testing.assert_array_equal(extended_interpolation_row_max(A, S, cf, False), [3, 3, 1, 1, 1])
    np.testing.assert_array_equal(extended_interpolation_row_max(A, S, cf, True), [2, 3, 1, 1, 1])

    # through fine point 1 only its first coarse neighbor (2) is taken
    P = _extpi(A, cf, FF1=True)
    np.testing.assert_array_equal(P.indices[P.indptr[0]:P.indptr[1]], [0, 2])
    P_full = _extpi(A, cf, FF1=False)
    np.testing.assert_array_equal(P_full.indices[P_full.indptr[0]:P_full.indptr[1]], [0, 1, 2])


@pytest.mark.parametrize("grid", [(10, 10), (6, 5, 4)])
def test_zero_row_sum_interpolates_constants(grid):
    A = _neumann_laplacian(grid)
    cf = _pmis_cf(A)
    P = _extpi(A, cf)

    assert P.shape == (A.shape[0], int(np.count_nonzero(cf == C)))
    np.testing.assert_allclose(np.asarray(P.sum(axis=1)).ravel(), 1.0, rtol=1e-12)


@pytest.mark.parametrize("FF1", [False, True])
def test_rows_are_sorted_and_bounded(FF1):
    A = poisson((12, 12), format="csr")
    cf = _pmis_cf(A, seed=5)
    S, _ = compute_strength(A, 0.25)

    P = _extpi(A, cf, FF1=FF1)
    for i in range(A.shape[0]):
        cols = P.indices[P.indptr[i]:P.indptr[i + 1]]
        assert np.all(np.diff(cols) > 0)
        if cf[i] == F:
            assert cols.size > 0

    row_nnz, _ = size_extended_interpolation(A, S, cf, FF1)
    assert np.all(row_nnz <= extended_interpolation_row_max(A, S, cf, FF1))

    # coarse rows are identity rows
    coarse = np.flatnonzero(cf == C)
    Pd = P.toarray()
    np.testing.assert_array_equal(Pd[coarse], np.eye(coarse.size))


def test_FF1_never_adds_entries():
    A = poisson((15, 15), format="csr")
    cf = _pmis_cf(A, seed=2)
    S, _ = compute_strength(A, 0.25)

    nnz, _ = size_extended_interpolation(A, S, cf, False)
    nnz_ff1, _ = size_extended_interpolation(A, S, cf, True)
    assert np.all(nnz_ff1 <= nnz)


def test_capacity_overflow_raises():
    A = poisson((5,), format="csr")
    cf = np.array([C, F, C, F, C], dtype=np.int32)
    S, _ = compute_strength(A, 0.25)

    with pytest.raises(HashTableFullError) as excinfo:
        size_extended_interpolation(A, S, cf, capacity=1)
    assert excinfo.value.row == 1
    assert excinfo.value.capacity == 1


def test_explicit_capacity_gives_same_result():
    A = poisson((9, 9), format="csr")
    cf = _pmis_cf(A)
    P_auto = _extpi(A, cf)
    P_big = _extpi(A, cf, capacity=257)
    np.testing.assert_array_equal(P_auto.indices, P_big.indices)
    np.testing.assert_allclose(P_auto.data, P_big.data)


def test_mismatched_row_pointer_raises():
    A = poisson((5,), format="csr")
    cf = np.array([C, F, C, F, C], dtype=np.int32)
    S, _ = compute_strength(A, 0.25)
    _, state = size_extended_interpolation(A, S, cf)
    f2c, n_coarse = coarse_index_map(state)

    bad = exclusive_scan(np.array([1, 1, 1, 2, 1], dtype=np.int32))
    with pytest.raises(ValueError):
        fill_extended_interpolation(A, S, cf, f2c, A.diagonal(), bad, n_coarse=n_coarse)


def test_select_hash_capacity():
    assert select_hash_capacity(np.array([], dtype=np.int32)) == 32
    assert select_hash_capacity(np.array([3, 31])) == 32
    assert select_hash_capacity(np.array([32])) == 64
    assert select_hash_capacity(np.array([100, 5])) == 128


def _guard_operator(a_11: float):
    """C F F C operator; fine point 2 has no coarse neighbor and a positive a_21."""
    A = np.array([
        [1.0, 0.0, 0.0, 0.0],
        [-1.0, a_11, -1.0, 0.0],
        [0.0, 1.0, 1.0, 0.0],
        [0.0, 0.0, 0.0, 1.0],
    ])
    return sparse.csr_matrix(A), np.array([C, F, F, C], dtype=np.int32)


def test_vanishing_distribution_sum_contributes_nothing():
    # row 2 offers no opposite-sign entry to spread a_12 over
    A, cf = _guard_operator(2.0)
    P = _extpi(A, cf)

    assert np.all(np.isfinite(P.data))
    np.testing.assert_allclose(P.toarray()[1], [0.5, 0.0])
    np.testing.assert_allclose(P.toarray()[2], [0.0, 0.0])


def test_zero_modified_diagonal_gives_zero_row():
    A, cf = _guard_operator(0.0)
    P = _extpi(A, cf)

    assert np.all(np.isfinite(P.data))
    np.testing.assert_array_equal(np.diff(P.indptr), [1, 1, 0, 1])
    np.testing.assert_array_equal(P.toarray(), [[1, 0], [0, 0], [0, 0], [0, 1]])

"""Tests for the CSR prefix-sum and compaction helpers."""

from __future__ import annotations

import numpy as np
import pytest
from scipy import sparse
from scipy.sparse import SparseEfficiencyWarning

from rsamg.pmis.csr import as_csr, coarse_index_map, exclusive_scan, row_ids, scatter_positions


def test_exclusive_scan():
    indptr = exclusive_scan(np.array([1, 0, 3, 2], dtype=np.int32))
    assert indptr.dtype == np.int32
    np.testing.assert_array_equal(indptr, [0, 1, 1, 4, 6])
    np.testing.assert_array_equal(exclusive_scan(np.zeros(0, dtype=np.int32)), [0])


def test_coarse_index_map():
    f2c, n_coarse = coarse_index_map(np.array([1, 0, 0, 1, 1, 0], dtype=np.int32))
    assert n_coarse == 3
    np.testing.assert_array_equal(f2c[[0, 3, 4]], [0, 1, 2])
    assert f2c.shape == (6,)


def test_row_ids():
    np.testing.assert_array_equal(row_ids(np.array([0, 2, 2, 5])), [0, 0, 2, 2, 2])


def test_scatter_positions():
    indptr = np.array([0, 3, 5])
    mask = np.array([True, False, True, True, True])

    out = exclusive_scan(np.array([2, 2]))
    np.testing.assert_array_equal(scatter_positions(mask, indptr, out), [0, 1, 2, 3])

    # one reserved slot in front of row 1
    out = exclusive_scan(np.array([2, 3]))
    pos = scatter_positions(mask, indptr, out, reserved=np.array([0, 1]))
    np.testing.assert_array_equal(pos, [0, 1, 3, 4])

    with pytest.raises(ValueError):
        scatter_positions(mask, indptr, exclusive_scan(np.array([3, 2])))


def test_as_csr():
    A = sparse.csr_matrix(np.array([[2.0, -1.0], [-1.0, 2.0]]))
    assert as_csr(A) is A

    with pytest.warns(SparseEfficiencyWarning):
        B = as_csr(A.tocoo())
    assert B.format == "csr"

    with pytest.raises(ValueError):
        as_csr(sparse.csr_matrix(np.ones((2, 3))))

    with pytest.raises(TypeError):
        as_csr("not a matrix")


def test_as_csr_sorts_on_copy():
    data = np.array([1.0, 2.0])
    A = sparse.csr_matrix((data, np.array([1, 0]), np.array([0, 2, 2])), shape=(2, 2))
    A.has_sorted_indices = False
    B = as_csr(A)
    np.testing.assert_array_equal(B.indices, [0, 1])
    np.testing.assert_array_equal(A.indices, [1, 0])

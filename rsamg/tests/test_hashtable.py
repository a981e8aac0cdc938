"""Tests for the bounded row-private hash set and map."""

from __future__ import annotations

import numpy as np
import pytest

from rsamg.pmis.hashtable import EMPTY_KEY, RowHashMap, RowHashSet
from rsamg.pmis.types import HashTableFullError

# 5, 37 and 69 share the home slot (key * 103) % 32 == 3
COLLIDING = [69, 5, 37]


def test_set_deduplicates():
    table = RowHashSet(32)
    assert table.insert(7)
    assert table.insert(11)
    assert not table.insert(7)
    assert len(table) == 2
    assert 7 in table and 11 in table
    assert 8 not in table


def test_set_collisions_probe_linearly():
    table = RowHashSet(32)
    for key in COLLIDING:
        assert table.insert(key)
    np.testing.assert_array_equal(table.occupied(), [3, 4, 5])
    np.testing.assert_array_equal(table.keys[3:6], COLLIDING)
    assert all(table.contains(k) for k in COLLIDING)
    assert not table.contains(101)


def test_ranks_give_ascending_order():
    table = RowHashSet(32)
    for key in [30, 2, *COLLIDING, 0]:
        table.insert(key)

    keys = table.keys[table.occupied()]
    out = np.empty(len(table), dtype=np.int64)
    out[table.ranks()] = keys
    np.testing.assert_array_equal(out, [0, 2, 5, 30, 37, 69])
    np.testing.assert_array_equal(table.sorted_keys(), out)


def test_full_table_raises():
    table = RowHashSet(3, row=12)
    for key in range(3):
        table.insert(key)

    # existing keys are still found in a full table
    assert not table.insert(1)
    assert 2 in table
    assert 5 not in table

    with pytest.raises(HashTableFullError) as excinfo:
        table.insert(5)
    assert excinfo.value.row == 12
    assert excinfo.value.capacity == 3
    assert len(table) == 3


def test_invalid_capacity():
    with pytest.raises(ValueError):
        RowHashSet(0)


def test_map_add_only_to_existing_keys():
    table = RowHashMap(32)
    table.insert(4)
    table.insert(9)

    assert table.add(4, 1.5)
    assert table.add(4, -0.25)
    assert not table.add(6, 10.0)

    assert table.get(4) == pytest.approx(1.25)
    assert table.get(9) == 0.0
    assert table.get(6) is None
    assert len(table) == 2
    assert 6 not in table


def test_map_values_follow_collisions():
    table = RowHashMap(32)
    for key in COLLIDING:
        table.insert(key)
    for i, key in enumerate(COLLIDING):
        table.add(key, float(i + 1))

    slots = table.occupied()
    np.testing.assert_array_equal(table.keys[slots], COLLIDING)
    np.testing.assert_array_equal(table.vals[slots], [1.0, 2.0, 3.0])
    assert np.all(table.keys[table.keys != EMPTY_KEY] >= 0)

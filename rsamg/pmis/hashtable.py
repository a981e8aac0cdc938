"""Bounded open-addressing set and map private to one row's interpolation build.

Extended+i interpolation discovers coarse columns up to two hops away and
the same column can be reached several times. Each fine row therefore owns a
small table that deduplicates keys (`RowHashSet`) or deduplicates and
accumulates values (`RowHashMap`).

Table layout
------------
- `keys` : int64 array of `capacity` slots, EMPTY_KEY (-1) marks a free slot
- `vals` : (map only) value per slot

Keys are non-negative column indices. The home slot of a key is
`(key * HASH_MULT) % capacity`; collisions probe linearly. A key is never
removed, so no tombstones are needed, and a lookup stops at the first free
slot or after `capacity` probes. Inserting into a full table raises
`HashTableFullError` instead of dropping the key.
"""

from __future__ import annotations

import numpy as np

from .types import HashTableFullError

EMPTY_KEY = -1
HASH_MULT = 103


class RowHashSet:
    """Fixed-capacity set of non-negative integer keys."""

    __slots__ = ("capacity", "keys", "row", "size")

    def __init__(self, capacity: int, *, row: int | None = None):
        if capacity < 1:
            raise ValueError("capacity must be >= 1")
        self.capacity = int(capacity)
        self.row = row
        self.keys = np.full(self.capacity, EMPTY_KEY, dtype=np.int64)
        self.size = 0

    def _slot(self, key: int) -> tuple[int, bool]:
        """Return (slot, found) for `key`; slot is -1 if absent and no free slot exists."""
        keys = self.keys
        cap = self.capacity
        h = (key * HASH_MULT) % cap
        for _ in range(cap):
            k = keys[h]
            if k == key:
                return h, True
            if k == EMPTY_KEY:
                return h, False
            h = (h + 1) % cap
        return -1, False

    def insert(self, key: int) -> bool:
        """Insert `key`. Return True if it was not present before."""
        h, found = self._slot(key)
        if found:
            return False
        if h < 0:
            raise HashTableFullError(self.capacity, row=self.row)
        self.keys[h] = key
        self.size += 1
        return True

    def contains(self, key: int) -> bool:
        return self._slot(key)[1]

    def __contains__(self, key: int) -> bool:
        return self.contains(key)

    def __len__(self) -> int:
        return self.size

    def occupied(self) -> np.ndarray:
        """Return the indices of the populated slots, in slot order."""
        return np.flatnonzero(self.keys != EMPTY_KEY)

    def ranks(self) -> np.ndarray:
        """Rank of every populated slot among all populated keys, in slot order.

        The rank of a key is the number of populated keys smaller than it, so
        writing slot `occupied()[t]` to position `ranks()[t]` lists the keys in
        ascending order. Computed by pairwise comparison over the table.
        """
        k = self.keys[self.occupied()]
        return np.count_nonzero(k[:, None] > k[None, :], axis=1)

    def sorted_keys(self) -> np.ndarray:
        out = np.empty(self.size, dtype=np.int64)
        out[self.ranks()] = self.keys[self.occupied()]
        return out


class RowHashMap(RowHashSet):
    """Fixed-capacity map from non-negative integer keys to accumulated values.

    `insert` registers a key with value 0; `add` accumulates into a key that
    is already present and is a no-op for unknown keys. This lets the
    structural pass fix the key set before the numerical pass runs.
    """

    __slots__ = ("vals",)

    def __init__(self, capacity: int, *, row: int | None = None, dtype=np.float64):
        super().__init__(capacity, row=row)
        self.vals = np.zeros(self.capacity, dtype=dtype)

    def add(self, key: int, val) -> bool:
        """Add `val` to the value stored under `key`. Return True if `key` exists."""
        h, found = self._slot(key)
        if not found:
            return False
        self.vals[h] += val
        return True

    def get(self, key: int, default=None):
        h, found = self._slot(key)
        return self.vals[h] if found else default

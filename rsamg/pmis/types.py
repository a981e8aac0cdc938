"""Labels, constants, configuration and result containers shared by the PMIS setup.

Coarse/fine labels
------------------
Each row of the operator carries one integer label in `cf`:
  - UNDECIDED (0) : not yet classified
  - COARSE    (1) : kept on the coarse grid
  - FINE      (2) : interpolated from coarse points

Labels only move UNDECIDED -> {COARSE, FINE}, except for the corrective
COARSE -> UNDECIDED step of the PMIS correction pass. After a converged
coarsening run every label is COARSE or FINE.

Containers
----------
PMISConfig
    Frozen per-hierarchy parameters (strength tolerance, interpolation choice,
    truncation, PMIS iteration cap, tie-break seeding, hash capacity).
Splitting
    Output of the coarsening loop: labels plus convergence metadata.

Errors
------
HashTableFullError
    A row-private set/map ran out of slots while building interpolation.
PMISConvergenceWarning
    The coarsening loop reached its iteration cap with undecided rows left.

Invariants
----------
- Index arrays (cf, f2c, row counts) are stored as int32 numpy arrays.
- Strength flags are bool arrays aligned with the CSR column index array.
"""

from __future__ import annotations

from dataclasses import dataclass

import numpy as np
from numpy.typing import NDArray

from scipy.sparse import spmatrix
try:
    from scipy.sparse import sparray  # type: ignore
except Exception:  # pragma: no cover
    sparray = spmatrix  # type: ignore

SparseLike = spmatrix | sparray

IndexArray = NDArray[np.int32]
FlagArray = NDArray[np.bool_]

UNDECIDED = 0
COARSE = 1
FINE = 2

# Magnitude below which a denominator is treated as zero.
DIV_EPS = 1e-32

# Direct interpolation drops strong coarse entries inside (0.2*min, 0.2*max).
DIRECT_BAND = 0.2

DEFAULT_PMIS_MAX_ITER = 100

INTERPOLATION_METHODS = ("direct", "extpi")


class HashTableFullError(RuntimeError):
    """Raised when a row-private hash set/map has no free slot for a new key.

    Attributes
    ----------
    row
        Row of the operator being processed when the table overflowed
        (None if the table was used outside a row context).
    capacity
        Number of slots of the table.
    """

    def __init__(self, capacity: int, row: int | None = None):
        self.capacity = int(capacity)
        self.row = row
        where = "" if row is None else f" while processing row {row}"
        super().__init__(
            f"hash table with capacity {self.capacity} is full{where}; "
            "increase the capacity"
        )


class PMISConvergenceWarning(UserWarning):
    """Issued when PMIS coarsening stops at its iteration cap with undecided rows."""


@dataclass(slots=True, frozen=True)
class PMISConfig:
    """Configuration parameters for building one PMIS prolongator.

    Attributes
    ----------
    eps : float
        Strength tolerance in (0, 1]; an off-diagonal entry is strong if it is
        below eps times the row's extremal off-diagonal value.
    interpolation : str
        Either "direct" or "extpi" (extended+i).
    FF1 : bool
        For extended+i interpolation: take at most one coarse point from each
        strongly connected fine neighbor.
    trunc : float
        Truncation ratio in [0, 1]; 0 disables truncation.
    max_iter : int | None
        Cap on PMIS iterations. None loops until no row is undecided.
    random_tiebreak : bool
        Seed the influence weights with uniform values in [0, 1) so that
        neighbors with equal strong-dependent counts are ordered.
    seed : int | None
        Seed for `numpy.random.default_rng` used by the tie-break.
    capacity : int | None
        Slots per row-private hash table for extended+i interpolation. None
        picks a capacity from the row traversal bound.
    print_info : bool
        Whether to record and print per-level diagnostics via `pmis.stats`.
    """

    eps: float = 0.25
    interpolation: str = "extpi"
    FF1: bool = False
    trunc: float = 0.0
    max_iter: int | None = DEFAULT_PMIS_MAX_ITER
    random_tiebreak: bool = True
    seed: int | None = 0
    capacity: int | None = None
    print_info: bool = False

    def __post_init__(self) -> None:
        if not 0.0 < self.eps <= 1.0:
            raise ValueError(f"eps must lie in (0, 1], got {self.eps}")
        if self.interpolation not in INTERPOLATION_METHODS:
            raise ValueError(
                f"Unrecognized interpolation method {self.interpolation!s}; "
                f"expected one of {INTERPOLATION_METHODS}"
            )
        if not 0.0 <= self.trunc <= 1.0:
            raise ValueError(f"trunc must lie in [0, 1], got {self.trunc}")
        if self.max_iter is not None and self.max_iter < 1:
            raise ValueError("max_iter must be >= 1 or None")
        if self.capacity is not None and self.capacity < 1:
            raise ValueError("capacity must be >= 1 or None")


@dataclass(slots=True)
class Splitting:
    """Result of one PMIS coarsening run.

    Attributes
    ----------
    cf
        int32 array of labels (UNDECIDED/COARSE/FINE), one per row.
    iterations
        Number of promote/correct/closure rounds executed.
    converged
        True iff no row is UNDECIDED.
    """

    cf: IndexArray
    iterations: int
    converged: bool

    @property
    def n_coarse(self) -> int:
        return int(np.count_nonzero(self.cf == COARSE))

    @property
    def n_fine(self) -> int:
        return int(np.count_nonzero(self.cf == FINE))

    @property
    def splitting(self) -> IndexArray:
        """Return the C/F splitting as ones (coarse) and zeros (everything else)."""
        return (self.cf == COARSE).astype(np.int32)

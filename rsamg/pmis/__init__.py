"""PMIS coarsening and classical interpolation internals.

This package contains the building blocks of the classical AMG setup used by
`rsamg.pmis_solver`.

Modules
-------
types
    Coarse/fine labels, numerical constants, configuration, results and errors.
csr
    Prefix sums and CSR compaction helpers shared by the two-pass builders.
strength
    Strong connections and influence weights.
coarsening
    The PMIS fixed-point loop (promote, correct, fine closure).
hashtable
    Bounded row-private set/map used by extended+i interpolation.
direct
    Direct interpolation (sizing and fill passes).
extended
    Extended+i interpolation (sizing and fill passes).
truncation
    Dropping of small prolongator entries with row-sum rescaling.
hierarchy
    One-level prolongator pipeline and hierarchy extension.
smoothers
    Translation of shorthand smoother names to `change_smoothers` specs.
stats
    Per-level timing and diagnostic reporting.
"""

from __future__ import annotations

from . import (
    coarsening,
    csr,
    direct,
    extended,
    hashtable,
    hierarchy,
    smoothers,
    stats,
    strength,
    truncation,
    types,
)

__all__ = [
    "types",
    "csr",
    "strength",
    "coarsening",
    "hashtable",
    "direct",
    "extended",
    "truncation",
    "hierarchy",
    "smoothers",
    "stats",
]

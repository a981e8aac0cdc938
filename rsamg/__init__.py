"""Classical AMG setup: PMIS coarsening with direct and extended+i interpolation."""
from . import pmis
from .pmis.strength import compute_strength
from .pmis.coarsening import coarsen
from .pmis.direct import size_direct_interpolation, fill_direct_interpolation
from .pmis.extended import (
    extended_interpolation_row_max,
    size_extended_interpolation,
    fill_extended_interpolation,
)
from .pmis.truncation import truncate
from .pmis.hierarchy import pmis_prolongator
from .pmis.types import (
    COARSE,
    FINE,
    UNDECIDED,
    HashTableFullError,
    PMISConfig,
    PMISConvergenceWarning,
    Splitting,
)
from .pmis_solver import pmis_solver

__all__ = [
    'pmis',
    'compute_strength',
    'coarsen',
    'size_direct_interpolation',
    'fill_direct_interpolation',
    'extended_interpolation_row_max',
    'size_extended_interpolation',
    'fill_extended_interpolation',
    'truncate',
    'pmis_prolongator',
    'pmis_solver',
    'PMISConfig',
    'Splitting',
    'HashTableFullError',
    'PMISConvergenceWarning',
    'UNDECIDED',
    'COARSE',
    'FINE',
]

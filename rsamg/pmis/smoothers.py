"""Smoother specification helpers for the PMIS hierarchy.

This module maps short-hand smoother names to `(name, kwargs)` specifications
consumed by `pyamg.relaxation.smoothing.change_smoothers`.

Supported smoothers
-------------------
- "gs"         : Gauss-Seidel, symmetric sweep ("gauss_seidel")
- "gs_forward" : Gauss-Seidel, forward sweep
- "gs_backward": Gauss-Seidel, backward sweep
- "jacobi"     : weighted Jacobi, omega = 2/3
- "richardson" : Richardson, scaled by the spectral radius estimate
- None         : disable smoothing on this level

All of them are pointwise and need nothing beyond `level.A`.
"""

from __future__ import annotations

from typing import Any

SmootherSpec = tuple[str, dict[str, Any]]

_SPECS: dict[str, SmootherSpec] = {
    "gs": ("gauss_seidel", {"sweep": "symmetric", "iterations": 1}),
    "gs_forward": ("gauss_seidel", {"sweep": "forward", "iterations": 1}),
    "gs_backward": ("gauss_seidel", {"sweep": "backward", "iterations": 1}),
    "jacobi": ("jacobi", {"omega": 2.0 / 3.0, "iterations": 1}),
    "richardson": ("richardson", {"iterations": 1}),
}


def pmis_make_smoother_spec(smoother: str | None) -> SmootherSpec | None:
    """Return a PyAMG smoother specification for one multigrid level.

    Parameters
    ----------
    smoother
        One of {"gs", "gs_forward", "gs_backward", "jacobi", "richardson"} or None.

    Returns
    -------
    spec
        Either None (disable smoothing) or `(name, kwargs)` where `name` is a
        PyAMG smoother identifier. `kwargs` is a fresh dict on every call.

    Raises
    ------
    ValueError
        If an unsupported smoother name is provided.
    """
    if smoother is None:
        return None

    try:
        name, kwargs = _SPECS[smoother]
    except KeyError:
        raise ValueError(f"Invalid smoother type: {smoother!r}") from None
    return name, dict(kwargs)

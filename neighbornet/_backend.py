"""
_backend.py
===========
Backend detection and selection for neighbornet.

Two execution backends exist for the numerical kernels in _kernels.py:

- 'numba'  : LLVM-compiled kernels (numba.njit, cached on disk)
- 'python' : the same kernels run as plain Python through ``py_func``

Functions in this module have NO side effects - they only query system state.
Logging is done by the calling code, not here.
"""

from types import SimpleNamespace
from typing import List


KERNEL_NAMES = (
    "_cluster_sums",
    "_select_cluster_pair",
    "_reduced_row_sum",
    "_circular_design_product",
    "_circular_design_transpose_product",
    "_unconstrained_split_weights",
)


# ============================================================================ #
# Backend Detection (No Side Effects)
# ============================================================================ #


def check_numba_available() -> bool:
    """
    Check if numba JIT compilation is active.

    Returns
    -------
    bool
        False when numba has been switched off with ``NUMBA_DISABLE_JIT``,
        True otherwise.
    """
    from numba.core import config

    return not config.DISABLE_JIT


def get_available_backends() -> List[str]:
    """
    Get list of available execution backends.

    Returns
    -------
    list[str]
        Available backends in preference order, least optimized first.
        Always includes 'python'; includes 'numba' unless JIT compilation
        is disabled.

    Examples
    --------
    >>> get_available_backends()
    ['python', 'numba']
    """
    backends = ["python"]
    if check_numba_available():
        backends.append("numba")
    return backends


def get_best_backend() -> str:
    """
    Get the most optimized available backend.

    Returns
    -------
    str
        'numba' if available, otherwise 'python'.
    """
    return get_available_backends()[-1]


def resolve_backend(backend: str) -> str:
    """
    Resolve a backend specification to an actual backend.

    Parameters
    ----------
    backend : str
        'best', 'numba' or 'python'.

    Returns
    -------
    str
        Resolved backend name.

    Raises
    ------
    ValueError
        If the requested backend is unknown or not available.

    Examples
    --------
    >>> resolve_backend('best')
    'numba'
    >>> resolve_backend('python')
    'python'
    """
    if backend == "best":
        return get_best_backend()

    available = get_available_backends()
    if backend not in available:
        raise ValueError(
            f"Backend '{backend}' not available. "
            f"Available backends: {', '.join(available)}"
        )

    return backend


# ============================================================================ #
# Kernel Selection
# ============================================================================ #


def import_kernels(backend: str) -> SimpleNamespace:
    """
    Collect the numerical kernels for a resolved backend.

    Parameters
    ----------
    backend : str
        'numba' or 'python' (already resolved).

    Returns
    -------
    SimpleNamespace
        One attribute per kernel, named without the leading underscore
        (``kernels.cluster_sums``, ``kernels.circular_design_product``, ...).
    """
    from neighbornet import _kernels

    selected = {}
    for name in KERNEL_NAMES:
        kernel = getattr(_kernels, name)
        if backend == "python":
            # With NUMBA_DISABLE_JIT the decorator hands back the plain function
            kernel = getattr(kernel, "py_func", kernel)
        selected[name.lstrip("_")] = kernel
    return SimpleNamespace(**selected)


# ============================================================================ #
# Module-Level State Query (Read-Only)
# ============================================================================ #


def get_backend_info() -> dict:
    """
    Get comprehensive backend information.

    Returns
    -------
    dict
        Dictionary with keys:
        - 'numba_available': bool
        - 'numba_version': str or None
        - 'backends': list[str]
        - 'best_backend': str
        - 'kernels': list[str]

    Examples
    --------
    >>> info = get_backend_info()
    >>> info['best_backend']
    'numba'
    """
    import numba

    numba_available = check_numba_available()
    return {
        "numba_available": numba_available,
        "numba_version": numba.__version__ if numba_available else None,
        "backends": get_available_backends(),
        "best_backend": get_best_backend(),
        "kernels": [name.lstrip("_") for name in KERNEL_NAMES],
    }

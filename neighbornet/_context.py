"""
_context.py
===========
Context managers for neighbornet.

quiet() and suppress_logger() lower the volume of the pipeline loggers,
suppress_warnings() hides a warning category, and use_backend() pins
every stage to one kernel backend.  select_kernels() is the single place
where the stages turn a backend name into kernels.

Every manager restores the previous state on exit, including on error.
"""

import logging
import warnings
from contextlib import contextmanager
from types import SimpleNamespace
from typing import Optional, Tuple, Type

from neighbornet._backend import (
    get_available_backends,
    get_best_backend,
    import_kernels,
    resolve_backend,
)


logger = logging.getLogger(__name__)

# Module-level state for backend override
_backend_override = None

PACKAGE_LOGGER = "neighbornet"


# ============================================================================ #
# Logging Context Managers
# ============================================================================ #


@contextmanager
def suppress_logger(logger_name: str, level: int = logging.CRITICAL):
    """
    Temporarily change a logger's level.

    Parameters
    ----------
    logger_name : str
        Name of the logger to suppress (e.g. 'neighbornet._cycle').
    level : int, default logging.CRITICAL
        Temporary logging level.

    Examples
    --------
    >>> with suppress_logger('neighbornet._weights'):
    ...     splits = circular_split_weights(cycle, dm)

    >>> with suppress_logger('neighbornet', logging.WARNING):
    ...     net = NeighborNet(dm)
    """
    target = logging.getLogger(logger_name)
    original_level = target.level

    try:
        target.setLevel(level)
        yield
    finally:
        target.setLevel(original_level)


@contextmanager
def quiet(level: int = logging.CRITICAL):
    """
    Temporarily suppress all neighbornet logging.

    Every module logger is a child of the 'neighbornet' logger, so raising
    the level of the package logger silences the whole pipeline.

    Parameters
    ----------
    level : int, default logging.CRITICAL
        Temporary logging level for the package logger.

    Examples
    --------
    >>> with quiet():
    ...     net = NeighborNet(dm)

    >>> with quiet(logging.WARNING):
    ...     net = NeighborNet(dm)
    """
    with suppress_logger(PACKAGE_LOGGER, level):
        yield


# ============================================================================ #
# Warning Context Managers
# ============================================================================ #


@contextmanager
def suppress_warnings(category: Optional[Type[Warning]] = None):
    """
    Temporarily suppress warnings.

    Parameters
    ----------
    category : Type[Warning] or None, default None
        Warning category to suppress.  If None, suppresses all warnings.

    Examples
    --------
    >>> from numba.core.errors import NumbaPerformanceWarning
    >>> with suppress_warnings(NumbaPerformanceWarning):
    ...     net = NeighborNet(dm)
    """
    with warnings.catch_warnings():
        if category is None:
            warnings.simplefilter("ignore")
        else:
            warnings.filterwarnings("ignore", category=category)
        yield


# ============================================================================ #
# Backend Context Managers
# ============================================================================ #


@contextmanager
def use_backend(backend: str):
    """
    Temporarily force a specific backend for every pipeline stage.

    Parameters
    ----------
    backend : str
        'python', 'numba' or 'best'.

    Raises
    ------
    ValueError
        If requested backend is not available.

    Examples
    --------
    >>> with use_backend('python'):
    ...     # uncompiled kernels, steppable in a debugger
    ...     cycle = compute_cycle(dm)

    Notes
    -----
    **Not thread-safe**: uses module-level state.  Pass ``backend=``
    directly to compute_cycle(), circular_split_weights() or NeighborNet()
    when selecting backends from several threads.
    """
    global _backend_override

    available = get_available_backends()
    if backend != "best" and backend not in available:
        raise ValueError(
            f"Backend '{backend}' not available. "
            f"Available backends: {', '.join(available)}"
        )

    original_override = _backend_override

    try:
        _backend_override = backend
        yield
    finally:
        _backend_override = original_override


def get_backend_override() -> Optional[str]:
    """
    Get the current backend override, if any.

    Returns
    -------
    str or None
        Current backend override, or None if no override is active.
    """
    return _backend_override


def select_kernels(backend: str) -> Tuple[str, SimpleNamespace]:
    """
    Resolve *backend* (honouring any active use_backend() override) and
    return the resolved name with its kernels.

    An unavailable backend is logged as a warning and replaced by the best
    available one.
    """
    backend_override = get_backend_override()
    if backend_override is not None:
        backend = backend_override

    try:
        resolved = resolve_backend(backend)
    except ValueError as e:
        logger.warning(str(e))
        resolved = get_best_backend()

    return resolved, import_kernels(resolved)


# ============================================================================ #
# Combined Context Managers
# ============================================================================ #


@contextmanager
def silent_benchmark(backend: str = "best"):
    """
    Suppress logging and warnings while forcing a specific backend.

    Examples
    --------
    >>> for backend in ['python', 'numba']:
    ...     with silent_benchmark(backend):
    ...         start = time.time()
    ...         net = NeighborNet(dm)
    ...         print(f"{backend}: {time.time() - start:.3f}s")
    """
    with quiet():
        with use_backend(backend):
            with suppress_warnings():
                yield

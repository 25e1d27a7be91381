"""
_logging.py
===========
Logging functions for neighbornet.

All functions in this module have NO side effects except logging. They take
computed data as parameters and format/emit log messages.

This separation ensures:
- Logging can be easily disabled/mocked in tests
- Computation is separate from presentation
"""

import logging
from typing import List, Sequence


logger = logging.getLogger(__name__)


LOW_FIT_THRESHOLD = 80.0


# ============================================================================ #
# System and Backend Logging (called at module import time)
# ============================================================================ #


def log_numba_status(numba_available: bool) -> None:
    """
    Log numba, llvmlite and threading configuration at INFO level.

    Called once at package import time.

    Parameters
    ----------
    numba_available : bool
        Whether numba JIT compilation is active.
    """
    import platform

    import numba

    logger.info(
        f"System: {platform.machine()} ({platform.system()}), "
        f"Python {platform.python_version()}"
    )

    if not numba_available:
        logger.info(
            f"Numba {numba.__version__} installed but JIT disabled "
            "- kernels will run as pure Python"
        )
        return

    logger.info(f"Numba {numba.__version__} loaded successfully")

    try:
        import llvmlite

        logger.info(f"LLVM backend: llvmlite {llvmlite.__version__}")
    except (ImportError, AttributeError):
        pass  # LLVM version unavailable

    try:
        logger.info(f"Numba threads available: {numba.get_num_threads()}")
    except Exception:
        pass  # Threading info unavailable in some configs


def install_numba_warning_filter(numba_available: bool) -> None:
    """
    Capture NumbaPerformanceWarning and route it through our logger.

    numba issues performance warnings via Python's warnings module.  This
    filter intercepts them and logs them at WARNING level so they appear in
    the same stream as other neighbornet diagnostics.

    Parameters
    ----------
    numba_available : bool
        Whether numba JIT compilation is active.
    """
    import warnings

    if not numba_available:
        return

    from numba.core.errors import NumbaPerformanceWarning

    original_showwarning = warnings.showwarning

    def custom_showwarning(message, category, filename, lineno, file=None, line=None):
        if issubclass(category, NumbaPerformanceWarning):
            logger.warning(f"Numba performance issue: {message}")
            logger.warning(f"  at {filename}:{lineno}")
            return
        original_showwarning(message, category, filename, lineno, file, line)

    warnings.showwarning = custom_showwarning


def log_backend_availability(backends_available: List[str]) -> None:
    """
    Log which execution backends are available for the kernels.

    Parameters
    ----------
    backends_available : List[str]
        Available backends, least optimized first.
    """
    logger.info(f"Available backends: {', '.join(backends_available)}")
    if "numba" in backends_available:
        logger.info("  numba: LLVM-compiled kernels (numba.njit, cached)")
    logger.info("  python: uncompiled reference kernels")
    logger.info(f"Default backend='best' will use: {backends_available[-1]}")


# ============================================================================ #
# Pipeline Logging
# ============================================================================ #


def log_input_summary(
    n_taxa: int, max_distance: float, n_zero_pairs: int, has_variances: bool
) -> None:
    """
    Log the shape of the input distance matrix.

    Parameters
    ----------
    n_taxa : int
        Number of taxa.
    max_distance : float
        Largest off-diagonal distance.
    n_zero_pairs : int
        Number of distinct taxon pairs at distance zero.
    has_variances : bool
        Whether a variance matrix accompanies the distances.
    """
    n_pairs = n_taxa * (n_taxa - 1) // 2
    extra = ", with variances" if has_variances else ""
    logger.info(
        f"Distance matrix: {n_taxa} taxa, {n_pairs} pairs, "
        f"max distance {max_distance:.6g}{extra}"
    )
    if n_zero_pairs > 0:
        logger.info(f"  {n_zero_pairs} taxon pair(s) at distance zero")


def log_agglomeration_summary(
    n_taxa: int, n_amalgamations: int, cycle: Sequence[int], backend: str
) -> None:
    """
    Log the result of the agglomeration and expansion phases.

    Parameters
    ----------
    n_taxa : int
        Number of taxa.
    n_amalgamations : int
        Number of three-way merges recorded on the amalgamation stack.
    cycle : sequence of int
        The resulting circular ordering.
    backend : str
        Backend used for the kernels.
    """
    logger.info(
        f"compute_cycle(backend={backend!r}): {n_taxa} taxa, "
        f"{n_amalgamations} three-way merges"
    )
    if n_taxa <= 20:
        logger.info(f"  Circular ordering: {' '.join(map(str, cycle))}")
    else:
        head = " ".join(map(str, list(cycle)[:10]))
        logger.info(f"  Circular ordering: {head} ... ({n_taxa} taxa)")


def log_solver_summary(
    n_taxa: int,
    n_positive: int,
    least_squares: str,
    regularization: str,
    outer_iterations: int,
    feasible_start: bool,
    backend: str,
) -> None:
    """
    Log the outcome of the constrained split-weight fit.

    Parameters
    ----------
    n_taxa : int
        Number of taxa.
    n_positive : int
        Number of circular splits with strictly positive weight.
    least_squares : str
        Weighting mode ('ols', 'fm1', 'fm2', 'estimated').
    regularization : str
        'nnls' or 'lasso'.
    outer_iterations : int
        Number of active-set optimality checks performed.
    feasible_start : bool
        True if the unconstrained optimum was already non-negative.
    backend : str
        Backend used for the kernels.
    """
    n_splits = n_taxa * (n_taxa - 1) // 2
    logger.info(
        f"circular_split_weights({least_squares}, {regularization}, "
        f"backend={backend!r}): {n_positive} of {n_splits} circular splits positive"
    )
    if feasible_start:
        logger.info("  Unconstrained optimum is non-negative; no active-set iterations")
    else:
        logger.info(f"  Active-set iterations: {outer_iterations}")


def log_split_system_summary(
    n_splits: int, n_dropped: int, compatibility: str, fit: float
) -> None:
    """
    Log the assembled split system and warn when the fit is poor.

    Parameters
    ----------
    n_splits : int
        Number of retained splits.
    n_dropped : int
        Number of splits removed by the weight cutoff.
    compatibility : str
        Compatibility label of the retained splits.
    fit : float
        Least-squares fit percentage.
    """
    logger.info(
        f"Split system: {n_splits} splits ({n_dropped} below cutoff), "
        f"{compatibility}, fit {fit:.2f}%"
    )
    if fit < LOW_FIT_THRESHOLD:
        logger.warning(
            f"Low least-squares fit ({fit:.2f}%): the distances are far from "
            f"circular and the network may be a poor representation."
        )

"""
conftest.py
===========
Session-level pytest configuration for the test suite.

Custom marks
------------
large_scale
    Applied to tests that build networks over enough taxa to take several
    seconds with the uncompiled 'python' backend.  Excluded with
    ``-m 'not large_scale'``.

    Registration here suppresses PytestUnknownMarkWarning and makes the mark
    visible in ``pytest --markers``.

Warning filters
---------------
NumbaPerformanceWarning messages are filtered out during tests.  They are
about compilation heuristics on tiny inputs and are not informative for
correctness testing.
"""

import warnings


def pytest_configure(config):
    """
    Configure pytest before test collection begins.

    This runs before any test modules are imported, which matters for
    catching warnings emitted while numba compiles the kernels.
    """
    config.addinivalue_line(
        "markers",
        "large_scale: networks over many taxa (slow with the python backend)",
    )

    from numba.core.errors import NumbaPerformanceWarning

    warnings.filterwarnings("ignore", category=NumbaPerformanceWarning)


def pytest_unconfigure(config):
    """Restore default warning behavior."""
    warnings.resetwarnings()
